"""Orders blueprint - checkout, history, tracking and cancellation."""
from flask import Blueprint

from storefront.middleware import get_orders, json_body, require_login, result_response

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


@orders_bp.route('', methods=['GET'])
@require_login
def list_orders():
    return result_response(get_orders().fetch_orders())


@orders_bp.route('', methods=['POST'])
@require_login
def place_order():
    data = json_body()
    result = get_orders().place_order(
        data.get('address_id'),
        data.get('payment_method'),
        data.get('delivery_instructions'),
    )
    return result_response(result, 201)


@orders_bp.route('/stats', methods=['GET'])
@require_login
def order_stats():
    return result_response(get_orders().get_order_stats())


@orders_bp.route('/<order_id>', methods=['GET'])
@require_login
def order_detail(order_id):
    return result_response(get_orders().fetch_order_by_id(order_id))


@orders_bp.route('/<order_id>/track', methods=['GET'])
@require_login
def track_order(order_id):
    return result_response(get_orders().track_order(order_id))


@orders_bp.route('/<order_id>/cancel', methods=['POST'])
@require_login
def cancel_order(order_id):
    return result_response(get_orders().cancel_order(order_id))
