"""Cart blueprint - cart lines, quantities and coupons for the signed-in user."""
from flask import Blueprint, jsonify

from storefront.middleware import (
    get_cart, get_catalog, int_field, json_body, require_login, result_response
)

cart_bp = Blueprint('cart', __name__, url_prefix='/api/cart')


@cart_bp.route('', methods=['GET'])
def view_cart():
    return result_response(get_cart().fetch())


@cart_bp.route('/items', methods=['POST'])
@require_login
def add_item():
    data = json_body()
    product = get_catalog().fetch_product_by_id(data.get('product_id'))
    if not product.success:
        return result_response(product)

    cart = get_cart()
    result = cart.add_item(product.data, int_field(data, 'quantity', 1))
    if result.success:
        result.data = cart.snapshot()
    return result_response(result, 201)


@cart_bp.route('/items/<line_id>', methods=['PATCH'])
@require_login
def update_item(line_id):
    cart = get_cart()
    result = cart.set_quantity(line_id, int_field(json_body(), 'quantity'))
    if result.success:
        result.data = cart.snapshot()
    return result_response(result)


@cart_bp.route('/items/<line_id>', methods=['DELETE'])
@require_login
def remove_item(line_id):
    cart = get_cart()
    result = cart.remove_item(line_id)
    if result.success:
        result.data = cart.snapshot()
    return result_response(result)


@cart_bp.route('', methods=['DELETE'])
@require_login
def clear_cart():
    cart = get_cart()
    result = cart.clear()
    if result.success:
        result.data = cart.snapshot()
    return result_response(result)


@cart_bp.route('/coupon', methods=['POST'])
@require_login
def apply_coupon():
    return result_response(get_cart().apply_coupon(json_body().get('code')))


@cart_bp.route('/coupon', methods=['DELETE'])
@require_login
def remove_coupon():
    cart = get_cart()
    cart.remove_coupon()
    return jsonify({'success': True, 'data': cart.snapshot()})
