"""
Admin blueprint.
Catalog maintenance and order fulfilment; admin profiles only.
"""
from flask import Blueprint, request

from storefront.middleware import get_admin_console, json_body, require_admin, result_response

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


@admin_bp.route('/products', methods=['POST'])
@require_admin
def create_product():
    return result_response(get_admin_console().create_product(json_body()), 201)


@admin_bp.route('/products/<product_id>', methods=['PATCH'])
@require_admin
def update_product(product_id):
    return result_response(get_admin_console().update_product(product_id, json_body()))


@admin_bp.route('/products/<product_id>', methods=['DELETE'])
@require_admin
def delete_product(product_id):
    return result_response(get_admin_console().delete_product(product_id))


@admin_bp.route('/products/<product_id>/image', methods=['POST'])
@require_admin
def upload_product_image(product_id):
    return result_response(get_admin_console().upload_product_image(product_id, request.files.get('image')))


@admin_bp.route('/categories', methods=['POST'])
@require_admin
def create_category():
    return result_response(get_admin_console().create_category(json_body()), 201)


@admin_bp.route('/coupons', methods=['POST'])
@require_admin
def create_coupon():
    return result_response(get_admin_console().create_coupon(json_body()), 201)


@admin_bp.route('/orders', methods=['GET'])
@require_admin
def list_orders():
    return result_response(get_admin_console().list_orders(request.args.get('status')))


@admin_bp.route('/orders/<order_id>/status', methods=['PATCH'])
@require_admin
def update_order_status(order_id):
    return result_response(get_admin_console().update_order_status(order_id, json_body().get('status')))


@admin_bp.route('/stats', methods=['GET'])
@require_admin
def dashboard_stats():
    return result_response(get_admin_console().get_dashboard_stats())
