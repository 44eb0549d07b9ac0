"""Wishlist blueprint."""
from flask import Blueprint

from storefront.middleware import get_catalog, get_wishlist, json_body, require_login, result_response

wishlist_bp = Blueprint('wishlist', __name__, url_prefix='/api/wishlist')


@wishlist_bp.route('', methods=['GET'])
@require_login
def view_wishlist():
    return result_response(get_wishlist().fetch())


@wishlist_bp.route('', methods=['POST'])
@require_login
def add_to_wishlist():
    product = get_catalog().fetch_product_by_id(json_body().get('product_id'))
    if not product.success:
        return result_response(product)
    return result_response(get_wishlist().add(product.data), 201)


@wishlist_bp.route('/toggle', methods=['POST'])
@require_login
def toggle_wishlist():
    product = get_catalog().fetch_product_by_id(json_body().get('product_id'))
    if not product.success:
        return result_response(product)
    return result_response(get_wishlist().toggle(product.data))


@wishlist_bp.route('/<entry_id>', methods=['DELETE'])
@require_login
def remove_from_wishlist(entry_id):
    return result_response(get_wishlist().remove(entry_id))


@wishlist_bp.route('', methods=['DELETE'])
@require_login
def clear_wishlist():
    return result_response(get_wishlist().clear())
