"""Addresses blueprint."""
from flask import Blueprint

from storefront.middleware import get_address_book, json_body, require_login, result_response

addresses_bp = Blueprint('addresses', __name__, url_prefix='/api/addresses')


@addresses_bp.route('', methods=['GET'])
@require_login
def list_addresses():
    return result_response(get_address_book().fetch_addresses())


@addresses_bp.route('', methods=['POST'])
@require_login
def add_address():
    return result_response(get_address_book().add_address(json_body()), 201)


@addresses_bp.route('/<address_id>', methods=['PATCH'])
@require_login
def update_address(address_id):
    return result_response(get_address_book().update_address(address_id, json_body()))


@addresses_bp.route('/<address_id>', methods=['DELETE'])
@require_login
def delete_address(address_id):
    return result_response(get_address_book().delete_address(address_id))


@addresses_bp.route('/<address_id>/default', methods=['POST'])
@require_login
def set_default_address(address_id):
    return result_response(get_address_book().set_default(address_id))
