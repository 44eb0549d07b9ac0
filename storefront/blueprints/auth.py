"""
Authentication blueprint.
Sign-up, sign-in, sign-out, profile and password reset for storefront users.
"""
import logging

from flask import Blueprint, g, jsonify

from storefront.middleware import (
    get_cart, get_wishlist, get_local_state, json_body, require_login, result_response
)
from storefront.services.local_state import CART_STORAGE_KEY, WISHLIST_STORAGE_KEY

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _sync_device_state():
    """Pull the signed-in user's cart and wishlist into this device's state."""
    for store in (get_cart(), get_wishlist()):
        result = store.fetch()
        if not result.success:
            logger.warning(f"[AUTH] Could not sync {store.__class__.__name__}: {result.error.message}")


@auth_bp.route('/signup', methods=['POST'])
def signup():
    data = json_body()
    result = g.session_ctx.sign_up(data.get('email'), data.get('password'), data.get('full_name'))
    if result.success:
        _sync_device_state()
    return result_response(result, 201)


@auth_bp.route('/signin', methods=['POST'])
def signin():
    data = json_body()
    result = g.session_ctx.sign_in(data.get('email'), data.get('password'))
    if result.success:
        _sync_device_state()
    return result_response(result)


@auth_bp.route('/signout', methods=['POST'])
def signout():
    result = g.session_ctx.sign_out()
    if result.success:
        state = get_local_state()
        state.remove(CART_STORAGE_KEY)
        state.remove(WISHLIST_STORAGE_KEY)
    return result_response(result)


@auth_bp.route('/session', methods=['GET'])
def current_session():
    ctx = g.session_ctx
    return jsonify({
        'success': True,
        'data': {
            'is_authenticated': ctx.is_authenticated,
            'is_admin': ctx.is_admin,
            'user': ctx.user,
            'profile': ctx.profile,
        }
    })


@auth_bp.route('/profile', methods=['GET'])
@require_login
def get_profile():
    return result_response(g.session_ctx.refresh_profile())


@auth_bp.route('/profile', methods=['PATCH'])
@require_login
def update_profile():
    return result_response(g.session_ctx.update_profile(json_body()))


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    return result_response(g.session_ctx.reset_password(json_body().get('email')))


@auth_bp.route('/reset-password/complete', methods=['POST'])
def complete_reset():
    data = json_body()
    return result_response(g.session_ctx.complete_password_reset(data.get('token'), data.get('password')))
