"""Request context: device identity, session context and per-request stores."""
import uuid
from functools import wraps

from flask import session, g, current_app, jsonify, request

from storefront.database import get_session
from storefront.exceptions import BusinessLogicError, UnauthenticatedError, UnauthorizedError
from storefront.services.address_service import AddressBook
from storefront.services.admin_service import AdminConsole
from storefront.services.auth_service import AuthService
from storefront.services.cache_service import get_cache
from storefront.services.cart_service import CartLedger
from storefront.services.catalog_service import CatalogCache
from storefront.services.local_state import LocalStateStore
from storefront.services.order_service import OrderLedger
from storefront.services.session_context import SessionContext
from storefront.services.wishlist_service import WishlistSet

DEVICE_ID_KEY = 'device_id'


def get_device_id() -> str:
    """Device id kept in the signed session cookie; issued on first visit."""
    device_id = session.get(DEVICE_ID_KEY)
    if not device_id:
        device_id = uuid.uuid4().hex
        session[DEVICE_ID_KEY] = device_id
        session.permanent = True
    return device_id


def get_local_state() -> LocalStateStore:
    if 'local_state' not in g:
        g.local_state = LocalStateStore(
            get_cache(), get_device_id(), current_app.config.get('LOCAL_STATE_TTL')
        )
    return g.local_state


def load_session_context():
    """
    Build the auth service and session context for this request.

    Called before each request; sets g.auth and g.session_ctx. A bearer
    token in the Authorization header takes precedence over the device token.
    """
    cfg = current_app.config
    g.auth = AuthService(
        get_session(),
        session_ttl=cfg['AUTH_SESSION_TTL'],
        reset_ttl=cfg['PASSWORD_RESET_TTL'],
        reset_url=cfg['PASSWORD_RESET_URL'],
    )
    header = request.headers.get('Authorization', '')
    bearer = header[7:].strip() if header.startswith('Bearer ') else None
    g.session_ctx = SessionContext(g.auth, get_local_state()).initialize(bearer or None)


REQUEST_STORES = ('local_state', 'auth', 'catalog', 'cart', 'wishlist', 'orders', 'address_book', 'admin_console')


def close_session_context(exception=None):
    ctx = g.pop('session_ctx', None)
    if ctx is not None:
        ctx.close()
    for name in REQUEST_STORES:
        g.pop(name, None)


# ---------------------------------------------------------------
# Per-request stores
# ---------------------------------------------------------------

def _sync_if_missing(store) -> None:
    """Reload from the database when this device holds no copy of the store for the signed-in user."""
    if g.session_ctx.is_authenticated and store.owner_id != g.session_ctx.get_user_id():
        store.fetch()


def get_catalog() -> CatalogCache:
    if 'catalog' not in g:
        cfg = current_app.config
        g.catalog = CatalogCache(
            get_session(),
            get_cache(),
            categories_ttl=cfg.get('CACHE_CATEGORIES_TTL'),
            offers_ttl=cfg.get('CACHE_OFFERS_TTL'),
        )
    return g.catalog


def get_cart() -> CartLedger:
    if 'cart' not in g:
        cfg = current_app.config
        g.cart = CartLedger(
            get_session(),
            g.session_ctx.get_user_id,
            get_local_state(),
            free_delivery_threshold=cfg['FREE_DELIVERY_THRESHOLD'],
            delivery_fee=cfg['DELIVERY_FEE'],
        )
        g.cart.restore()
        _sync_if_missing(g.cart)
    return g.cart


def get_wishlist() -> WishlistSet:
    if 'wishlist' not in g:
        g.wishlist = WishlistSet(get_session(), g.session_ctx.get_user_id, get_local_state())
        g.wishlist.restore()
        _sync_if_missing(g.wishlist)
    return g.wishlist


def get_orders() -> OrderLedger:
    if 'orders' not in g:
        g.orders = OrderLedger(
            get_session(),
            g.session_ctx.get_user_id,
            get_cart(),
            estimated_delivery_minutes=current_app.config['ESTIMATED_DELIVERY_MINUTES'],
        )
    return g.orders


def get_address_book() -> AddressBook:
    if 'address_book' not in g:
        g.address_book = AddressBook(get_session(), g.session_ctx.get_user_id)
    return g.address_book


def get_admin_console() -> AdminConsole:
    if 'admin_console' not in g:
        g.admin_console = AdminConsole(get_session(), lambda: g.session_ctx.is_admin, get_cache())
    return g.admin_console


# ---------------------------------------------------------------
# Decorators and responses
# ---------------------------------------------------------------

def require_login(f):
    """Decorator: reject the request with 401 unless a user is signed in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.session_ctx.is_authenticated:
            raise UnauthenticatedError()
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """Decorator: signed-in admin profiles only."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.session_ctx.is_authenticated:
            raise UnauthenticatedError()
        if not g.session_ctx.is_admin:
            raise UnauthorizedError('Admin access required')
        return f(*args, **kwargs)
    return decorated_function


def result_response(result, success_status: int = 200):
    """Result -> (json, status)."""
    status = success_status if result.success else result.status_code
    return jsonify(result.to_dict()), status


def json_body() -> dict:
    return request.get_json(silent=True) or {}


def int_field(data: dict, key: str, default=None) -> int:
    value = data.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BusinessLogicError(f"'{key}' must be an integer")
