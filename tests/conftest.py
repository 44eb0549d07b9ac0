import fnmatch
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront import create_app
from storefront.database import create_all, drop_all, get_session
from storefront.models import AuthUser, Profile, UserRole, Category, Product, Offer, Address
from storefront.services.cache_service import CacheService, get_cache
from storefront.services.cart_service import CartLedger
from storefront.services.local_state import LocalStateStore
from storefront.services.wishlist_service import WishlistSet


class InMemoryRedis:
    """Dict-backed stand-in for the redis client used by CacheService."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def scan_iter(self, match='*', count=None):
        return iter([key for key in list(self.store) if fnmatch.fnmatchcase(key, match)])


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    return create_app('config.TestingConfig')


@pytest.fixture(scope='function')
def redis_client(app):
    client = InMemoryRedis()
    get_cache().attach_client(client)
    return client


@pytest.fixture(scope='function')
def session(app, redis_client):
    """Fresh schema per test, inside an application context."""
    with app.app_context():
        create_all()
        db = get_session()
        yield db
        db.rollback()
        db.remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def make_account(session):
    """Factory: credentials plus profile; returns the profile."""
    def _make(email=None, password='password123', full_name='Test User', role=UserRole.CUSTOMER):
        email = email or f'user-{uuid.uuid4().hex[:8]}@test.com'
        user = AuthUser(email=email)
        user.set_password(password)
        session.add(user)
        session.flush()
        profile = Profile(id=user.id, email=email, full_name=full_name, role=role.value)
        session.add(profile)
        session.commit()
        return profile
    return _make


@pytest.fixture
def customer(make_account):
    return make_account(email='customer@test.com')


@pytest.fixture
def other_customer(make_account):
    return make_account(email='other@test.com')


@pytest.fixture
def admin(make_account):
    return make_account(email='admin@test.com', full_name='Admin', role=UserRole.ADMIN)


@pytest.fixture
def category(session):
    category = Category(name='Fruits', slug='fruits', display_order=1)
    session.add(category)
    session.commit()
    return category


@pytest.fixture
def make_product(session, category):
    """Factory for products; defaults to price 100, mrp 120, stock 50, max 10."""
    def _make(name='Apple', price='100.00', mrp='120.00', quantity_available=50, max_order_qty=10, **kwargs):
        product = Product(
            name=name,
            slug=kwargs.pop('slug', f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}"),
            category_id=category.id,
            price=Decimal(price),
            mrp=Decimal(mrp),
            unit='1 kg',
            quantity_available=quantity_available,
            max_order_qty=max_order_qty,
            **kwargs
        )
        session.add(product)
        session.commit()
        return product
    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def make_coupon(session):
    def _make(code='SAVE10', discount_type='percentage', discount_value='10', **kwargs):
        offer = Offer(
            title=f'{code} offer',
            coupon_code=code,
            discount_type=discount_type,
            discount_value=Decimal(discount_value),
            **kwargs
        )
        session.add(offer)
        session.commit()
        return offer
    return _make


@pytest.fixture
def address(session, customer):
    address = Address(
        user_id=customer.id,
        label='Home',
        address_line1='12 MG Road',
        city='Bengaluru',
        state='Karnataka',
        pincode='560001',
        is_default=True,
    )
    session.add(address)
    session.commit()
    return address


@pytest.fixture
def local_state(app, redis_client):
    return LocalStateStore(get_cache(), f'device-{uuid.uuid4().hex[:8]}')


@pytest.fixture
def cart(session, customer, local_state):
    user_id = customer.id
    return CartLedger(session, lambda: user_id, local_state)


@pytest.fixture
def wishlist(session, customer, local_state):
    user_id = customer.id
    return WishlistSet(session, lambda: user_id, local_state)


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def standalone_cache():
    """A CacheService not tied to the app, with its own in-memory client."""
    cache = CacheService()
    client = InMemoryRedis()
    cache.attach_client(client)
    return cache, client
