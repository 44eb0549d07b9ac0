"""
Integration tests for the cart ledger against the database.
"""
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from storefront.models import CartItem
from storefront.services.cart_service import CartLedger
from storefront.services.catalog_service import normalize_product


def subtotal_of(cart):
    return sum((line.price * line.quantity for line in cart.lines), Decimal('0'))


class TestAddItem:
    """Tests for CartLedger.add_item."""

    def test_add_new_line(self, session, cart, product, customer):
        result = cart.add_item(normalize_product(product), 2)

        assert result.success
        assert cart.item_quantity(product.id) == 2
        assert cart.contains_product(product.id)
        row = session.query(CartItem).filter_by(user_id=customer.id, product_id=product.id).one()
        assert row.quantity == 2
        assert cart.lines[0].id == row.id
        assert cart.totals.subtotal == Decimal('200.00')
        assert cart.totals.delivery_fee == Decimal('0.00')

    def test_add_existing_product_sums_quantity(self, session, cart, product):
        cart.add_item(normalize_product(product), 2)
        result = cart.add_item(normalize_product(product), 3)

        assert result.success
        assert len(cart.lines) == 1
        assert cart.item_quantity(product.id) == 5
        assert session.query(CartItem).one().quantity == 5

    def test_add_requires_session(self, session, product, local_state):
        cart = CartLedger(session, lambda: None, local_state)
        result = cart.add_item(normalize_product(product))

        assert not result.success
        assert result.error.code == 'unauthenticated'
        assert result.status_code == 401
        assert session.query(CartItem).count() == 0

    def test_add_above_order_limit(self, session, cart, make_product):
        product = make_product(max_order_qty=3)
        result = cart.add_item(normalize_product(product), 4)

        assert result.error.code == 'quantity_exceeds_order_limit'
        assert cart.lines == []
        assert session.query(CartItem).count() == 0

    def test_add_above_stock(self, session, cart, make_product):
        product = make_product(quantity_available=2)
        result = cart.add_item(normalize_product(product), 3)

        assert result.error.code == 'insufficient_stock'
        assert cart.lines == []

    def test_add_unavailable_product(self, cart, make_product):
        product = make_product(is_available=False)
        result = cart.add_item(normalize_product(product))
        assert result.error.code == 'business_rule'


class TestSetQuantity:
    """Tests for CartLedger.set_quantity."""

    def test_update_quantity(self, session, cart, product):
        cart.add_item(normalize_product(product), 1)
        line_id = cart.lines[0].id

        result = cart.set_quantity(line_id, 4)

        assert result.success
        assert cart.lines[0].quantity == 4
        assert session.query(CartItem).one().quantity == 4
        assert cart.totals.subtotal == Decimal('400.00')

    def test_above_order_limit_leaves_quantity(self, session, cart, make_product):
        product = make_product(max_order_qty=5)
        cart.add_item(normalize_product(product), 2)
        line_id = cart.lines[0].id

        result = cart.set_quantity(line_id, 6)

        assert not result.success
        assert result.error.code == 'quantity_exceeds_order_limit'
        assert cart.lines[0].quantity == 2
        assert session.query(CartItem).one().quantity == 2

    def test_above_stock_leaves_quantity(self, session, cart, make_product):
        product = make_product(quantity_available=3)
        cart.add_item(normalize_product(product), 1)

        result = cart.set_quantity(cart.lines[0].id, 4)

        assert result.error.code == 'insufficient_stock'
        assert cart.lines[0].quantity == 1

    def test_zero_quantity_removes_line(self, session, cart, product, make_product):
        other = make_product(name='Banana', price='30.00', mrp='30.00')
        cart.add_item(normalize_product(product), 1)
        cart.add_item(normalize_product(other), 2)
        line_id = cart.lines[0].id

        result = cart.set_quantity(line_id, 0)

        assert result.success
        assert not cart.contains_product(product.id)
        assert session.query(CartItem).count() == 1
        assert cart.totals.subtotal == Decimal('60.00')
        assert cart.totals.delivery_fee == Decimal('40.00')

    def test_unknown_line(self, cart):
        result = cart.set_quantity('missing', 2)
        assert result.error.code == 'not_found'

    def test_subtotal_matches_lines_after_mutations(self, cart, make_product):
        a = make_product(name='Milk', price='27.50', mrp='30.00')
        b = make_product(name='Bread', price='45.00', mrp='45.00')
        c = make_product(name='Eggs', price='6.25', mrp='7.00')

        cart.add_item(normalize_product(a), 2)
        cart.add_item(normalize_product(b), 1)
        cart.add_item(normalize_product(c), 6)
        assert cart.totals.subtotal == subtotal_of(cart)

        cart.set_quantity(cart.lines[0].id, 5)
        assert cart.totals.subtotal == subtotal_of(cart)

        cart.remove_item(cart.lines[1].id)
        assert cart.totals.subtotal == subtotal_of(cart)

        cart.add_item(normalize_product(a), 1)
        assert cart.totals.subtotal == subtotal_of(cart) == Decimal('202.50')
        assert cart.totals.total == cart.totals.subtotal


class TestRemoveAndClear:

    def test_remove_item(self, session, cart, product):
        cart.add_item(normalize_product(product), 1)
        result = cart.remove_item(cart.lines[0].id)

        assert result.success
        assert cart.lines == []
        assert session.query(CartItem).count() == 0

    def test_clear_resets_discount(self, session, cart, product, make_coupon):
        make_coupon(code='FLAT20', discount_type='flat', discount_value='20')
        cart.add_item(normalize_product(product), 2)
        cart.apply_coupon('FLAT20')

        result = cart.clear()

        assert result.success
        assert cart.lines == []
        assert cart.discount == Decimal('0.00')
        assert cart.coupon_code is None
        assert session.query(CartItem).count() == 0


class TestCoupons:
    """Tests for CartLedger.apply_coupon."""

    def test_percentage_coupon_clamped(self, cart, product, make_coupon):
        make_coupon(code='TEN', discount_value='10', max_discount=Decimal('50'))
        cart.add_item(normalize_product(product), 10)

        result = cart.apply_coupon('TEN')

        assert result.success
        assert cart.totals.subtotal == Decimal('1000.00')
        assert cart.discount == Decimal('50.00')
        assert cart.totals.total == Decimal('950.00')

    def test_code_is_case_insensitive(self, cart, product, make_coupon):
        make_coupon(code='SAVE10')
        cart.add_item(normalize_product(product), 1)
        assert cart.apply_coupon('  save10 ').success
        assert cart.coupon_code == 'SAVE10'

    def test_minimum_order_not_met_keeps_prior_discount(self, cart, make_product, make_coupon):
        make_coupon(code='FLAT20', discount_type='flat', discount_value='20')
        make_coupon(code='BIG', discount_type='flat', discount_value='60', min_order_value=Decimal('200'))
        product = make_product(price='50.00', mrp='50.00')
        cart.add_item(normalize_product(product), 3)
        cart.apply_coupon('FLAT20')

        result = cart.apply_coupon('BIG')

        assert result.error.code == 'minimum_order_not_met'
        assert cart.discount == Decimal('20.00')
        assert cart.coupon_code == 'FLAT20'

    def test_new_coupon_replaces_previous(self, cart, product, make_coupon):
        make_coupon(code='FLAT20', discount_type='flat', discount_value='20')
        make_coupon(code='FLAT30', discount_type='flat', discount_value='30')
        cart.add_item(normalize_product(product), 3)

        cart.apply_coupon('FLAT20')
        cart.apply_coupon('FLAT30')

        assert cart.discount == Decimal('30.00')
        assert cart.totals.total == Decimal('270.00')

    def test_flat_coupon_above_subtotal_floors_total(self, cart, make_product, make_coupon):
        make_coupon(code='HUGE', discount_type='flat', discount_value='500')
        product = make_product(price='50.00', mrp='50.00')
        cart.add_item(normalize_product(product), 1)

        cart.apply_coupon('HUGE')

        assert cart.discount == Decimal('500.00')
        assert cart.totals.total == Decimal('0.00')

    def test_unknown_and_inactive_codes(self, cart, product, make_coupon):
        make_coupon(code='OLD', is_active=False)
        cart.add_item(normalize_product(product), 1)

        assert cart.apply_coupon('NOPE').error.code == 'coupon_not_found'
        assert cart.apply_coupon('OLD').error.code == 'coupon_not_found'
        assert cart.apply_coupon('').error.code == 'business_rule'

    def test_expired_and_future_coupons(self, cart, product, make_coupon, now):
        make_coupon(code='PAST', end_date=now - timedelta(days=1))
        make_coupon(code='SOON', start_date=now + timedelta(days=1))
        cart.add_item(normalize_product(product), 1)

        assert cart.apply_coupon('PAST').error.code == 'coupon_expired'
        assert cart.apply_coupon('SOON').error.code == 'coupon_not_yet_active'
        assert cart.discount == Decimal('0.00')

    def test_discount_stays_fixed_after_cart_edits(self, cart, product, make_coupon):
        make_coupon(code='TEN', discount_value='10')
        cart.add_item(normalize_product(product), 5)
        cart.apply_coupon('TEN')

        cart.set_quantity(cart.lines[0].id, 2)

        assert cart.discount == Decimal('50.00')
        assert cart.totals.total == Decimal('150.00')

    def test_remove_coupon(self, cart, product, make_coupon):
        make_coupon(code='TEN', discount_value='10')
        cart.add_item(normalize_product(product), 5)
        cart.apply_coupon('TEN')

        cart.remove_coupon()

        assert cart.discount == Decimal('0.00')
        assert cart.totals.total == Decimal('500.00')


class TestFailuresAndPersistence:

    def test_remote_failure_leaves_local_state(self, session, cart, product, mocker):
        cart.add_item(normalize_product(product), 1)
        line_id = cart.lines[0].id
        mocker.patch.object(session, 'commit', side_effect=SQLAlchemyError('connection lost'))

        result = cart.set_quantity(line_id, 3)

        assert not result.success
        assert result.error.code == 'remote_operation_failed'
        assert result.status_code == 502
        assert cart.lines[0].quantity == 1

    def test_restore_from_local_state(self, session, cart, product, make_coupon, customer, local_state):
        make_coupon(code='FLAT20', discount_type='flat', discount_value='20')
        cart.add_item(normalize_product(product), 3)
        cart.apply_coupon('FLAT20')

        user_id = customer.id
        restored = CartLedger(session, lambda: user_id, local_state)
        restored.restore()

        assert [(l.product_id, l.quantity) for l in restored.lines] == [(product.id, 3)]
        assert restored.lines[0].price == Decimal('100.00')
        assert restored.discount == Decimal('20.00')
        assert restored.coupon_code == 'FLAT20'
        assert restored.totals.total == Decimal('280.00')

    def test_restore_ignores_another_users_state(self, session, cart, product, make_coupon, other_customer, local_state):
        make_coupon(code='FLAT20', discount_type='flat', discount_value='20')
        cart.add_item(normalize_product(product), 3)
        cart.apply_coupon('FLAT20')

        other_id = other_customer.id
        restored = CartLedger(session, lambda: other_id, local_state)
        restored.restore()

        assert restored.lines == []
        assert restored.coupon_code is None
        assert restored.owner_id is None

    def test_fetch_for_new_owner_drops_coupon(self, session, cart, product, make_coupon, other_customer):
        make_coupon(code='FLAT20', discount_type='flat', discount_value='20')
        cart.add_item(normalize_product(product), 3)
        cart.apply_coupon('FLAT20')
        other_id = other_customer.id
        cart.get_user_id = lambda: other_id

        result = cart.fetch()

        assert result.data['items'] == []
        assert cart.coupon_code is None
        assert cart.discount == Decimal('0.00')
        assert cart.owner_id == other_id

    def test_fetch_reloads_from_database(self, session, cart, product, customer):
        session.add(CartItem(user_id=customer.id, product_id=product.id, quantity=2))
        session.commit()

        result = cart.fetch()

        assert result.success
        assert result.data['items'][0]['product_id'] == product.id
        assert result.data['subtotal'] == Decimal('200.00')
