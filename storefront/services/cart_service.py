"""
Cart Service - the cart ledger for one signed-in client.

Lines are mirrored to `cart_items`; totals are derived from the lines and the
active coupon discount and rebuilt from scratch after every mutation.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session, joinedload

from storefront.models import CartItem, Offer, DiscountType
from storefront.exceptions import (
    BusinessLogicError, NotFoundError, UnauthenticatedError,
    QuantityExceedsOrderLimitError, InsufficientStockError,
    CouponNotFoundError, CouponNotYetActiveError, CouponExpiredError, MinimumOrderNotMetError
)
from storefront.services.catalog_service import normalize_product, to_money, MONEY
from storefront.services.local_state import LocalStateStore, CART_STORAGE_KEY
from storefront.services.result import Result, store_operation
from storefront.utils.dates import as_utc, utc_now

logger = logging.getLogger(__name__)

FREE_DELIVERY_THRESHOLD = Decimal('199')
DELIVERY_FEE = Decimal('40')


@dataclass
class CartLine:
    """Cart line with a display snapshot of the product taken when it was added."""
    id: str
    product_id: str
    name: str
    price: Decimal
    mrp: Decimal
    quantity: int
    max_order_qty: int
    quantity_available: int
    slug: Optional[str] = None
    discount_percentage: Decimal = Decimal('0')
    image: Optional[str] = None
    unit: Optional[str] = None
    is_available: bool = True

    @property
    def line_total(self) -> Decimal:
        return (self.price * self.quantity).quantize(MONEY)

    @classmethod
    def from_product(cls, line_id: str, product: Mapping[str, Any], quantity: int) -> 'CartLine':
        return cls(
            id=line_id,
            product_id=product['id'],
            name=product['name'],
            slug=product.get('slug'),
            price=to_money(product.get('price')),
            mrp=to_money(product.get('mrp')),
            discount_percentage=Decimal(str(product.get('discount_percentage') or 0)),
            image=product.get('image_url'),
            unit=product.get('unit'),
            quantity=int(quantity),
            is_available=bool(product.get('is_available', True)),
            quantity_available=int(product.get('quantity_available') or 0),
            max_order_qty=int(product.get('max_order_qty') or 0),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CartLine':
        return cls(
            id=data['id'],
            product_id=data['product_id'],
            name=data['name'],
            slug=data.get('slug'),
            price=to_money(data.get('price')),
            mrp=to_money(data.get('mrp')),
            discount_percentage=Decimal(str(data.get('discount_percentage') or 0)),
            image=data.get('image'),
            unit=data.get('unit'),
            quantity=int(data['quantity']),
            is_available=bool(data.get('is_available', True)),
            quantity_available=int(data.get('quantity_available') or 0),
            max_order_qty=int(data.get('max_order_qty') or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['line_total'] = self.line_total
        return data


@dataclass(frozen=True)
class CartTotals:
    total_items: int = 0
    subtotal: Decimal = Decimal('0.00')
    delivery_fee: Decimal = Decimal('0.00')
    discount: Decimal = Decimal('0.00')
    total: Decimal = Decimal('0.00')
    savings: Decimal = Decimal('0.00')

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =====================================================
# PRICING RULES
# =====================================================

def calculate_totals(
    lines: List[CartLine],
    discount: Decimal = Decimal('0'),
    free_delivery_threshold: Decimal = FREE_DELIVERY_THRESHOLD,
    delivery_fee: Decimal = DELIVERY_FEE
) -> CartTotals:
    """Derive cart totals from the lines and the active discount."""
    subtotal = sum((line.price * line.quantity for line in lines), Decimal('0')).quantize(MONEY)
    total_items = sum(line.quantity for line in lines)
    savings = sum(((line.mrp - line.price) * line.quantity for line in lines), Decimal('0')).quantize(MONEY)
    fee = Decimal('0') if subtotal >= Decimal(free_delivery_threshold) else Decimal(delivery_fee)
    discount = to_money(discount)
    total = max(Decimal('0'), subtotal + fee - discount)

    return CartTotals(
        total_items=total_items,
        subtotal=subtotal,
        delivery_fee=fee.quantize(MONEY),
        discount=discount,
        total=total.quantize(MONEY),
        savings=savings,
    )


def check_coupon_window(coupon: Offer, now: datetime) -> None:
    """Raise unless `now` lies in [start_date, end_date]; both bounds optional."""
    now = as_utc(now)
    start_date = as_utc(coupon.start_date)
    end_date = as_utc(coupon.end_date)

    if start_date and now < start_date:
        raise CouponNotYetActiveError(coupon.coupon_code)
    if end_date and now > end_date:
        raise CouponExpiredError(coupon.coupon_code)


def calculate_coupon_discount(coupon: Offer, subtotal: Decimal) -> Decimal:
    """
    Discount granted by a coupon on `subtotal`.

    Percentage coupons are capped by max_discount when it is set. Flat coupons
    grant their full value even above the subtotal; the cart total is floored
    at zero instead.
    """
    value = to_money(coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        amount = (Decimal(subtotal) * value / Decimal('100')).quantize(MONEY, rounding=ROUND_HALF_UP)
        if coupon.max_discount is not None and amount > to_money(coupon.max_discount):
            amount = to_money(coupon.max_discount)
        return amount
    return value


# =====================================================
# CART LEDGER
# =====================================================

class CartLedger:
    """
    Cart lines plus the single active coupon for the current user.

    Every mutation writes to the database first and only then changes the
    in-memory lines, so a failed write leaves the ledger as it was.
    """

    def __init__(
        self,
        db: Session,
        get_user_id: Callable[[], Optional[str]],
        local_state: Optional[LocalStateStore] = None,
        free_delivery_threshold: Decimal = FREE_DELIVERY_THRESHOLD,
        delivery_fee: Decimal = DELIVERY_FEE,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.get_user_id = get_user_id
        self.local_state = local_state
        self.free_delivery_threshold = Decimal(free_delivery_threshold)
        self.delivery_fee = Decimal(delivery_fee)
        self.clock = clock or utc_now

        self.lines: List[CartLine] = []
        self.discount: Decimal = Decimal('0.00')
        self.coupon_code: Optional[str] = None
        self.totals: CartTotals = CartTotals()
        self.owner_id: Optional[str] = None

    # ----- local state -----

    def restore(self) -> None:
        """Load the persisted lines and discount verbatim, if this device state belongs to the current user."""
        if self.local_state is None:
            return
        state = self.local_state.load(CART_STORAGE_KEY) or {}
        if not state or state.get('user_id') != self.get_user_id():
            return
        self.owner_id = state['user_id']
        self.lines = [CartLine.from_dict(item) for item in state.get('items', [])]
        self.discount = to_money(state.get('discount'))
        self.coupon_code = state.get('coupon_code')
        self.recompute_totals()

    def _persist(self) -> None:
        self.owner_id = self.get_user_id()
        if self.local_state is None:
            return
        self.local_state.save(CART_STORAGE_KEY, {
            'user_id': self.owner_id,
            'items': [asdict(line) for line in self.lines],
            'discount': self.discount,
            'coupon_code': self.coupon_code,
        })

    # ----- derived state -----

    def recompute_totals(self) -> CartTotals:
        self.totals = calculate_totals(
            self.lines, self.discount, self.free_delivery_threshold, self.delivery_fee
        )
        return self.totals

    def _commit_local(self) -> None:
        self.recompute_totals()
        self._persist()

    def item_quantity(self, product_id: str) -> int:
        line = self._line_for_product(product_id)
        return line.quantity if line else 0

    def contains_product(self, product_id: str) -> bool:
        return self._line_for_product(product_id) is not None

    def snapshot(self) -> Dict[str, Any]:
        return {
            'items': [line.to_dict() for line in self.lines],
            'coupon_code': self.coupon_code,
            **self.totals.to_dict(),
        }

    def _line(self, line_id: str) -> Optional[CartLine]:
        return next((line for line in self.lines if line.id == line_id), None)

    def _line_for_product(self, product_id: str) -> Optional[CartLine]:
        return next((line for line in self.lines if line.product_id == product_id), None)

    def _require_user(self) -> str:
        user_id = self.get_user_id()
        if not user_id:
            raise UnauthenticatedError('Please login to add items to cart')
        return user_id

    # ----- remote-backed operations -----

    @store_operation('fetch cart')
    def fetch(self) -> Result:
        """Reload lines from the database with current product data."""
        user_id = self.get_user_id()
        if self.owner_id != user_id:
            # A coupon is never carried over to another user
            self.discount = Decimal('0.00')
            self.coupon_code = None
        if not user_id:
            self.lines = []
            self.recompute_totals()
            return Result.ok(self.snapshot())

        rows = (self.db.query(CartItem)
                .options(joinedload(CartItem.product))
                .filter(CartItem.user_id == user_id)
                .order_by(CartItem.created_at.asc())
                .all())
        self.lines = [
            CartLine.from_product(row.id, normalize_product(row.product), row.quantity)
            for row in rows
        ]
        self._commit_local()
        return Result.ok(self.snapshot())

    @store_operation('add to cart')
    def add_item(self, product: Mapping[str, Any], quantity: int = 1) -> Result:
        """Add a product, or bump the quantity of its existing line."""
        user_id = self._require_user()

        existing = self._line_for_product(product['id'])
        if existing:
            return self.set_quantity(existing.id, existing.quantity + quantity)

        if quantity < 1:
            raise BusinessLogicError('Quantity must be at least 1')
        if not product.get('is_available', True):
            raise BusinessLogicError(f"{product['name']} is currently unavailable")
        max_order_qty = int(product.get('max_order_qty') or 0)
        if quantity > max_order_qty:
            raise QuantityExceedsOrderLimitError(max_order_qty)
        available = int(product.get('quantity_available') or 0)
        if quantity > available:
            raise InsufficientStockError(product['name'], quantity, available)

        item = CartItem(user_id=user_id, product_id=product['id'], quantity=quantity)
        self.db.add(item)
        self.db.commit()

        line = CartLine.from_product(item.id, product, quantity)
        self.lines.append(line)
        self._commit_local()
        logger.info(f"[CART] Added {product['id']} x{quantity} for user {user_id}")
        return Result.ok(line.to_dict())

    @store_operation('update quantity')
    def set_quantity(self, line_id: str, new_quantity: int) -> Result:
        """Set a line's quantity; anything below 1 removes the line."""
        if new_quantity < 1:
            return self.remove_item(line_id)

        user_id = self._require_user()
        line = self._line(line_id)
        if not line:
            raise NotFoundError('Item is not in the cart')
        if new_quantity > line.max_order_qty:
            raise QuantityExceedsOrderLimitError(line.max_order_qty)
        if new_quantity > line.quantity_available:
            raise InsufficientStockError(line.name, new_quantity, line.quantity_available)

        updated = (self.db.query(CartItem)
                   .filter(CartItem.id == line_id, CartItem.user_id == user_id)
                   .update({CartItem.quantity: new_quantity}, synchronize_session=False))
        if not updated:
            self.db.rollback()
            raise NotFoundError('Item is not in the cart')
        self.db.commit()

        line.quantity = new_quantity
        self._commit_local()
        return Result.ok(line.to_dict())

    @store_operation('remove from cart')
    def remove_item(self, line_id: str) -> Result:
        user_id = self._require_user()
        (self.db.query(CartItem)
         .filter(CartItem.id == line_id, CartItem.user_id == user_id)
         .delete(synchronize_session=False))
        self.db.commit()

        self.lines = [line for line in self.lines if line.id != line_id]
        self._commit_local()
        return Result.ok(self.totals.to_dict())

    @store_operation('clear cart')
    def clear(self) -> Result:
        """Delete every line for the user and drop the active coupon."""
        user_id = self._require_user()
        (self.db.query(CartItem)
         .filter(CartItem.user_id == user_id)
         .delete(synchronize_session=False))
        self.db.commit()

        self.lines = []
        self.discount = Decimal('0.00')
        self.coupon_code = None
        self._commit_local()
        logger.info(f"[CART] Cleared cart for user {user_id}")
        return Result.ok(self.totals.to_dict())

    @store_operation('apply coupon')
    def apply_coupon(self, code: str) -> Result:
        """Validate a coupon against the current subtotal and make it the active discount."""
        code = (code or '').strip().upper()
        if not code:
            raise BusinessLogicError('Please enter a coupon code')

        coupon = (self.db.query(Offer)
                  .filter(Offer.coupon_code == code, Offer.is_active.is_(True))
                  .first())
        if not coupon:
            raise CouponNotFoundError(code)

        check_coupon_window(coupon, self.clock())

        subtotal = self.recompute_totals().subtotal
        if coupon.min_order_value is not None and subtotal < to_money(coupon.min_order_value):
            raise MinimumOrderNotMetError(to_money(coupon.min_order_value))

        self.discount = calculate_coupon_discount(coupon, subtotal)
        self.coupon_code = coupon.coupon_code
        self._commit_local()
        logger.info(f"[CART] Coupon {code} applied, discount {self.discount}")
        return Result.ok({
            'coupon_code': self.coupon_code,
            'discount': self.discount,
            'totals': self.totals.to_dict(),
        })

    def remove_coupon(self) -> Result:
        self.discount = Decimal('0.00')
        self.coupon_code = None
        self._commit_local()
        return Result.ok(self.totals.to_dict())
