"""
Order Service - turns the cart into an order and serves the user's order history.

The order row and its lines are written in one transaction. Clearing the cart
and posting the notification happen afterwards; their failures are logged
and reported but never undo a placed order.
"""
import logging
import secrets
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from storefront.models import (
    Address, Order, OrderItem, Notification, OrderStatus, PaymentStatus, PaymentMethod
)
from storefront.exceptions import (
    BusinessLogicError, NotFoundError, UnauthenticatedError, EmptyCartError, OrderNotCancellableError
)
from storefront.services.cart_service import CartLedger
from storefront.services.catalog_service import to_money
from storefront.services.result import Result, store_operation
from storefront.utils.dates import utc_now

logger = logging.getLogger(__name__)


def generate_order_number(now: datetime) -> str:
    return f"OZO-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_order(order: Order, include_items: bool = False) -> Dict[str, Any]:
    data = {
        'id': order.id,
        'order_number': order.order_number,
        'user_id': order.user_id,
        'address_id': order.address_id,
        'address': order.address.to_dict() if order.address else None,
        'subtotal': to_money(order.subtotal),
        'delivery_fee': to_money(order.delivery_fee),
        'discount': to_money(order.discount),
        'total': to_money(order.total),
        'coupon_code': order.coupon_code,
        'payment_method': order.payment_method,
        'payment_status': order.payment_status,
        'status': order.status,
        'delivery_instructions': order.delivery_instructions,
        'estimated_delivery': _iso(order.estimated_delivery),
        'delivered_at': _iso(order.delivered_at),
        'created_at': _iso(order.created_at),
    }
    if include_items:
        data['order_items'] = [
            {
                'id': item.id,
                'product_id': item.product_id,
                'product_name': item.product_name,
                'product_image': item.product_image,
                'quantity': item.quantity,
                'unit_price': to_money(item.unit_price),
                'total_price': to_money(item.total_price),
            }
            for item in order.items
        ]
    return data


def summarize_orders(rows: Iterable[Any]) -> Dict[str, Any]:
    """Counts by status and total spend, cancelled orders excluded from spend."""
    rows = list(rows)
    statuses = [row.status for row in rows]
    total_spent = sum(
        (to_money(row.total) for row in rows if row.status != OrderStatus.CANCELLED.value),
        Decimal('0.00')
    )
    return {
        'total': len(rows),
        'pending': statuses.count(OrderStatus.PENDING.value),
        'delivered': statuses.count(OrderStatus.DELIVERED.value),
        'cancelled': statuses.count(OrderStatus.CANCELLED.value),
        'total_spent': total_spent,
    }


class OrderLedger:
    """Order placement and history for the current user."""

    def __init__(
        self,
        db: Session,
        get_user_id: Callable[[], Optional[str]],
        cart: CartLedger,
        estimated_delivery_minutes: int = 30,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.get_user_id = get_user_id
        self.cart = cart
        self.estimated_delivery_minutes = estimated_delivery_minutes
        self.clock = clock or utc_now

        self.orders: List[Dict[str, Any]] = []
        self.current_order: Optional[Dict[str, Any]] = None

    def _require_user(self, message: str = 'Please login to continue') -> str:
        user_id = self.get_user_id()
        if not user_id:
            raise UnauthenticatedError(message)
        return user_id

    def _get_owned_order(self, user_id: str, order_id: str) -> Order:
        order = (self.db.query(Order)
                 .options(joinedload(Order.address))
                 .filter(Order.id == order_id, Order.user_id == user_id)
                 .first())
        if not order:
            raise NotFoundError('Order not found')
        return order

    @store_operation('place order')
    def place_order(self, address_id: str, payment_method: str, instructions: Optional[str] = None) -> Result:
        """
        Persist the cart as an order, then clear the cart.

        Returns the order plus `cart_cleared`; when that is False the order
        stands and the caller may retry clearing the cart.
        """
        user_id = self._require_user('Please login to place order')
        if not self.cart.lines:
            raise EmptyCartError()

        try:
            method = PaymentMethod((payment_method or '').lower())
        except ValueError:
            raise BusinessLogicError(f"Invalid payment method: {payment_method}")

        address = self.db.query(Address).filter(
            Address.id == address_id,
            Address.user_id == user_id
        ).first()
        if not address:
            raise NotFoundError('Delivery address not found')

        totals = self.cart.recompute_totals()
        now = self.clock()

        order = Order(
            order_number=generate_order_number(now),
            user_id=user_id,
            address_id=address.id,
            subtotal=totals.subtotal,
            delivery_fee=totals.delivery_fee,
            discount=totals.discount,
            total=totals.total,
            coupon_code=self.cart.coupon_code,
            payment_method=method.value,
            payment_status=(PaymentStatus.PENDING if method == PaymentMethod.COD else PaymentStatus.PAID).value,
            status=OrderStatus.PENDING.value,
            delivery_instructions=(instructions or None),
            estimated_delivery=now + timedelta(minutes=self.estimated_delivery_minutes),
            created_at=now,
        )
        for line in self.cart.lines:
            order.items.append(OrderItem(
                product_id=line.product_id,
                product_name=line.name,
                product_image=line.image,
                quantity=line.quantity,
                unit_price=line.price,
                total_price=line.line_total,
            ))

        self.db.add(order)
        self.db.commit()
        logger.info(f"[ORDER] ✓ Order {order.order_number} placed by {user_id} (total {totals.total})")

        order_data = serialize_order(order, include_items=True)

        cleared = self.cart.clear()
        if not cleared.success:
            logger.warning(f"[ORDER] Order {order.order_number} placed but cart was not cleared: {cleared.error.message}")

        self._notify_order_placed(user_id, order)
        self.orders.insert(0, order_data)
        self.current_order = order_data
        return Result.ok({'order': order_data, 'cart_cleared': cleared.success})

    def _notify_order_placed(self, user_id: str, order: Order) -> None:
        try:
            self.db.add(Notification(
                user_id=user_id,
                title='Order Placed Successfully',
                message=f'Your order #{order.order_number} has been placed successfully',
                type='order',
                data={'order_id': order.id},
            ))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"[ORDER] Notification for {order.order_number} not stored: {e}")

    @store_operation('fetch orders')
    def fetch_orders(self) -> Result:
        user_id = self.get_user_id()
        if not user_id:
            self.orders = []
            return Result.ok(self.orders)

        rows = (self.db.query(Order)
                .options(joinedload(Order.address))
                .filter(Order.user_id == user_id)
                .order_by(Order.created_at.desc())
                .all())
        self.orders = [serialize_order(o) for o in rows]
        return Result.ok(self.orders)

    @store_operation('fetch order')
    def fetch_order_by_id(self, order_id: str) -> Result:
        user_id = self._require_user()
        order = self._get_owned_order(user_id, order_id)
        self.current_order = serialize_order(order, include_items=True)
        return Result.ok(self.current_order)

    @store_operation('track order')
    def track_order(self, order_id: str) -> Result:
        user_id = self._require_user()
        order = self._get_owned_order(user_id, order_id)
        return Result.ok({
            'status': order.status,
            'estimated_delivery': _iso(order.estimated_delivery),
            'delivered_at': _iso(order.delivered_at),
        })

    @store_operation('fetch order stats')
    def get_order_stats(self) -> Result:
        user_id = self._require_user()
        rows = self.db.query(Order.status, Order.total).filter(Order.user_id == user_id).all()
        return Result.ok(summarize_orders(rows))

    @store_operation('cancel order')
    def cancel_order(self, order_id: str) -> Result:
        """Cancel one of the user's orders; only pending orders qualify."""
        user_id = self._require_user()
        order = self._get_owned_order(user_id, order_id)
        if order.status != OrderStatus.PENDING.value:
            raise OrderNotCancellableError(order.status)

        order.status = OrderStatus.CANCELLED.value
        order.updated_at = self.clock()
        self.db.commit()
        logger.info(f"[ORDER] Order {order.order_number} cancelled by {user_id}")

        for entry in self.orders:
            if entry['id'] == order_id:
                entry['status'] = OrderStatus.CANCELLED.value
        return Result.ok(serialize_order(order))
