"""Order model and its fulfilment state machine."""
from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, generate_uuid
import enum


class OrderStatus(str, enum.Enum):
    """Fulfilment status."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PREPARING = 'preparing'
    OUT_FOR_DELIVERY = 'out_for_delivery'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


# Forward transitions; cancellation only while pending.
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PREPARING},
    OrderStatus.PREPARING: {OrderStatus.OUT_FOR_DELIVERY},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def can_transition(current, target):
    """Check whether `current` -> `target` is a legal status change."""
    try:
        return OrderStatus(target) in ORDER_TRANSITIONS[OrderStatus(current)]
    except ValueError:
        return False


class PaymentStatus(str, enum.Enum):
    PAID = 'paid'
    PENDING = 'pending'


class PaymentMethod(str, enum.Enum):
    """Payment method label chosen at checkout (no gateway integration)."""
    COD = 'cod'
    UPI = 'upi'
    CARD = 'card'
    NETBANKING = 'netbanking'
    WALLET = 'wallet'


class Order(Base):
    """Placed order. Amounts are a snapshot taken at placement time."""

    __tablename__ = 'orders'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False, index=True)
    address_id = Column(String(36), ForeignKey('addresses.id'), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False, default=0)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    coupon_code = Column(String(40), nullable=True)

    payment_method = Column(String(20), nullable=False)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)

    delivery_instructions = Column(Text, nullable=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    address = relationship('Address')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Order(id={self.id}, order_number='{self.order_number}', status='{self.status}')>"
