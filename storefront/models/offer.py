"""Offer model - home banners and coupon rules share one collection."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, Text
from sqlalchemy.sql import func
from storefront.database import Base, generate_uuid
import enum


class DiscountType(str, enum.Enum):
    """How a coupon's discount_value is interpreted."""
    PERCENTAGE = 'percentage'
    FLAT = 'flat'


class Offer(Base):
    """
    Offer / coupon.

    A row with a `coupon_code` can be applied to a cart; rows without one are
    banner-only.
    """

    __tablename__ = 'offers'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    coupon_code = Column(String(40), nullable=True, unique=True)
    discount_type = Column(String(20), nullable=False, default=DiscountType.PERCENTAGE.value)
    discount_value = Column(Numeric(10, 2), nullable=False, default=0)
    max_discount = Column(Numeric(10, 2), nullable=True)  # Cap for percentage coupons
    min_order_value = Column(Numeric(10, 2), nullable=True)

    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Offer(id={self.id}, coupon_code='{self.coupon_code}')>"
