"""Wishlist model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, generate_uuid


class WishlistItem(Base):
    """Product bookmark; unique per (user, product)."""

    __tablename__ = 'wishlist'
    __table_args__ = (
        UniqueConstraint('user_id', 'product_id', name='uq_wishlist_user_product'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    product = relationship('Product')

    def __repr__(self):
        return f"<WishlistItem(id={self.id}, product_id={self.product_id})>"
