"""Order item model - denormalized copy of a cart line."""
from sqlalchemy import Column, String, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from storefront.database import Base, generate_uuid


class OrderItem(Base):
    """
    Order line.

    Name, image and prices are copied at placement time and never updated,
    so later catalog edits don't rewrite order history.
    """

    __tablename__ = 'order_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey('products.id', ondelete='SET NULL'), nullable=True)

    product_name = Column(String, nullable=False)
    product_image = Column(String(500), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship('Order', back_populates='items')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_name='{self.product_name}', quantity={self.quantity})>"
