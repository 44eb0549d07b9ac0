"""Product model."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base, generate_uuid


class Product(Base):
    """Product model."""

    __tablename__ = 'products'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    brand = Column(String(120), nullable=True)
    category_id = Column(String(36), ForeignKey('categories.id'), nullable=True, index=True)

    price = Column(Numeric(10, 2), nullable=False)
    mrp = Column(Numeric(10, 2), nullable=False)  # List price before discount
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    unit = Column(String(50), nullable=True)  # e.g. "500 g", "1 L"

    image_url = Column(String(500), nullable=True)  # Full URL or object key in the image bucket
    is_available = Column(Boolean, nullable=False, default=True)
    quantity_available = Column(Integer, nullable=False, default=0)
    max_order_qty = Column(Integer, nullable=False, default=10)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_bestseller = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    category = relationship('Category', foreign_keys=[category_id])

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', slug='{self.slug}')>"

    @property
    def public_image_url(self):
        """
        Get dynamic public URL for the product image.

        Handles:
        1. Legacy full URLs (starts with http) - returns as is
        2. Object keys in the image bucket - joins with S3_PUBLIC_URL
        3. No image - returns None
        """
        if not self.image_url:
            return None

        if self.image_url.startswith(('http://', 'https://')):
            return self.image_url

        from flask import current_app
        public_url = current_app.config.get('S3_PUBLIC_URL', 'http://localhost:9000')
        bucket = current_app.config.get('S3_BUCKET', 'ozo-images')

        # Ensure no double slashes when joining
        base = public_url.rstrip('/')
        collection = bucket.strip('/')
        path = self.image_url.lstrip('/')

        return f"{base}/{collection}/{path}"
