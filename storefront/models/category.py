"""Category model."""
from sqlalchemy import Column, String, Boolean, Integer, DateTime
from sqlalchemy.sql import func
from storefront.database import Base, generate_uuid


class Category(Base):
    """Product Category."""

    __tablename__ = 'categories'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    image_url = Column(String(500), nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'image_url': self.image_url,
            'display_order': self.display_order,
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
