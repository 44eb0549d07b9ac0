"""Profile model - the public `users` collection."""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from storefront.database import Base
import enum


class UserRole(str, enum.Enum):
    """Roles a profile can hold."""
    CUSTOMER = 'customer'
    ADMIN = 'admin'


class Profile(Base):
    """
    Profile row keyed by the auth user's id.

    Holds display data and the role flag; credentials live in `auth_users`.
    """

    __tablename__ = 'users'

    id = Column(String(36), ForeignKey('auth_users.id', ondelete='CASCADE'), primary_key=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(20), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    auth_user = relationship('AuthUser', back_populates='profile')

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'phone': self.phone,
            'avatar_url': self.avatar_url,
            'role': self.role,
        }

    def __repr__(self):
        return f"<Profile(id={self.id}, email='{self.email}', role='{self.role}')>"
