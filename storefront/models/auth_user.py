"""Auth models - credentials and issued sessions."""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from storefront.database import Base, generate_uuid


class AuthUser(Base):
    """Credentials for email/password sign-in."""

    __tablename__ = 'auth_users'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)

    # Password reset (one outstanding token at a time, stored hashed)
    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_expires_at = Column(DateTime(timezone=True), nullable=True)

    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    profile = relationship('Profile', uselist=False, back_populates='auth_user', cascade='all, delete-orphan')
    sessions = relationship('AuthSession', back_populates='user', cascade='all, delete-orphan')

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {'id': self.id, 'email': self.email}

    def __repr__(self):
        return f"<AuthUser(id={self.id}, email='{self.email}')>"


class AuthSession(Base):
    """Opaque session token issued on sign-in; revoked on sign-out."""

    __tablename__ = 'auth_sessions'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('auth_users.id', ondelete='CASCADE'), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship('AuthUser', back_populates='sessions')

    def __repr__(self):
        return f"<AuthSession(id={self.id}, user_id={self.user_id})>"
