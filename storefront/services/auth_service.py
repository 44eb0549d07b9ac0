"""
Authentication service for email/password accounts.

Handles account creation, opaque session tokens, profile updates and
password reset. Tokens are handed to the client once; only their sha256
digest is stored.
"""
import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.models import AuthUser, AuthSession, Profile, UserRole
from storefront.exceptions import BusinessLogicError, NotFoundError, UnauthenticatedError
from storefront.services.email_service import send_password_reset_email
from storefront.utils.dates import as_utc, utc_now

logger = logging.getLogger(__name__)

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'
PROFILE_FIELDS = ('full_name', 'phone', 'avatar_url')
MIN_PASSWORD_LENGTH = 6
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def _validate_password(password: Optional[str]) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise BusinessLogicError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')


class AuthService:
    """
    Account and session lifecycle.

    Listeners registered with on_auth_state_change receive
    (event, session) after every sign-in and sign-out.
    """

    def __init__(
        self,
        db: Session,
        session_ttl: int = 60 * 60 * 24 * 7,
        reset_ttl: int = 3600,
        reset_url: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db
        self.session_ttl = session_ttl
        self.reset_ttl = reset_ttl
        self.reset_url = reset_url
        self.clock = clock or utc_now
        self._listeners: List[Callable[[str, Optional[Dict[str, Any]]], None]] = []

    # ---------------------------------------------------------------
    # Events
    # ---------------------------------------------------------------

    def on_auth_state_change(self, callback) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def _emit(self, event: str, session: Optional[Dict[str, Any]]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    # ---------------------------------------------------------------
    # Sessions
    # ---------------------------------------------------------------

    def _issue_session(self, user: AuthUser) -> Dict[str, Any]:
        token = secrets.token_urlsafe(32)
        now = self.clock()
        expires_at = now + timedelta(seconds=self.session_ttl)
        self.db.add(AuthSession(user_id=user.id, token_hash=hash_token(token), expires_at=expires_at))
        user.last_sign_in_at = now
        self.db.commit()
        return {
            'access_token': token,
            'expires_at': expires_at.isoformat(),
            'user': user.to_dict(),
        }

    def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Dict[str, Any]:
        """Create credentials plus a customer profile and sign the user in."""
        email = _normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            raise BusinessLogicError('A valid email is required')
        _validate_password(password)

        if self.db.query(AuthUser.id).filter(AuthUser.email == email).first():
            raise BusinessLogicError('An account with this email already exists')

        user = AuthUser(email=email)
        user.set_password(password)
        self.db.add(user)
        self.db.flush()
        self.db.add(Profile(
            id=user.id,
            email=email,
            full_name=(full_name or '').strip() or None,
            role=UserRole.CUSTOMER.value
        ))
        try:
            session = self._issue_session(user)
        except IntegrityError:
            self.db.rollback()
            raise BusinessLogicError('An account with this email already exists')

        logger.info(f"[AUTH] ✓ Account created: {email}")
        self._emit(SIGNED_IN, session)
        return session

    def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        email = _normalize_email(email)
        user = self.db.query(AuthUser).filter(AuthUser.email == email).first()
        if not user or not user.check_password(password or ''):
            logger.warning(f"[AUTH] Failed sign-in for {email}")
            raise UnauthenticatedError('Invalid email or password')

        session = self._issue_session(user)
        logger.info(f"[AUTH] ✓ Signed in: {email}")
        self._emit(SIGNED_IN, session)
        return session

    def get_session(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Resolve a token to its session; None if unknown, revoked or expired."""
        if not token:
            return None
        row = self.db.query(AuthSession).filter(AuthSession.token_hash == hash_token(token)).first()
        if not row or row.revoked_at is not None:
            return None
        if as_utc(row.expires_at) <= self.clock():
            return None
        return {
            'access_token': token,
            'expires_at': as_utc(row.expires_at).isoformat(),
            'user': row.user.to_dict(),
        }

    def sign_out(self, token: Optional[str]) -> None:
        if token:
            (self.db.query(AuthSession)
             .filter(AuthSession.token_hash == hash_token(token), AuthSession.revoked_at.is_(None))
             .update({AuthSession.revoked_at: self.clock()}, synchronize_session=False))
            self.db.commit()
        logger.info("[AUTH] Signed out")
        self._emit(SIGNED_OUT, None)

    # ---------------------------------------------------------------
    # Profiles
    # ---------------------------------------------------------------

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.db.query(Profile).filter(Profile.id == user_id).first()

    def update_profile(self, user_id: str, updates: Dict[str, Any]) -> Profile:
        profile = self.get_profile(user_id)
        if not profile:
            raise NotFoundError('Profile not found')

        for key in PROFILE_FIELDS:
            if key in updates:
                value = updates[key]
                setattr(profile, key, value.strip() if isinstance(value, str) else value)
        self.db.commit()
        return profile

    # ---------------------------------------------------------------
    # Password reset
    # ---------------------------------------------------------------

    def request_password_reset(self, email: str) -> Optional[str]:
        """
        Issue a one-time reset token and mail it.

        Unknown emails are accepted silently. Returns the raw token so the
        caller can build a link without mail (None for unknown emails).
        """
        email = _normalize_email(email)
        user = self.db.query(AuthUser).filter(AuthUser.email == email).first()
        if not user:
            logger.info(f"[AUTH] Password reset requested for unknown email {email}")
            return None

        token = secrets.token_urlsafe(32)
        user.reset_token_hash = hash_token(token)
        user.reset_expires_at = self.clock() + timedelta(seconds=self.reset_ttl)
        self.db.commit()

        reset_url = self.reset_url or current_app.config.get('PASSWORD_RESET_URL')
        full_name = user.profile.full_name if user.profile else None
        if not send_password_reset_email(user.email, full_name, f"{reset_url}?token={token}"):
            logger.warning(f"[AUTH] Reset token issued for {email} but email was not sent")
        return token

    def complete_password_reset(self, token: str, new_password: str) -> None:
        _validate_password(new_password)
        user = None
        if token:
            user = self.db.query(AuthUser).filter(AuthUser.reset_token_hash == hash_token(token)).first()
        if not user or not user.reset_expires_at or as_utc(user.reset_expires_at) <= self.clock():
            raise BusinessLogicError('Reset link is invalid or has expired')

        user.set_password(new_password)
        user.reset_token_hash = None
        user.reset_expires_at = None
        # Existing sessions stop working after a reset
        (self.db.query(AuthSession)
         .filter(AuthSession.user_id == user.id, AuthSession.revoked_at.is_(None))
         .update({AuthSession.revoked_at: self.clock()}, synchronize_session=False))
        self.db.commit()
        logger.info(f"[AUTH] ✓ Password reset completed for {user.email}")
