"""Session Context - the current identity and role, as seen by the stores."""
import logging
from typing import Any, Callable, Dict, Optional

from storefront.exceptions import UnauthenticatedError
from storefront.services.auth_service import AuthService, SIGNED_IN, SIGNED_OUT
from storefront.services.local_state import LocalStateStore, AUTH_TOKEN_KEY
from storefront.services.result import Result, store_operation

logger = logging.getLogger(__name__)


class SessionContext:
    """
    Owns the authenticated identity for one client.

    Stores read it through `get_user_id`; only this class changes it, in
    response to auth events.
    """

    def __init__(self, auth: AuthService, local_state: Optional[LocalStateStore] = None):
        self.auth = auth
        self.db = auth.db
        self.local_state = local_state

        self.session: Optional[Dict[str, Any]] = None
        self.profile: Optional[Dict[str, Any]] = None
        self.is_admin = False
        self.loading = True
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.session['user'] if self.session else None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    @property
    def token(self) -> Optional[str]:
        return self.session['access_token'] if self.session else None

    def get_user_id(self) -> Optional[str]:
        return self.session['user']['id'] if self.session else None

    def initialize(self, token: Optional[str] = None) -> 'SessionContext':
        """Restore the persisted (or given) token and start listening for auth events."""
        if token is None and self.local_state is not None:
            token = self.local_state.load(AUTH_TOKEN_KEY)
        self._apply_session(self.auth.get_session(token))
        if token and self.session is None and self.local_state is not None:
            self.local_state.remove(AUTH_TOKEN_KEY)

        if self._unsubscribe is None:
            self._unsubscribe = self.auth.on_auth_state_change(self._handle_auth_event)
        self.loading = False
        return self

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle_auth_event(self, event: str, session: Optional[Dict[str, Any]]) -> None:
        if event == SIGNED_IN:
            self._apply_session(session)
        elif event == SIGNED_OUT:
            self._apply_session(None)

    def _apply_session(self, session: Optional[Dict[str, Any]]) -> None:
        self.session = session
        if self.local_state is not None:
            if session:
                self.local_state.save(AUTH_TOKEN_KEY, session['access_token'])
            else:
                self.local_state.remove(AUTH_TOKEN_KEY)
        self._load_profile()

    def _load_profile(self) -> None:
        user_id = self.get_user_id()
        profile = self.auth.get_profile(user_id) if user_id else None
        self.profile = profile.to_dict() if profile else None
        self.is_admin = bool(profile and profile.is_admin)

    @store_operation('sign up')
    def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Result:
        session = self.auth.sign_up(email, password, full_name)
        return Result.ok({'session': session, 'profile': self.profile})

    @store_operation('sign in')
    def sign_in(self, email: str, password: str) -> Result:
        session = self.auth.sign_in_with_password(email, password)
        return Result.ok({'session': session, 'profile': self.profile})

    @store_operation('sign out')
    def sign_out(self) -> Result:
        self.auth.sign_out(self.token)
        return Result.ok()

    @store_operation('update profile')
    def update_profile(self, updates: Dict[str, Any]) -> Result:
        user_id = self.get_user_id()
        if not user_id:
            raise UnauthenticatedError()
        profile = self.auth.update_profile(user_id, updates)
        self.profile = profile.to_dict()
        return Result.ok(self.profile)

    @store_operation('reset password')
    def reset_password(self, email: str) -> Result:
        self.auth.request_password_reset(email)
        return Result.ok()

    @store_operation('complete password reset')
    def complete_password_reset(self, token: str, new_password: str) -> Result:
        self.auth.complete_password_reset(token, new_password)
        return Result.ok()

    @store_operation('refresh profile')
    def refresh_profile(self) -> Result:
        self._load_profile()
        return Result.ok(self.profile)
