"""
Integration tests for AuthService and the SessionContext that wraps it.
"""
from datetime import datetime, timedelta, timezone

import pytest

from storefront.models import AuthUser, AuthSession, Profile
from storefront.services.auth_service import AuthService, SIGNED_IN, SIGNED_OUT, hash_token
from storefront.services.local_state import AUTH_TOKEN_KEY
from storefront.services.session_context import SessionContext


@pytest.fixture
def auth(session):
    return AuthService(session, reset_url='http://shop.test/reset')


@pytest.fixture
def context(auth, local_state):
    ctx = SessionContext(auth, local_state).initialize()
    yield ctx
    ctx.close()


class TestSignUpAndSignIn:

    def test_sign_up_creates_customer_and_signs_in(self, session, context, local_state):
        result = context.sign_up('New@Test.com ', 'secret1', 'New Shopper')

        assert result.success
        assert context.is_authenticated
        assert context.user['email'] == 'new@test.com'
        assert context.profile['full_name'] == 'New Shopper'
        assert context.profile['role'] == 'customer'
        assert context.is_admin is False
        assert local_state.load(AUTH_TOKEN_KEY) == context.token
        assert session.query(Profile).count() == 1

    def test_duplicate_email_rejected(self, context, customer):
        result = context.sign_up('customer@test.com', 'secret1')
        assert result.error.code == 'business_rule'
        assert not context.is_authenticated

    @pytest.mark.parametrize('email,password', [
        ('not-an-email', 'secret1'),
        ('short@test.com', '123'),
    ])
    def test_invalid_credentials_rejected(self, session, context, email, password):
        result = context.sign_up(email, password)

        assert result.error.code == 'business_rule'
        assert session.query(AuthUser).count() == 0

    def test_sign_in(self, context, customer):
        result = context.sign_in('customer@test.com', 'password123')

        assert result.success
        assert context.get_user_id() == customer.id
        assert result.data['session']['access_token'] == context.token

    def test_wrong_password(self, context, customer):
        result = context.sign_in('customer@test.com', 'wrong')

        assert result.error.code == 'unauthenticated'
        assert context.get_user_id() is None

    def test_admin_flag(self, context, admin):
        context.sign_in('admin@test.com', 'password123')
        assert context.is_admin is True


class TestSessionLifecycle:

    def test_sign_out_revokes_token(self, session, auth, context, customer, local_state):
        context.sign_in('customer@test.com', 'password123')
        token = context.token

        result = context.sign_out()

        assert result.success
        assert not context.is_authenticated
        assert context.profile is None
        assert auth.get_session(token) is None
        assert local_state.load(AUTH_TOKEN_KEY) is None
        row = session.query(AuthSession).filter_by(token_hash=hash_token(token)).one()
        assert row.revoked_at is not None

    def test_initialize_restores_persisted_token(self, auth, context, customer, local_state):
        context.sign_in('customer@test.com', 'password123')

        restored = SessionContext(auth, local_state).initialize()

        assert restored.get_user_id() == customer.id
        assert restored.loading is False
        restored.close()

    def test_initialize_drops_unknown_token(self, auth, local_state):
        local_state.save(AUTH_TOKEN_KEY, 'bogus')

        ctx = SessionContext(auth, local_state).initialize()

        assert not ctx.is_authenticated
        assert local_state.load(AUTH_TOKEN_KEY) is None
        ctx.close()

    def test_expired_session(self, session, customer):
        issued_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        clock = [issued_at]
        auth = AuthService(session, session_ttl=60, clock=lambda: clock[0])
        token = auth.sign_in_with_password('customer@test.com', 'password123')['access_token']

        assert auth.get_session(token) is not None
        clock[0] = issued_at + timedelta(seconds=61)
        assert auth.get_session(token) is None

    def test_listeners_receive_events(self, auth, customer):
        events = []
        unsubscribe = auth.on_auth_state_change(lambda event, s: events.append(event))

        session = auth.sign_in_with_password('customer@test.com', 'password123')
        auth.sign_out(session['access_token'])
        unsubscribe()
        auth.sign_in_with_password('customer@test.com', 'password123')

        assert events == [SIGNED_IN, SIGNED_OUT]

    def test_closed_context_ignores_events(self, auth, local_state, customer):
        ctx = SessionContext(auth, local_state).initialize()
        ctx.close()

        auth.sign_in_with_password('customer@test.com', 'password123')

        assert not ctx.is_authenticated


class TestProfile:

    def test_update_profile_whitelist(self, context, customer):
        context.sign_in('customer@test.com', 'password123')

        result = context.update_profile({'full_name': ' Renamed ', 'phone': '9999999999', 'role': 'admin'})

        assert result.data['full_name'] == 'Renamed'
        assert result.data['phone'] == '9999999999'
        assert result.data['role'] == 'customer'
        assert context.is_admin is False

    def test_update_profile_requires_session(self, context):
        assert context.update_profile({'full_name': 'x'}).error.code == 'unauthenticated'


class TestPasswordReset:

    def test_reset_flow(self, session, auth, customer, mocker):
        send = mocker.patch('storefront.services.auth_service.send_password_reset_email', return_value=True)
        old = auth.sign_in_with_password('customer@test.com', 'password123')['access_token']

        token = auth.request_password_reset('customer@test.com')
        auth.complete_password_reset(token, 'newsecret')

        assert send.call_args[0][2] == f'http://shop.test/reset?token={token}'
        assert auth.get_session(old) is None
        assert auth.sign_in_with_password('customer@test.com', 'newsecret')['user']['id'] == customer.id
        assert session.query(AuthUser).get(customer.id).reset_token_hash is None

    def test_token_is_single_use(self, auth, context, customer):
        token = auth.request_password_reset('customer@test.com')
        assert context.complete_password_reset(token, 'newsecret').success

        result = context.complete_password_reset(token, 'another1')

        assert result.error.code == 'business_rule'

    def test_unknown_email_is_accepted(self, context, mocker):
        send = mocker.patch('storefront.services.auth_service.send_password_reset_email')

        assert context.reset_password('nobody@test.com').success
        send.assert_not_called()

    def test_expired_token(self, session, customer):
        clock = [datetime(2024, 1, 1, tzinfo=timezone.utc)]
        auth = AuthService(session, reset_ttl=60, reset_url='http://shop.test/reset', clock=lambda: clock[0])
        token = auth.request_password_reset('customer@test.com')
        clock[0] += timedelta(minutes=5)

        ctx = SessionContext(auth)
        assert ctx.complete_password_reset(token, 'newsecret').error.code == 'business_rule'
