"""Unit tests for auth/service.py -- the credential lifecycle.

Covers:
- register: success returns a verifiable token; repeat email -> UserExistsError,
  including when the pre-check is beaten by a concurrent insert
- login: success; wrong password and unknown email raise the identical
  InvalidCredentialsError, both after a bcrypt check
- get_profile: idempotent, hash stripped, unknown id -> UserNotFoundError
- update_profile: new values, collision -> DuplicateEmailError
- change_password: wrong current password, then the new password replaces the old
- store outages propagate unchanged
"""

from unittest.mock import MagicMock, patch

import pytest

from auth.errors import (
    DuplicateEmailError,
    HashingError,
    InvalidCredentialsError,
    InvalidCurrentPasswordError,
    PasswordTooLongError,
    StoreUnavailableError,
    TokenExpiredError,
    UserExistsError,
    UserNotFoundError,
)
from auth.models import AuthConfig
from auth.service import AuthService, build_auth_service
from auth.passwords import PasswordHasher
from auth.tokens import TokenIssuer

# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register_returns_token_for_new_user(self, service):
        result = service.register("a@x.com", "secret1", "Ann")
        assert result.user.email == "a@x.com"
        assert result.user.name == "Ann"
        claims = service.verify_token(result.token)
        assert claims.email == "a@x.com"
        assert claims.user_id == result.user.id
        assert claims.expires_at == result.expires_at

    def test_register_omits_password_hash(self, service):
        result = service.register("a@x.com", "secret1", "Ann")
        assert result.user.password_hash is None

    def test_register_stores_hash_not_plaintext(self, service, store):
        service.register("a@x.com", "secret1", "Ann")
        stored = store.find_by_email("a@x.com")
        assert stored.password_hash != "secret1"
        assert service.hasher.verify("secret1", stored.password_hash)

    def test_second_register_same_email(self, service):
        service.register("a@x.com", "secret1", "Ann")
        with pytest.raises(UserExistsError):
            service.register("a@x.com", "other-pass", "Other Ann")

    def test_lost_race_reported_as_user_exists(self, service, store):
        """The pre-check passes but the UNIQUE constraint fires: still UserExistsError."""
        service.register("a@x.com", "secret1", "Ann")
        with patch.object(store, "find_by_email", return_value=None):
            with pytest.raises(UserExistsError) as excinfo:
                service.register("a@x.com", "secret2", "Racing Ann")
        assert isinstance(excinfo.value.__cause__, DuplicateEmailError)

    def test_hashing_failure_creates_nothing(self, service, store):
        with patch.object(service.hasher, "hash", side_effect=HashingError()):
            with pytest.raises(HashingError):
                service.register("a@x.com", "secret1", "Ann")
        assert store.find_by_email("a@x.com") is None

    def test_overlong_password_creates_nothing(self, service, store):
        with pytest.raises(PasswordTooLongError):
            service.register("a@x.com", "x" * 73, "Ann")
        assert store.find_by_email("a@x.com") is None


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_success(self, service):
        registered = service.register("a@x.com", "secret1", "Ann")
        result = service.login("a@x.com", "secret1")
        assert result.user.id == registered.user.id
        assert result.user.password_hash is None
        assert service.verify_token(result.token).user_id == registered.user.id

    def test_wrong_password_and_unknown_email_are_indistinguishable(self, service):
        service.register("a@x.com", "secret1", "Ann")
        with pytest.raises(InvalidCredentialsError) as wrong_pw:
            service.login("a@x.com", "wrong")
        with pytest.raises(InvalidCredentialsError) as unknown:
            service.login("nobody@x.com", "secret1")
        assert type(wrong_pw.value) is type(unknown.value)
        assert wrong_pw.value.code == unknown.value.code
        assert str(wrong_pw.value) == str(unknown.value)

    def test_unknown_email_still_runs_bcrypt(self, service):
        with patch.object(service.hasher, "verify_dummy", wraps=service.hasher.verify_dummy) as dummy:
            with pytest.raises(InvalidCredentialsError):
                service.login("nobody@x.com", "secret1")
        dummy.assert_called_once_with("secret1")

    def test_email_match_is_case_sensitive(self, service):
        service.register("a@x.com", "secret1", "Ann")
        with pytest.raises(InvalidCredentialsError):
            service.login("A@X.COM", "secret1")

    def test_token_expires_after_ttl(self, service, clock, auth_config):
        result = service.register("a@x.com", "secret1", "Ann")
        clock.advance(auth_config.token_ttl_seconds)
        with pytest.raises(TokenExpiredError):
            service.verify_token(result.token)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class TestProfile:
    def test_get_profile_is_idempotent(self, service):
        user_id = service.register("a@x.com", "secret1", "Ann").user.id
        first = service.get_profile(user_id)
        second = service.get_profile(user_id)
        assert first == second
        assert first.password_hash is None

    def test_get_profile_unknown(self, service):
        with pytest.raises(UserNotFoundError):
            service.get_profile("00000000-0000-0000-0000-000000000000")

    def test_update_profile(self, service, clock):
        registered = service.register("a@x.com", "secret1", "Ann").user
        clock.advance(30)
        updated = service.update_profile(registered.id, "Annie", "annie@x.com")
        assert updated.name == "Annie"
        assert updated.email == "annie@x.com"
        assert updated.password_hash is None
        assert updated.updated_at > registered.updated_at
        assert service.get_profile(registered.id) == updated

    def test_login_follows_email_change(self, service):
        user_id = service.register("a@x.com", "secret1", "Ann").user.id
        service.update_profile(user_id, "Ann", "new@x.com")
        assert service.login("new@x.com", "secret1").user.id == user_id
        with pytest.raises(InvalidCredentialsError):
            service.login("a@x.com", "secret1")

    def test_update_profile_collision_is_store_duplicate(self, service):
        service.register("a@x.com", "secret1", "Ann")
        bob = service.register("b@x.com", "secret2", "Bob").user
        with pytest.raises(DuplicateEmailError):
            service.update_profile(bob.id, "Bob", "a@x.com")

    def test_update_profile_unknown(self, service):
        with pytest.raises(UserNotFoundError):
            service.update_profile("00000000-0000-0000-0000-000000000000", "X", "x@x.com")


# ---------------------------------------------------------------------------
# Change password
# ---------------------------------------------------------------------------


class TestChangePassword:
    def test_new_password_replaces_old(self, service):
        user_id = service.register("a@x.com", "secret1", "Ann").user.id
        service.change_password(user_id, "secret1", "secret2")
        assert service.login("a@x.com", "secret2").user.id == user_id
        with pytest.raises(InvalidCredentialsError):
            service.login("a@x.com", "secret1")

    def test_wrong_current_password(self, service):
        user_id = service.register("a@x.com", "secret1", "Ann").user.id
        with pytest.raises(InvalidCurrentPasswordError):
            service.change_password(user_id, "not-it", "secret2")
        assert service.login("a@x.com", "secret1").user.id == user_id

    def test_unknown_user(self, service):
        with pytest.raises(UserNotFoundError):
            service.change_password("00000000-0000-0000-0000-000000000000", "a", "b")

    def test_row_vanishes_before_write(self, service, store):
        user_id = service.register("a@x.com", "secret1", "Ann").user.id
        with patch.object(store, "update_password_hash", return_value=False):
            with pytest.raises(UserNotFoundError):
                service.change_password(user_id, "secret1", "secret2")

    def test_overlong_new_password_keeps_old_one(self, service):
        user_id = service.register("a@x.com", "secret1", "Ann").user.id
        with pytest.raises(PasswordTooLongError):
            service.change_password(user_id, "secret1", "y" * 80)
        assert service.login("a@x.com", "secret1").user.id == user_id

    def test_old_tokens_survive_password_change(self, service):
        """Stateless tokens: no revocation on password change."""
        result = service.register("a@x.com", "secret1", "Ann")
        service.change_password(result.user.id, "secret1", "secret2")
        assert service.verify_token(result.token).user_id == result.user.id


# ---------------------------------------------------------------------------
# Collaborator failures
# ---------------------------------------------------------------------------


class TestStoreUnavailable:
    @pytest.fixture
    def broken(self, auth_config) -> AuthService:
        store = MagicMock()
        store.find_by_email.side_effect = StoreUnavailableError()
        store.find_by_id.side_effect = StoreUnavailableError()
        store.update.side_effect = StoreUnavailableError()
        return AuthService(store=store, hasher=PasswordHasher(rounds=4), tokens=TokenIssuer(auth_config))

    def test_register(self, broken):
        with pytest.raises(StoreUnavailableError):
            broken.register("a@x.com", "secret1", "Ann")

    def test_login_is_not_masked_as_bad_credentials(self, broken):
        with pytest.raises(StoreUnavailableError):
            broken.login("a@x.com", "secret1")

    def test_profile_operations(self, broken):
        with pytest.raises(StoreUnavailableError):
            broken.get_profile("id")
        with pytest.raises(StoreUnavailableError):
            broken.update_profile("id", "Ann", "a@x.com")
        with pytest.raises(StoreUnavailableError):
            broken.change_password("id", "a", "b")


def test_build_auth_service_uses_config(store):
    config = AuthConfig(secret_key="k" * 32, token_ttl_seconds=120, issuer="svc", bcrypt_rounds=4)
    service = build_auth_service(store, config)
    assert service.hasher.rounds == 4
    assert service.tokens.ttl_seconds == 120
    assert service.store is store
