"""
tests/test_credential_service.py -- Unit tests for auth/service.py.

Coverage:
  - register: normalization, defaults, hashing, duplicate detection (any casing)
  - register: the check-then-insert race is caught by the UNIQUE constraint
  - login: success, and identical InvalidCredentials for unknown email / wrong password
  - get_profile / update_profile: NotFound, partial updates leave other fields alone
  - password reset stubs: generic ack, explicit not-implemented
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import DuplicateEmail, InvalidCredentials, NotFound, PasswordResetNotImplemented
from auth.models import Address, Role
from auth.service import RESET_ACK_MESSAGE, CredentialService
from auth.store import UserStore
from auth.tokens import TokenIssuer, verify_password


class TestRegister:
    def test_register_returns_token_for_new_user(self, service: CredentialService, issuer: TokenIssuer) -> None:
        result = service.register("Ann", "ann@x.com", "secret1")
        assert result.user.email == "ann@x.com"
        assert result.user.role is Role.customer
        assert result.user.phone == ""
        assert issuer.verify(result.token) == result.user.id

    def test_expiry_is_seven_days_out(self, service: CredentialService) -> None:
        result = service.register("Ann", "ann@x.com", "secret1")
        expected = datetime.now(timezone.utc) + timedelta(days=7)
        assert abs((result.expires_at - expected).total_seconds()) < 10

    def test_email_is_trimmed_and_lowercased(self, service: CredentialService) -> None:
        result = service.register("Ann", "  Ann@X.Com ", "secret1")
        assert result.user.email == "ann@x.com"

    def test_password_is_stored_hashed(self, service: CredentialService, store: UserStore) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        stored = store.get_by_email("ann@x.com")
        assert stored.password_hash != "secret1"
        assert verify_password("secret1", stored.password_hash)

    def test_result_never_carries_password_hash(self, service: CredentialService) -> None:
        assert service.register("Ann", "ann@x.com", "secret1").user.password_hash is None
        assert service.login("ann@x.com", "secret1").user.password_hash is None

    def test_role_and_phone_are_stored(self, service: CredentialService) -> None:
        result = service.register("Root", "root@x.com", "secret1", phone="5551234567", role=Role.admin)
        assert result.user.role is Role.admin
        assert result.user.phone == "5551234567"

    @pytest.mark.parametrize("email", ["ann@x.com", "ANN@X.COM", " Ann@x.com "])
    def test_duplicate_email_any_casing(self, service: CredentialService, email: str) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        with pytest.raises(DuplicateEmail):
            service.register("Bob", email, "other12")

    def test_concurrent_registration_race_is_caught(
        self, service: CredentialService, store: UserStore, monkeypatch
    ) -> None:
        """Both registrations pass the existence check; the second insert must still fail.

        Simulates two requests interleaving between check and insert. The
        UNIQUE(email) constraint turns the losing insert into DuplicateEmail
        instead of a second account.
        """
        monkeypatch.setattr(store, "email_exists", lambda email: False)
        service.register("Ann", "ann@x.com", "secret1")
        with pytest.raises(DuplicateEmail):
            service.register("Ann again", "ann@x.com", "secret2")
        assert len(store.list_users()) == 1


class TestLogin:
    def test_login_with_registered_credentials(self, service: CredentialService, issuer: TokenIssuer) -> None:
        registered = service.register("Ann", "ann@x.com", "secret1")
        result = service.login("ann@x.com", "secret1")
        assert result.user.id == registered.user.id
        assert issuer.verify(result.token) == registered.user.id

    def test_login_normalizes_email(self, service: CredentialService) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        assert service.login(" ANN@x.com", "secret1").user.email == "ann@x.com"

    def test_wrong_password_and_unknown_email_are_indistinguishable(self, service: CredentialService) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        with pytest.raises(InvalidCredentials) as wrong_password:
            service.login("ann@x.com", "wrong")
        with pytest.raises(InvalidCredentials) as unknown_email:
            service.login("nobody@x.com", "wrong")
        assert type(wrong_password.value) is type(unknown_email.value)
        assert wrong_password.value.message == unknown_email.value.message
        assert wrong_password.value.status_code == unknown_email.value.status_code == 400


class TestProfile:
    def test_get_profile(self, service: CredentialService) -> None:
        user_id = service.register("Ann", "ann@x.com", "secret1").user.id
        profile = service.get_profile(user_id)
        assert profile.name == "Ann"
        assert profile.password_hash is None

    def test_get_profile_of_deleted_user(self, service: CredentialService, store: UserStore) -> None:
        user_id = service.register("Ann", "ann@x.com", "secret1").user.id
        store.delete_user(user_id)
        with pytest.raises(NotFound):
            service.get_profile(user_id)

    def test_phone_only_update_leaves_name_and_addresses(self, service: CredentialService) -> None:
        user_id = service.register("Ann", "ann@x.com", "secret1").user.id
        home = Address(street="1 Main St", city="Springfield", postal_code="11111")
        service.update_profile(user_id, {"addresses": [home]})

        updated = service.update_profile(user_id, {"phone": "5551234567"})

        assert updated.phone == "5551234567"
        assert updated.name == "Ann"
        assert updated.addresses == [home]

    def test_empty_addresses_list_is_applied(self, service: CredentialService) -> None:
        """An explicitly empty list clears addresses -- present-but-falsy is not absent."""
        user_id = service.register("Ann", "ann@x.com", "secret1").user.id
        service.update_profile(user_id, {"addresses": [Address(street="1 Main St", city="X", postal_code="1")]})
        assert service.update_profile(user_id, {"addresses": []}).addresses == []

    def test_empty_update_is_a_read(self, service: CredentialService) -> None:
        user_id = service.register("Ann", "ann@x.com", "secret1").user.id
        assert service.update_profile(user_id, {}).name == "Ann"

    def test_update_of_deleted_user(self, service: CredentialService, store: UserStore) -> None:
        user_id = service.register("Ann", "ann@x.com", "secret1").user.id
        store.delete_user(user_id)
        with pytest.raises(NotFound):
            service.update_profile(user_id, {"name": "Ghost"})
        with pytest.raises(NotFound):
            service.update_profile(user_id, {})

    def test_update_rejects_non_profile_fields(self, service: CredentialService) -> None:
        user_id = service.register("Ann", "ann@x.com", "secret1").user.id
        with pytest.raises(ValueError):
            service.update_profile(user_id, {"role": Role.admin})


class TestPasswordReset:
    def test_request_reset_same_answer_for_any_email(self, service: CredentialService) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        assert service.request_password_reset("ann@x.com") == RESET_ACK_MESSAGE
        assert service.request_password_reset("nobody@x.com") == RESET_ACK_MESSAGE

    def test_reset_password_is_not_implemented(self, service: CredentialService) -> None:
        service.register("Ann", "ann@x.com", "secret1")
        with pytest.raises(PasswordResetNotImplemented):
            service.reset_password("any-token", "newsecret")
        # The old password still works.
        assert service.login("ann@x.com", "secret1").user.email == "ann@x.com"
