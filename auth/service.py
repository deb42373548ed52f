"""
auth/service.py -- Credential service: registration, login, and profile operations.

The service owns the account rules; the API layer owns input shape. By the time
a call reaches here, field-level validation has already passed (see
api/models.py), so the service only enforces rules that need the store:
email uniqueness, credential checks, and record existence.

Security:
  login() returns the same InvalidCredentials error for an unknown email and
  for a wrong password, and runs bcrypt on both paths so the two cannot be
  told apart by timing either.

  request_password_reset() answers identically whether or not the email is
  registered. reset_password() refuses outright -- there is no reset-token
  mechanism, and accepting the call would imply a guarantee that does not exist.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateEmail, InvalidCredentials, NotFound, PasswordResetNotImplemented, ServerError
from auth.models import AuthResult, Role, User, normalize_email
from auth.store import UserStore
from auth.tokens import TokenIssuer, burn_password_check, hash_password, verify_password

logger = logging.getLogger("storefront.auth")

RESET_ACK_MESSAGE = "If an account with that email exists, you will receive a password reset email."

_PROFILE_FIELDS = frozenset({"name", "phone", "addresses"})


class CredentialService:
    """Account operations over a UserStore, issuing tokens through a TokenIssuer."""

    def __init__(self, store: UserStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        email: str,
        password: str,
        phone: str | None = None,
        role: Role | None = None,
    ) -> AuthResult:
        """Create an account and return a token for it.

        Raises DuplicateEmail if the normalized email is already registered,
        including when a concurrent registration wins the insert.
        """
        email = normalize_email(email)
        if self.store.email_exists(email):
            raise DuplicateEmail()

        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role or Role.customer,
            phone=phone or "",
        )
        try:
            user_id = self.store.create_user(user)
        except IntegrityError as exc:
            # Lost the check-then-insert race to another registration.
            raise DuplicateEmail() from exc

        created = self.store.get_by_id(user_id)
        if created is None:
            raise ServerError("User not found after write.")
        logger.info("Registered user %s (role=%s)", created.id, created.role.value)
        return self._auth_result(created)

    def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and return a fresh token. No server-side state changes."""
        user = self.store.get_by_email(normalize_email(email))
        if user is None or user.password_hash is None:
            # Equalize timing -- do NOT return before running bcrypt
            burn_password_check(password)
            logger.info("Failed login")
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            logger.info("Failed login")
            raise InvalidCredentials()
        return self._auth_result(user)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> User:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFound()
        return user

    def update_profile(self, user_id: str, changes: dict[str, Any]) -> User:
        """Apply only the fields present in changes; absent fields are left as they are.

        An empty changes dict is a no-op read (the record must still exist).
        """
        unknown = set(changes) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Not a profile field: {sorted(unknown)!r}")
        if changes:
            updated = self.store.update_user(user_id, **changes)
            if not updated:
                raise NotFound()
        return self.get_profile(user_id)

    def list_users(self) -> list[User]:
        return self.store.list_users()

    # ------------------------------------------------------------------
    # Password reset (stubs)
    # ------------------------------------------------------------------

    def request_password_reset(self, email: str) -> str:
        """Return the generic acknowledgment. Nothing is sent."""
        # TODO: send a reset link once the reset-token format and mail transport are agreed.
        return RESET_ACK_MESSAGE

    def reset_password(self, token: str, new_password: str) -> None:
        raise PasswordResetNotImplemented()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _auth_result(self, user: User) -> AuthResult:
        issued = self.issuer.issue(user.id)
        public = replace(user, password_hash=None)
        return AuthResult(token=issued.token, user=public, expires_at=issued.expires_at)
