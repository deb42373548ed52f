"""
auth/tokens.py -- Session tokens, password hashing, and the auth cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only sub (user id), iat and exp.
       The role is NOT trusted from the token -- the guard re-reads it from the
       store on every request, so a role change takes effect immediately.

  Passwords: bcrypt used directly (no passlib wrapper). Bcrypt's cost factor
       makes brute-force of low-entropy secrets expensive. _DUMMY_HASH enables
       timing equalization in CredentialService.login() so response time does
       not reveal whether an email is registered.

  Config: TokenIssuer receives a frozen AuthConfig at construction. Nothing in
       this module reads settings at call time, so the secret and TTL are fixed
       for the lifetime of the issuer.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from auth.errors import Unauthorized
from auth.models import IssuedToken
from core.config import Settings

logger = logging.getLogger("storefront.auth")

TOKEN_COOKIE = "token"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt truncates input at 72 bytes; the API layer caps password length
    at that limit.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in the store
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("storefront_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt comparison whose result is discarded.

    Called when the email is unknown so that path costs the same as a
    wrong-password check.
    """
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT issue / verify
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthConfig:
    """Process-wide token settings, fixed at startup."""

    secret_key: str
    token_ttl: timedelta
    algorithm: str = "HS256"
    secure_cookies: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthConfig:
        return cls(
            secret_key=settings.secret_key,
            token_ttl=settings.token_ttl_delta,
            secure_cookies=settings.secure_cookies,
        )


class TokenIssuer:
    """Signs and verifies session tokens for one AuthConfig.

    Usage:
        issuer = TokenIssuer(AuthConfig.from_settings(get_settings()))
        issued = issuer.issue(user.id)
        user_id = issuer.verify(issued.token)
    """

    def __init__(self, config: AuthConfig) -> None:
        self.config = config

    def issue(self, user_id: str) -> IssuedToken:
        """Sign a token for user_id valid for the configured TTL."""
        # JWT timestamps have one-second resolution; drop microseconds so the
        # reported expiry matches the exp claim exactly.
        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
        expires_at = issued_at + self.config.token_ttl
        payload = {
            "sub": user_id,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def verify(self, token: str) -> str:
        """Return the token's subject (user id).

        Raises Unauthorized("token invalid") for a bad signature, a malformed
        token, an expired token, or a token without a usable subject.
        """
        try:
            payload = jwt.decode(token, self.config.secret_key, algorithms=[self.config.algorithm])
        except JWTError as exc:
            logger.debug("Rejected token: %s", exc)
            raise Unauthorized("token invalid") from exc
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthorized("token invalid")
        return subject


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, config: AuthConfig) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the token TTL so both expire together.
    """
    response.set_cookie(
        TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=config.secure_cookies,
        max_age=int(config.token_ttl.total_seconds()),
    )
