"""
auth/guard.py -- Access guard: token extraction, verification, identity resolution.

Per-request state machine (nothing is persisted):

    NoToken --extract--> TokenPresent --verify+resolve--> Verified | Rejected

  1. extract_token(): Authorization: Bearer <token> header first, then the
     "token" cookie. The header wins when both are present.
  2. No candidate                     -> Unauthorized("token missing")
  3. Bad signature/malformed/expired  -> Unauthorized("token invalid")
  4. Subject no longer in the store   -> Unauthorized("user missing")
  5. Otherwise an Identity(user_id, role) is returned for the caller to attach.

authorize() is the second stage. It runs only after a Verified state and
checks the attached role against an allowed set.

The role is read from the store on every request, not from the token, so a
demoted admin loses access on their next request rather than at token expiry.

Layer rule: no imports from api/ and no FastAPI. auth/dependencies.py adapts
this class to FastAPI's Depends() pipeline.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from auth.errors import Forbidden, Unauthorized
from auth.models import Identity, Role
from auth.store import UserStore
from auth.tokens import TOKEN_COOKIE, TokenIssuer

logger = logging.getLogger("storefront.auth")

_BEARER_PREFIX = "Bearer "


class AccessGuard:
    def __init__(self, store: UserStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    @staticmethod
    def extract_token(authorization: str | None, cookies: Mapping[str, str]) -> str | None:
        """Return the candidate token from the header or cookie, or None."""
        if authorization and authorization.startswith(_BEARER_PREFIX):
            token = authorization[len(_BEARER_PREFIX) :].strip()
            if token:
                return token
        return cookies.get(TOKEN_COOKIE) or None

    def authenticate(self, authorization: str | None, cookies: Mapping[str, str]) -> Identity:
        """Run the full guard. Returns the Identity or raises Unauthorized."""
        token = self.extract_token(authorization, cookies)
        if token is None:
            raise Unauthorized("token missing")
        return self.resolve(token)

    def resolve(self, token: str) -> Identity:
        """Verify token and map its subject to a live user (no password hash loaded)."""
        user_id = self.issuer.verify(token)
        user = self.store.get_by_id(user_id)
        if user is None:
            logger.info("Token subject %s no longer exists", user_id)
            raise Unauthorized("user missing")
        return Identity(user_id=user.id, role=user.role)

    @staticmethod
    def authorize(identity: Identity | None, allowed_roles: Iterable[Role]) -> Identity:
        """Pass identity through if its role is allowed.

        Raises Unauthorized when no identity is attached (authenticate() was
        not run first) and Forbidden when the role is not in allowed_roles.
        """
        if identity is None:
            raise Unauthorized()
        if identity.role not in set(allowed_roles):
            raise Forbidden()
        return identity
