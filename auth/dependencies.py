"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The guard runs as an ordered dependency pipeline:

  get_current_identity   -- token extraction + verification + user lookup;
                            attaches the Identity to request.state.identity
  require_roles(*roles)  -- composed after get_current_identity; checks the
                            attached role

Each stage either returns the request context or short-circuits by raising an
AuthError, which api/main.py renders as the standard error envelope.

Layer rule: no imports from api/. This module may import fastapi because it
is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.guard import AccessGuard
from auth.models import Identity, Role
from auth.service import CredentialService


def get_access_guard(request: Request) -> AccessGuard:
    return request.app.state.access_guard


def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credential_service


def get_current_identity(request: Request) -> Identity:
    """Require a valid token. Raises Unauthorized (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    guard = get_access_guard(request)
    identity = guard.authenticate(request.headers.get("Authorization"), request.cookies)
    request.state.identity = identity
    return identity


def require_roles(*roles: Role):
    """Build a dependency that admits only the given roles.

    Use as a FastAPI dependency:
        @router.get("/admin-only")
        def route(identity: Identity = Depends(require_roles(Role.admin))): ...
    """
    allowed = frozenset(roles)

    def check_roles(request: Request, _identity: Identity = Depends(get_current_identity)) -> Identity:
        attached = getattr(request.state, "identity", None)
        return AccessGuard.authorize(attached, allowed)

    return check_roles
