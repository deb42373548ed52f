"""
api/routes/v1/auth.py -- Registration, login, and profile REST endpoints.

Routes:
  POST /api/v1/auth/register         -- create account; returns token + user (201)
  POST /api/v1/auth/login            -- password login; returns token + user
  POST /api/v1/auth/logout           -- clears the token cookie
  GET  /api/v1/auth/profile          -- current user's profile (requires auth)
  PUT  /api/v1/auth/profile          -- partial profile update (requires auth)
  POST /api/v1/auth/forgot-password  -- generic acknowledgment, nothing is sent
  POST /api/v1/auth/reset-password   -- not implemented; says so explicitly
  GET  /api/v1/auth/users            -- list accounts (admin only)

Security:
  Login failures for an unknown email and a wrong password share one status
  and one body (InvalidCredentials). Do NOT add a distinct "no such user" path.
  Cache-Control: no-store on every response that carries a token.
  Register and login also set the token as an httpOnly cookie so browser
  clients need not store it in JS-readable storage.

Handlers that touch the store are plain `def` so FastAPI runs them in its
threadpool; the store's SQLAlchemy calls are blocking.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from api.models import (
    AckResponse,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
)
from auth.dependencies import get_credential_service, get_current_identity, require_roles
from auth.errors import PasswordResetNotImplemented
from auth.models import AuthResult, Identity, Role
from auth.service import CredentialService
from auth.tokens import TOKEN_COOKIE, set_auth_cookie

# Auth policy:
# - POST /auth/register, /auth/login, /auth/logout:        public
# - POST /auth/forgot-password, /auth/reset-password:      public
# - GET/PUT /auth/profile:                                 requires auth (get_current_identity)
# - GET /auth/users:                                       requires admin (require_roles)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    body: RegisterRequest,
    response: Response,
    service: CredentialService = Depends(get_credential_service),
) -> AuthResponse:
    """Create an account and sign the caller in.

    Email is matched case-insensitively; a second registration with the same
    address in any casing is rejected with duplicate_email.
    """
    result = service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        phone=body.phone,
        role=body.role,
    )
    return _signed_in(response, result, service)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    response: Response,
    service: CredentialService = Depends(get_credential_service),
) -> AuthResponse:
    """Exchange email + password for a fresh token."""
    result = service.login(body.email, body.password)
    return _signed_in(response, result, service)


@router.post("/auth/logout", response_model=AckResponse, response_model_exclude_none=True)
async def logout(response: Response) -> AckResponse:
    """Clear the token cookie.

    The token itself stays valid until it expires -- there is no server-side
    revocation. Clients holding it in a header must discard it themselves.
    """
    response.delete_cookie(TOKEN_COOKIE)
    return AckResponse(message="Logged out.")


@router.post("/auth/forgot-password", response_model=AckResponse, response_model_exclude_none=True)
def forgot_password(
    body: ForgotPasswordRequest,
    service: CredentialService = Depends(get_credential_service),
) -> AckResponse:
    """Always the same answer, so the endpoint cannot be used to probe for accounts."""
    return AckResponse(message=service.request_password_reset(body.email))


@router.post("/auth/reset-password", response_model=AckResponse, response_model_exclude_none=True)
def reset_password(
    body: ResetPasswordRequest,
    service: CredentialService = Depends(get_credential_service),
) -> AckResponse:
    """Report that password reset is not available. No password is changed."""
    try:
        service.reset_password(body.token, body.new_password)
    except PasswordResetNotImplemented as exc:
        return AckResponse(message=exc.message, implemented=False)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=UserResponse)
def get_profile(
    identity: Identity = Depends(get_current_identity),
    service: CredentialService = Depends(get_credential_service),
) -> UserResponse:
    """Return the profile of the user the token was issued to."""
    return UserResponse.from_domain(service.get_profile(identity.user_id))


@router.put("/auth/profile", response_model=UserResponse)
def update_profile(
    body: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    service: CredentialService = Depends(get_credential_service),
) -> UserResponse:
    """Update name, phone, and/or addresses. Fields not sent are left unchanged."""
    user = service.update_profile(identity.user_id, body.to_changes())
    return UserResponse.from_domain(user)


# ---------------------------------------------------------------------------
# Admin endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(
    identity: Identity = Depends(require_roles(Role.admin)),
    service: CredentialService = Depends(get_credential_service),
) -> list[UserResponse]:
    """List all accounts. Admin only."""
    return [UserResponse.from_domain(u) for u in service.list_users()]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _signed_in(response: Response, result: AuthResult, service: CredentialService) -> AuthResponse:
    set_auth_cookie(response, result.token, service.issuer.config)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse.from_result(result)
