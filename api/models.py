"""
API request and response models for the account service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format is camelCase (expiresAt, createdAt, postalCode, newPassword);
field names stay snake_case in Python via an alias generator. Request models
accept either spelling.

Field-level validation lives here and runs before any store access. A failure
becomes a 400 ValidationFailed with one entry per field (see api/main.py).
Custom messages are raised as PydanticCustomError so the per-field message is
exactly the text below, without pydantic's "Value error, " prefix.
"""

from typing import Annotated, Any, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from auth.models import Address, AuthResult, Role, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes.
MAX_PASSWORD_LENGTH = 72
MIN_PHONE_LENGTH = 10


# ---------------------------------------------------------------------------
# Reusable field types
# ---------------------------------------------------------------------------


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _check_email(value: str) -> str:
    # Bare addresses only; "Ann <ann@x.com>" is rejected.
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError:
        raise PydanticCustomError("email", "Please provide a valid email") from None


# Normalization to lowercase happens in the service; this only checks shape.
EmailField = Annotated[str, BeforeValidator(_strip), AfterValidator(_check_email)]


def _password_rule(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise PydanticCustomError("password", "Password must be at least 6 characters")
    if len(value.encode("utf-8")) > MAX_PASSWORD_LENGTH:
        raise PydanticCustomError("password", "Password must be at most 72 bytes")
    return value


NewPassword = Annotated[str, AfterValidator(_password_rule)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared models
# ---------------------------------------------------------------------------


class AddressModel(_CamelModel):
    """One address in a profile -- used in both requests and responses."""

    street: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    label: str = Field(default="home", max_length=50)
    state: str = Field(default="", max_length=100)
    country: str = Field(default="US", max_length=2)
    is_default: bool = False

    @classmethod
    def from_domain(cls, address: Address) -> "AddressModel":
        return cls(
            street=address.street,
            city=address.city,
            postal_code=address.postal_code,
            label=address.label,
            state=address.state,
            country=address.country,
            is_default=address.is_default,
        )

    def to_domain(self) -> Address:
        return Address(
            street=self.street,
            city=self.city,
            postal_code=self.postal_code,
            label=self.label,
            state=self.state,
            country=self.country,
            is_default=self.is_default,
        )


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /api/v1/auth/register."""

    name: str = Field(max_length=255)
    email: EmailField
    password: NewPassword
    phone: Optional[str] = Field(default=None, max_length=40)
    role: Optional[Role] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise PydanticCustomError("name", "Name is required")
        return value


class LoginRequest(_CamelModel):
    """Request body for POST /api/v1/auth/login."""

    email: EmailField
    password: str = Field(max_length=MAX_PASSWORD_LENGTH * 4)

    @field_validator("password")
    @classmethod
    def password_required(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("password", "Password is required")
        return value


class ProfileUpdate(_CamelModel):
    """Request body for PUT /api/v1/auth/profile.

    Every field is optional, but a field that IS sent must be valid -- sending
    null or an empty name is an error, not a way to clear it. Fields other
    than these three (email, role, ...) are ignored.
    """

    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=40)
    addresses: Optional[list[AddressModel]] = Field(default=None, max_length=20)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise PydanticCustomError("name", "Name cannot be empty")
        return value.strip()

    @field_validator("phone")
    @classmethod
    def phone_length(cls, value: Optional[str]) -> str:
        if value is None or len(value) < MIN_PHONE_LENGTH:
            raise PydanticCustomError("phone", "Please provide a valid phone number")
        return value

    @field_validator("addresses")
    @classmethod
    def addresses_not_null(cls, value: Optional[list[AddressModel]]) -> list[AddressModel]:
        if value is None:
            raise PydanticCustomError("addresses", "Addresses must be a list")
        return value

    def to_changes(self) -> dict[str, Any]:
        """Return only the fields the client actually sent, in domain types.

        Validators do not run on defaults, so a field absent from the body is
        never in model_fields_set and never in the result.
        """
        changes: dict[str, Any] = {}
        if "name" in self.model_fields_set:
            changes["name"] = self.name
        if "phone" in self.model_fields_set:
            changes["phone"] = self.phone
        if "addresses" in self.model_fields_set:
            changes["addresses"] = [a.to_domain() for a in self.addresses or []]
        return changes


class ForgotPasswordRequest(_CamelModel):
    """Request body for POST /api/v1/auth/forgot-password."""

    email: EmailField


class ResetPasswordRequest(_CamelModel):
    """Request body for POST /api/v1/auth/reset-password."""

    token: str = Field(max_length=2048)
    new_password: NewPassword

    @field_validator("token")
    @classmethod
    def token_required(cls, value: str) -> str:
        if not value.strip():
            raise PydanticCustomError("token", "Reset token is required")
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """Public view of a user. There is deliberately no password field."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    email: str
    role: Role
    phone: str
    addresses: list[AddressModel]
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        """Factory Method -- the mapping lives with the output model, not in route handlers."""
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            phone=user.phone or "",
            addresses=[AddressModel.from_domain(a) for a in user.addresses],
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(_CamelModel):
    """Response body for register and login."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    token: str
    user: UserResponse
    expires_at: str

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            token=result.token,
            user=UserResponse.from_domain(result.user),
            expires_at=result.expires_at.isoformat(),
        )


class AckResponse(BaseModel):
    """Generic acknowledgment. implemented is only sent by stubbed endpoints."""

    model_config = ConfigDict(frozen=True)

    message: str
    implemented: Optional[bool] = None


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[list[FieldError]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
