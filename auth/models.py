"""
auth/models.py -- Domain dataclasses for account entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, service, and guard do the work. The HTTP contract lives in
api/models.py and maps from these.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles. Authorization checks take a set of these."""

    customer = "customer"
    admin = "admin"


@dataclass
class Address:
    """A shipping/billing address stored inside the user record."""

    street: str
    city: str
    postal_code: str
    label: str = "home"
    state: str = ""
    country: str = "US"
    is_default: bool = False


@dataclass
class User:
    """A registered account.

    password_hash is None whenever the record was fetched for anything other
    than credential checking (the guard and profile reads never load it).
    It must never be copied into a response.
    """

    name: str
    email: str  # always normalized: trimmed + lowercase
    role: Role = Role.customer
    id: str | None = None
    password_hash: str | None = None
    phone: str = ""
    addresses: list[Address] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """What the access guard attaches to a request once a token checks out."""

    user_id: str
    role: Role


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed session token and the instant it stops being valid."""

    token: str
    expires_at: datetime


@dataclass
class AuthResult:
    """Outcome of a successful register or login."""

    token: str
    user: User
    expires_at: datetime


def normalize_email(email: str) -> str:
    """Canonical form used for every lookup and every write."""
    return email.strip().lower()
