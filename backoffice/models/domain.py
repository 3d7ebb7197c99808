"""
Domain Models - Internal policy models using dataclasses.

Resolved per request or derived on demand; none of these are persisted.
"""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Identity:
    """Caller identity resolved from a verified credential."""

    id: str
    email: str | None = None
    role: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Identity id cannot be empty")

    def with_role(self, role: str) -> "Identity":
        return replace(self, role=role)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class Quota:
    """Derived quota state; remaining never goes below zero."""

    used: int
    limit: int

    def __post_init__(self) -> None:
        if self.used < 0:
            raise ValueError(f"Quota usage cannot be negative: {self.used}")
        if self.limit < 0:
            raise ValueError(f"Quota limit cannot be negative: {self.limit}")

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


@dataclass(frozen=True)
class StorageQuota(Quota):
    """Storage quota with human-readable amounts."""

    used_formatted: str = ""
    limit_formatted: str = ""


@dataclass(frozen=True)
class IssuedCredential:
    """A freshly signed credential and its lifetime in seconds."""

    token: str
    token_type: str
    expires_in: int


@dataclass(frozen=True)
class ContactMessage:
    """Inbound contact form message handed to reply generation."""

    name: str
    email: str
    message: str
    phone: str = ""


@dataclass(frozen=True)
class AIResponse:
    """Generated (or canned) reply to a contact message."""

    content: str
    provider: str
    processing_time_ms: int
