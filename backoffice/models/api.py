"""
API Models - Pydantic models for request/response validation.

Response models read straight from ORM records (``from_attributes``).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Role(str, Enum):
    """Caller role enumeration."""

    ADMIN = "admin"
    CLIENT = "client"


class TicketStatus(str, Enum):
    """Support ticket status enumeration."""

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class TicketPriority(str, Enum):
    """Support ticket priority enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ProjectStatus(str, Enum):
    """Project status enumeration."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class RecordModel(BaseModel):
    """Base for responses built from ORM records."""

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Auth Models
# ============================================================================


class TokenRequest(BaseModel):
    """POST /auth/token request body."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)


class SessionRequest(BaseModel):
    """POST /auth/session request body."""

    access_token: str = Field(..., min_length=1)


class CredentialResponse(BaseModel):
    """Issued access token or session credential."""

    token: str
    token_type: str
    expires_in: int = Field(..., description="Lifetime in seconds")


class LogoutResponse(BaseModel):
    """POST /auth/logout response."""

    revoked: bool


# ============================================================================
# Quota Models
# ============================================================================


class QuotaResponse(BaseModel):
    """Derived quota state."""

    used: int
    limit: int
    remaining: int


class StorageQuotaResponse(QuotaResponse):
    """Storage quota with human-readable amounts."""

    used_formatted: str
    limit_formatted: str


# ============================================================================
# File and Report Models
# ============================================================================


class FileResponse(RecordModel):
    """Stored file metadata."""

    id: str
    owner_id: str
    title: str
    description: str
    file_name: str
    mime_type: str
    size: int
    created_at: datetime


class ReportResponse(RecordModel):
    """Stored report metadata."""

    id: str
    client_id: str
    title: str
    description: str
    file_name: str
    mime_type: str
    size: int
    created_at: datetime


class DownloadUrlResponse(BaseModel):
    """Time-limited signed download URL."""

    url: str
    file_name: str
    expires_in: int


class DeletedResponse(BaseModel):
    """Acknowledgement of a deletion."""

    id: str
    deleted: bool = True


# ============================================================================
# Support Models
# ============================================================================


class TicketCreateRequest(BaseModel):
    """POST /support/tickets request body."""

    subject: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    priority: TicketPriority = TicketPriority.MEDIUM
    project_id: str | None = Field(None, max_length=64)


class TicketUpdateRequest(BaseModel):
    """PATCH /support/tickets/{id} request body."""

    status: TicketStatus | None = None
    admin_response: str | None = None


class TicketResponse(RecordModel):
    """Support ticket."""

    id: str
    client_id: str
    client_email: str
    project_id: str | None
    subject: str
    message: str
    priority: TicketPriority
    status: TicketStatus
    admin_response: str
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Project Models
# ============================================================================


class ProjectCreateRequest(BaseModel):
    """POST /projects request body."""

    client_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    status: ProjectStatus = ProjectStatus.PENDING
    monthly_ticket_limit: int | None = Field(None, ge=0)


class ProjectUpdateRequest(BaseModel):
    """PATCH /projects/{id} request body."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    status: ProjectStatus | None = None
    monthly_ticket_limit: int | None = Field(None, ge=0)


class ProjectResponse(RecordModel):
    """Project."""

    id: str
    client_id: str
    name: str
    description: str
    status: ProjectStatus
    monthly_ticket_limit: int | None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# User Models
# ============================================================================


class UserRegisterRequest(BaseModel):
    """POST /users/register request body."""

    email: EmailStr
    password: str | None = Field(
        None, min_length=6, max_length=128, description="Generated when omitted"
    )
    display_name: str | None = Field(None, max_length=255)
    role: Role = Role.CLIENT
    phone: str | None = Field(None, max_length=50)
    description: str | None = None


class UserRegisterResponse(BaseModel):
    """Result of registering a user."""

    uid: str
    email: str
    role: Role
    welcome_email_sent: bool


class UserUpdateRequest(BaseModel):
    """PATCH /users/{id} request body (admin)."""

    display_name: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=6, max_length=128)
    role: Role | None = None
    phone: str | None = Field(None, max_length=50)
    description: str | None = None
    storage_limit_gb: float | None = Field(None, ge=0)
    monthly_ticket_limit: int | None = Field(None, ge=0)


class SetAdminRoleRequest(BaseModel):
    """POST /users/set-admin-role request body."""

    uid: str = Field(..., min_length=1, max_length=64)


class UserResponse(RecordModel):
    """User profile."""

    uid: str
    email: str
    display_name: str | None
    photo_url: str | None
    phone: str | None
    description: str | None
    role: Role | None
    storage_limit_bytes: int | None
    monthly_ticket_limit: int | None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Blog Models
# ============================================================================


class BlogPostCreateRequest(BaseModel):
    """POST /blog request body."""

    title: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    content: str = Field(..., min_length=1)
    excerpt: str | None = None
    cover_image: str | None = None
    author: str | None = Field(None, max_length=255)
    category: str | None = Field(None, max_length=100)
    tags: list[str] = Field(default_factory=list)
    published: bool = False
    published_at: datetime | None = None


class BlogPostUpdateRequest(BaseModel):
    """PATCH /blog/{id} request body."""

    title: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(
        None, min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
    )
    content: str | None = Field(None, min_length=1)
    excerpt: str | None = None
    cover_image: str | None = None
    author: str | None = Field(None, max_length=255)
    category: str | None = Field(None, max_length=100)
    tags: list[str] | None = None
    published: bool | None = None
    published_at: datetime | None = None


class BlogPostResponse(RecordModel):
    """Blog post."""

    id: str
    title: str
    slug: str
    content: str
    excerpt: str | None
    cover_image: str | None
    author: str | None
    author_id: str
    category: str | None
    tags: list[str]
    published: bool
    published_at: datetime | None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Form Models
# ============================================================================


class FormMeta(BaseModel):
    """Browser metadata sent with public forms."""

    user_agent: str = Field("", alias="userAgent")
    referrer: str | None = None
    page: str = ""
    ts: datetime | None = None

    model_config = ConfigDict(populate_by_name=True)


class ContactRequest(BaseModel):
    """POST /forms/contact request body."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field("", max_length=50)
    message: str = Field(..., min_length=1, max_length=10_000)
    meta: FormMeta = Field(default_factory=FormMeta)


class ContactResponse(BaseModel):
    """POST /forms/contact response."""

    success: bool
    prospect_id: str
    conversation_id: str
    email_sent: bool
    admin_notified: bool
    is_new_prospect: bool


class SubscribeRequest(BaseModel):
    """POST /forms/subscribe request body."""

    email: EmailStr
    meta: FormMeta = Field(default_factory=FormMeta)


class SubscribeResponse(BaseModel):
    """POST /forms/subscribe response."""

    success: bool
    subscriber_id: str
    already_subscribed: bool


class UnsubscribeResponse(BaseModel):
    """POST /forms/unsubscribe response."""

    success: bool
    removed: bool


class MailTestResponse(BaseModel):
    """GET /forms/test-mail response."""

    success: bool
    recipient: str


# ============================================================================
# Health Models
# ============================================================================


class ServiceStatus(BaseModel):
    """Health of a single dependency."""

    status: str
    latency_ms: float | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    version: str
    timestamp: datetime
    database: ServiceStatus
