"""
Exception Classes - Strongly typed exception hierarchy.

Each class maps to one HTTP status in backoffice.api.errors.
"""


class BackofficeError(Exception):
    """Base exception for all back-office errors."""

    pass


class UnauthenticatedError(BackofficeError):
    """Raised when no credential is supplied or it cannot be verified."""

    def __init__(self, message: str = "Not authenticated") -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class ForbiddenError(BackofficeError):
    """Raised when an authenticated caller's role is not permitted."""

    def __init__(self, role: str | None, allowed_roles: frozenset[str]) -> None:
        self.role = role
        self.allowed_roles = allowed_roles
        super().__init__(
            f"Role '{role}' does not have permission. Required: {', '.join(sorted(allowed_roles))}"
        )


class NotFoundError(BackofficeError):
    """Raised when a resource is absent or owned by someone else."""

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class QuotaExceededError(BackofficeError):
    """Raised when a write would exceed a storage or monthly ticket quota."""

    def __init__(
        self,
        kind: str,
        used: int,
        limit: int,
        remaining: int,
        required: int,
        message: str,
    ) -> None:
        self.kind = kind
        self.used = used
        self.limit = limit
        self.remaining = remaining
        self.required = required
        self.message = message
        super().__init__(message)


class ValidationError(BackofficeError):
    """Raised when request input is malformed or conflicts with existing data."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class IdentityProviderError(BackofficeError):
    """Raised when the identity provider rejects an account operation."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Identity provider error ({code}): {message}")


class TemplateNotFoundError(BackofficeError):
    """Raised when an email template file does not exist."""

    def __init__(self, template_name: str) -> None:
        self.template_name = template_name
        super().__init__(f"Email template not found: {template_name}.html")


class ClientsAlreadyInitializedError(BackofficeError):
    """Raised when the process-wide service clients are initialized twice."""

    def __init__(self) -> None:
        super().__init__("Service clients are already initialized")


class ClientsNotInitializedError(BackofficeError):
    """Raised when service clients are used before initialization."""

    def __init__(self) -> None:
        super().__init__("Service clients have not been initialized")
