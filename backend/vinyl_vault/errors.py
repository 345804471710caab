"""Vinyl Vault exception hierarchy.

Every error raised by the services derives from VinylVaultError and carries
a ``public_message`` that is safe to show to API clients. The ``str()`` of an
exception may contain internal details (absolute paths, OS errors) and is
meant for logs only.

Storage errors:
    - ValidationError: bad extension, oversized upload, missing field
    - PathEscapeError: confinement violation or unresolvable reference
    - ResourceLimitExceededError: too many archive inputs
    - StorageIOError: disk/permission failures

Conversion errors are kept apart from storage errors so a missing ffmpeg
never looks like a broken upload root.
"""
from typing import Optional


class VinylVaultError(Exception):
    """Base exception for all Vinyl Vault errors."""

    public_message: str = "internal error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.public_message)


# =============================================================================
# Validation
# =============================================================================


class ValidationError(VinylVaultError):
    """Raised when caller input is rejected. Never retried."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return f"{self.field}: {self.message}"


class RequiredFieldError(ValidationError):
    """Raised when a required value is empty."""

    def __init__(self, field: str) -> None:
        super().__init__(field, "required field missing")


class UnsupportedFormatError(ValidationError):
    """Raised when an upload's extension is not in the policy allow-list."""

    def __init__(self, extension: str, allowed: list[str]) -> None:
        self.extension = extension
        self.allowed = allowed
        shown = extension or "(none)"
        super().__init__(
            "file",
            f"unsupported file format: {shown} (allowed: {', '.join(allowed)})",
        )


class FileTooLargeError(ValidationError):
    """Raised when an upload's declared size exceeds the policy ceiling."""

    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__(
            "file",
            f"file too large: {size} bytes (maximum is {max_size} bytes"
            f" = {max_size // (1 << 20)}MB)",
        )


class NoFilesToArchiveError(ValidationError):
    """Raised when an archive is requested with no inputs."""

    def __init__(self) -> None:
        super().__init__("files", "no files to archive")


class NotAZipFileError(ValidationError):
    """Raised when deleteArchive is pointed at something that is not a .zip."""

    def __init__(self) -> None:
        super().__init__("path", "file is not a zip file")


# =============================================================================
# Storage
# =============================================================================


class PathEscapeError(VinylVaultError):
    """Raised when a path leaves, or does not resolve within, a managed root.

    Surfaced to clients as a plain "not found".
    """

    public_message = "file not found"


class ResourceLimitExceededError(VinylVaultError):
    """Raised when a request exceeds a fixed resource bound."""

    public_message = "resource limit exceeded"


class TooManyFilesError(ResourceLimitExceededError):
    """Raised when an archive request has more inputs than allowed."""

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(f"too many files to archive: {count} (max {limit})")

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return str(self)


class StoredFileNotFoundError(VinylVaultError):
    """Raised when an input file for an operation is missing on disk."""

    public_message = "file not found"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"file not found: {path}")


class StorageIOError(VinylVaultError):
    """Raised on disk full, permission denied or other filesystem failures."""

    public_message = "storage operation failed"


# =============================================================================
# Conversion
# =============================================================================


class ConversionUnavailableError(VinylVaultError):
    """Raised when the external transcoder cannot be run at all."""

    public_message = "audio conversion unavailable"


class ConversionError(VinylVaultError):
    """Raised when the transcoder ran but did not produce an output file."""

    public_message = "audio conversion failed"


# =============================================================================
# Records
# =============================================================================


class NotFoundError(VinylVaultError):
    public_message = "resource not found"


class UserNotFoundError(NotFoundError):
    public_message = "user not found"


class AlbumNotFoundError(NotFoundError):
    public_message = "album not found"


class TrackNotFoundError(NotFoundError):
    public_message = "track not found"


class RegistrationKeyNotFoundError(NotFoundError):
    public_message = "registration key not found"


class ConflictError(VinylVaultError):
    """Raised when a unique value (username, email, track number) is already taken."""

    def __init__(self, message: str) -> None:
        super().__init__(message)

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return str(self)


class UnauthorizedError(VinylVaultError):
    public_message = "unauthorized"


class AuthenticationRequiredError(UnauthorizedError):
    public_message = "authentication required"


class InvalidCredentialsError(UnauthorizedError):
    public_message = "invalid credentials"


class NotOwnerError(UnauthorizedError):
    public_message = "you don't own this resource"


class AdminOnlyError(UnauthorizedError):
    public_message = "only admins can perform this action"


class AdminAccessRequiredError(AdminOnlyError):
    public_message = "admin access required"


class RegistrationKeyError(VinylVaultError):
    public_message = "invalid registration key"


class InvalidRegistrationKeyError(RegistrationKeyError):
    public_message = "invalid registration key"


class RegistrationKeyUsedError(RegistrationKeyError):
    public_message = "registration key has already been used"


class RegistrationKeyExpiredError(RegistrationKeyError):
    public_message = "registration key has expired"
