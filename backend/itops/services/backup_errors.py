"""Typed errors raised by the daily backup services."""

from __future__ import annotations

# purpose: shared error taxonomy for catalog, rotation, and daily record services
# outputs: NotFound / Invalid / Conflict families mapped to 404 / 400 / 409 by routers
# status: active


class DailyBackupError(RuntimeError):
    """Base error for the daily backup checklist."""


class NotFoundError(DailyBackupError):
    """A referenced record or a required configuration is missing."""


class InvalidError(DailyBackupError):
    """A reference or argument is present but not acceptable."""


class ConflictError(DailyBackupError):
    """A write collides with existing data."""


class RecordComponentNotFound(NotFoundError):
    """Raised for unknown file types, statuses, disks, or records."""


class NoActiveDisksConfigured(NotFoundError):
    """Raised when the rotation has no active disk to pick from."""


class CatalogNotConfigured(NotFoundError):
    """Raised when no active statuses or file types exist."""


class UnknownOrInactiveDisk(NotFoundError):
    """Raised when an explicit disk override does not match an active disk."""


class InactiveReference(InvalidError):
    """Raised when a deactivated catalog entry is used where an active one is required."""


class InvalidRequest(InvalidError):
    """Raised for malformed dates, months, or paging arguments."""


class DuplicateCatalogEntry(ConflictError):
    """Raised when a catalog write violates a unique code or sequence."""
