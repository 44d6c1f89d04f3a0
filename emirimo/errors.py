"""Service-level errors.

Routers translate these into HTTP responses; services never raise HTTPException.
"""


class EmirimoError(Exception):
    """Base class for errors raised by the service layer."""


class NotFoundError(EmirimoError):
    """Course, certificate or user does not exist."""


class ForbiddenError(EmirimoError):
    """Caller may not access the resource (or it does not exist for them)."""


class StorageError(EmirimoError):
    """An artifact backend could not complete a read or write."""


class RenderError(EmirimoError):
    """Certificate input is missing required fields."""


class PersistenceError(EmirimoError):
    """A completion record could not be written or verified after retrying."""
