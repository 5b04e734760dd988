"""
Error taxonomy shared by the storage and API layers.

Storage raises these; the API layer registers exception handlers that
translate each one to its HTTP status code.
"""


class MemoryLaneError(Exception):
    """Base class for logical (non-transient) application errors."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(MemoryLaneError):
    """Operation on a missing id."""

    status_code = 404


class ConflictError(MemoryLaneError):
    """Duplicate friend request, already-a-member, taken username."""

    status_code = 409


class ForbiddenError(MemoryLaneError):
    """Ownership or role check failure."""

    status_code = 403


class ValidationError(MemoryLaneError):
    """Input that is well-formed but not acceptable (e.g. befriending yourself)."""

    status_code = 400
