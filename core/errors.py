"""
Error taxonomy shared by all layers.

Every error carries a stable ``code`` so the HTTP layer can render the
``{"ok": false, "error": {"code": ..., "message": ...}}`` envelope without
inspecting exception types one by one.
"""

from typing import Optional


class CareCoordError(Exception):
    """Base class for application errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class StoreError(CareCoordError):
    """The document store could not complete a request (network, throttling, server)."""

    code = "store_unavailable"
    status_code = 503


class RecordNotFound(CareCoordError):
    """A document addressed by id does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection} record {record_id} not found")
        self.collection = collection
        self.record_id = record_id


class InvalidTransition(CareCoordError):
    """A status change is not allowed from the record's current state."""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str, reason: str = ""):
        message = f"Cannot change status from '{current}' to '{requested}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.current = current
        self.requested = requested


class AuthenticationError(CareCoordError):
    code = "authentication_failed"
    status_code = 401


class PermissionDenied(CareCoordError):
    code = "permission_denied"
    status_code = 403


class InvalidRequest(CareCoordError):
    """Input that fails a business rule (duplicate name, negative fee, ...)."""

    code = "invalid_request"
    status_code = 400
