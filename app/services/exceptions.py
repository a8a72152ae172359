"""
Academy Service Exceptions

Tagged errors raised by the progress core. The HTTP layer maps
``status_code`` onto the response; everything else is plain data.
"""

from typing import Any, Dict, Optional


class AcademyError(Exception):
    """Base exception for academy core errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "ACADEMY_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(AcademyError):
    """Raised when a user, session or module does not exist."""

    status_code = 404

    def __init__(self, entity: str, identifier: Any = None, message: str = None):
        msg = message or f"{entity} not found: {identifier}"
        super().__init__(
            message=msg,
            code="NOT_FOUND",
            details={"entity": entity, "id": None if identifier is None else str(identifier)},
        )


class ForbiddenError(AcademyError):
    """Raised when a session or progress record belongs to someone else."""

    status_code = 403

    def __init__(self, operation: str, user_id: str = None, message: str = None):
        msg = message or f"Permission denied for operation: {operation}"
        details = {"operation": operation}
        if user_id:
            details["user_id"] = user_id
        super().__init__(message=msg, code="FORBIDDEN", details=details)


class InvalidStateError(AcademyError):
    """Raised when a session is in the wrong lifecycle state for an operation."""

    status_code = 409

    def __init__(
        self,
        current_state: str,
        target_state: str,
        message: str = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        msg = message or f"Cannot transition from {current_state} to {target_state}"
        error_details = details or {}
        error_details.update({
            "current_state": current_state,
            "target_state": target_state,
        })
        super().__init__(message=msg, code="INVALID_STATE", details=error_details)


class AlreadyCertifiedError(AcademyError):
    """Raised when a certification for the user/module pair already exists."""

    status_code = 409

    def __init__(self, user_id: str, module_id: str):
        super().__init__(
            message=f"User {user_id} already holds a certification for {module_id}",
            code="ALREADY_CERTIFIED",
            details={"user_id": user_id, "module_id": module_id},
        )


class PersistenceError(AcademyError):
    """Raised on invariant violations or storage failures during save."""

    status_code = 500

    def __init__(self, message: str, user_id: str = None, details: Optional[Dict[str, Any]] = None):
        error_details = details or {}
        if user_id:
            error_details["user_id"] = user_id
        super().__init__(message=message, code="PERSISTENCE_ERROR", details=error_details)


class CompletionTimeoutError(AcademyError):
    """Raised when a completion cannot be committed within its time budget; nothing was saved."""

    status_code = 504

    def __init__(self, session_id: str, timeout_seconds: float):
        super().__init__(
            message=f"Completing session {session_id} timed out after {timeout_seconds}s",
            code="COMPLETION_TIMEOUT",
            details={"session_id": session_id, "timeout_seconds": timeout_seconds},
        )
