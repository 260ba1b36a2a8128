"""
Custom Exceptions for the Campus Gate Pass service
==================================================

Every domain failure raised by the gate pass core is a subclass of
CampusError, so the API layer can tell "not your turn" (ForbiddenError)
from "already decided" (InvalidStateError) from "bad input"
(ValidationError).

Usage:
    from app.core.exceptions import GatePassNotFoundError, InvalidStateError

    if not gate_pass:
        raise GatePassNotFoundError(gate_pass_id)
"""

from typing import Optional, Any, Dict, Iterable


class CampusError(Exception):
    """Base exception for all gate pass service errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authorization Errors
# ============================================

class ForbiddenError(CampusError):
    """Actor's role or department does not authorize the action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized", **details: Any):
        super().__init__(message, code="FORBIDDEN", details=details)


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(CampusError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class GatePassNotFoundError(ResourceNotFoundError):
    """Gate pass not found"""

    def __init__(self, gate_pass_id: str):
        super().__init__("Gate pass", gate_pass_id)


class UserNotFoundError(ResourceNotFoundError):
    """User not found"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


# ============================================
# State Errors (409-type)
# ============================================

class InvalidStateError(CampusError):
    """Transition attempted from a status that does not permit it"""

    status_code = 409

    def __init__(self, current_status: str, expected_statuses: Iterable[str],
                 message: Optional[str] = None):
        current_status = getattr(current_status, "value", current_status)
        expected = sorted(getattr(s, "value", s) for s in expected_statuses)
        super().__init__(
            message or (
                f"Gate pass is in status '{current_status}', "
                f"expected one of: {', '.join(expected)}"
            ),
            code="INVALID_STATE",
            details={"current_status": current_status, "expected_statuses": expected}
        )


class ConcurrentModificationError(InvalidStateError):
    """Another transition committed first on the same gate pass"""

    def __init__(self, gate_pass_id: str):
        super().__init__(
            "unknown",
            [],
            message=f"Gate pass '{gate_pass_id}' was modified concurrently, reload and retry",
        )
        self.code = "CONCURRENT_MODIFICATION"
        self.details["gate_pass_id"] = gate_pass_id


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(CampusError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class OutsideValidityWindowError(ValidationError):
    """Security check-out attempted outside the pass's validity window"""

    def __init__(self, start_date: Any, end_date: Any, buffer_hours: int):
        super().__init__("Gate pass is not valid for the current date")
        self.code = "OUTSIDE_VALIDITY_WINDOW"
        self.details = {
            "start_date": str(start_date),
            "end_date": str(end_date),
            "buffer_hours": buffer_hours,
        }


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: CampusError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "detail": error.message,
        "error": error.to_dict()
    }
