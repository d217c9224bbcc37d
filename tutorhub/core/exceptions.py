# tutorhub/core/exceptions.py
"""Custom exceptions for the TutorHub coordinator.

Every exception carries a ``detail`` dict that clients render as a dismissible
notice. Access failures also carry ``redirect_to`` naming the surface the
viewer should be sent to.
"""
from fastapi import HTTPException
from typing import Any, Dict, Optional


class TutorHubException(HTTPException):
    """Base exception for the TutorHub application."""
    def __init__(
        self,
        status_code: int,
        detail: Any,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def notice(self) -> str:
        if isinstance(self.detail, dict):
            return self.detail.get("message", "")
        return str(self.detail)


class AuthenticationRequired(TutorHubException):
    """Raised when the viewer is not logged in."""
    def __init__(self, message: str = "Please log in to access the chat room"):
        super().__init__(
            status_code=401,
            detail={
                "error": "Authentication required",
                "message": message,
                "redirect_to": "/login"
            }
        )


class AccessDenied(TutorHubException):
    """Raised when the viewer may not enter a conversation or use a feature."""
    def __init__(self, message: str, redirect_to: str = "/"):
        super().__init__(
            status_code=403,
            detail={
                "error": "Access denied",
                "message": message,
                "redirect_to": redirect_to
            }
        )

    @property
    def redirect_to(self) -> str:
        return self.detail["redirect_to"]


class NotFound(TutorHubException):
    def __init__(self, resource: str, id: Any = None):
        message = f"{resource} not found"
        if id is not None:
            message += f" with id: {id}"
        super().__init__(
            status_code=404,
            detail={"error": "Not found", "message": message}
        )


class ValidationError(TutorHubException):
    """Exception raised for validation errors."""
    def __init__(self, message: str, field: Optional[str] = None, title: str = "Validation Error"):
        detail = {"error": title, "message": message}
        if field:
            detail["field"] = field
        super().__init__(status_code=422, detail=detail)


class InvalidTransition(TutorHubException):
    """Raised when a status change is not allowed by the transition table."""
    def __init__(self, kind: str, current: str, target: str):
        super().__init__(
            status_code=409,
            detail={
                "error": "Invalid transition",
                "message": f"Cannot move {kind} from {current} to {target}"
            }
        )


class Conflict(TutorHubException):
    def __init__(self, message: str, title: str = "Conflict"):
        super().__init__(
            status_code=409,
            detail={"error": title, "message": message}
        )


class BackendError(TutorHubException):
    """Raised when an external collaborator (storage, payment gateway) fails."""
    def __init__(self, message: str):
        super().__init__(
            status_code=502,
            detail={"error": "Error", "message": message}
        )


class DatabaseError(TutorHubException):
    """Exception raised for database errors."""
    def __init__(self, message: str):
        super().__init__(
            status_code=500,
            detail={
                "error": "Database Error",
                "message": message
            }
        )
