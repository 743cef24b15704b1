"""Domain exceptions raised by services and translated to HTTP by routers."""
from typing import Optional

from fastapi import HTTPException, status


class StudyHubException(Exception):
    """Base exception for all application errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=str(self))


# ---------- validation ----------

class ValidationFailed(StudyHubException):
    """Raised before any write when required input is missing or blank."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


# ---------- not found ----------

class SessionRequestNotFound(StudyHubException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Session request {request_id} not found")


class MeetingCodeNotFound(StudyHubException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, meeting_code: str):
        self.meeting_code = meeting_code
        super().__init__("Invalid meeting code. Please check and try again.")


class NotificationNotFound(StudyHubException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, notification_id: int):
        self.notification_id = notification_id
        super().__init__("Notification not found")


class MaterialNotFound(StudyHubException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, material_id: int):
        self.material_id = material_id
        super().__init__(f"Material {material_id} not found")


class UserNotFound(StudyHubException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, user_id: int, role: Optional[str] = None):
        self.user_id = user_id
        label = (role or "user").replace("_", " ").capitalize()
        super().__init__(f"{label} not found")


# ---------- permission ----------

class NotAuthorized(StudyHubException):
    status_code = status.HTTP_403_FORBIDDEN


# ---------- state conflicts ----------

class SessionAlreadyDecided(StudyHubException):
    """Raised when a decision targets a request that is no longer pending."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, request_id: int, current_status: str):
        self.request_id = request_id
        self.current_status = current_status
        super().__init__(f"Session request {request_id} is already {current_status}")


class SessionNotApproved(StudyHubException):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, request_id: int, current_status: str):
        self.request_id = request_id
        self.current_status = current_status
        super().__init__("This session has not been approved yet.")


class SessionNotJoinable(StudyHubException):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, request_id: int, current_status: str):
        self.request_id = request_id
        self.current_status = current_status
        super().__init__(f"This session cannot be joined (status: {current_status}).")


class SessionEnded(StudyHubException):
    status_code = status.HTTP_410_GONE

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__("This session has ended.")


# ---------- backend / external ----------

class BackendUnavailable(StudyHubException):
    """A primary write or read failed; the user may retry the action."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, operation: str, original_error: Exception):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Failed to {operation}. Please try again.")


class MeetingCodeExhausted(StudyHubException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__("Could not allocate a unique meeting code. Please try again.")


class ChatSendFailed(StudyHubException):
    """Carries the unsent text back so the client can offer a resend."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, conversation_id: str, text: str, original_error: Exception):
        self.conversation_id = conversation_id
        self.text = text
        self.original_error = original_error
        super().__init__("Failed to send message")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"message": str(self), "text": self.text, "retryable": True},
        )


class ChatbotUnavailable(StudyHubException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Chatbot unavailable: {reason}")
