"""
Error taxonomy for routing and conversation orchestration.

Every error carries the HTTP status it maps to and a message that is safe
to show to the caller. Server-side detail goes in ``details`` and
``context`` and is only logged.
"""

from typing import Any, Optional


class ChatRouterError(Exception):
    """Base exception for all routing and orchestration errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None, **context: Any):
        self.message = message or self.public_message
        self.details = details
        self.context = context if context else None
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Caller-facing JSON body."""
        return {"error": self.message}


class AuthError(ChatRouterError):
    """Missing or invalid credential."""
    status_code = 401
    public_message = "Invalid authentication"


class InvalidRequest(ChatRouterError):
    """Malformed request body."""
    status_code = 400
    public_message = "Invalid request"


class NotFound(ChatRouterError):
    """A referenced conversation or model does not resolve."""
    status_code = 404
    public_message = "Not found"


class Forbidden(NotFound):
    """Conversation exists but belongs to another user.

    Reported exactly like a missing conversation so ids cannot be probed.
    """


class CatalogUnavailable(ChatRouterError):
    """The model catalog could not be read from the store."""
    public_message = "Model catalog unavailable"


class NoModelAvailable(ChatRouterError):
    """The catalog has no active model to route to."""
    public_message = "No active AI models available"


class UpstreamError(ChatRouterError):
    """The inference call failed or returned a non-success response."""
    public_message = "Upstream model provider error"


class PersistenceError(ChatRouterError):
    """A write to the store failed."""
    public_message = "Failed to save conversation"


class PartialPersistence(PersistenceError):
    """The reply was generated but the turn pair could not be saved.

    Nothing from the exchange is in the store. The reply travels with the
    error, flagged as unsaved, so the client can retry the save instead of
    re-running inference.
    """

    def __init__(self, reply: str, conversation_id: str, model: str, details: Optional[str] = None):
        super().__init__(details=details, conversation_id=conversation_id, model=model)
        self.reply = reply
        self.conversation_id = conversation_id
        self.model = model

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "unsaved": True,
            "message": self.reply,
            "conversationId": self.conversation_id,
            "model": self.model,
        }


class AnalyticsError(ChatRouterError):
    """Analytics write failed. Logged by the emitter, never propagated."""
    public_message = "Failed to record analytics event"
