"""
Data models for storage layer.

Defines the persisted records read and written by the router core.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ModelType(Enum):
    """Kind of work a backend model performs."""
    CHAT = "chat"
    IMAGE = "image"
    AUDIO = "audio"


class Role(Enum):
    """Author of a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Model:
    """Catalog entry for a backend model.

    Owned by an administrative process; the router only reads it.
    """
    name: str
    provider: str
    model_type: ModelType
    capabilities: FrozenSet[str] = frozenset()
    max_tokens: Optional[int] = None
    cost_per_token: Optional[float] = None
    is_active: bool = True
    configuration: Dict[str, Any] = field(default_factory=dict)

    @property
    def roles(self) -> FrozenSet[str]:
        """Named routing roles this model fills (fast, flagship, ...)."""
        return frozenset(self.configuration.get("roles", ()))

    def has_capability(self, tag: str) -> bool:
        return tag in self.capabilities


@dataclass(frozen=True)
class Conversation:
    """A user's conversation. Never shared between users."""
    id: str
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Turn:
    """Immutable message in a conversation.

    Assistant turns carry usage metrics; user turns leave them unset.
    """
    id: str
    conversation_id: str
    user_id: str
    role: Role
    content: str
    created_at: datetime
    model_used: Optional[str] = None
    tokens_used: Optional[int] = None
    processing_time_ms: Optional[int] = None


@dataclass(frozen=True)
class AnalyticsEvent:
    """Append-only usage record. Write-only from the router's perspective."""
    id: str
    user_id: str
    event_type: str
    event_data: Dict[str, Any]
    created_at: datetime
    session_id: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    """Per-user preferences consulted when routing."""
    user_id: str
    language_preference: str = "en"
    preferences: Dict[str, Any] = field(default_factory=dict)
