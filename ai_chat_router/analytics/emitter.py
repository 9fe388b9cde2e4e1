"""
Best-effort analytics sink.

Losing an analytics event is acceptable; failing a chat request because
of one is not. Every failure is logged and dropped, never retried.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ai_chat_router.core.errors import AnalyticsError
from ai_chat_router.storage.models import AnalyticsEvent, utcnow
from ai_chat_router.storage.repository import ChatRepository


logger = logging.getLogger(__name__)

# Well-known event types; the set is open
AI_CHAT = "ai_chat"
MODEL_ROUTING = "model_routing"


class AnalyticsEmitter:
    """Fire-and-forget recorder of usage events.

    Each call writes a new record; replays are not deduplicated.
    """

    def __init__(
        self,
        repository: ChatRepository,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4())
    ):
        self.repository = repository
        self.clock = clock
        self.id_factory = id_factory

    def emit(
        self,
        user_id: str,
        event_type: str,
        event_data: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None
    ) -> bool:
        """Record one event.

        Returns:
            True if the event was stored, False if it was dropped
        """
        try:
            event = AnalyticsEvent(
                id=self.id_factory(),
                user_id=user_id,
                event_type=event_type,
                event_data=dict(event_data or {}),
                created_at=self.clock(),
                session_id=session_id
            )
            self.repository.insert_analytics_event(event)
        except Exception as e:
            error = AnalyticsError(details=str(e), event_type=event_type, user_id=user_id)
            logger.warning("%s (dropped)", error)
            return False
        return True
