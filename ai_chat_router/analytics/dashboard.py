"""
Usage dashboard aggregation.

Summarizes a user's analytics events, conversations and assistant turns
over a trailing window of 1, 7 or 30 days.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ai_chat_router.storage.models import utcnow
from ai_chat_router.storage.repository import ChatRepository


TIME_RANGES = {"1d": 1, "7d": 7, "30d": 30}
DEFAULT_TIME_RANGE = "7d"


def _most_common(counts: Counter) -> str:
    if not counts:
        return "none"
    return counts.most_common(1)[0][0]


def build_dashboard(
    repository: ChatRepository,
    user_id: str,
    time_range: str = DEFAULT_TIME_RANGE,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Aggregate a user's activity for the dashboard.

    Unknown time ranges fall back to 7 days. Daily buckets are UTC dates,
    oldest first, one per day of the window.
    """
    now = now or utcnow()
    days = TIME_RANGES.get(time_range, TIME_RANGES[DEFAULT_TIME_RANGE])
    since = now - timedelta(days=days)

    events = repository.fetch_analytics_events(user_id, since=since)
    turns = repository.fetch_assistant_turns(user_id, since=since)
    conversation_count = repository.count_conversations(user_id, since=since)

    total_tokens = sum(turn.tokens_used or 0 for turn in turns)
    avg_processing = (
        sum(turn.processing_time_ms or 0 for turn in turns) / len(turns) if turns else 0
    )

    model_usage = Counter(turn.model_used for turn in turns if turn.model_used)
    event_types = Counter(event.event_type for event in events)
    events_per_day = Counter(event.created_at.date() for event in events)

    daily_activity = []
    for offset in range(days - 1, -1, -1):
        day = (now - timedelta(days=offset)).date()
        daily_activity.append({"date": day.isoformat(), "events": events_per_day.get(day, 0)})

    return {
        "timeRange": time_range,
        "summary": {
            "totalEvents": len(events),
            "totalConversations": conversation_count,
            "totalMessages": len(turns),
            "totalTokensUsed": total_tokens,
            "avgProcessingTimeMs": round(avg_processing),
        },
        "modelUsage": dict(model_usage),
        "eventTypeBreakdown": dict(event_types),
        "dailyActivity": daily_activity,
        "insights": {
            "mostUsedModel": _most_common(model_usage),
            "mostCommonEventType": _most_common(event_types),
            "averageTokensPerMessage": round(total_tokens / len(turns)) if turns else 0,
        },
    }
