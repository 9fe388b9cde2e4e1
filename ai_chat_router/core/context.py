"""
Context assembly for the upstream inference call.

The history cap is a plain recency window: the oldest turns beyond the
cap are dropped. Nothing is summarized.
"""

from typing import Dict, List, Sequence

from ai_chat_router.storage.models import Turn


DEFAULT_HISTORY_LIMIT = 50


def build_context(
    history: Sequence[Turn],
    new_user_content: str,
    system_preamble: str,
    history_limit: int = DEFAULT_HISTORY_LIMIT
) -> List[Dict[str, str]]:
    """Build the ordered message list sent to the provider.

    Args:
        history: Prior turns of the conversation, oldest first
        new_user_content: The message being sent now
        system_preamble: Assistant persona text, sent as the single system turn
        history_limit: Maximum number of prior turns to include

    Returns:
        ``[system, *most recent prior turns, new user turn]`` as role/content dicts
    """
    if history_limit < 0:
        raise ValueError("history_limit must be >= 0")

    recent = list(history)[-history_limit:] if history_limit else []

    messages = [{"role": "system", "content": system_preamble}]
    messages.extend({"role": turn.role.value, "content": turn.content} for turn in recent)
    messages.append({"role": "user", "content": new_user_content})
    return messages
