"""
Token counting and usage tracking.

Holds exact usage reported by the provider and the character-based
estimate used before a call is made.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional


CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage reported by the upstream provider."""
    prompt_tokens: int
    completion_tokens: int
    reported_total: Optional[int] = None

    @property
    def total_tokens(self) -> int:
        """Provider-reported total, else prompt + completion."""
        if self.reported_total is not None:
            return self.reported_total
        return self.prompt_tokens + self.completion_tokens

    @classmethod
    def from_response(cls, usage: Any) -> "TokenUsage":
        """Build from an OpenAI usage object; a missing object counts as zero."""
        if usage is None:
            return cls(prompt_tokens=0, completion_tokens=0)
        return cls(
            prompt_tokens=getattr(usage, "prompt_tokens", None) or 0,
            completion_tokens=getattr(usage, "completion_tokens", None) or 0,
            reported_total=getattr(usage, "total_tokens", None)
        )


def estimate_tokens(content_length: Optional[int], default: int = 100) -> int:
    """Estimate tokens for a piece of content from its character length.

    Returns ``default`` when no content is supplied.
    """
    if not content_length:
        return default
    return math.ceil(content_length / CHARS_PER_TOKEN)
