"""
Upstream inference client.

Wraps OpenAI chat completions. Request parameters follow the catalog
entry's configuration; every provider failure surfaces as UpstreamError.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from ..config.loader import UpstreamConfig
from ..core.errors import UpstreamError
from ..core.token_counter import TokenUsage
from ..storage.models import Model


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completion:
    """A successful upstream reply."""
    content: str
    usage: TokenUsage
    request_id: Optional[str] = None


class UpstreamClient:
    """OpenAI chat client used for one inference call per request.

    No automatic retries are made; retry policy belongs to the caller.
    """

    def __init__(self, config: Optional[UpstreamConfig] = None, client: Optional[Any] = None):
        """Initialize the upstream client.

        Args:
            config: Upstream settings (timeout, output token cap, temperature)
            client: Pre-built OpenAI client; created lazily when omitted
        """
        self.config = config or UpstreamConfig()
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                max_retries=0
            )
        return self._client

    def build_request(self, messages: List[Dict[str, str]], model: Model) -> Dict[str, Any]:
        """Request parameters for ``model``.

        ``configuration.token_parameter`` picks between ``max_tokens`` and
        ``max_completion_tokens``; ``configuration.supports_temperature``
        false omits the temperature.
        """
        limit = self.config.max_output_tokens
        if model.max_tokens:
            limit = min(limit, model.max_tokens)

        token_parameter = model.configuration.get("token_parameter", "max_tokens")
        if token_parameter not in ("max_tokens", "max_completion_tokens"):
            raise UpstreamError(details=f"Unsupported token_parameter for {model.name}: {token_parameter}")

        request: Dict[str, Any] = {
            "model": model.name,
            "messages": messages,
            token_parameter: limit,
        }
        if model.configuration.get("supports_temperature", True):
            request["temperature"] = self.config.temperature
        return request

    def complete(self, messages: List[Dict[str, str]], model: Model) -> Completion:
        """Run one chat completion.

        Args:
            messages: Context built for the request (required)
            model: Catalog entry to call

        Returns:
            The assistant reply with provider-reported usage

        Raises:
            ValueError: If messages is empty
            UpstreamError: On transport failure, timeout, non-success status
                or a reply without content
        """
        if not messages:
            raise ValueError("messages is required and cannot be empty")

        request = self.build_request(messages, model)
        try:
            response = self.client.chat.completions.create(**request)
        except openai.APITimeoutError as e:
            logger.error("Upstream timeout for model %s", model.name)
            raise UpstreamError(details=f"timeout: {e}") from e
        except openai.APIStatusError as e:
            logger.error("OpenAI API error %s for model %s: %s", e.status_code, model.name, e.message)
            raise UpstreamError(details=f"OpenAI API error: {e.status_code}") from e
        except openai.OpenAIError as e:
            logger.error("Upstream call failed for model %s: %s", model.name, e)
            raise UpstreamError(details=str(e)) from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if content is None:
            raise UpstreamError(details=f"response {getattr(response, 'id', None)} has no message content")

        return Completion(
            content=content,
            usage=TokenUsage.from_response(getattr(response, "usage", None)),
            request_id=getattr(response, "id", None)
        )
