"""
Conversation orchestration.

Drives one chat request through its lifecycle:

    Resolving -> Routed -> Contextualized -> Dispatched -> Persisted -> Completed

Any state can end in Failed. Nothing is written to the store before
Persisted, and the user turn, the assistant turn, the updated_at bump (and,
for a new conversation, the conversation row) are written as one atomic
batch. A failed upstream call therefore leaves the store untouched, and a
failed batch leaves no dangling user turn.

Requests against the same conversation are serialized through a
per-conversation lock held from the history read to the final write, so
turn order always matches processing order.
"""

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ai_chat_router.analytics.emitter import AI_CHAT, MODEL_ROUTING, AnalyticsEmitter
from ai_chat_router.config.loader import Settings
from ai_chat_router.sdk.openai_client import UpstreamClient
from ai_chat_router.storage.models import Conversation, Role, Turn, utcnow
from ai_chat_router.storage.repository import ChatRepository
from .catalog import ModelCatalog
from .context import build_context
from .errors import (
    ChatRouterError,
    Forbidden,
    InvalidRequest,
    NotFound,
    PartialPersistence,
    PersistenceError,
)
from .routing import Router, RoutingDecision, TaskDescriptor


logger = logging.getLogger(__name__)

CHAT_TASK_TYPE = "chat"


class ChatState(Enum):
    RESOLVING = "resolving"
    ROUTED = "routed"
    CONTEXTUALIZED = "contextualized"
    DISPATCHED = "dispatched"
    PERSISTED = "persisted"
    COMPLETED = "completed"
    FAILED = "failed"


def derive_title(message: str, length: int = 50) -> str:
    """Conversation title from the first message, truncated to ``length``."""
    text = " ".join(message.split())
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


class ConversationLocks:
    """Single-writer lock per conversation id.

    Entries are reference counted and removed once no request holds or
    waits on them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, List[Any]] = {}

    @contextmanager
    def hold(self, conversation_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.setdefault(conversation_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[conversation_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


@dataclass(frozen=True)
class ChatResult:
    """Outcome of a completed chat request."""
    message: str
    conversation_id: str
    tokens_used: int
    processing_time_ms: int
    model: str
    routing: RoutingDecision
    created_conversation: bool = False
    states: Tuple[ChatState, ...] = field(default_factory=tuple)

    def to_response(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "conversationId": self.conversation_id,
            "tokensUsed": self.tokens_used,
            "processingTime": self.processing_time_ms,
            "model": self.model,
        }


@dataclass(frozen=True)
class RouteResult:
    """Routing decision plus the caller's preference context."""
    decision: RoutingDecision
    language_preference: str
    preferences: Dict[str, Any]

    def to_response(self) -> Dict[str, Any]:
        model = self.decision.model
        task = self.decision.task
        return {
            "selectedModel": {
                "name": model.name,
                "provider": model.provider,
                "modelType": model.model_type.value,
                "capabilities": sorted(model.capabilities),
                "maxTokens": model.max_tokens,
                "configuration": model.configuration,
            },
            "routing": {
                "taskType": task.task_type,
                "complexity": task.complexity.value,
                "priority": task.priority.value,
                "reason": self.decision.rationale,
            },
            "estimates": {
                "tokens": self.decision.estimate.tokens,
                "cost": self.decision.estimate.cost,
                "processingTimeMs": self.decision.estimate.latency_ms,
            },
            "userContext": {
                "languagePreference": self.language_preference,
                "preferences": self.preferences,
            },
        }


class _Trace:
    """Records state transitions for one request."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        self.states: List[ChatState] = [ChatState.RESOLVING]

    @property
    def current(self) -> ChatState:
        return self.states[-1]

    def advance(self, state: ChatState) -> None:
        logger.debug("chat %s: %s -> %s", self.request_id, self.current.value, state.value)
        self.states.append(state)


class ConversationOrchestrator:
    """Owns the conversation lifecycle and coordinates routing and inference."""

    def __init__(
        self,
        repository: ChatRepository,
        upstream: UpstreamClient,
        emitter: AnalyticsEmitter,
        settings: Optional[Settings] = None,
        router: Optional[Router] = None,
        locks: Optional[ConversationLocks] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4())
    ):
        self.repository = repository
        self.upstream = upstream
        self.emitter = emitter
        self.settings = settings or Settings()
        self.router = router or Router(self.settings.routing)
        self.locks = locks or ConversationLocks()
        self.clock = clock
        self.id_factory = id_factory

    def send_message(
        self,
        user_id: str,
        message: str,
        conversation_id: Optional[str] = None,
        model_name: Optional[str] = None
    ) -> ChatResult:
        """Process one chat turn end to end.

        Args:
            user_id: Authenticated caller
            message: New user message
            conversation_id: Existing conversation to continue, or None (or empty) to start one
            model_name: Explicit model to use instead of routing

        Returns:
            The assistant reply with usage metrics and the conversation id

        Raises:
            InvalidRequest: If the message is empty
            NotFound: If the conversation or requested model does not resolve
            CatalogUnavailable, NoModelAvailable: If routing cannot proceed
            UpstreamError: If inference fails; nothing is persisted
            PartialPersistence: If the reply could not be saved; nothing is
                persisted and the reply is attached to the error
        """
        if not message or not message.strip():
            raise InvalidRequest("message is required")

        is_new = not conversation_id
        target_id = self.id_factory() if is_new else conversation_id
        trace = _Trace(target_id)

        with self.locks.hold(target_id):
            try:
                result = self._run(trace, user_id, message, target_id, is_new, model_name)
            except ChatRouterError as e:
                failed_in = trace.current
                trace.advance(ChatState.FAILED)
                logger.error("Chat request for conversation %s failed while %s: %s",
                             target_id, failed_in.value, e)
                raise

        self.emitter.emit(user_id, AI_CHAT, {
            "model_used": result.model,
            "tokens_used": result.tokens_used,
            "processing_time_ms": result.processing_time_ms,
            "conversation_id": result.conversation_id,
            "task_type": result.routing.task.task_type,
            "routing_reason": result.routing.rationale,
        })
        return result

    def route_task(
        self,
        user_id: str,
        task: TaskDescriptor,
        user_preferences: Optional[Dict[str, Any]] = None
    ) -> RouteResult:
        """Routing-only request: decide a model without calling it."""
        catalog = ModelCatalog.load(self.repository)
        decision = self.router.route(task, catalog)
        profile = self.repository.get_profile(user_id)

        self.emitter.emit(user_id, MODEL_ROUTING, {
            "task_type": task.task_type,
            "complexity": task.complexity.value,
            "priority": task.priority.value,
            "selected_model": decision.model.name,
            "estimated_tokens": decision.estimate.tokens,
            "estimated_cost": decision.estimate.cost,
        })
        return RouteResult(
            decision=decision,
            language_preference=profile.language_preference or "en",
            preferences={**profile.preferences, **(user_preferences or {})}
        )

    def _run(
        self,
        trace: _Trace,
        user_id: str,
        message: str,
        conversation_id: str,
        is_new: bool,
        model_name: Optional[str]
    ) -> ChatResult:
        received_at = self.clock()
        conversation, history = self._resolve(user_id, message, conversation_id, is_new, received_at)

        decision = self._route(message, model_name)
        trace.advance(ChatState.ROUTED)

        context = build_context(
            history,
            message,
            self.settings.conversation.system_preamble,
            history_limit=self.settings.conversation.history_limit
        )
        trace.advance(ChatState.CONTEXTUALIZED)

        started = time.monotonic()
        completion = self.upstream.complete(context, decision.model)
        processing_time_ms = int((time.monotonic() - started) * 1000)
        trace.advance(ChatState.DISPATCHED)

        tokens_used = completion.usage.total_tokens
        user_turn = Turn(
            id=self.id_factory(),
            conversation_id=conversation.id,
            user_id=user_id,
            role=Role.USER,
            content=message,
            created_at=received_at
        )
        assistant_turn = Turn(
            id=self.id_factory(),
            conversation_id=conversation.id,
            user_id=user_id,
            role=Role.ASSISTANT,
            content=completion.content,
            created_at=self.clock(),
            model_used=decision.model.name,
            tokens_used=tokens_used,
            processing_time_ms=processing_time_ms
        )
        try:
            self.repository.persist_exchange(
                conversation, user_turn, assistant_turn, create_conversation=is_new
            )
        except PersistenceError as e:
            raise PartialPersistence(
                reply=completion.content,
                conversation_id=conversation.id,
                model=decision.model.name,
                details=e.details or str(e)
            ) from e
        trace.advance(ChatState.PERSISTED)

        trace.advance(ChatState.COMPLETED)
        return ChatResult(
            message=completion.content,
            conversation_id=conversation.id,
            tokens_used=tokens_used,
            processing_time_ms=processing_time_ms,
            model=decision.model.name,
            routing=decision,
            created_conversation=is_new,
            states=tuple(trace.states)
        )

    def _resolve(
        self,
        user_id: str,
        message: str,
        conversation_id: str,
        is_new: bool,
        now: datetime
    ) -> Tuple[Conversation, List[Turn]]:
        """Load an owned conversation with its recent history, or draft a new one.

        A drafted conversation is only written together with its first turns.
        """
        if is_new:
            conversation = Conversation(
                id=conversation_id,
                user_id=user_id,
                title=derive_title(message, self.settings.conversation.title_length),
                created_at=now,
                updated_at=now
            )
            return conversation, []

        conversation = self.repository.get_conversation(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found", conversation_id=conversation_id)
        if conversation.user_id != user_id:
            raise Forbidden("Conversation not found", details="owned by another user",
                            conversation_id=conversation_id)

        history = self.repository.list_turns(
            conversation_id, limit=self.settings.conversation.history_limit
        )
        return conversation, history

    def _route(self, message: str, model_name: Optional[str]) -> RoutingDecision:
        catalog = ModelCatalog.load(self.repository)
        task = TaskDescriptor(task_type=CHAT_TASK_TYPE, content_length=len(message))
        if model_name:
            model = catalog.get_model(model_name)
            if model is None:
                raise NotFound(f"Model {model_name} not found or inactive")
            return self.router.use_requested(task, model)
        return self.router.route(task, catalog)
