"""
Model routing.

Selects the backend model for a task. The policy is an ordered table of
rules: each rule pairs a predicate over the task with a candidate selector,
and the first rule whose predicate matches decides.

Selector fallback order:
1. Preferred role - the catalog entry tagged with the rule's role
2. Constraint match - first model of the required type/capability
3. Any active model - first entry in the catalog

The third step can return a model of the wrong type (e.g. a chat model for
an image task); callers detect that from the returned model's metadata.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple

from ai_chat_router.config.loader import RoutingConfig
from ai_chat_router.storage.models import Model, ModelType
from .catalog import ModelCatalog
from .errors import InvalidRequest, NoModelAvailable
from .estimates import Estimate, build_estimate


logger = logging.getLogger(__name__)


class Complexity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(Enum):
    NORMAL = "normal"
    FAST = "fast"


class Selection(Enum):
    """How a selector arrived at its model."""
    PREFERRED = "preferred"
    CONSTRAINT = "constraint"
    FALLBACK = "fallback"
    REQUESTED = "requested"


def _normalize(value: Optional[str]) -> Optional[str]:
    return str(value).strip().lower() if value else None


@dataclass(frozen=True)
class TaskDescriptor:
    """One unit of routable work."""
    task_type: str
    complexity: Complexity = Complexity.MEDIUM
    priority: Priority = Priority.NORMAL
    content_length: Optional[int] = None

    @classmethod
    def from_request(
        cls,
        task_type: str,
        complexity: Optional[str] = None,
        priority: Optional[str] = None,
        content: Optional[str] = None
    ) -> "TaskDescriptor":
        """Build a descriptor from raw request values.

        Raises:
            InvalidRequest: If the task type is missing or an enum value is unknown
        """
        if not task_type or not str(task_type).strip():
            raise InvalidRequest("taskType is required")
        try:
            parsed_complexity = Complexity(_normalize(complexity) or Complexity.MEDIUM.value)
        except ValueError:
            valid = [c.value for c in Complexity]
            raise InvalidRequest(f"complexity must be one of: {valid}")
        try:
            parsed_priority = Priority(_normalize(priority) or Priority.NORMAL.value)
        except ValueError:
            valid = [p.value for p in Priority]
            raise InvalidRequest(f"priority must be one of: {valid}")

        return cls(
            task_type=_normalize(task_type),
            complexity=parsed_complexity,
            priority=parsed_priority,
            content_length=len(content) if content else None
        )


@dataclass(frozen=True)
class CandidateSelector:
    """Picks a model by role preference, then constraint, then anything active."""
    roles: Tuple[str, ...] = ()
    model_type: Optional[ModelType] = None
    capability: Optional[str] = None

    def select(self, catalog: ModelCatalog) -> Tuple[Model, Selection]:
        for role in self.roles:
            model = catalog.find_role(role, capability=self.capability)
            if model is not None:
                return model, Selection.PREFERRED

        if self.model_type is not None or self.capability is not None:
            model = catalog.find_matching(self.model_type, self.capability)
            if model is not None:
                return model, Selection.CONSTRAINT

        model = catalog.first()
        if model is None:
            raise NoModelAvailable()
        return model, Selection.FALLBACK


Predicate = Callable[[TaskDescriptor, RoutingConfig], bool]


@dataclass(frozen=True)
class RoutingRule:
    name: str
    predicate: Predicate
    selector: CandidateSelector


def _is_type(*task_types: str) -> Predicate:
    return lambda task, config: task.task_type in task_types


def _chat_quick(task: TaskDescriptor, config: RoutingConfig) -> bool:
    return task.task_type in ("chat", "text") and (
        task.priority == Priority.FAST or task.complexity == Complexity.LOW
    )


def _chat_heavy(task: TaskDescriptor, config: RoutingConfig) -> bool:
    return task.task_type in ("chat", "text") and (
        task.complexity == Complexity.HIGH
        or (task.content_length or 0) > config.long_content_threshold
    )


ROUTING_RULES: Tuple[RoutingRule, ...] = (
    RoutingRule("chat-fast", _chat_quick,
                CandidateSelector(roles=("fast",), model_type=ModelType.CHAT)),
    RoutingRule("chat-flagship", _chat_heavy,
                CandidateSelector(roles=("flagship",), model_type=ModelType.CHAT)),
    RoutingRule("chat-balanced", _is_type("chat", "text"),
                CandidateSelector(roles=("balanced",), model_type=ModelType.CHAT)),
    RoutingRule("code", _is_type("code"),
                CandidateSelector(roles=("code",), capability="code")),
    RoutingRule("reasoning", _is_type("reasoning", "analysis"),
                CandidateSelector(roles=("reasoning", "flagship"), model_type=ModelType.CHAT)),
    RoutingRule("image", _is_type("image"),
                CandidateSelector(model_type=ModelType.IMAGE)),
    RoutingRule("audio", _is_type("audio", "speech"),
                CandidateSelector(model_type=ModelType.AUDIO)),
    RoutingRule("default", lambda task, config: True,
                CandidateSelector(roles=("balanced",), model_type=ModelType.CHAT)),
)


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of routing one task. Lives for a single request."""
    task: TaskDescriptor
    model: Model
    rule: str
    selection: Selection
    rationale: str
    estimate: Estimate


class Router:
    """Evaluates the routing table against a catalog snapshot."""

    def __init__(self, config: Optional[RoutingConfig] = None, rules: Sequence[RoutingRule] = ROUTING_RULES):
        self.config = config or RoutingConfig()
        self.rules = tuple(rules)

    def route(self, task: TaskDescriptor, catalog: ModelCatalog) -> RoutingDecision:
        """Select a model for ``task``.

        Never fails while the catalog has at least one active model.

        Raises:
            NoModelAvailable: If the catalog is empty
        """
        if len(catalog) == 0:
            raise NoModelAvailable()

        for rule in self.rules:
            if rule.predicate(task, self.config):
                model, selection = rule.selector.select(catalog)
                return self._decide(task, model, rule.name, selection)

        # the table ends in a catch-all, but a custom table may not
        return self._decide(task, catalog.first(), "none", Selection.FALLBACK)

    def use_requested(self, task: TaskDescriptor, model: Model) -> RoutingDecision:
        """Decision for a model the caller named explicitly."""
        return self._decide(task, model, "requested", Selection.REQUESTED)

    def _decide(self, task: TaskDescriptor, model: Model, rule: str, selection: Selection) -> RoutingDecision:
        rationale = (
            f"Selected {model.name} for {task.task_type} task "
            f"with {task.complexity.value} complexity"
        )
        if selection == Selection.REQUESTED:
            rationale += " (requested by caller)"
        elif selection == Selection.CONSTRAINT:
            rationale += " (preferred model unavailable, matched by type/capability)"
        elif selection == Selection.FALLBACK:
            rationale += " (no matching model, fell back to first active model)"

        estimate = build_estimate(
            model,
            content_length=task.content_length,
            high_complexity=task.complexity == Complexity.HIGH,
            default_tokens=self.config.default_estimated_tokens,
            base_latency_ms=self.config.base_latency_ms,
            multipliers=self.config.latency_multipliers
        )
        logger.info("Routing rule=%s selection=%s: %s", rule, selection.value, rationale)
        return RoutingDecision(
            task=task,
            model=model,
            rule=rule,
            selection=selection,
            rationale=rationale,
            estimate=estimate
        )
