"""
Model catalog access.

A per-request, read-only view of the models the store marks active.
"""

import logging
from typing import Iterable, List, Optional

from ai_chat_router.storage.models import Model, ModelType
from ai_chat_router.storage.repository import ChatRepository


logger = logging.getLogger(__name__)


class ModelCatalog:
    """Snapshot of active models in catalog order."""

    def __init__(self, models: Iterable[Model]):
        self._models: List[Model] = [m for m in models if m.is_active]

    @classmethod
    def load(cls, repository: ChatRepository) -> "ModelCatalog":
        """Read the active catalog.

        Raises:
            CatalogUnavailable: If the store cannot be reached
        """
        models = repository.list_active_models()
        logger.debug("Loaded %d active models", len(models))
        return cls(models)

    def __len__(self) -> int:
        return len(self._models)

    def __iter__(self):
        return iter(self._models)

    def list_active_models(self) -> List[Model]:
        return list(self._models)

    def get_model(self, name: str) -> Optional[Model]:
        for model in self._models:
            if model.name == name:
                return model
        return None

    def first(self) -> Optional[Model]:
        return self._models[0] if self._models else None

    def find_role(self, role: str, capability: Optional[str] = None) -> Optional[Model]:
        """First model filling ``role``, optionally restricted to a capability tag."""
        for model in self._models:
            if role in model.roles and (capability is None or model.has_capability(capability)):
                return model
        return None

    def find_matching(
        self,
        model_type: Optional[ModelType] = None,
        capability: Optional[str] = None
    ) -> Optional[Model]:
        """First model satisfying the type and capability constraints."""
        for model in self._models:
            if model_type is not None and model.model_type != model_type:
                continue
            if capability is not None and not model.has_capability(capability):
                continue
            return model
        return None
