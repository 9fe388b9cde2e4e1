# ai_chat_router/demo/catalog.py

from typing import List

from ai_chat_router.storage.models import Model, ModelType
from ai_chat_router.storage.repository import ChatRepository


# Reasoning-era OpenAI models take max_completion_tokens and a fixed temperature
_NEWER = {"token_parameter": "max_completion_tokens", "supports_temperature": False}

DEMO_MODELS: List[Model] = [
    Model(
        name="gpt-5-mini-2025-08-07",
        provider="openai",
        model_type=ModelType.CHAT,
        capabilities=frozenset({"chat", "text"}),
        max_tokens=128000,
        cost_per_token=0.00000025,
        configuration={**_NEWER, "roles": ["fast", "balanced"]}
    ),
    Model(
        name="gpt-5-2025-08-07",
        provider="openai",
        model_type=ModelType.CHAT,
        capabilities=frozenset({"chat", "text", "code", "reasoning"}),
        max_tokens=128000,
        cost_per_token=0.00000125,
        configuration={**_NEWER, "roles": ["flagship", "code"]}
    ),
    Model(
        name="gpt-4.1-2025-04-14",
        provider="openai",
        model_type=ModelType.CHAT,
        capabilities=frozenset({"chat", "text", "code"}),
        max_tokens=32768,
        cost_per_token=0.000002,
        configuration={"roles": ["flagship"]}
    ),
    Model(
        name="o3-2025-04-16",
        provider="openai",
        model_type=ModelType.CHAT,
        capabilities=frozenset({"chat", "reasoning", "analysis"}),
        max_tokens=100000,
        cost_per_token=0.000002,
        configuration={**_NEWER, "roles": ["reasoning"]}
    ),
    Model(
        name="o4-mini-2025-04-16",
        provider="openai",
        model_type=ModelType.CHAT,
        capabilities=frozenset({"chat", "code", "reasoning"}),
        max_tokens=100000,
        cost_per_token=0.0000011,
        configuration={**_NEWER, "roles": ["code"]}
    ),
    Model(
        name="gpt-image-1",
        provider="openai",
        model_type=ModelType.IMAGE,
        capabilities=frozenset({"image"}),
        configuration={"size": "1024x1024"}
    ),
    Model(
        name="FLUX.1-schnell",
        provider="huggingface",
        model_type=ModelType.IMAGE,
        capabilities=frozenset({"image"}),
    ),
    Model(
        name="whisper-1",
        provider="openai",
        model_type=ModelType.AUDIO,
        capabilities=frozenset({"audio", "speech"}),
    ),
]


def seed_demo_catalog(repository: ChatRepository) -> int:
    """Create the schema and load the demo models. Returns the count loaded."""
    repository.initialize_schema()
    for model in DEMO_MODELS:
        repository.upsert_model(model)
    return len(DEMO_MODELS)
