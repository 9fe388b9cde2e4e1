"""
Configuration management and loading.

Handles application settings and environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


CONFIG_ENV_VAR = "AI_CHAT_ROUTER_CONFIG"
DB_ENV_VAR = "AI_CHAT_ROUTER_DB"

DEFAULT_SYSTEM_PREAMBLE = (
    "You are Bwengye AI, an advanced AI assistant designed for African contexts. "
    "You are intelligent, helpful, and culturally aware. You can communicate in "
    "English, Luganda, Swahili, and other African languages. You excel at reasoning, "
    "coding, research, and providing contextually relevant assistance."
)


@dataclass(frozen=True)
class UpstreamConfig:
    """Settings for the upstream inference provider."""
    base_url: Optional[str] = None
    timeout_seconds: float = 60.0
    max_output_tokens: int = 4000
    temperature: float = 0.7

    def __post_init__(self):
        """Validate upstream values."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_output_tokens <= 0:
            raise ValueError("max_output_tokens must be > 0")
        if not 0 <= self.temperature <= 2:
            raise ValueError("temperature must be between 0 and 2")


@dataclass(frozen=True)
class ConversationConfig:
    """Conversation history and title settings."""
    history_limit: int = 50
    title_length: int = 50
    system_preamble: str = DEFAULT_SYSTEM_PREAMBLE

    def __post_init__(self):
        if self.history_limit <= 0:
            raise ValueError("history_limit must be > 0")
        if self.title_length <= 0:
            raise ValueError("title_length must be > 0")
        if not self.system_preamble.strip():
            raise ValueError("system_preamble cannot be empty")


@dataclass(frozen=True)
class RoutingConfig:
    """Thresholds and heuristics used by the router."""
    long_content_threshold: int = 5000
    default_estimated_tokens: int = 100
    base_latency_ms: int = 1000
    latency_multipliers: Dict[str, float] = field(
        default_factory=lambda: {"gpt-5": 1.5, "o3": 3.0}
    )

    def __post_init__(self):
        if self.long_content_threshold <= 0:
            raise ValueError("long_content_threshold must be > 0")
        if self.default_estimated_tokens <= 0:
            raise ValueError("default_estimated_tokens must be > 0")
        if self.base_latency_ms <= 0:
            raise ValueError("base_latency_ms must be > 0")
        for family, multiplier in self.latency_multipliers.items():
            if multiplier <= 0:
                raise ValueError(f"latency multiplier for '{family}' must be > 0")


@dataclass(frozen=True)
class AuthConfig:
    """Bearer tokens accepted by the static identity provider."""
    tokens: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Settings:
    """Complete application settings."""
    database_path: str = "ai_chat_router.db"
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    conversation: ConversationConfig = field(default_factory=ConversationConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)


_SECTION_KEYS = {
    'database': {'path'},
    'upstream': {'base_url', 'timeout_seconds', 'max_output_tokens', 'temperature'},
    'conversation': {'history_limit', 'title_length', 'system_preamble'},
    'routing': {
        'long_content_threshold', 'default_estimated_tokens',
        'base_latency_ms', 'latency_multipliers'
    },
    'auth': {'tokens'},
}


def load_settings(path: Optional[str] = None) -> Settings:
    """Resolve settings from an explicit path, the environment, or defaults.

    Lookup order is the ``path`` argument, then ``AI_CHAT_ROUTER_CONFIG``.
    When neither is set the built-in defaults are used. ``AI_CHAT_ROUTER_DB``
    always overrides the database path.
    """
    config_path = path or os.environ.get(CONFIG_ENV_VAR)
    settings = load_config_file(config_path) if config_path else Settings()

    db_override = os.environ.get(DB_ENV_VAR)
    if db_override:
        settings = Settings(
            database_path=db_override,
            upstream=settings.upstream,
            conversation=settings.conversation,
            routing=settings.routing,
            auth=settings.auth
        )
    return settings


def load_config_file(path: str) -> Settings:
    """Load and validate settings from a YAML file.

    Unknown sections and keys are rejected so a typo never silently falls
    back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    unknown_keys = set(raw_config.keys()) - set(_SECTION_KEYS)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    sections = {
        name: _section(raw_config, name)
        for name in _SECTION_KEYS
    }

    database_path = sections['database'].get('path', Settings.database_path)
    if not isinstance(database_path, str) or not database_path.strip():
        raise ValueError("'database.path' must be a non-empty string")

    upstream = UpstreamConfig(**_typed(sections['upstream'], 'upstream', {
        'base_url': (str, type(None)),
        'timeout_seconds': (int, float),
        'max_output_tokens': int,
        'temperature': (int, float),
    }))
    conversation = ConversationConfig(**_typed(sections['conversation'], 'conversation', {
        'history_limit': int,
        'title_length': int,
        'system_preamble': str,
    }))

    routing_data = dict(sections['routing'])
    multipliers = routing_data.get('latency_multipliers')
    if multipliers is not None:
        if not isinstance(multipliers, dict):
            raise ValueError("'routing.latency_multipliers' must be a dictionary")
        routing_data['latency_multipliers'] = {
            str(family): _number(value, f"routing.latency_multipliers.{family}")
            for family, value in multipliers.items()
        }
    routing = RoutingConfig(**_typed(routing_data, 'routing', {
        'long_content_threshold': int,
        'default_estimated_tokens': int,
        'base_latency_ms': int,
        'latency_multipliers': dict,
    }))

    tokens = sections['auth'].get('tokens', {})
    if not isinstance(tokens, dict):
        raise ValueError("'auth.tokens' must be a dictionary")
    for token, user_id in tokens.items():
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValueError(f"User id for token '{token}' must be a non-empty string")
    auth = AuthConfig(tokens={str(token): user_id for token, user_id in tokens.items()})

    return Settings(
        database_path=database_path,
        upstream=upstream,
        conversation=conversation,
        routing=routing,
        auth=auth
    )


def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return a validated configuration section, empty when absent."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - _SECTION_KEYS[name]
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _typed(data: Dict[str, Any], path: str, types: Dict[str, Any]) -> Dict[str, Any]:
    """Check value types for a section before building its dataclass."""
    for key, value in data.items():
        expected = types[key]
        # bool is an int subclass; never accept it for numeric settings
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ValueError(f"'{path}.{key}' has invalid type {type(value).__name__}")
    return data


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return float(value)
