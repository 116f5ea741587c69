"""
Configuration constants and Pydantic models for genbridge.
"""

import logging
import os
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS - Applied by adapters when a config field is unset
# ─────────────────────────────────────────────────────────────────────

DEFAULT_TEMPERATURE: float = 0.7
DEFAULT_MAX_TOKENS: int = 8192
DEFAULT_TIMEOUT_MS: int = 60_000
DEFAULT_PROVIDER: str = "openai"


# ─────────────────────────────────────────────────────────────────────
# PROVIDER CONSTANTS
# ─────────────────────────────────────────────────────────────────────

OPENAI_COMPAT_BASE_URL = "http://127.0.0.1:5000/v1"
OPENAI_COMPAT_MODEL = ""

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"
DEEPSEEK_MODEL = "deepseek-chat"

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL = "gemini-2.5-flash"

# Provider-specific key variables, consulted when GENBRIDGE_API_KEY is unset
PROVIDER_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

Role = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """A single message in a conversation."""
    role: Role
    content: str


def coerce_messages(messages) -> list[Message]:
    """Validate a list of Message objects or plain dicts into Messages."""
    return [
        m if isinstance(m, Message) else Message.model_validate(m)
        for m in messages
    ]


def parse_tag_list(value: Union[str, list, tuple, None]) -> tuple[str, ...]:
    """Parse a comma-separated tag string (or a sequence) into tag names."""
    if value is None:
        return ()
    items = value.split(",") if isinstance(value, str) else value
    return tuple(t.strip() for t in items if t and t.strip())


class AdapterConfig(BaseModel):
    """
    Immutable configuration for one adapter instance.

    Unset fields stay None; each adapter resolves its own defaults.
    Accepts both snake_case and camelCase field names (apiKey, baseUrl, ...).
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout_ms: Optional[int] = None
    filter_response_tags: tuple[str, ...] = ()

    @field_validator("api_key", "model", "base_url", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("filter_response_tags", mode="before")
    @classmethod
    def _split_tags(cls, value):
        return parse_tag_list(value)


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def get_provider() -> str:
    """
    Get the active provider name from environment or default.

    Set GENBRIDGE_PROVIDER in .env (default: openai).
    """
    value = os.environ.get("GENBRIDGE_PROVIDER", "").strip().lower()
    return value or DEFAULT_PROVIDER


def get_api_key(provider: str) -> Optional[str]:
    """Get the API key: GENBRIDGE_API_KEY first, then the provider's own variable."""
    key = os.environ.get("GENBRIDGE_API_KEY")
    if key:
        return key
    env_name = PROVIDER_KEY_ENV.get(provider)
    return os.environ.get(env_name) if env_name else None


def _env_number(name: str, cast):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}")
        return None


def load_adapter_config(provider: Optional[str] = None) -> AdapterConfig:
    """
    Build an AdapterConfig from GENBRIDGE_* environment variables.

    Unparseable numeric values are ignored so the adapter default applies.
    """
    provider = provider or get_provider()
    return AdapterConfig(
        api_key=get_api_key(provider),
        model=os.environ.get("GENBRIDGE_MODEL"),
        base_url=os.environ.get("GENBRIDGE_BASE_URL"),
        temperature=_env_number("GENBRIDGE_TEMPERATURE", float),
        max_tokens=_env_number("GENBRIDGE_MAX_TOKENS", int),
        timeout_ms=_env_number("GENBRIDGE_TIMEOUT_MS", int),
        filter_response_tags=os.environ.get("GENBRIDGE_FILTER_TAGS"),
    )
