"""
AdapterManager - routes generate/stream_generate to a configured adapter.

Holds named adapter instances and an active selection. Callers talk to the
manager; which backend answers is decided by configuration, not by caller code.

Usage:
    manager = AdapterManager()
    manager.configure("gemini", AdapterConfig(api_key="..."))
    text = await manager.generate([{"role": "user", "content": "Hi"}])
"""

import logging
from typing import Optional

from genbridge.adapters.base import GenerationAdapter, MessagesInput
from genbridge.adapters.errors import ConfigError
from genbridge.adapters.gemini import GeminiAdapter
from genbridge.adapters.host import ContextProvider, HostRuntimeAdapter
from genbridge.adapters.openai_compat import DeepSeekAdapter, OpenAICompatAdapter
from genbridge.adapters.streaming import ChunkCallback
from genbridge.config import AdapterConfig, get_provider, load_adapter_config
from genbridge.parsers import is_token_limit_error

logger = logging.getLogger(__name__)

PROVIDERS = {
    "openai": OpenAICompatAdapter,
    "deepseek": DeepSeekAdapter,
    "gemini": GeminiAdapter,
    "host": HostRuntimeAdapter,
}


def create_adapter(
    provider: str,
    config: Optional[AdapterConfig] = None,
    host_context: Optional[ContextProvider] = None,
) -> GenerationAdapter:
    """
    Build an adapter for a provider name.

    Raises:
        ConfigError: If the provider is unknown
    """
    adapter_cls = PROVIDERS.get(provider)
    if adapter_cls is None:
        raise ConfigError(
            f"Unknown provider '{provider}'. Available: {sorted(PROVIDERS)}"
        )
    if provider == "host":
        return HostRuntimeAdapter(config, context_provider=host_context)
    return adapter_cls(config)


class AdapterManager:
    """Owns named adapters and forwards calls to the active (or named) one."""

    def __init__(
        self,
        adapters: Optional[dict[str, GenerationAdapter]] = None,
        active: Optional[str] = None,
    ):
        """
        Args:
            adapters: dict of name -> adapter instance
            active: name used when a call does not name an adapter
                (defaults to the first registered)
        """
        self._adapters: dict[str, GenerationAdapter] = dict(adapters or {})
        # name -> (provider, config, host_context) for adapters built here
        self._origins: dict[str, tuple[str, AdapterConfig, Optional[ContextProvider]]] = {}
        self._active = active or next(iter(self._adapters), None)

    @classmethod
    def from_env(cls, host_context: Optional[ContextProvider] = None) -> "AdapterManager":
        """Build a manager with one adapter from GENBRIDGE_* environment variables."""
        provider = get_provider()
        manager = cls()
        manager.configure(provider, load_adapter_config(provider), host_context=host_context)
        return manager

    # ─────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────

    @property
    def active_name(self) -> Optional[str]:
        return self._active

    @property
    def names(self) -> list[str]:
        return list(self._adapters)

    def register(self, name: str, adapter: GenerationAdapter, activate: bool = False) -> None:
        """Register an adapter instance under a name."""
        self._adapters[name] = adapter
        self._origins.pop(name, None)
        if activate or self._active is None:
            self._active = name

    def configure(
        self,
        provider: str,
        config: Optional[AdapterConfig] = None,
        name: Optional[str] = None,
        host_context: Optional[ContextProvider] = None,
        activate: bool = True,
    ) -> GenerationAdapter:
        """Create an adapter for a provider and register it (under the provider name by default)."""
        config = config or AdapterConfig()
        adapter = create_adapter(provider, config, host_context)
        name = name or provider
        self.register(name, adapter, activate=activate)
        self._origins[name] = (provider, config, host_context)
        logger.info(f"Configured adapter '{name}' (provider={provider}, model={config.model})")
        return adapter

    def reconfigure(self, name: Optional[str] = None, **changes) -> GenerationAdapter:
        """
        Rebuild an adapter with updated config fields.

        The old config is left untouched; a new config and a new adapter
        instance replace it.
        """
        name = name or self._active
        origin = self._origins.get(name)
        if origin is None:
            raise ConfigError(f"Adapter '{name}' was not created by configure()")
        provider, config, host_context = origin
        new_config = AdapterConfig.model_validate({**config.model_dump(), **changes})
        return self.configure(
            provider, new_config, name=name, host_context=host_context,
            activate=(name == self._active),
        )

    def select(self, name: str) -> None:
        """Make a registered adapter the active one."""
        if name not in self._adapters:
            raise ConfigError(f"Unknown adapter '{name}'. Available: {self.names}")
        self._active = name

    def get_adapter(self, name: Optional[str] = None) -> GenerationAdapter:
        name = name or self._active
        if name is None:
            raise ConfigError("No adapter configured")
        adapter = self._adapters.get(name)
        if adapter is None:
            raise ConfigError(f"Unknown adapter '{name}'. Available: {self.names}")
        return adapter

    def get_provider(self, name: Optional[str] = None) -> Optional[str]:
        """Provider behind a configured adapter (None for directly registered ones)."""
        origin = self._origins.get(name or self._active)
        return origin[0] if origin else None

    # ─────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────

    async def generate(self, messages: MessagesInput, name: Optional[str] = None) -> str:
        return await self.get_adapter(name).generate(messages)

    async def stream_generate(
        self,
        messages: MessagesInput,
        on_chunk: Optional[ChunkCallback] = None,
        name: Optional[str] = None,
    ) -> str:
        return await self.get_adapter(name).stream_generate(messages, on_chunk)

    @staticmethod
    def is_token_limit_error(error: BaseException) -> bool:
        return is_token_limit_error(str(error) if error else "")
