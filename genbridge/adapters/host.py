"""
HostRuntimeAdapter - delegates generation to an embedding host application.

The host hands over a HostContext of optional capabilities through an
injected context provider; nothing is looked up from global state.

Preference order:
1. generate_raw(messages, on_progress) - message array, incremental progress
2. generate(prompt) - flattened string prompt, no streaming
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from genbridge.adapters.base import BaseAdapter
from genbridge.adapters.errors import BackendError, ConfigError
from genbridge.adapters.streaming import ChunkSink
from genbridge.config import AdapterConfig, Message
from genbridge.parsers import messages_to_prompt

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_HEADERS = {"Content-Type": "application/json"}


@dataclass
class HostContext:
    """
    Capabilities exposed by the host. Every field is optional.

    generate_raw: (messages: list[dict], on_progress: Callable[[str], None] | None) -> str | None
    generate: (prompt: str) -> str | None
    get_request_headers: () -> dict

    Plain functions run in a worker thread; coroutine functions are awaited.
    """
    generate_raw: Optional[Callable[..., Any]] = None
    generate: Optional[Callable[..., Any]] = None
    get_request_headers: Optional[Callable[[], dict]] = None


ContextProvider = Callable[[], Optional[HostContext]]


async def _call_host(fn: Callable[..., Any], *args) -> Any:
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _progress_callback(fn: Callable[..., Any], sink: ChunkSink) -> Callable[[str], None]:
    """
    Build the on_progress callback handed to generate_raw.

    A plain function runs in a worker thread, so its deltas are handed back
    to the event loop and on_chunk always runs on the loop thread. Each
    delta is queued before the worker returns, so it is delivered ahead of
    the call's completion.
    """
    if inspect.iscoroutinefunction(fn):
        return sink.push
    loop = asyncio.get_running_loop()

    def on_progress(delta: str) -> None:
        loop.call_soon_threadsafe(sink.push, delta)

    return on_progress


class HostRuntimeAdapter(BaseAdapter):
    """
    Host-runtime implementation of GenerationAdapter.

    Usage:
        adapter = HostRuntimeAdapter(
            config,
            context_provider=lambda: HostContext(generate_raw=host.generate_raw),
        )
    """

    label = "Host"

    def __init__(
        self,
        config: Optional[AdapterConfig] = None,
        context_provider: Optional[ContextProvider] = None,
    ):
        super().__init__(config)
        self._context_provider = context_provider

    def get_context(self) -> HostContext:
        """Fetch the host context for this call; ConfigError if there is none."""
        if self._context_provider is None:
            raise ConfigError("No host runtime is attached")
        try:
            context = self._context_provider()
        except Exception as e:
            raise ConfigError(f"Host context unavailable: {e}") from e
        if context is None:
            raise ConfigError("Host runtime returned no context")
        return context

    def request_headers(self) -> dict:
        """Headers the host wants on outbound requests, or a JSON default."""
        try:
            context = self.get_context()
            if context.get_request_headers is not None:
                return dict(context.get_request_headers())
        except Exception as e:
            logger.warning(f"[{self.label}] Failed to get request headers: {e}")
        return dict(DEFAULT_REQUEST_HEADERS)

    async def _generate(self, messages: list[Message]) -> str:
        return await self._generate_with(self.get_context(), messages)

    async def _generate_with(self, context: HostContext, messages: list[Message]) -> str:
        if context.generate_raw is not None:
            result = await self._race(
                _call_host(context.generate_raw, [m.model_dump() for m in messages])
            )
        elif context.generate is not None:
            result = await self._race(
                _call_host(context.generate, messages_to_prompt(messages))
            )
        else:
            raise ConfigError("Host runtime exposes no generation method")
        return self._host_text(result)

    async def _stream_generate(self, messages: list[Message], sink: ChunkSink) -> str:
        context = self.get_context()

        if context.generate_raw is not None:
            result = await self._race(
                _call_host(
                    context.generate_raw,
                    [m.model_dump() for m in messages],
                    _progress_callback(context.generate_raw, sink),
                )
            )
            return self._host_text(result) or sink.text

        # No incremental support: one chunk carrying the whole result
        text = self.filter_tags(await self._generate_with(context, messages))
        sink.push_whole(text)
        return text

    def _host_text(self, result: Any) -> str:
        if result is None:
            return ""
        if not isinstance(result, str):
            raise BackendError(
                f"{self.label} returned a malformed payload: {type(result).__name__}"
            )
        return result
