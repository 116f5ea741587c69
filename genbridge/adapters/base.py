"""
GenerationAdapter Protocol and the shared adapter contract.

The Protocol is the WHAT: generate / stream_generate.
BaseAdapter is the shared HOW every backend inherits: config defaults,
the timeout race, tag filtering and error normalization.
Concrete backends live in openai_compat.py, gemini.py and host.py.
"""

import asyncio
import logging
from typing import Any, Optional, Protocol, Sequence, Union

import httpx

from genbridge.adapters.errors import (
    AdapterError,
    AdapterTimeoutError,
    BackendError,
    ConfigError,
    backend_error_from_body,
    describe_error_body,
)
from genbridge.adapters.streaming import ChunkCallback, ChunkSink, FrameDecoder, stream_fold
from genbridge.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT_MS,
    AdapterConfig,
    Message,
    coerce_messages,
)
from genbridge.parsers import filter_response_tags

logger = logging.getLogger(__name__)

MessagesInput = Sequence[Union[Message, dict]]


class GenerationAdapter(Protocol):
    """
    Contract for text-generation backends.

    Implementations must provide:
    - Blocking generation (generate)
    - Streaming generation (stream_generate)

    Both return the final text after tag filtering and raise only
    ConfigError, BackendError or AdapterTimeoutError.
    """

    async def generate(self, messages: MessagesInput) -> str:
        """
        Generate a completion for the conversation.

        Args:
            messages: [{"role": "system"|"user"|"assistant", "content": "..."}]

        Returns:
            Generated text with configured tags removed
        """
        ...

    async def stream_generate(
        self,
        messages: MessagesInput,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        """
        Generate a completion, delivering text as it arrives.

        Args:
            messages: Same shape as generate()
            on_chunk: Called as on_chunk(delta, accumulated) per piece of text

        Returns:
            Full reconstructed text with configured tags removed
        """
        ...


class BaseAdapter:
    """
    Shared behaviour for every backend.

    Subclasses implement _generate() and _stream_generate() on validated
    messages and return raw text; generate()/stream_generate() wrap them
    with error normalization and tag filtering.
    """

    label: str = "Backend"
    default_model: str = ""
    default_base_url: str = ""
    requires_api_key: bool = False

    def __init__(self, config: Optional[AdapterConfig] = None):
        self.config = config or AdapterConfig()

    # ─────────────────────────────────────────────────────────────────
    # Resolved settings
    # ─────────────────────────────────────────────────────────────────

    @property
    def api_key(self) -> Optional[str]:
        return self.config.api_key

    @property
    def model(self) -> str:
        return self.config.model or self.default_model

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.default_base_url).rstrip("/")

    @property
    def temperature(self) -> float:
        if self.config.temperature is None:
            return DEFAULT_TEMPERATURE
        return self.config.temperature

    @property
    def max_tokens(self) -> int:
        return self.config.max_tokens or DEFAULT_MAX_TOKENS

    @property
    def timeout_ms(self) -> int:
        return self.config.timeout_ms or DEFAULT_TIMEOUT_MS

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    # ─────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────

    async def generate(self, messages: MessagesInput) -> str:
        turns = coerce_messages(messages)
        text = await self._guard(self._generate(turns))
        return self.filter_tags(text)

    async def stream_generate(
        self,
        messages: MessagesInput,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        turns = coerce_messages(messages)
        sink = ChunkSink(on_chunk)
        try:
            text = await self._guard(self._stream_generate(turns, sink))
        finally:
            sink.close()
        return self.filter_tags(text)

    def filter_tags(self, text: Optional[str]) -> str:
        """Apply the configured tag filter to a final response."""
        return filter_response_tags(text or "", self.config.filter_response_tags)

    # ─────────────────────────────────────────────────────────────────
    # Subclass hooks
    # ─────────────────────────────────────────────────────────────────

    async def _generate(self, messages: list[Message]) -> str:
        raise NotImplementedError

    async def _stream_generate(self, messages: list[Message], sink: ChunkSink) -> str:
        raise NotImplementedError

    # ─────────────────────────────────────────────────────────────────
    # Shared helpers
    # ─────────────────────────────────────────────────────────────────

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError(f"{self.label} API key is not configured")
        return self.api_key

    async def _race(self, awaitable) -> Any:
        """Await one outbound call against the configured timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise AdapterTimeoutError(
                f"{self.label} request timed out ({self.timeout_ms}ms)"
            ) from e

    async def _guard(self, work) -> str:
        """Run adapter work, re-raising everything as one of the surfaced errors."""
        try:
            return await work
        except AdapterError as e:
            if isinstance(e, BackendError) and e.body:
                logger.error(f"[{self.label}] HTTP {e.status_code}: {describe_error_body(e.body)}")
            else:
                logger.error(f"[{self.label}] {e}")
            raise
        except httpx.TimeoutException as e:
            logger.error(f"[{self.label}] transport timeout: {e}")
            raise AdapterTimeoutError(f"{self.label} request timed out: {e}") from e
        except Exception as e:
            logger.error(f"[{self.label}] unexpected error: {e}", exc_info=True)
            raise BackendError(f"{self.label} error: {e}") from e


class HttpAdapter(BaseAdapter):
    """BaseAdapter plus the httpx request/stream plumbing for hosted APIs."""

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds)

    async def _post_json(
        self,
        url: str,
        body: dict,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        """POST a JSON body and return the decoded JSON response."""
        logger.debug(f"[{self.label}] POST {url}")
        async with self._client() as client:
            response = await self._race(
                client.post(url, json=body, headers=headers, params=params)
            )
            if response.is_error:
                raise backend_error_from_body(self.label, response.status_code, response.content)
            try:
                return response.json()
            except ValueError as e:
                raise BackendError(
                    f"{self.label} returned a malformed body: {response.text[:200]}",
                    status_code=response.status_code,
                    body=response.text,
                ) from e

    async def _post_stream(
        self,
        url: str,
        body: dict,
        decode: FrameDecoder,
        sink: ChunkSink,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> str:
        """POST a JSON body and fold the line-framed response into the sink."""
        logger.debug(f"[{self.label}] POST {url} (stream)")
        async with self._client() as client:
            request = client.build_request(
                "POST", url, json=body, headers=headers, params=params
            )
            response = await self._race(client.send(request, stream=True))
            try:
                if response.is_error:
                    error_body = await response.aread()
                    raise backend_error_from_body(self.label, response.status_code, error_body)
                return await stream_fold(response.aiter_lines(), decode, sink)
            finally:
                await response.aclose()
