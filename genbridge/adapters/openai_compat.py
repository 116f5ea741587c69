"""
OpenAICompatAdapter - any server speaking the OpenAI chat completions API.

Covers hosted services and local servers (LM Studio, vLLM, llama.cpp, ...).
DeepSeekAdapter is the same wire protocol with DeepSeek's defaults and a
mandatory API key.
"""

import logging

from genbridge.adapters.base import HttpAdapter
from genbridge.adapters.errors import AdapterError, BackendError, FrameParseError
from genbridge.adapters.streaming import (
    ChunkSink,
    decode_sse_frame,
    extract_openai_message,
)
from genbridge.config import (
    DEEPSEEK_BASE_URL,
    DEEPSEEK_MODEL,
    OPENAI_COMPAT_BASE_URL,
    OPENAI_COMPAT_MODEL,
    Message,
)

logger = logging.getLogger(__name__)


class OpenAICompatAdapter(HttpAdapter):
    """
    OpenAI-compatible implementation of GenerationAdapter.

    - Auth: Bearer token, sent only when a key is configured
    - Streaming: `data: <json>` event lines terminated by `data: [DONE]`
    """

    label = "OpenAI-compatible"
    default_model = OPENAI_COMPAT_MODEL
    default_base_url = OPENAI_COMPAT_BASE_URL

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict:
        if self.requires_api_key:
            self._require_api_key()
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(self, messages: list[Message], stream: bool = False) -> dict:
        """Build the chat completions request body."""
        payload = {
            "model": self.model,
            "messages": [m.model_dump() for m in messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    async def _generate(self, messages: list[Message]) -> str:
        headers = self._headers()
        data = await self._post_json(
            self.completions_url, self.build_payload(messages), headers=headers
        )
        try:
            return extract_openai_message(data)
        except FrameParseError as e:
            raise BackendError(f"{self.label} returned a malformed payload: {e}") from e

    async def _stream_generate(self, messages: list[Message], sink: ChunkSink) -> str:
        headers = self._headers()
        return await self._post_stream(
            self.completions_url,
            self.build_payload(messages, stream=True),
            decode_sse_frame,
            sink,
            headers=headers,
        )

    async def list_models(self) -> list[str]:
        """
        Return model ids from GET {base_url}/models.

        Discovery is best-effort: any failure is logged and yields [].
        """
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            async with self._client() as client:
                response = await self._race(
                    client.get(f"{self.base_url}/models", headers=headers)
                )
                response.raise_for_status()
                data = response.json()
            return [
                m["id"] for m in data.get("data", [])
                if isinstance(m, dict) and "id" in m
            ]
        except Exception as e:
            logger.warning(f"[{self.label}] Failed to list models: {e}")
            return []

    async def test_connection(self) -> bool:
        """Send a minimal prompt; True if the backend answered."""
        try:
            await self.generate([{"role": "user", "content": "Hi"}])
            return True
        except AdapterError as e:
            logger.error(f"[{self.label}] Connection test failed: {e}")
            return False


class DeepSeekAdapter(OpenAICompatAdapter):
    """DeepSeek API: OpenAI wire format, key required."""

    label = "DeepSeek"
    default_model = DEEPSEEK_MODEL
    default_base_url = DEEPSEEK_BASE_URL
    requires_api_key = True
