"""
GeminiAdapter - Google Generative Language API (contents/systemInstruction).

Key differences from OpenAICompatAdapter:
- System messages travel in a separate systemInstruction field
- Turns must alternate user/model and start with user
- API key goes in the `key` query parameter
- Streaming frames are bare JSON objects, one per line, no sentinel
"""

from typing import Sequence

from genbridge.adapters.base import HttpAdapter
from genbridge.adapters.streaming import ChunkSink, decode_json_line, extract_gemini_text
from genbridge.config import GEMINI_BASE_URL, GEMINI_MODEL, Message

TURN_SEPARATOR = "\n\n"
LEADING_USER_PROMPT = "Please perform the task based on the following conversation."


def to_gemini_payload(messages: Sequence[Message]) -> dict:
    """
    Translate role-tagged messages into a Gemini request body.

    - system messages are joined into systemInstruction
    - assistant -> model, everything else -> user
    - adjacent turns with the same role are merged
    - a placeholder user turn is prepended if the first turn is model
    """
    system_texts = [m.content for m in messages if m.role == "system"]

    contents: list[dict] = []
    for msg in messages:
        if msg.role == "system":
            continue
        role = "model" if msg.role == "assistant" else "user"
        if contents and contents[-1]["role"] == role:
            part = contents[-1]["parts"][0]
            part["text"] = part["text"] + TURN_SEPARATOR + msg.content
        else:
            contents.append({"role": role, "parts": [{"text": msg.content}]})

    if contents and contents[0]["role"] != "user":
        contents.insert(0, {"role": "user", "parts": [{"text": LEADING_USER_PROMPT}]})

    payload: dict = {"contents": contents}
    if system_texts:
        payload["systemInstruction"] = {
            "parts": [{"text": TURN_SEPARATOR.join(system_texts)}]
        }
    return payload


class GeminiAdapter(HttpAdapter):
    """Gemini implementation of GenerationAdapter."""

    label = "Gemini"
    default_model = GEMINI_MODEL
    default_base_url = GEMINI_BASE_URL
    requires_api_key = True

    def method_url(self, method: str) -> str:
        return f"{self.base_url}/models/{self.model}:{method}"

    async def _generate(self, messages: list[Message]) -> str:
        key = self._require_api_key()
        data = await self._post_json(
            self.method_url("generateContent"),
            to_gemini_payload(messages),
            params={"key": key},
        )
        return extract_gemini_text(data)

    async def _stream_generate(self, messages: list[Message], sink: ChunkSink) -> str:
        key = self._require_api_key()
        return await self._post_stream(
            self.method_url("streamGenerateContent"),
            to_gemini_payload(messages),
            decode_json_line,
            sink,
            params={"key": key},
        )
