"""
Streaming helpers: frame decoders and the accumulation fold.

Each backend frames its stream differently; a decoder turns one line into
a text delta (or None) and raises FrameParseError for a corrupt frame.
stream_fold() drives a decoder over the response lines and feeds a ChunkSink.
"""

import json
import logging
import threading
from typing import AsyncIterator, Callable, Optional

from genbridge.adapters.errors import FrameParseError

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str, str], None]
FrameDecoder = Callable[[str], Optional[str]]

SSE_PREFIX = "data: "
SSE_DONE = "[DONE]"


class ChunkSink:
    """
    Accumulates deltas for one call and forwards them to the caller.

    Once closed (the call settled, by result, error or timeout) further
    deliveries are dropped, so an abandoned producer never reaches on_chunk.
    Deliveries happen on the event loop thread; the lock keeps a push
    from straddling close().
    """

    def __init__(self, on_chunk: Optional[ChunkCallback] = None):
        self._on_chunk = on_chunk
        self._lock = threading.Lock()
        self.text = ""
        self.count = 0
        self.closed = False

    def push(self, delta: str) -> None:
        with self._lock:
            if self.closed or not delta:
                return
            self.text += delta
            self._deliver(delta)

    def push_whole(self, text: str) -> None:
        """Deliver a complete, non-incremental result as exactly one chunk."""
        with self._lock:
            if self.closed:
                return
            self.text = text
            self._deliver(text)

    def close(self) -> None:
        with self._lock:
            self.closed = True

    def _deliver(self, delta: str) -> None:
        self.count += 1
        if self._on_chunk is not None:
            self._on_chunk(delta, self.text)


def _first(items):
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def _content_text(value) -> str:
    """Content must be a string (or absent); anything else is malformed."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FrameParseError(f"Non-text content: {type(value).__name__}")
    return value


def extract_openai_message(payload) -> str:
    """
    choices[0].message.content from a chat completion body.

    Raises:
        FrameParseError: If the content is present but not a string
    """
    if not isinstance(payload, dict):
        return ""
    message = _first(payload.get("choices")).get("message")
    if not isinstance(message, dict):
        return ""
    return _content_text(message.get("content"))


def extract_openai_delta(payload) -> str:
    """choices[0].delta.content from a streamed chat completion chunk."""
    if not isinstance(payload, dict):
        return ""
    delta = _first(payload.get("choices")).get("delta")
    if not isinstance(delta, dict):
        return ""
    return _content_text(delta.get("content"))


def extract_gemini_text(payload) -> str:
    """Concatenate candidates[0].content.parts[*].text."""
    if not isinstance(payload, dict):
        return ""
    content = _first(payload.get("candidates")).get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts")
    if not isinstance(parts, list):
        return ""
    return "".join(
        p["text"] for p in parts
        if isinstance(p, dict) and isinstance(p.get("text"), str)
    )


def _loads(data: str):
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise FrameParseError(f"Invalid JSON frame: {data[:120]!r}") from e


def decode_sse_frame(line: str) -> Optional[str]:
    """
    Decode one `data: <json>` event line from an OpenAI-style stream.

    Lines without the prefix and the [DONE] sentinel carry no text.
    """
    if not line.startswith(SSE_PREFIX):
        return None
    data = line[len(SSE_PREFIX):].strip()
    if data == SSE_DONE:
        return None
    return extract_openai_delta(_loads(data))


def decode_json_line(line: str) -> Optional[str]:
    """Decode one newline-delimited JSON object from a Gemini stream."""
    return extract_gemini_text(_loads(line.strip()))


async def stream_fold(
    lines: AsyncIterator[str],
    decode: FrameDecoder,
    sink: ChunkSink,
) -> str:
    """
    Fold decoded frames into the sink and return the accumulated text.

    A frame that fails to decode is logged and skipped; the stream goes on.
    """
    async for line in lines:
        if not line.strip():
            continue
        try:
            delta = decode(line)
        except FrameParseError as e:
            logger.debug(f"Skipping malformed frame: {e}")
            continue
        if delta:
            sink.push(delta)
    return sink.text
