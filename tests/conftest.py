"""Shared test fixtures for genbridge tests."""

import json

import pytest


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_OPENAI_BASE = "http://127.0.0.1:5000/v1"
MOCK_OPENAI_URL = f"{MOCK_OPENAI_BASE}/chat/completions"

MOCK_GEMINI_HOST = "generativelanguage.googleapis.com"
MOCK_GEMINI_MODEL = "gemini-2.5-flash"
MOCK_GEMINI_PATH = f"/v1beta/models/{MOCK_GEMINI_MODEL}"

MOCK_COMPLETION_RESPONSE = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1699000000,
    "model": "llama-3.2-3b-instruct",
    "choices": [
        {
            "index": 0,
            "message": {
                "role": "assistant",
                "content": "The capital of France is Paris."
            },
            "finish_reason": "stop"
        }
    ],
    "usage": {
        "prompt_tokens": 10,
        "completion_tokens": 8,
        "total_tokens": 18
    }
}

MOCK_STREAMING_CHUNKS = [
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"role":"assistant","content":""},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"content":"The"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"content":" capital"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"content":" of"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"content":" France"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"content":" is"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{"content":" Paris."},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}',
    'data: [DONE]',
]


def gemini_response(*texts: str) -> dict:
    """Build a generateContent response with one part per text."""
    return {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [{"text": t} for t in texts],
                },
                "finishReason": "STOP",
            }
        ]
    }


def sse_body(lines: list[str]) -> bytes:
    """Join SSE event lines the way servers send them (blank line between events)."""
    return "".join(f"{line}\n\n" for line in lines).encode()


def ndjson_body(objects: list) -> bytes:
    """One JSON object per line."""
    return "".join(json.dumps(o) + "\n" for o in objects).encode()


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_completion_response():
    """Return mock /v1/chat/completions response."""
    return json.loads(json.dumps(MOCK_COMPLETION_RESPONSE))


@pytest.fixture
def mock_streaming_chunks():
    """Return mock streaming response chunks."""
    return MOCK_STREAMING_CHUNKS.copy()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove GENBRIDGE_* and provider key variables."""
    for name in (
        "GENBRIDGE_PROVIDER", "GENBRIDGE_API_KEY", "GENBRIDGE_MODEL",
        "GENBRIDGE_BASE_URL", "GENBRIDGE_TEMPERATURE", "GENBRIDGE_MAX_TOKENS",
        "GENBRIDGE_TIMEOUT_MS", "GENBRIDGE_FILTER_TAGS",
        "OPENAI_API_KEY", "DEEPSEEK_API_KEY", "GEMINI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
