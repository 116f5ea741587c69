"""Tests for OpenAICompatAdapter: payload shape, SSE parsing, error handling."""

import json

import httpx
import pytest
import respx

from genbridge.adapters.errors import BackendError, ConfigError, FrameParseError
from genbridge.adapters.openai_compat import DeepSeekAdapter, OpenAICompatAdapter
from genbridge.adapters.streaming import ChunkSink, decode_sse_frame, stream_fold
from genbridge.config import AdapterConfig
from tests.conftest import MOCK_OPENAI_BASE, MOCK_OPENAI_URL, sse_body


def sse_delta(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


@pytest.fixture
def adapter():
    return OpenAICompatAdapter(AdapterConfig(api_key="test-key-123", model="local-model"))


def capture_into(captured: dict, response: httpx.Response):
    def _handler(request):
        captured["request"] = request
        captured["body"] = json.loads(request.content)
        return response
    return _handler


# ─────────────────────────────────────────────────────────────────────
# Request shape
# ─────────────────────────────────────────────────────────────────────


class TestRequest:
    @pytest.mark.asyncio
    @respx.mock
    async def test_hi_hello_scenario(self, adapter):
        captured = {}
        respx.post(MOCK_OPENAI_URL).mock(side_effect=capture_into(
            captured,
            httpx.Response(200, json={"choices": [{"message": {"content": "hello"}}]}),
        ))

        result = await adapter.generate([{"role": "user", "content": "hi"}])

        assert result == "hello"
        assert captured["body"] == {
            "model": "local-model",
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 0.7,
            "max_tokens": 8192,
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_auth_header(self, adapter, mock_completion_response):
        captured = {}
        respx.post(MOCK_OPENAI_URL).mock(side_effect=capture_into(
            captured, httpx.Response(200, json=mock_completion_response)
        ))

        await adapter.generate([{"role": "user", "content": "hi"}])

        assert captured["request"].headers["Authorization"] == "Bearer test-key-123"

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_auth_header_without_key(self, mock_completion_response):
        captured = {}
        respx.post(MOCK_OPENAI_URL).mock(side_effect=capture_into(
            captured, httpx.Response(200, json=mock_completion_response)
        ))

        result = await OpenAICompatAdapter().generate([{"role": "user", "content": "hi"}])

        assert result == "The capital of France is Paris."
        assert "Authorization" not in captured["request"].headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_custom_base_url_and_params(self, mock_completion_response):
        captured = {}
        respx.post("http://gpu-box:1234/v1/chat/completions").mock(side_effect=capture_into(
            captured, httpx.Response(200, json=mock_completion_response)
        ))
        adapter = OpenAICompatAdapter(AdapterConfig(
            base_url="http://gpu-box:1234/v1/", temperature=0.1, max_tokens=256,
        ))

        await adapter.generate([{"role": "user", "content": "hi"}])

        assert captured["body"]["temperature"] == 0.1
        assert captured["body"]["max_tokens"] == 256

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_flag_only_when_streaming(self, adapter):
        captured = {}
        respx.post(MOCK_OPENAI_URL).mock(side_effect=capture_into(
            captured, httpx.Response(200, content=sse_body([sse_delta("x"), "data: [DONE]"]))
        ))

        await adapter.stream_generate([{"role": "user", "content": "hi"}])

        assert captured["body"]["stream"] is True


# ─────────────────────────────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────────────────────────────


class TestResponses:
    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_content_is_empty(self, adapter):
        respx.post(MOCK_OPENAI_URL).mock(
            return_value=httpx.Response(200, json={"choices": []})
        )
        assert await adapter.generate([{"role": "user", "content": "hi"}]) == ""

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_text_content_is_backend_error(self):
        respx.post(MOCK_OPENAI_URL).mock(return_value=httpx.Response(
            200, json={"choices": [{"message": {"content": [{"type": "text", "text": "hi"}]}}]}
        ))
        adapter = OpenAICompatAdapter(AdapterConfig(filter_response_tags="thinking"))

        with pytest.raises(BackendError, match="malformed payload"):
            await adapter.generate([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    @respx.mock
    async def test_filters_configured_tags(self):
        respx.post(MOCK_OPENAI_URL).mock(return_value=httpx.Response(
            200, json={"choices": [{"message": {"content": "<thinking>...</thinking>Paris"}}]}
        ))
        adapter = OpenAICompatAdapter(AdapterConfig(filter_response_tags="thinking"))

        assert await adapter.generate([{"role": "user", "content": "hi"}]) == "Paris"


# ─────────────────────────────────────────────────────────────────────
# SSE streaming
# ─────────────────────────────────────────────────────────────────────


class TestSSEStreaming:
    @pytest.mark.asyncio
    @respx.mock
    async def test_streams_content(self, adapter, mock_streaming_chunks):
        respx.post(MOCK_OPENAI_URL).mock(
            return_value=httpx.Response(200, content=sse_body(mock_streaming_chunks))
        )

        calls = []
        result = await adapter.stream_generate(
            [{"role": "user", "content": "hi"}],
            lambda delta, full: calls.append((delta, full)),
        )

        assert result == "The capital of France is Paris."
        assert [d for d, _ in calls] == ["The", " capital", " of", " France", " is", " Paris."]
        assert calls[-1][1] == result

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_frame_is_skipped(self, adapter):
        body = sse_body([sse_delta("Hello"), "data: {not json", sse_delta(" world"), "data: [DONE]"])
        respx.post(MOCK_OPENAI_URL).mock(return_value=httpx.Response(200, content=body))

        result = await adapter.stream_generate([{"role": "user", "content": "hi"}])

        assert result == "Hello world"

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_text_delta_is_skipped(self, adapter):
        non_text = "data: " + json.dumps({"choices": [{"delta": {"content": 5}}]})
        body = sse_body([sse_delta("A"), non_text, sse_delta("B"), "data: [DONE]"])
        respx.post(MOCK_OPENAI_URL).mock(return_value=httpx.Response(200, content=body))

        calls = []
        result = await adapter.stream_generate(
            [{"role": "user", "content": "hi"}], lambda d, f: calls.append(d)
        )

        assert result == "AB"
        assert calls == ["A", "B"]

    def test_non_text_delta_fails_to_decode(self):
        with pytest.raises(FrameParseError):
            decode_sse_frame('data: {"choices":[{"delta":{"content":["x"]}}]}')

    @pytest.mark.asyncio
    @respx.mock
    async def test_generate_and_stream_agree(self):
        config = AdapterConfig(filter_response_tags="thinking")
        adapter = OpenAICompatAdapter(config)
        messages = [{"role": "user", "content": "hi"}]

        respx.post(MOCK_OPENAI_URL).mock(side_effect=[
            httpx.Response(
                200, json={"choices": [{"message": {"content": "<thinking>a</thinking>Hi there"}}]}
            ),
            httpx.Response(200, content=sse_body([
                sse_delta("<thinking>a</thinking>"), sse_delta("Hi"), sse_delta(" there"), "data: [DONE]",
            ])),
        ])

        blocking = await adapter.generate(messages)
        streamed = await adapter.stream_generate(messages, lambda d, f: None)

        assert blocking == streamed == "Hi there"

    @pytest.mark.asyncio
    async def test_frames_split_across_reads(self):
        pieces = [
            b'data: {"choices":[{"delta":{"con',
            b'tent":"Hel"}}]}\n\ndata: {"choices":[{"delta":{"content":"lo \xe2',
            b'\x82\xac"}}]}\n\ndata: [DONE]\n\n',
        ]

        async def body():
            for piece in pieces:
                yield piece

        response = httpx.Response(200, content=body())
        sink = ChunkSink()
        result = await stream_fold(response.aiter_lines(), decode_sse_frame, sink)

        assert result == "Hello €"
        assert sink.count == 2


# ─────────────────────────────────────────────────────────────────────
# Error handling
# ─────────────────────────────────────────────────────────────────────


class TestErrorHandling:
    @pytest.mark.asyncio
    @respx.mock
    async def test_api_error_surfaces_body(self, adapter):
        error_body = json.dumps({"error": {"message": "Rate limit exceeded"}})
        respx.post(MOCK_OPENAI_URL).mock(
            return_value=httpx.Response(429, content=error_body.encode())
        )

        with pytest.raises(BackendError, match="Rate limit exceeded") as exc_info:
            await adapter.generate([{"role": "user", "content": "hi"}])

        assert exc_info.value.status_code == 429
        assert exc_info.value.body == error_body

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_api_error_surfaces_body(self, adapter):
        respx.post(MOCK_OPENAI_URL).mock(
            return_value=httpx.Response(500, content=b"upstream exploded")
        )

        calls = []
        with pytest.raises(BackendError, match="upstream exploded"):
            await adapter.stream_generate(
                [{"role": "user", "content": "hi"}], lambda d, f: calls.append(d)
            )
        assert calls == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body_is_backend_error(self, adapter):
        respx.post(MOCK_OPENAI_URL).mock(
            return_value=httpx.Response(200, content=b"<html>proxy page</html>")
        )
        with pytest.raises(BackendError, match="malformed"):
            await adapter.generate([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_is_wrapped(self, adapter):
        respx.post(MOCK_OPENAI_URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(BackendError, match="refused"):
            await adapter.generate([{"role": "user", "content": "hi"}])


# ─────────────────────────────────────────────────────────────────────
# Model listing / connection test
# ─────────────────────────────────────────────────────────────────────


class TestDiscovery:
    @pytest.mark.asyncio
    @respx.mock
    async def test_list_models(self, adapter):
        respx.get(f"{MOCK_OPENAI_BASE}/models").mock(return_value=httpx.Response(
            200, json={"data": [{"id": "llama-3.2-3b", "object": "model"}, {"id": "qwen2.5-7b"}]}
        ))
        assert await adapter.list_models() == ["llama-3.2-3b", "qwen2.5-7b"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_models_failure_is_empty(self, adapter):
        respx.get(f"{MOCK_OPENAI_BASE}/models").mock(return_value=httpx.Response(503))
        assert await adapter.list_models() == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_ok(self, adapter, mock_completion_response):
        respx.post(MOCK_OPENAI_URL).mock(
            return_value=httpx.Response(200, json=mock_completion_response)
        )
        assert await adapter.test_connection() is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_failed(self, adapter):
        respx.post(MOCK_OPENAI_URL).mock(return_value=httpx.Response(401, content=b"bad key"))
        assert await adapter.test_connection() is False


# ─────────────────────────────────────────────────────────────────────
# DeepSeek preset
# ─────────────────────────────────────────────────────────────────────


class TestDeepSeek:
    @pytest.mark.asyncio
    async def test_requires_api_key(self):
        with pytest.raises(ConfigError, match="DeepSeek API key"):
            await DeepSeekAdapter().generate([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_stream_requires_api_key(self):
        with pytest.raises(ConfigError):
            await DeepSeekAdapter().stream_generate([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    @respx.mock
    async def test_uses_deepseek_defaults(self, mock_completion_response):
        captured = {}
        respx.post("https://api.deepseek.com/v1/chat/completions").mock(
            side_effect=capture_into(captured, httpx.Response(200, json=mock_completion_response))
        )

        await DeepSeekAdapter(AdapterConfig(api_key="ds")).generate(
            [{"role": "user", "content": "hi"}]
        )

        assert captured["body"]["model"] == "deepseek-chat"
        assert captured["request"].headers["Authorization"] == "Bearer ds"
