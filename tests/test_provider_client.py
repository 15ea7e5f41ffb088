"""
Unit tests for the provider HTTP client.

Tests OpenAIProvider / AsyncOpenAIProvider for request shape, network errors,
timeouts, HTTP status codes, JSON errors and the single reconnection attempt.
"""

import asyncio
import json

import httpx
import pytest

from rikka_ai.provider.client import (
    DEFAULT_TIMEOUT,
    AsyncOpenAIProvider,
    OpenAIProvider,
    build_http_client,
)
from rikka_ai.provider.errors import (
    APIError,
    DecodeError,
    HTTPStatusError,
    NetworkError,
    StreamError,
    TimeoutError as ClientTimeoutError,
    TransportError,
)
from rikka_ai.schemas.message import Message, MessageRole, ReasoningPart, TextPart
from rikka_ai.schemas.provider import Model, ProviderSetting, TextGenerationParams

SETTING = ProviderSetting(name="test", base_url="https://llm.test/v1/", api_key="sk-test")
PARAMS = TextGenerationParams(model=Model(model_id="test-model"), temperature=0.5, top_p=0.8)
MESSAGES = [Message.of_text(MessageRole.USER, "hi")]

COMPLETION = {
    "id": "chatcmpl-9",
    "model": "test-model",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Hello!", "reasoning_content": "greet"},
            "finish_reason": "stop",
        }
    ],
}


class _Recorder:
    """MockTransport handler that replays responses/exceptions and records requests."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("simulated failure", request=request)
        return outcome

    @property
    def call_count(self) -> int:
        return len(self.requests)


def _provider(recorder: _Recorder, retry_times: int = 2) -> OpenAIProvider:
    client = httpx.Client(transport=httpx.MockTransport(recorder))
    return OpenAIProvider(http_client=client, retry_times=retry_times)


class TestProviderInitialization:
    """Test provider construction and configuration."""

    def test_default_client_timeouts(self) -> None:
        """The default client uses long timeouts for slow generations."""
        provider = OpenAIProvider()

        timeout = provider._client.timeout
        assert timeout.connect == DEFAULT_TIMEOUT
        assert timeout.read == DEFAULT_TIMEOUT
        assert timeout.write == DEFAULT_TIMEOUT
        assert provider.retry_times == 2

        provider.close()

    def test_build_http_client_identity_headers(self) -> None:
        client = build_http_client(30.0)

        assert client.headers["X-Title"] == "RikkaHub"
        assert client.headers["HTTP-Referer"] == "https://github.com/re-ovo/rikkahub"
        assert client.timeout.read == 30.0

        client.close()

    def test_injected_client_not_closed(self) -> None:
        client = httpx.Client()
        with OpenAIProvider(http_client=client):
            pass

        assert not client.is_closed
        client.close()

    def test_base_url_trailing_slash_stripped(self) -> None:
        assert SETTING.base_url == "https://llm.test/v1"


class TestListModels:
    """Test GET /models."""

    def test_list_models(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"data": [{"id": "a"}, {"id": "b"}]}))

        with _provider(recorder) as provider:
            models = provider.list_models(SETTING)

        assert [m.model_id for m in models] == ["a", "b"]
        request = recorder.requests[0]
        assert request.method == "GET"
        assert str(request.url) == "https://llm.test/v1/models"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["X-Title"] == "RikkaHub"
        assert request.headers["HTTP-Referer"] == "https://github.com/re-ovo/rikkahub"

    def test_list_models_status_error(self) -> None:
        recorder = _Recorder(httpx.Response(401, text="Unauthorized"))

        with _provider(recorder) as provider:
            with pytest.raises(HTTPStatusError) as exc_info:
                provider.list_models(SETTING)

        assert exc_info.value.status_code == 401
        assert exc_info.value.response_text == "Unauthorized"
        assert isinstance(exc_info.value, TransportError)

    def test_list_models_without_data(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"object": "list"}))

        with _provider(recorder) as provider:
            assert provider.list_models(SETTING) == []


class TestGenerateText:
    """Test non-streaming completions."""

    def test_generate_text(self) -> None:
        recorder = _Recorder(httpx.Response(200, json=COMPLETION))

        with _provider(recorder) as provider:
            chunk = provider.generate_text(SETTING, MESSAGES, PARAMS)

        assert chunk.id == "chatcmpl-9"
        assert chunk.choice.finish_reason == "stop"
        assert chunk.choice.delta is None
        assert chunk.choice.message.parts == (
            ReasoningPart(reasoning="greet"),
            TextPart(text="Hello!"),
        )

        request = recorder.requests[0]
        body = json.loads(request.content)
        assert request.method == "POST"
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["Content-Type"] == "application/json"
        assert body == {
            "model": "test-model",
            "messages": [{"role": "user", "content": [{"type": "text", "text": "hi"}]}],
            "temperature": 0.5,
            "top_p": 0.8,
            "stream": False,
        }

    def test_transformers_applied(self) -> None:
        recorder = _Recorder(httpx.Response(200, json=COMPLETION))

        def with_system(messages):
            return [Message.of_text(MessageRole.SYSTEM, "be brief"), *messages]

        with _provider(recorder) as provider:
            provider.generate_text(SETTING, MESSAGES, PARAMS, message_transformers=[with_system])

        body = json.loads(recorder.requests[0].content)
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @pytest.mark.parametrize("status", [400, 404, 429, 500])
    def test_status_errors(self, status: int) -> None:
        recorder = _Recorder(httpx.Response(status, text="boom"))

        with _provider(recorder) as provider:
            with pytest.raises(HTTPStatusError) as exc_info:
                provider.generate_text(SETTING, MESSAGES, PARAMS)

        assert exc_info.value.status_code == status
        assert str(status) in exc_info.value.user_friendly_message()

    def test_status_error_no_retry(self) -> None:
        recorder = _Recorder(httpx.Response(503, text="unavailable"))

        with _provider(recorder, retry_times=3) as provider:
            with pytest.raises(HTTPStatusError):
                provider.generate_text(SETTING, MESSAGES, PARAMS)

        assert recorder.call_count == 1

    def test_invalid_json_body(self) -> None:
        recorder = _Recorder(httpx.Response(200, text="not valid json {]"))

        with _provider(recorder) as provider:
            with pytest.raises(DecodeError) as exc_info:
                provider.generate_text(SETTING, MESSAGES, PARAMS)

        assert exc_info.value.response_text == "not valid json {]"

    def test_unknown_annotation_fails(self) -> None:
        body = {
            "choices": [
                {"message": {"content": "x", "annotations": [{"type": "unknown_type"}]}}
            ]
        }
        recorder = _Recorder(httpx.Response(200, json=body))

        with _provider(recorder) as provider:
            with pytest.raises(DecodeError):
                provider.generate_text(SETTING, MESSAGES, PARAMS)


class TestReconnection:
    """Test the single reconnection attempt on connection failures."""

    def test_connect_error_retried_once(self) -> None:
        recorder = _Recorder(httpx.ConnectError, httpx.Response(200, json=COMPLETION))

        with _provider(recorder) as provider:
            chunk = provider.generate_text(SETTING, MESSAGES, PARAMS)

        assert chunk.choice.message.text == "Hello!"
        assert recorder.call_count == 2

    def test_connect_error_gives_up_after_one_retry(self) -> None:
        recorder = _Recorder(httpx.ConnectError)

        with _provider(recorder) as provider:
            with pytest.raises(NetworkError):
                provider.list_models(SETTING)

        assert recorder.call_count == 2

    def test_connect_timeout_is_network_error(self) -> None:
        recorder = _Recorder(httpx.ConnectTimeout)

        with _provider(recorder) as provider:
            with pytest.raises(NetworkError):
                provider.list_models(SETTING)

        assert recorder.call_count == 2

    def test_read_timeout_not_retried(self) -> None:
        recorder = _Recorder(httpx.ReadTimeout)

        with _provider(recorder) as provider:
            with pytest.raises(ClientTimeoutError):
                provider.generate_text(SETTING, MESSAGES, PARAMS)

        assert recorder.call_count == 1

    def test_read_error_not_retried(self) -> None:
        recorder = _Recorder(httpx.ReadError)

        with _provider(recorder) as provider:
            with pytest.raises(NetworkError):
                provider.generate_text(SETTING, MESSAGES, PARAMS)

        assert recorder.call_count == 1

    def test_retry_times_one_disables_retry(self) -> None:
        recorder = _Recorder(httpx.ConnectError)

        with _provider(recorder, retry_times=1) as provider:
            with pytest.raises(NetworkError):
                provider.list_models(SETTING)

        assert recorder.call_count == 1


class TestAsyncProvider:
    """Test the async provider's request/response path."""

    def test_async_generate_text(self) -> None:
        recorder = _Recorder(httpx.Response(200, json=COMPLETION))

        async def run():
            client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
            async with AsyncOpenAIProvider(http_client=client) as provider:
                chunk = await provider.generate_text(SETTING, MESSAGES, PARAMS)
            await client.aclose()
            return chunk

        chunk = asyncio.run(run())

        assert chunk.choice.message.text == "Hello!"
        assert recorder.requests[0].headers["Authorization"] == "Bearer sk-test"

    def test_async_list_models_retry(self) -> None:
        recorder = _Recorder(httpx.ConnectError, httpx.Response(200, json={"data": [{"id": "m"}]}))

        async def run():
            client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
            provider = AsyncOpenAIProvider(http_client=client)
            try:
                return await provider.list_models(SETTING)
            finally:
                await client.aclose()

        models = asyncio.run(run())

        assert [m.model_id for m in models] == ["m"]
        assert recorder.call_count == 2


class TestErrorMessages:
    """Test user-friendly error messages."""

    def test_network_error_message(self) -> None:
        msg = NetworkError("Connection refused").user_friendly_message()
        assert "connect" in msg.lower()

    def test_timeout_error_message(self) -> None:
        msg = ClientTimeoutError("Request timed out").user_friendly_message()
        assert "timeout" in msg.lower()

    def test_http_status_error_message(self) -> None:
        error = HTTPStatusError("Bad request", status_code=400, response_text="Invalid")
        msg = error.user_friendly_message()
        assert "400" in msg
        assert "Invalid" in msg

    def test_decode_error_message(self) -> None:
        msg = DecodeError("Failed to parse", response_text="invalid json").user_friendly_message()
        assert "json" in msg.lower()

    def test_stream_error_message(self) -> None:
        msg = StreamError("quota exceeded", status_code=429).user_friendly_message()
        assert "429" in msg
        assert "quota exceeded" in msg

    def test_hierarchy(self) -> None:
        for cls in (NetworkError, ClientTimeoutError, HTTPStatusError):
            assert issubclass(cls, TransportError)
        for cls in (TransportError, DecodeError, StreamError):
            assert issubclass(cls, APIError)
