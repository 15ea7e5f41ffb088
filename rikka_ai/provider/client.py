"""
OpenAI-compatible chat-completion client.
Wraps httpx with unified error handling, one reconnection attempt and SSE streaming.
"""

import json
from typing import Any, Iterable, Optional, Sequence

import httpx

from rikka_ai.core.logger import get_logger
from rikka_ai.provider.codec import ChatCompletionCodec
from rikka_ai.provider.errors import (
    DecodeError,
    HTTPStatusError,
    NetworkError,
    TimeoutError,
)
from rikka_ai.provider.stream import AsyncChunkStream, ChunkStream
from rikka_ai.schemas.message import Message, MessageChunk
from rikka_ai.schemas.provider import Model, ProviderSetting, TextGenerationParams
from rikka_ai.services.transformers import MessageTransformer

logger = get_logger("rikka.client")

DEFAULT_TIMEOUT = 120.0

# Attribution headers sent with every request
IDENTITY_HEADERS = {
    "X-Title": "RikkaHub",
    "HTTP-Referer": "https://github.com/re-ovo/rikkahub",
}

_SENSITIVE_HEADERS = ("authorization", "x-api-key")


def build_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.Client:
    """Shared HTTP client; build once at startup and pass it to the provider."""
    return httpx.Client(timeout=httpx.Timeout(timeout), headers=IDENTITY_HEADERS)


def build_async_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout), headers=IDENTITY_HEADERS)


def _mask_headers(headers: httpx.Headers) -> dict[str, str]:
    return {
        k: ("***" if k.lower() in _SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


def _process_response(response: httpx.Response) -> Any:
    """
    Process HTTP response.

    Handles:
    - Non-2xx status codes -> HTTPStatusError
    - JSON parse errors -> DecodeError

    Returns:
        Parsed JSON response
    """
    if not 200 <= response.status_code < 300:
        response_text = response.text
        raise HTTPStatusError(
            f"HTTP {response.status_code}: {response_text[:100]}",
            status_code=response.status_code,
            response_text=response_text,
        )

    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as e:
        response_text = response.text
        raise DecodeError(
            f"Failed to parse JSON response: {str(e)}",
            response_text=response_text,
        ) from e


class _ProviderBase:
    """Request building and logging shared by the sync and async providers."""

    def __init__(self, codec: Optional[ChatCompletionCodec], retry_times: int):
        self.codec = codec or ChatCompletionCodec()
        self.retry_times = max(1, retry_times)

    def _build_request(
        self,
        client: Any,
        method: str,
        setting: ProviderSetting,
        path: str,
        body: Optional[dict[str, Any]] = None,
        stream: bool = False,
    ) -> httpx.Request:
        headers = dict(IDENTITY_HEADERS)
        headers["Authorization"] = f"Bearer {setting.api_key}"
        if stream:
            headers["Accept"] = "text/event-stream"
        url = f"{setting.base_url}{path}"
        request = client.build_request(method, url, json=body, headers=headers)
        logger.debug(f"{method} {url} | headers: {_mask_headers(request.headers)}")
        return request

    def _chat_body(
        self,
        messages: Sequence[Message],
        params: TextGenerationParams,
        stream: bool,
        message_transformers: Iterable[MessageTransformer],
    ) -> dict[str, Any]:
        body = self.codec.build_chat_completion_request(
            messages,
            params,
            stream=stream,
            message_transformers=message_transformers,
        )
        logger.debug(
            "chat request: model=%s messages=%d stream=%s",
            body["model"],
            len(body["messages"]),
            stream,
        )
        return body

    def _handle_error(self, error: Exception, attempt: int) -> None:
        logger.error(f"Request failed (attempt {attempt}): {type(error).__name__}: {str(error)}")

    def _should_retry(self, error: Exception, attempt: int) -> bool:
        """Only connection failures are retried, and only while attempts remain."""
        self._handle_error(error, attempt)
        return isinstance(error, (httpx.ConnectError, httpx.ConnectTimeout)) and attempt < self.retry_times

    def _translate(self, error: httpx.HTTPError) -> Exception:
        if isinstance(error, httpx.ConnectTimeout):
            return NetworkError("Connection timeout: provider may be unreachable")
        if isinstance(error, httpx.TimeoutException):
            return TimeoutError(f"Request timeout: {type(error).__name__}")
        if isinstance(error, (httpx.ConnectError, httpx.NetworkError)):
            return NetworkError(str(error) or type(error).__name__)
        return NetworkError(f"HTTP error: {str(error)}")


class OpenAIProvider(_ProviderBase):
    """
    Blocking client for OpenAI-compatible APIs.

    Features:
    - Injected httpx.Client (or a default one with 120s timeouts)
    - One reconnection attempt after a connection failure
    - Non-streaming completions and SSE chunk streams
    - Sensitive header masking in logs
    """

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        codec: Optional[ChatCompletionCodec] = None,
        retry_times: int = 2,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            http_client: Shared httpx client; built with ``timeout`` when omitted
            codec: Wire codec; a default one when omitted
            retry_times: Total attempts on connection failure (2 = one retry)
            timeout: Connect/read/write timeout in seconds for the default client
        """
        super().__init__(codec, retry_times)
        self._owns_client = http_client is None
        self._client = http_client or build_http_client(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the underlying httpx client if this provider built it."""
        if self._owns_client:
            self._client.close()

    def _send(self, request: httpx.Request, stream: bool = False) -> httpx.Response:
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._client.send(request, stream=stream)
            except httpx.HTTPError as e:
                if self._should_retry(e, attempt):
                    continue
                raise self._translate(e) from e

    def list_models(self, setting: ProviderSetting) -> list[Model]:
        """
        GET {base_url}/models

        Raises:
            NetworkError: Connection failure
            TimeoutError: Request timeout
            HTTPStatusError: Non-2xx HTTP status
            DecodeError: Unexpected body
        """
        request = self._build_request(self._client, "GET", setting, "/models")
        response = self._send(request)
        return self.codec.parse_models(_process_response(response))

    def generate_text(
        self,
        setting: ProviderSetting,
        messages: Sequence[Message],
        params: TextGenerationParams,
        message_transformers: Iterable[MessageTransformer] = (),
    ) -> MessageChunk:
        """
        POST {base_url}/chat/completions with ``stream=false``.

        Returns:
            Chunk whose choice carries the complete ``message``
        """
        body = self._chat_body(messages, params, False, message_transformers)
        request = self._build_request(self._client, "POST", setting, "/chat/completions", body)
        response = self._send(request)
        return self.codec.parse_completion(_process_response(response))

    def stream_text(
        self,
        setting: ProviderSetting,
        messages: Sequence[Message],
        params: TextGenerationParams,
        message_transformers: Iterable[MessageTransformer] = (),
    ) -> ChunkStream:
        """
        POST {base_url}/chat/completions with ``stream=true``.

        The request is sent when the returned stream is first iterated.
        Failures end the stream with StreamError.
        """
        body = self._chat_body(messages, params, True, message_transformers)
        request = self._build_request(
            self._client, "POST", setting, "/chat/completions", body, stream=True
        )
        return ChunkStream(lambda: self._send(request, stream=True), self.codec)


class AsyncOpenAIProvider(_ProviderBase):
    """Async counterpart of OpenAIProvider over httpx.AsyncClient."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        codec: Optional[ChatCompletionCodec] = None,
        retry_times: int = 2,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(codec, retry_times)
        self._owns_client = http_client is None
        self._client = http_client or build_async_http_client(timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, request: httpx.Request, stream: bool = False) -> httpx.Response:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._client.send(request, stream=stream)
            except httpx.HTTPError as e:
                if self._should_retry(e, attempt):
                    continue
                raise self._translate(e) from e

    async def list_models(self, setting: ProviderSetting) -> list[Model]:
        request = self._build_request(self._client, "GET", setting, "/models")
        response = await self._send(request)
        return self.codec.parse_models(_process_response(response))

    async def generate_text(
        self,
        setting: ProviderSetting,
        messages: Sequence[Message],
        params: TextGenerationParams,
        message_transformers: Iterable[MessageTransformer] = (),
    ) -> MessageChunk:
        body = self._chat_body(messages, params, False, message_transformers)
        request = self._build_request(self._client, "POST", setting, "/chat/completions", body)
        response = await self._send(request)
        return self.codec.parse_completion(_process_response(response))

    def stream_text(
        self,
        setting: ProviderSetting,
        messages: Sequence[Message],
        params: TextGenerationParams,
        message_transformers: Iterable[MessageTransformer] = (),
    ) -> AsyncChunkStream:
        body = self._chat_body(messages, params, True, message_transformers)
        request = self._build_request(
            self._client, "POST", setting, "/chat/completions", body, stream=True
        )
        return AsyncChunkStream(lambda: self._send(request, stream=True), self.codec)
