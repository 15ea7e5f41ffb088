"""
Server-sent-event chunk streams.

A stream is a lazy, finite, non-restartable sequence of MessageChunk. The HTTP
request is sent on first iteration. The stream ends exactly once, recorded in
``termination``: COMPLETED on ``[DONE]`` or end of body, FAILED on any error
(raised as StreamError to the consumer), CANCELLED when the consumer calls
``cancel()``.
"""

from __future__ import annotations

from enum import Enum
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Generator, Iterator, Optional

import httpx

from rikka_ai.core.logger import get_logger
from rikka_ai.provider.codec import DONE_SENTINEL, ChatCompletionCodec
from rikka_ai.provider.errors import APIError, DecodeError, StreamError, TransportError
from rikka_ai.schemas.message import MessageChunk

logger = get_logger("rikka.stream")


class StreamTermination(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SSEDecoder:
    """
    Assembles SSE lines into event data.

    ``data:`` lines of one event are joined with ``\\n``; the event is
    dispatched on a blank line. Comment lines and other fields are ignored.
    """

    def __init__(self) -> None:
        self._data: list[str] = []

    def feed(self, line: str) -> Optional[str]:
        line = line.rstrip("\r\n")
        if not line:
            return self.flush()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data.append(value)
        return None

    def flush(self) -> Optional[str]:
        if not self._data:
            return None
        data = "\n".join(self._data)
        self._data = []
        return data


def iter_sse_data(lines: Iterator[str]) -> Iterator[str]:
    decoder = SSEDecoder()
    for line in lines:
        data = decoder.feed(line)
        if data is not None:
            yield data
    data = decoder.flush()
    if data is not None:
        yield data


async def aiter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    decoder = SSEDecoder()
    async for line in lines:
        data = decoder.feed(line)
        if data is not None:
            yield data
    data = decoder.flush()
    if data is not None:
        yield data


def _is_event_stream(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == "text/event-stream"


def _is_done(data: str) -> bool:
    return data.strip() == DONE_SENTINEL


def _status_error(codec: ChatCompletionCodec, response: httpx.Response, body: str) -> StreamError:
    message = codec.parse_error_message(body)
    logger.error("stream failed: HTTP %s %s", response.status_code, message)
    return StreamError(message, status_code=response.status_code, response_text=body)


def _transport_error(error: Exception) -> StreamError:
    logger.error("stream failed: %s: %s", type(error).__name__, error)
    return StreamError(str(error) or type(error).__name__)


class _StreamState:
    def __init__(self) -> None:
        self.termination: Optional[StreamTermination] = None
        self.error: Optional[APIError] = None

    @property
    def terminated(self) -> bool:
        return self.termination is not None

    def finish(self, termination: StreamTermination, error: Optional[APIError] = None) -> bool:
        """Record the first termination only. Returns False if already terminated."""
        if self.termination is not None:
            return False
        self.termination = termination
        self.error = error
        logger.debug("stream %s", termination.value)
        return True


class ChunkStream:
    """
    Synchronous chunk stream over one streaming HTTP response.

    Usage:
        with provider.stream_text(setting, messages, params) as stream:
            for chunk in stream:
                ...
    """

    def __init__(
        self,
        open_response: Callable[[], httpx.Response],
        codec: ChatCompletionCodec,
    ):
        self._open_response = open_response
        self._codec = codec
        self._state = _StreamState()
        self._response: Optional[httpx.Response] = None
        self._iterator: Optional[Generator[MessageChunk, None, None]] = None

    @property
    def termination(self) -> Optional[StreamTermination]:
        return self._state.termination

    @property
    def error(self) -> Optional[APIError]:
        return self._state.error

    def __enter__(self) -> "ChunkStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> "ChunkStream":
        return self

    def __next__(self) -> MessageChunk:
        if self._state.terminated:
            self._release()
            raise StopIteration
        if self._iterator is None:
            self._iterator = self._generate()
        return next(self._iterator)

    def cancel(self) -> None:
        """Stop the stream and release the connection. No chunk follows."""
        if self._state.finish(StreamTermination.CANCELLED):
            self._release()

    def close(self) -> None:
        """Release resources; cancels the stream if it is still running."""
        self.cancel()
        iterator = self._iterator
        if iterator is not None and not iterator.gi_running:
            iterator.close()
        self._release()

    def _release(self) -> None:
        response, self._response = self._response, None
        if response is not None:
            response.close()

    def _generate(self) -> Generator[MessageChunk, None, None]:
        try:
            self._response = self._open_response()
            response = self._response
            if not response.is_success or not _is_event_stream(response):
                body = response.read().decode("utf-8", errors="replace")
                raise _status_error(self._codec, response, body)

            for data in iter_sse_data(response.iter_lines()):
                if self._state.terminated:
                    return
                if _is_done(data):
                    self._state.finish(StreamTermination.COMPLETED)
                    return
                for chunk in self._codec.parse_stream_data(data):
                    if self._state.terminated:
                        return
                    yield chunk
            self._state.finish(StreamTermination.COMPLETED)
        except StreamError as e:
            self._state.finish(StreamTermination.FAILED, e)
            raise
        except DecodeError as e:
            error = StreamError(e.message, response_text=e.response_text)
            self._state.finish(StreamTermination.FAILED, error)
            raise error from e
        except TransportError as e:
            error = StreamError(e.message, status_code=e.status_code, response_text=e.response_text)
            self._state.finish(StreamTermination.FAILED, error)
            raise error from e
        except (httpx.HTTPError, httpx.StreamError) as e:
            if self._state.termination is StreamTermination.CANCELLED:
                return
            error = _transport_error(e)
            self._state.finish(StreamTermination.FAILED, error)
            raise error from e
        finally:
            self._release()


class AsyncChunkStream:
    """
    Asynchronous chunk stream over one streaming HTTP response.

    Usage:
        async with provider.stream_text(setting, messages, params) as stream:
            async for chunk in stream:
                ...
    """

    def __init__(
        self,
        open_response: Callable[[], Awaitable[httpx.Response]],
        codec: ChatCompletionCodec,
    ):
        self._open_response = open_response
        self._codec = codec
        self._state = _StreamState()
        self._response: Optional[httpx.Response] = None
        self._iterator: Optional[AsyncGenerator[MessageChunk, None]] = None

    @property
    def termination(self) -> Optional[StreamTermination]:
        return self._state.termination

    @property
    def error(self) -> Optional[APIError]:
        return self._state.error

    async def __aenter__(self) -> "AsyncChunkStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __aiter__(self) -> "AsyncChunkStream":
        return self

    async def __anext__(self) -> MessageChunk:
        if self._state.terminated:
            await self._release()
            raise StopAsyncIteration
        if self._iterator is None:
            self._iterator = self._generate()
        return await self._iterator.__anext__()

    async def cancel(self) -> None:
        """Stop the stream and release the connection. No chunk follows."""
        if self._state.finish(StreamTermination.CANCELLED):
            await self._release()

    async def aclose(self) -> None:
        await self.cancel()
        iterator = self._iterator
        if iterator is not None and not iterator.ag_running:
            await iterator.aclose()
        await self._release()

    async def _release(self) -> None:
        response, self._response = self._response, None
        if response is not None:
            await response.aclose()

    async def _generate(self) -> AsyncGenerator[MessageChunk, None]:
        try:
            self._response = await self._open_response()
            response = self._response
            if not response.is_success or not _is_event_stream(response):
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise _status_error(self._codec, response, body)

            async for data in aiter_sse_data(response.aiter_lines()):
                if self._state.terminated:
                    return
                if _is_done(data):
                    self._state.finish(StreamTermination.COMPLETED)
                    return
                for chunk in self._codec.parse_stream_data(data):
                    if self._state.terminated:
                        return
                    yield chunk
            self._state.finish(StreamTermination.COMPLETED)
        except StreamError as e:
            self._state.finish(StreamTermination.FAILED, e)
            raise
        except DecodeError as e:
            error = StreamError(e.message, response_text=e.response_text)
            self._state.finish(StreamTermination.FAILED, error)
            raise error from e
        except TransportError as e:
            error = StreamError(e.message, status_code=e.status_code, response_text=e.response_text)
            self._state.finish(StreamTermination.FAILED, error)
            raise error from e
        except (httpx.HTTPError, httpx.StreamError) as e:
            if self._state.termination is StreamTermination.CANCELLED:
                return
            error = _transport_error(e)
            self._state.finish(StreamTermination.FAILED, error)
            raise error from e
        finally:
            await self._release()
