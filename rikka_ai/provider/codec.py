"""
Wire codec for the OpenAI-compatible chat-completion API.

Encodes conversations into request bodies and decodes completion responses,
stream events and model listings back into message objects.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable, Optional, Sequence, assert_never

from rikka_ai.core.logger import get_logger
from rikka_ai.provider.errors import DecodeError
from rikka_ai.schemas.message import (
    ImagePart,
    Message,
    MessageAnnotation,
    MessageChoice,
    MessageChunk,
    MessagePart,
    MessageRole,
    ReasoningPart,
    TextPart,
    UrlCitation,
)
from rikka_ai.schemas.provider import Model, TextGenerationParams
from rikka_ai.services.file_encoder import encode_image_base64
from rikka_ai.services.transformers import MessageTransformer, transform

logger = get_logger("rikka.codec")

ImageEncoder = Callable[[ImagePart], str]

DONE_SENTINEL = "[DONE]"
UNKNOWN_FINISH_REASON = "unknown"
UNKNOWN_ERROR = "unknown error"


class ChatCompletionCodec:
    """
    Converts between message objects and the provider's JSON shapes.

    Request encoding is best-effort: messages or parts that cannot be sent are
    dropped or degraded and logged. Response decoding fails fast with
    DecodeError on any unexpected shape.
    """

    def __init__(self, image_encoder: ImageEncoder = encode_image_base64):
        self.image_encoder = image_encoder

    # ------------------------------------------------------------------
    # Request encoding
    # ------------------------------------------------------------------

    def build_chat_completion_request(
        self,
        messages: Sequence[Message],
        params: TextGenerationParams,
        stream: bool = False,
        message_transformers: Iterable[MessageTransformer] = (),
    ) -> dict[str, Any]:
        transformed = transform(list(messages), message_transformers)
        return {
            "model": params.model.model_id,
            "messages": self.build_messages(transformed),
            "temperature": params.temperature,
            "top_p": params.top_p,
            "stream": stream,
        }

    def build_messages(self, messages: Iterable[Message]) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = []
        for message in messages:
            if not message.is_valid_to_upload():
                logger.debug("skip message %s: nothing to upload", message.id)
                continue
            content: list[dict[str, Any]] = []
            for part in message.parts:
                encoded = self._encode_part(part)
                if encoded is not None:
                    content.append(encoded)
            result.append({"role": message.role.value, "content": content})
        return result

    def _encode_part(self, part: MessagePart) -> Optional[dict[str, Any]]:
        if isinstance(part, TextPart):
            return {"type": "text", "text": part.text}
        if isinstance(part, ImagePart):
            try:
                data_uri = self.image_encoder(part)
            except Exception as e:  # noqa: BLE001
                logger.warning("encode image failed: %s (%s)", part.url, e)
                return {"type": "text", "text": ""}
            return {"type": "image_url", "image_url": {"url": data_uri}}
        if isinstance(part, ReasoningPart):
            logger.debug("message part not supported: %s", part.type)
            return None
        assert_never(part)

    # ------------------------------------------------------------------
    # Response decoding
    # ------------------------------------------------------------------

    def parse_message(self, obj: dict[str, Any]) -> Message:
        if not isinstance(obj, dict):
            raise DecodeError(f"message must be an object, got {type(obj).__name__}")

        role = _parse_role(obj.get("role"))

        reasoning = obj.get("reasoning_content")
        if reasoning is None:
            reasoning = obj.get("reasoning")

        content = obj.get("content")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise DecodeError(f"content must be a string, got {type(content).__name__}")

        parts: list[MessagePart] = []
        if reasoning is not None:
            if not isinstance(reasoning, str):
                raise DecodeError(f"reasoning must be a string, got {type(reasoning).__name__}")
            parts.append(ReasoningPart(reasoning=reasoning))
        parts.append(TextPart(text=content))

        annotations = obj.get("annotations")
        if annotations is None:
            annotations = []

        return Message(
            role=role,
            parts=tuple(parts),
            annotations=tuple(self.parse_annotations(annotations)),
        )

    def parse_annotations(self, items: Any) -> list[MessageAnnotation]:
        """Parse an annotation array. An unknown type fails the whole parse."""
        if not isinstance(items, list):
            raise DecodeError("annotations must be an array")

        annotations: list[MessageAnnotation] = []
        for item in items:
            if not isinstance(item, dict):
                raise DecodeError("annotation must be an object")
            kind = item.get("type")
            if kind is None:
                raise DecodeError("annotation type is null")
            if kind == "url_citation":
                citation = item.get("url_citation") or {}
                if not isinstance(citation, dict):
                    raise DecodeError("url_citation must be an object")
                annotations.append(
                    UrlCitation(
                        title=_as_str(citation.get("title")),
                        url=_as_str(citation.get("url")),
                    )
                )
            else:
                raise DecodeError(f"unknown annotation type: {kind}")
        return annotations

    def parse_completion(self, body: Any) -> MessageChunk:
        """Decode a non-streaming completion body."""
        if not isinstance(body, dict):
            raise DecodeError("completion body must be an object")

        choice = _first_choice(body)
        if choice is None:
            raise DecodeError("choices is null")

        message = choice.get("message")
        if not isinstance(message, dict):
            raise DecodeError("message is null")

        return MessageChunk(
            id=_as_str(body.get("id")),
            model=_as_str(body.get("model")),
            choices=(
                MessageChoice(
                    index=0,
                    delta=None,
                    message=self.parse_message(message),
                    finish_reason=_finish_reason(choice),
                ),
            ),
        )

    def parse_stream_chunk(self, obj: Any) -> Optional[MessageChunk]:
        """Decode one streamed JSON object; ``None`` when it has no choices."""
        if not isinstance(obj, dict):
            raise DecodeError("stream chunk must be an object")

        choice = _first_choice(obj)
        if choice is None:
            return None

        delta = choice.get("delta")
        if not isinstance(delta, dict):
            delta = choice.get("message")
        if not isinstance(delta, dict):
            raise DecodeError("delta/message is null")

        return MessageChunk(
            id=_as_str(obj.get("id")),
            model=_as_str(obj.get("model")),
            choices=(
                MessageChoice(
                    index=0,
                    delta=self.parse_message(delta),
                    message=None,
                    finish_reason=_finish_reason(choice),
                ),
            ),
        )

    def parse_stream_data(self, data: str) -> list[MessageChunk]:
        """Decode the data of one event: one or more newline-separated JSON objects."""
        chunks: list[MessageChunk] = []
        for line in data.strip().split("\n"):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
            except (json.JSONDecodeError, ValueError) as e:
                raise DecodeError(f"Failed to parse stream event: {e}", response_text=line) from e
            chunk = self.parse_stream_chunk(obj)
            if chunk is not None:
                chunks.append(chunk)
        return chunks

    def parse_models(self, body: Any) -> list[Model]:
        if not isinstance(body, dict):
            raise DecodeError("models body must be an object")
        data = body.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise DecodeError("data must be an array")

        models: list[Model] = []
        for item in data:
            if not isinstance(item, dict):
                continue
            model_id = item.get("id")
            if model_id is None:
                continue
            models.append(Model(model_id=str(model_id), display_name=str(model_id)))
        return models

    def parse_error_message(self, body_text: str) -> str:
        """Extract ``error.message`` from an API error body, or ``"unknown error"``."""
        try:
            body = json.loads(body_text or "{}")
            if isinstance(body, dict):
                message = body["error"]["message"]
            elif isinstance(body, list):
                message = body[0]["error"]["message"]
            else:
                return UNKNOWN_ERROR
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.debug("error body not understood: %s", e)
            return UNKNOWN_ERROR
        if message is None:
            return UNKNOWN_ERROR
        return str(message)


def _parse_role(raw: Any) -> MessageRole:
    if raw is None:
        return MessageRole.ASSISTANT
    if not isinstance(raw, str):
        raise DecodeError(f"role must be a string, got {type(raw).__name__}")
    try:
        return MessageRole[raw.upper()]
    except KeyError:
        raise DecodeError(f"unknown role: {raw}") from None


def _first_choice(obj: dict[str, Any]) -> Optional[dict[str, Any]]:
    choices = obj.get("choices")
    if choices is None:
        return None
    if not isinstance(choices, list):
        raise DecodeError("choices must be an array")
    if not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        raise DecodeError("choice must be an object")
    return choice


def _finish_reason(choice: dict[str, Any]) -> str:
    reason = choice.get("finish_reason")
    if reason is None:
        return UNKNOWN_FINISH_REASON
    return str(reason)


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)
