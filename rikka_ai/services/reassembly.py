"""
Stream reassembly.

Folds streamed chunks into messages and conversations. Both operations are
pure: inputs are never modified, new values are returned.
"""

from __future__ import annotations

from typing import Sequence, assert_never

from rikka_ai.core.logger import get_logger
from rikka_ai.provider.errors import DecodeError
from rikka_ai.schemas.message import (
    ImagePart,
    Message,
    MessageChunk,
    MessagePart,
    ReasoningPart,
    TextPart,
)

logger = get_logger("rikka.reassembly")


def _append_text(parts: tuple[MessagePart, ...], fragment: str) -> tuple[MessagePart, ...]:
    for index, part in enumerate(parts):
        if isinstance(part, TextPart):
            merged = TextPart(text=part.text + fragment)
            return parts[:index] + (merged,) + parts[index + 1:]
    return parts + (TextPart(text=fragment),)


def _append_reasoning(parts: tuple[MessagePart, ...], fragment: str) -> tuple[MessagePart, ...]:
    for index, part in enumerate(parts):
        if isinstance(part, ReasoningPart):
            merged = ReasoningPart(reasoning=part.reasoning + fragment)
            return parts[:index] + (merged,) + parts[index + 1:]
    return parts + (ReasoningPart(reasoning=fragment),)


def apply_chunk(message: Message, chunk: MessageChunk) -> Message:
    """Merge the delta of ``chunk.choices[0]`` into ``message``.

    Text and reasoning fragments are appended to the existing part of the same
    kind, or added as a new part. Citations carried by the delta are appended
    unless already present. A choice without delta leaves the message unchanged.
    """
    delta = chunk.choice.delta
    if delta is None:
        return message

    parts = message.parts
    for part in delta.parts:
        if isinstance(part, TextPart):
            parts = _append_text(parts, part.text)
        elif isinstance(part, ReasoningPart):
            parts = _append_reasoning(parts, part.reasoning)
        elif isinstance(part, ImagePart):
            logger.debug("delta part append not supported: %s", part.type)
        else:
            assert_never(part)

    annotations = message.annotations
    for annotation in delta.annotations:
        if annotation not in annotations:
            annotations = annotations + (annotation,)

    if parts is message.parts and annotations is message.annotations:
        return message
    return message.model_copy(update={"parts": parts, "annotations": annotations})


def handle_message_chunk(messages: Sequence[Message], chunk: MessageChunk) -> list[Message]:
    """Apply ``chunk`` to a conversation.

    A chunk whose role differs from the last message starts a new turn and is
    appended; otherwise it is merged into the last message.

    Raises:
        ValueError: ``messages`` is empty
        DecodeError: the choice carries neither delta nor message
    """
    if not messages:
        raise ValueError("messages must not be empty")

    choice = chunk.choice
    incoming = choice.delta if choice.delta is not None else choice.message
    if incoming is None:
        raise DecodeError("delta/message is null")

    last = messages[-1]
    if last.role != incoming.role:
        return [*messages, incoming]
    return [*messages[:-1], apply_chunk(last, chunk)]
