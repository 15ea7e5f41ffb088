from __future__ import annotations

from typing import Callable, Iterable

from rikka_ai.schemas.message import Message

MessageTransformer = Callable[[list[Message]], list[Message]]


def transform(messages: list[Message], transformers: Iterable[MessageTransformer]) -> list[Message]:
    """Apply provider-specific preprocessing steps in order."""
    result = list(messages)
    for transformer in transformers:
        result = list(transformer(result))
    return result
