from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class TextPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Image attached by the user; ``url`` is a ``file://`` reference or a remote URL."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    url: str


class ReasoningPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["reasoning"] = "reasoning"
    reasoning: str


MessagePart = Annotated[
    Union[TextPart, ImagePart, ReasoningPart],
    Field(discriminator="type"),
]


class UrlCitation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["url_citation"] = "url_citation"
    title: str = ""
    url: str = ""


# Single variant today; keep the discriminator so new annotation kinds slot in.
MessageAnnotation = Annotated[Union[UrlCitation], Field(discriminator="type")]


def _new_id() -> str:
    return str(uuid.uuid4())


class Message(BaseModel):
    """One turn of a conversation.

    Messages are immutable. Streaming output is folded in with ``message + chunk``,
    which returns a new message (see ``rikka_ai.services.reassembly``).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: MessageRole
    parts: tuple[MessagePart, ...] = ()
    annotations: tuple[MessageAnnotation, ...] = ()

    @classmethod
    def of_text(cls, role: MessageRole, text: str) -> Message:
        return cls(role=role, parts=(TextPart(text=text),))

    @property
    def text(self) -> str:
        for part in self.parts:
            if isinstance(part, TextPart):
                return part.text
        return ""

    @property
    def reasoning(self) -> str:
        for part in self.parts:
            if isinstance(part, ReasoningPart):
                return part.reasoning
        return ""

    @property
    def images(self) -> list[ImagePart]:
        return [part for part in self.parts if isinstance(part, ImagePart)]

    def is_valid_to_upload(self) -> bool:
        """True when the message has non-blank text or at least one image."""
        for part in self.parts:
            if isinstance(part, TextPart) and part.text.strip():
                return True
            if isinstance(part, ImagePart):
                return True
        return False

    def __add__(self, chunk: MessageChunk) -> Message:
        from rikka_ai.services.reassembly import apply_chunk

        return apply_chunk(self, chunk)


class MessageChoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = 0
    delta: Message | None = None
    message: Message | None = None
    finish_reason: str | None = None


class MessageChunk(BaseModel):
    """One increment of provider output. Only ``choices[0]`` is consumed."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    model: str = ""
    choices: tuple[MessageChoice, ...] = Field(min_length=1)

    @property
    def choice(self) -> MessageChoice:
        return self.choices[0]
