"""Tests for image encoding and message transformers."""

import base64

import pytest

from rikka_ai.provider.codec import ChatCompletionCodec
from rikka_ai.schemas.message import ImagePart, Message, MessageRole, TextPart
from rikka_ai.schemas.provider import Model, TextGenerationParams
from rikka_ai.services.file_encoder import ImageEncodeError, encode_image_base64
from rikka_ai.services.transformers import transform


class TestEncodeImage:
    """Test file:// image encoding."""

    def test_encodes_local_file(self, tmp_path) -> None:
        image = tmp_path / "pixel.png"
        image.write_bytes(b"\x89PNG\r\n\x1a\n")

        result = encode_image_base64(ImagePart(url=image.as_uri()))

        assert result.startswith("data:image/*;base64,")
        assert base64.b64decode(result.split(",", 1)[1]) == b"\x89PNG\r\n\x1a\n"

    def test_path_with_spaces(self, tmp_path) -> None:
        image = tmp_path / "my photo.jpg"
        image.write_bytes(b"jpg")

        result = encode_image_base64(ImagePart(url=image.as_uri()))

        assert result == "data:image/*;base64," + base64.b64encode(b"jpg").decode()

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ImageEncodeError, match="does not exist"):
            encode_image_base64(ImagePart(url=(tmp_path / "nope.png").as_uri()))

    def test_remote_url_unsupported(self) -> None:
        with pytest.raises(ImageEncodeError, match="Unsupported"):
            encode_image_base64(ImagePart(url="https://example.com/a.png"))

    def test_codec_uses_real_encoder(self, tmp_path) -> None:
        """An unreadable image in a request is sent as empty text."""
        codec = ChatCompletionCodec()
        message = Message(
            role=MessageRole.USER,
            parts=(TextPart(text="what is this"), ImagePart(url="https://example.com/a.png")),
        )

        body = codec.build_chat_completion_request(
            [message], TextGenerationParams(model=Model(model_id="m"))
        )

        assert body["messages"][0]["content"] == [
            {"type": "text", "text": "what is this"},
            {"type": "text", "text": ""},
        ]


class TestTransform:
    """Test message transformer chaining."""

    def test_no_transformers_copies_list(self) -> None:
        messages = [Message.of_text(MessageRole.USER, "hi")]
        result = transform(messages, [])

        assert result == messages
        assert result is not messages

    def test_applied_in_order(self) -> None:
        def add(tag):
            return lambda msgs: [*msgs, Message.of_text(MessageRole.USER, tag)]

        result = transform([], [add("a"), add("b")])

        assert [m.text for m in result] == ["a", "b"]

    def test_generator_output_accepted(self) -> None:
        def keep_users(msgs):
            return (m for m in msgs if m.role == MessageRole.USER)

        messages = [
            Message.of_text(MessageRole.SYSTEM, "sys"),
            Message.of_text(MessageRole.USER, "hi"),
        ]

        assert [m.text for m in transform(messages, [keep_users])] == ["hi"]
