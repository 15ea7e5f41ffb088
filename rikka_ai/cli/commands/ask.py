"""Ask command - send one user turn and render the assistant reply."""

import json
from pathlib import Path
from typing import List, Optional

import typer

from rikka_ai.cli._globals import get_global_config
from rikka_ai.cli.lib.chat_renderer import ChatRenderer
from rikka_ai.cli.lib.safe_output import safe_print, safe_print_err
from rikka_ai.core.logger import get_logger
from rikka_ai.provider.client import OpenAIProvider
from rikka_ai.provider.errors import APIError
from rikka_ai.schemas.message import ImagePart, Message, MessageRole, TextPart
from rikka_ai.services.reassembly import handle_message_chunk

logger = get_logger("rikka.cli.ask")


def build_conversation(
    prompt: str, system: Optional[str] = None, images: Optional[List[Path]] = None
) -> list[Message]:
    messages: list[Message] = []
    if system:
        messages.append(Message.of_text(MessageRole.SYSTEM, system))

    parts: list = [TextPart(text=prompt)]
    for image in images or []:
        parts.append(ImagePart(url=image.expanduser().resolve().as_uri()))
    messages.append(Message(role=MessageRole.USER, parts=tuple(parts)))
    return messages


def stream_reply(
    provider: OpenAIProvider,
    messages: list[Message],
    renderer: Optional[ChatRenderer] = None,
) -> list[Message]:
    """Stream the assistant reply, folding every chunk into the conversation."""
    config = get_global_config()
    conversation = list(messages)

    with provider.stream_text(
        config.provider_setting(), messages, config.generation_params()
    ) as stream:
        try:
            for chunk in stream:
                conversation = handle_message_chunk(conversation, chunk)
                if renderer is not None and len(conversation) > len(messages):
                    renderer.render_progress(conversation[-1])
        except KeyboardInterrupt:
            stream.cancel()
            logger.info("stream cancelled by user")
            if renderer is not None:
                renderer.render_error("Cancelled")

    if renderer is not None and len(conversation) > len(messages):
        renderer.render_finish(conversation[-1])
    return conversation


def ask(
    prompt: str = typer.Argument(..., help="User message to send."),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System prompt."),
    image: Optional[List[Path]] = typer.Option(
        None, "--image", "-i", help="Image file to attach (repeatable)."
    ),
    no_stream: bool = typer.Option(False, "--no-stream", help="Wait for the complete reply."),
) -> None:
    """Send PROMPT to the configured model and print the reply."""
    config = get_global_config()
    messages = build_conversation(prompt, system, image)
    renderer = ChatRenderer() if config.output_format == "text" else None

    try:
        with OpenAIProvider(timeout=config.timeout) as provider:
            if no_stream:
                chunk = provider.generate_text(
                    config.provider_setting(), messages, config.generation_params()
                )
                conversation = handle_message_chunk(messages, chunk)
                if renderer is not None:
                    renderer.render_message(conversation[-1])
            else:
                conversation = stream_reply(provider, messages, renderer)
    except APIError as e:
        safe_print_err(e.user_friendly_message())
        raise typer.Exit(code=1)

    if renderer is None:
        reply = conversation[-1] if len(conversation) > len(messages) else None
        payload = reply.model_dump(mode="json") if reply is not None else None
        safe_print(json.dumps(payload, ensure_ascii=False, indent=2))
