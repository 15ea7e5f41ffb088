"""CLI renderer for assistant messages, streamed or complete."""

from __future__ import annotations

from typing import Iterable

from rikka_ai.cli.lib.safe_output import emoji, safe_print
from rikka_ai.schemas.message import Message, MessageAnnotation, UrlCitation
from rikka_ai.schemas.provider import Model


class ChatRenderer:
    """
    Render assistant output with a stable block structure.

    For streams, ``render_progress`` is called with the reassembled message
    after every chunk and prints only what was not printed yet.
    """

    def __init__(self) -> None:
        self._reasoning_printed = 0
        self._text_printed = 0
        self._reasoning_open = False

    def reset(self) -> None:
        self._reasoning_printed = 0
        self._text_printed = 0
        self._reasoning_open = False

    def render_progress(self, message: Message) -> None:
        reasoning = message.reasoning
        if len(reasoning) > self._reasoning_printed:
            if not self._reasoning_open and self._text_printed == 0:
                safe_print(f"{emoji('💭', '[THINKING]')} ", end="", flush=True)
                self._reasoning_open = True
            safe_print(reasoning[self._reasoning_printed:], end="", flush=True)
            self._reasoning_printed = len(reasoning)

        text = message.text
        if len(text) > self._text_printed:
            if self._reasoning_open:
                safe_print("\n" + "-" * 60)
                self._reasoning_open = False
            safe_print(text[self._text_printed:], end="", flush=True)
            self._text_printed = len(text)

    def render_finish(self, message: Message) -> None:
        """Close the streamed block and print citations."""
        safe_print("")
        self.render_citations(message.annotations)
        self.reset()

    def render_message(self, message: Message) -> None:
        """Render a complete assistant message."""
        if message.reasoning:
            safe_print(f"{emoji('💭', '[THINKING]')} {message.reasoning}")
            safe_print("-" * 60)
        safe_print(message.text)
        self.render_citations(message.annotations)

    def render_citations(self, annotations: Iterable[MessageAnnotation]) -> None:
        citations = [a for a in annotations if isinstance(a, UrlCitation)]
        if not citations:
            return
        safe_print("\n[Sources]")
        for index, citation in enumerate(citations, start=1):
            safe_print(f"  {index}. {citation.title or citation.url}")
            if citation.title and citation.url:
                safe_print(f"     {citation.url}")

    def render_models(self, models: Iterable[Model]) -> None:
        models = list(models)
        if not models:
            safe_print("(no models)")
            return
        for model in models:
            safe_print(f"  - {model.model_id}")

    def render_error(self, error_msg: str) -> None:
        safe_print(f"\n{emoji('❌', '[ERROR]')} {error_msg}", err=True)
