"""
rikka-ai CLI Main Entry Point

Talks to any OpenAI-compatible chat-completion API: list models and ask
questions with streamed, reassembled replies.
"""

import sys
from typing import Optional

import typer

# Load project environment variables before configuration is resolved
from rikka_ai.core.env_loader import load_project_env

load_project_env()

from rikka_ai.cli._globals import set_global_config
from rikka_ai.cli.commands import ask, models
from rikka_ai.cli.config import get_config
from rikka_ai.core.logger import setup_logging


def config_callback(
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        help="Provider base URL (e.g., https://api.openai.com/v1). Overrides RIKKA_BASE_URL.",
    ),
    api_key: Optional[str] = typer.Option(
        None,
        "--api-key",
        help="Bearer API key. Overrides RIKKA_API_KEY.",
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        "-m",
        help="Model id. Overrides RIKKA_MODEL.",
    ),
    temperature: Optional[float] = typer.Option(None, "--temperature", help="Sampling temperature."),
    top_p: Optional[float] = typer.Option(None, "--top-p", help="Nucleus sampling top_p."),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Connect/read/write timeout in seconds. Overrides RIKKA_TIMEOUT.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output results in JSON format instead of plain text.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING...). Overrides RIKKA_LOG_LEVEL.",
    ),
) -> None:
    """Global options callback. Sets configuration for all commands."""
    setup_logging(log_level)
    config = get_config(
        base_url=base_url,
        api_key=api_key,
        model=model,
        temperature=temperature,
        top_p=top_p,
        timeout=timeout,
        output_format="json" if json_output else None,
    )
    set_global_config(config)


app = typer.Typer(
    name="rikka-ai",
    help="rikka-ai: streaming client for OpenAI-compatible chat-completion APIs",
    no_args_is_help=True,
    callback=config_callback,
)

app.command(name="models")(models.models)
app.command(name="ask")(ask.ask)


def main() -> None:
    """Main entry point for CLI."""
    try:
        app()
    except KeyboardInterrupt:
        print("\n[ABORTED] Aborted by user.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    main()
