"""Models command - list the models offered by the configured provider."""

import json

import typer

from rikka_ai.cli._globals import get_global_config
from rikka_ai.cli.lib.chat_renderer import ChatRenderer
from rikka_ai.cli.lib.safe_output import safe_print, safe_print_err
from rikka_ai.provider.client import OpenAIProvider
from rikka_ai.provider.errors import APIError


def models() -> None:
    """List models available at the provider's /models endpoint."""
    config = get_global_config()

    try:
        with OpenAIProvider(timeout=config.timeout) as provider:
            result = provider.list_models(config.provider_setting())
    except APIError as e:
        safe_print_err(e.user_friendly_message())
        raise typer.Exit(code=1)

    if config.output_format == "json":
        payload = [{"id": m.model_id, "display_name": m.display_name} for m in result]
        safe_print(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    safe_print(f"Models at {config.base_url}:")
    ChatRenderer().render_models(result)
