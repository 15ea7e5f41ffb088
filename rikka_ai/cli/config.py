"""
rikka-ai CLI Configuration Module

Handles configuration priority:
  1. CLI flags (highest priority)
  2. Environment variables
  3. Default values (lowest priority)

Configuration sources:
  - BASE_URL: RIKKA_BASE_URL (env) → https://api.openai.com/v1 (default)
  - API_KEY: RIKKA_API_KEY (env) → "" (default)
  - MODEL: RIKKA_MODEL (env) → gpt-4o-mini (default)
  - TEMPERATURE: RIKKA_TEMPERATURE (env) → 0.6 (default)
  - TOP_P: RIKKA_TOP_P (env) → 1.0 (default)
  - TIMEOUT: RIKKA_TIMEOUT (env) → 120 (default, seconds)
  - OUTPUT_FORMAT: RIKKA_OUTPUT_FORMAT (env) → text (default, text|json)
"""

import os
from dataclasses import dataclass
from typing import Literal, Optional

from rikka_ai.schemas.provider import (
    Model,
    ProviderSetting,
    TextGenerationParams,
    mask_secret,
)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


@dataclass
class AppConfig:
    """CLI Configuration object."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 0.6
    top_p: float = 1.0
    timeout: float = 120.0  # seconds
    output_format: Literal["text", "json"] = "text"

    def to_dict(self) -> dict:
        """Convert to dictionary (safe for display, API key masked)."""
        return {
            "base_url": self.base_url,
            "api_key": mask_secret(self.api_key),
            "model": self.model,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "timeout": self.timeout,
            "output_format": self.output_format,
        }

    def provider_setting(self) -> ProviderSetting:
        return ProviderSetting(
            name="cli",
            base_url=self.base_url,
            api_key=self.api_key,
            models=[Model(model_id=self.model, display_name=self.model)],
        )

    def generation_params(self) -> TextGenerationParams:
        return TextGenerationParams(
            model=Model(model_id=self.model, display_name=self.model),
            temperature=self.temperature,
            top_p=self.top_p,
        )


def _env_str(name: str, default: str) -> str:
    value = (os.getenv(name) or "").strip()
    return value or default


def _env_float(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        if value:
            return float(value)
    except (ValueError, TypeError):
        pass

    return default


def get_output_format_from_env() -> Literal["text", "json"]:
    """
    Source: RIKKA_OUTPUT_FORMAT (text|json)
    Default: text
    """
    output_format = os.getenv("RIKKA_OUTPUT_FORMAT", "text").lower()
    if output_format in ("text", "json"):
        return output_format  # type: ignore
    return "text"


def get_config(
    base_url: Optional[str] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    top_p: Optional[float] = None,
    timeout: Optional[float] = None,
    output_format: Optional[Literal["text", "json"]] = None,
) -> AppConfig:
    """
    Build CLI configuration with priority: CLI flag > env > default.

    Returns:
        AppConfig object with resolved values
    """
    return AppConfig(
        base_url=(base_url or _env_str("RIKKA_BASE_URL", DEFAULT_BASE_URL)).rstrip("/"),
        api_key=api_key or _env_str("RIKKA_API_KEY", ""),
        model=model or _env_str("RIKKA_MODEL", DEFAULT_MODEL),
        temperature=temperature if temperature is not None else _env_float("RIKKA_TEMPERATURE", 0.6),
        top_p=top_p if top_p is not None else _env_float("RIKKA_TOP_P", 1.0),
        timeout=timeout if timeout is not None else _env_float("RIKKA_TIMEOUT", 120.0),
        output_format=output_format or get_output_format_from_env(),
    )
