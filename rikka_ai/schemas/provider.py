from __future__ import annotations

import uuid
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class Model(BaseModel):
    id: UUID = Field(default_factory=uuid.uuid4)
    model_id: str
    display_name: str = ""


class ProviderSetting(BaseModel):
    """Connection settings of one OpenAI-compatible provider."""

    id: UUID = Field(default_factory=uuid.uuid4)
    name: str
    enabled: bool = True
    base_url: str
    api_key: str = ""
    models: list[Model] = Field(default_factory=list)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    def to_dict(self) -> dict:
        """Safe for display: the API key is masked."""
        data = self.model_dump(mode="json")
        data["api_key"] = mask_secret(self.api_key)
        return data


class TextGenerationParams(BaseModel):
    model: Model
    temperature: float = 0.6
    top_p: float = 1.0


def mask_secret(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 8:
        return "***"
    return f"{value[:3]}***{value[-4:]}"


DEFAULT_PROVIDERS: list[ProviderSetting] = [
    ProviderSetting(
        id=UUID("1eeea727-9ee5-4cae-93e6-6fb01a4d051e"),
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        api_key="sk-",
    ),
    ProviderSetting(
        id=UUID("f099ad5b-ef03-446d-8e78-7e36787f780b"),
        name="DeepSeek",
        base_url="https://api.deepseek.com/v1",
        api_key="sk-",
    ),
    ProviderSetting(
        id=UUID("d5734028-d39b-4d41-9841-fd648d65440e"),
        name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
    ),
    ProviderSetting(
        id=UUID("f76cae46-069a-4334-ab8e-224e4979e58c"),
        name="阿里云百炼",
        base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
    ),
    ProviderSetting(
        id=UUID("3dfd6f9b-f9d9-417f-80c1-ff8d77184191"),
        name="火山引擎",
        base_url="https://ark.cn-beijing.volces.com/api/v3",
    ),
]


def find_model_by_id(providers: list[ProviderSetting], model_id: UUID) -> Model | None:
    for setting in providers:
        for model in setting.models:
            if model.id == model_id:
                return model
    return None


def find_provider(model: Model, providers: list[ProviderSetting]) -> ProviderSetting | None:
    for setting in providers:
        for candidate in setting.models:
            if candidate.id == model.id:
                return setting
    return None
