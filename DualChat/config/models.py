"""
Model catalog.

Known Gemini models with their capabilities, plus resolve_model() for ids
that are not in the catalog (OpenAI-compatible endpoints, newer releases).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from ..core.models import ThinkingConfig

Provider = Literal["gemini", "openai"]

GEMINI_3_PRO_MODEL_ID = "gemini-3-pro-preview"
GEMINI_2_5_PRO_MODEL_ID = "gemini-2.5-pro"
GEMINI_2_5_FLASH_MODEL_ID = "gemini-2.5-flash"
GEMINI_2_5_FLASH_LITE_MODEL_ID = "gemini-2.5-flash-lite"

DEFAULT_GEMINI_MODEL = GEMINI_3_PRO_MODEL_ID
DEFAULT_OPENAI_MODEL = "o4-mini"

# -1 means "auto": let the model decide (level-based on Gemini 3)
DEFAULT_THINKING_BUDGET = -1
DEFAULT_THINKING_LEVEL = "HIGH"
AUTO_FALLBACK_THINKING_BUDGET = 1024


@dataclass(frozen=True)
class AiModel:
    """A model the discussion can run on."""
    id: str
    name: str
    api_name: str
    supports_thinking_config: bool = False
    supports_system_instruction: bool = True


MODELS: list[AiModel] = [
    AiModel("gemini-3-pro", "Gemini 3.0 Pro", GEMINI_3_PRO_MODEL_ID, True, True),
    AiModel("gemini-2.5-pro", "Gemini 2.5 Pro", GEMINI_2_5_PRO_MODEL_ID, True, True),
    AiModel("gemini-2.5-flash", "Gemini 2.5 Flash", GEMINI_2_5_FLASH_MODEL_ID, True, True),
    AiModel("gemini-2.5-flash-lite", "Gemini 2.5 Flash Lite", GEMINI_2_5_FLASH_LITE_MODEL_ID, True, True),
]

# Models that take a thinking *level* instead of a budget in auto mode
GEMINI_3_MODELS: list[str] = [GEMINI_3_PRO_MODEL_ID]

THINKING_BUDGET_RANGES: dict[str, tuple[int, int]] = {
    GEMINI_2_5_FLASH_MODEL_ID: (1024, 24576),
    GEMINI_2_5_PRO_MODEL_ID: (128, 32768),
    GEMINI_3_PRO_MODEL_ID: (128, 32768),
    GEMINI_2_5_FLASH_LITE_MODEL_ID: (512, 24576),
}


def resolve_model(provider: Provider, model_id: str) -> AiModel:
    """
    Look up a model by api name or catalog id.

    OpenAI models and unknown ids are wrapped as a plain model that accepts a
    system instruction and has no thinking config.
    """
    if provider == "gemini":
        for model in MODELS:
            if model_id in (model.api_name, model.id):
                return model
    return AiModel(
        id=model_id,
        name=model_id,
        api_name=model_id,
        supports_thinking_config=False,
        supports_system_instruction=True,
    )


def is_gemini_3(model: AiModel) -> bool:
    return model.api_name in GEMINI_3_MODELS or "gemini-3-pro" in model.api_name


def clamp_thinking_budget(model_id: str, budget: int) -> int:
    """Keep an explicit budget inside the model's supported range. Zero and negative values pass through."""
    if budget <= 0 or model_id not in THINKING_BUDGET_RANGES:
        return budget
    low, high = THINKING_BUDGET_RANGES[model_id]
    return max(low, min(high, budget))


def resolve_thinking_config(
    model: AiModel,
    budget: int,
    level: str,
    provider: Provider,
) -> Optional[ThinkingConfig]:
    """
    Per-call thinking config.

    Only Gemini models that support it get one:
        budget 0  -> None (thinking disabled, nothing sent)
        budget <0 -> level for Gemini 3, a fixed budget for 2.5 models
        budget >0 -> that budget
    """
    if provider != "gemini" or not model.supports_thinking_config:
        return None
    if budget == 0:
        return None
    if budget < 0:
        if is_gemini_3(model):
            return ThinkingConfig(level=level)
        return ThinkingConfig(budget=AUTO_FALLBACK_THINKING_BUDGET)
    return ThinkingConfig(budget=budget)
