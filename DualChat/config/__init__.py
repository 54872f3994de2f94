"""
DualChat Configuration Module.

Provides:
- ChatSettings: immutable settings snapshot loaded from dualchat_config.yaml
- ModelConfig: per-call model, persona and thinking config
- Model catalog and thinking-config resolution
"""

from .models import (
    MODELS,
    THINKING_BUDGET_RANGES,
    AiModel,
    resolve_model,
    resolve_thinking_config,
)
from .settings import (
    ChatSettings,
    ModelConfig,
    load_settings,
)

__all__ = [
    "MODELS",
    "THINKING_BUDGET_RANGES",
    "AiModel",
    "resolve_model",
    "resolve_thinking_config",
    "ChatSettings",
    "ModelConfig",
    "load_settings",
]
