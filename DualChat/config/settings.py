"""
DualChat Configuration System - SSOT (Single Source of Truth).

Authoritative source for:
- Provider selection and credentials
- Per-agent model, thinking config and persona
- Discussion mode and turn count
- Retry policy
- State directory

Loads from dualchat_config.yaml (if present), then lets environment
variables fill in credentials. Scripts call dotenv.load_dotenv() first so a
.env file works too.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

from ..agents.prompts import DEFAULT_LANGUAGE, default_system_prompt
from ..core.models import DiscussionMode, Sender, ThinkingConfig
from ..utils import console
from .models import (
    DEFAULT_GEMINI_MODEL,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_THINKING_BUDGET,
    DEFAULT_THINKING_LEVEL,
    AiModel,
    Provider,
    clamp_thinking_budget,
    resolve_model,
    resolve_thinking_config,
)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "dualchat_config.yaml"

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_FIXED_TURNS = 2
MIN_FIXED_TURNS = 1
MAX_AUTO_RETRIES = 2
RETRY_DELAY_BASE_MS = 1000

PROVIDERS = ("gemini", "openai")
THINKING_LEVELS = ("LOW", "HIGH")


@dataclass(frozen=True)
class ModelConfig:
    """Everything a single model call needs, captured at call time."""
    model: AiModel
    system_instruction: Optional[str] = None
    thinking_config: Optional[ThinkingConfig] = None


@dataclass(frozen=True)
class ChatSettings:
    """
    Immutable settings snapshot.

    The orchestrator holds one of these and swaps it wholesale on change;
    in-flight calls keep the ModelConfig they were started with.
    """
    provider: Provider = "gemini"

    gemini_api_key: Optional[str] = None
    gemini_endpoint: Optional[str] = None

    openai_api_key: Optional[str] = None
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL

    # None means "provider default"
    cognito_model: Optional[str] = None
    muse_model: Optional[str] = None

    discussion_mode: DiscussionMode = DiscussionMode.FIXED_TURNS
    fixed_turns: int = DEFAULT_FIXED_TURNS

    cognito_thinking_budget: int = DEFAULT_THINKING_BUDGET
    cognito_thinking_level: str = DEFAULT_THINKING_LEVEL
    muse_thinking_budget: int = DEFAULT_THINKING_BUDGET
    muse_thinking_level: str = DEFAULT_THINKING_LEVEL

    # None means the built-in persona
    cognito_system_prompt: Optional[str] = None
    muse_system_prompt: Optional[str] = None

    max_auto_retries: int = MAX_AUTO_RETRIES
    retry_delay_base_ms: int = RETRY_DELAY_BASE_MS
    request_timeout: float = 120.0

    state_dir: str = ".dualchat"
    language: str = DEFAULT_LANGUAGE

    def __post_init__(self):
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unknown provider {self.provider!r}, expected one of {PROVIDERS}")
        if self.fixed_turns < MIN_FIXED_TURNS:
            raise ValueError(f"fixed_turns must be at least {MIN_FIXED_TURNS}, got {self.fixed_turns}")
        if self.max_auto_retries < 0:
            raise ValueError("max_auto_retries cannot be negative")
        for level in (self.cognito_thinking_level, self.muse_thinking_level):
            if level not in THINKING_LEVELS:
                raise ValueError(f"Thinking level must be one of {THINKING_LEVELS}, got {level!r}")

    # === Per-agent lookups ===

    def model_id_for(self, sender: Sender) -> str:
        configured = self.cognito_model if sender == Sender.COGNITO else self.muse_model
        if configured:
            return configured
        return DEFAULT_GEMINI_MODEL if self.provider == "gemini" else DEFAULT_OPENAI_MODEL

    def model_for(self, sender: Sender) -> AiModel:
        return resolve_model(self.provider, self.model_id_for(sender))

    def system_prompt_for(self, sender: Sender) -> str:
        custom = self.cognito_system_prompt if sender == Sender.COGNITO else self.muse_system_prompt
        return custom or default_system_prompt(sender, self.language)

    def model_config_for(self, sender: Sender) -> ModelConfig:
        model = self.model_for(sender)
        if sender == Sender.COGNITO:
            budget, level = self.cognito_thinking_budget, self.cognito_thinking_level
        else:
            budget, level = self.muse_thinking_budget, self.muse_thinking_level
        return ModelConfig(
            model=model,
            system_instruction=self.system_prompt_for(sender) if model.supports_system_instruction else None,
            thinking_config=resolve_thinking_config(
                model, clamp_thinking_budget(model.api_name, budget), level, self.provider
            ),
        )

    def credential_problem(self) -> Optional[str]:
        """Describe what is missing for the configured provider, or None."""
        if self.provider == "openai":
            if not (self.openai_base_url or "").strip() or not self.model_id_for(Sender.COGNITO).strip() \
                    or not self.model_id_for(Sender.MUSE).strip():
                return "OpenAI API configuration is incomplete (base URL and Cognito/Muse model ids are required)."
            if not (self.openai_api_key or "").strip():
                return "OpenAI API key is not configured. Set OPENAI_API_KEY or openai_api_key in the config file."
            return None
        if not (self.gemini_api_key or "").strip():
            return "Google Gemini API key is not configured. Set GEMINI_API_KEY or gemini_api_key in the config file."
        return None

    def with_overrides(self, **changes: Any) -> "ChatSettings":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def to_dict(self, redact: bool = True) -> dict:
        data = asdict(self)
        data["discussion_mode"] = self.discussion_mode.value
        if redact:
            for key in ("gemini_api_key", "openai_api_key"):
                if data.get(key):
                    data[key] = "***"
        return data


def _parse_mode(value: Any) -> DiscussionMode:
    if isinstance(value, DiscussionMode):
        return value
    text = str(value).strip().lower().replace("_", "-")
    if text in ("fixed", "fixed-turns"):
        return DiscussionMode.FIXED_TURNS
    if text in ("ai-driven", "ai", "auto"):
        return DiscussionMode.AI_DRIVEN
    raise ValueError(f"Unknown discussion_mode {value!r}")


def _parse_agent(data: dict, prefix: str) -> dict[str, Any]:
    """Read an ``agents.<name>`` block into flat ChatSettings fields."""
    parsed: dict[str, Any] = {}
    if "model" in data:
        parsed[f"{prefix}_model"] = data["model"]
    if "thinking_budget" in data:
        parsed[f"{prefix}_thinking_budget"] = int(data["thinking_budget"])
    if "thinking_level" in data:
        parsed[f"{prefix}_thinking_level"] = str(data["thinking_level"]).upper()
    if "system_prompt" in data:
        parsed[f"{prefix}_system_prompt"] = data["system_prompt"]
    return parsed


def load_settings(config_path: Optional[Path] = None) -> ChatSettings:
    """
    Build settings from the YAML file and the environment.

    File layout:
        provider: gemini
        gemini: {api_key, endpoint}
        openai: {api_key, base_url}
        agents:
          cognito: {model, thinking_budget, thinking_level, system_prompt}
          muse: {...}
        discussion: {mode, fixed_turns, language}
        retry: {max_auto_retries, delay_base_ms}
        state_dir: .dualchat
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        console.info(f"Loaded config from {path}")
    else:
        if config_path:
            raise FileNotFoundError(f"Config file not found: {path}")
        data = {}
        console.debug(f"No config file at {path}, using defaults")

    gemini = data.get("gemini", {}) or {}
    openai = data.get("openai", {}) or {}
    agents = data.get("agents", {}) or {}
    discussion = data.get("discussion", {}) or {}
    retry = data.get("retry", {}) or {}

    values: dict[str, Any] = {
        "provider": data.get("provider") or os.getenv("DUALCHAT_PROVIDER") or "gemini",
        "gemini_api_key": gemini.get("api_key") or os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY"),
        "gemini_endpoint": gemini.get("endpoint") or os.getenv("GEMINI_ENDPOINT"),
        "openai_api_key": openai.get("api_key") or os.getenv("OPENAI_API_KEY"),
        "openai_base_url": openai.get("base_url") or os.getenv("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
        "state_dir": data.get("state_dir", ".dualchat"),
    }
    values.update(_parse_agent(agents.get("cognito", {}) or {}, "cognito"))
    values.update(_parse_agent(agents.get("muse", {}) or {}, "muse"))

    if "mode" in discussion:
        values["discussion_mode"] = _parse_mode(discussion["mode"])
    if "fixed_turns" in discussion:
        values["fixed_turns"] = max(MIN_FIXED_TURNS, int(discussion["fixed_turns"]))
    if "language" in discussion:
        values["language"] = discussion["language"]
    if "max_auto_retries" in retry:
        values["max_auto_retries"] = int(retry["max_auto_retries"])
    if "delay_base_ms" in retry:
        values["retry_delay_base_ms"] = int(retry["delay_base_ms"])
    if "request_timeout" in data:
        values["request_timeout"] = float(data["request_timeout"])

    return ChatSettings(**values)
