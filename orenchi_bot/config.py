from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


def _env_lookup(name: str, aliases: tuple[str, ...] = ()) -> str | None:
    for key in (name, *aliases):
        # Be tolerant to UTF-8 BOM accidentally saved in .env key names.
        for candidate in (key, f"\ufeff{key}"):
            raw = os.getenv(candidate)
            if raw is not None:
                return raw
    return None


def _env_bool(name: str, default: bool, aliases: tuple[str, ...] = ()) -> bool:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, aliases: tuple[str, ...] = ()) -> int:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, aliases: tuple[str, ...] = ()) -> float:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _clean_token(value: str) -> str:
    cleaned = value.strip()
    if cleaned.lower().startswith("bot "):
        cleaned = cleaned[4:].strip()
    if (cleaned.startswith('"') and cleaned.endswith('"')) or (
        cleaned.startswith("'") and cleaned.endswith("'")
    ):
        cleaned = cleaned[1:-1].strip()
    return cleaned


def _env_str(name: str, default: str, aliases: tuple[str, ...] = ()) -> str:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


@dataclass(slots=True)
class Settings:
    discord_token: str
    respond_to_public_no_mention: bool

    openrouter_api_key: str
    openrouter_base_url: str
    openrouter_app_title: str
    openrouter_timeout_seconds: int
    openrouter_retries: int

    default_model: str
    search_model: str
    sonar_model: str
    sonar_pro_model: str
    image_model: str
    router_model: str
    summarizer_model: str
    completion_temperature: float
    completion_max_tokens: int
    aux_max_tokens: int

    sqlite_path: Path

    channel_prefix: str
    history_limit: int
    rename_cadence: int
    typing_interval_seconds: float
    inactivity_threshold_hours: float
    cleanup_interval_minutes: float

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            discord_token=_clean_token(_env_lookup("DISCORD_TOKEN", aliases=("DISCORD_BOT_TOKEN",)) or ""),
            respond_to_public_no_mention=_env_bool("RESPOND_TO_PUBLIC_NO_MENTION", False),
            openrouter_api_key=_env_str("OPENROUTER_API_KEY", ""),
            openrouter_base_url=_env_str("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
            openrouter_app_title=_env_str("OPENROUTER_APP_TITLE", "orenchi-ai-bot"),
            openrouter_timeout_seconds=_env_int("OPENROUTER_TIMEOUT_SECONDS", 120),
            openrouter_retries=_env_int("OPENROUTER_RETRIES", 2),
            default_model=_env_str("DEFAULT_MODEL", "openai/gpt-4o"),
            search_model=_env_str("SEARCH_MODEL", "openai/gpt-4o-mini-search-preview"),
            sonar_model=_env_str("SONAR_MODEL", "perplexity/sonar"),
            sonar_pro_model=_env_str("SONAR_PRO_MODEL", "perplexity/sonar-pro"),
            image_model=_env_str("IMAGE_MODEL", "google/gemini-2.5-flash"),
            router_model=_env_str("ROUTER_MODEL", "openai/gpt-5-nano"),
            summarizer_model=_env_str("SUMMARIZER_MODEL", "openai/gpt-5-nano"),
            completion_temperature=_env_float("COMPLETION_TEMPERATURE", 0.7),
            completion_max_tokens=_env_int("COMPLETION_MAX_TOKENS", 8192),
            aux_max_tokens=_env_int("AUX_MAX_TOKENS", 2000),
            sqlite_path=Path(_env_str("SQLITE_PATH", "./data/personalities.db")).expanduser(),
            channel_prefix=_env_str("CHANNEL_PREFIX", "ai-chat-"),
            history_limit=_env_int("HISTORY_LIMIT", 10),
            rename_cadence=_env_int("RENAME_CADENCE", 6),
            typing_interval_seconds=_env_float("TYPING_INTERVAL_SECONDS", 8.0),
            inactivity_threshold_hours=_env_float("INACTIVITY_THRESHOLD_HOURS", 24.0),
            cleanup_interval_minutes=_env_float("CLEANUP_INTERVAL_MINUTES", 60.0),
        )

    def validate(self) -> None:
        if not self.discord_token:
            raise ValueError("DISCORD_TOKEN is required")
        if self.discord_token == "put_your_discord_bot_token_here":
            raise ValueError("DISCORD_TOKEN is still placeholder")

        if not self.openrouter_api_key:
            raise ValueError("OPENROUTER_API_KEY is required")
        if self.openrouter_api_key == "put_your_openrouter_api_key_here":
            raise ValueError("OPENROUTER_API_KEY is still placeholder")

        if self.openrouter_timeout_seconds < 10:
            raise ValueError("OPENROUTER_TIMEOUT_SECONDS must be >= 10")
        if self.openrouter_retries < 1:
            raise ValueError("OPENROUTER_RETRIES must be >= 1")
        for label, model in (
            ("DEFAULT_MODEL", self.default_model),
            ("SEARCH_MODEL", self.search_model),
            ("SONAR_MODEL", self.sonar_model),
            ("SONAR_PRO_MODEL", self.sonar_pro_model),
            ("IMAGE_MODEL", self.image_model),
            ("ROUTER_MODEL", self.router_model),
            ("SUMMARIZER_MODEL", self.summarizer_model),
        ):
            if not model:
                raise ValueError(f"{label} cannot be empty")
        if self.completion_temperature < 0.0 or self.completion_temperature > 2.0:
            raise ValueError("COMPLETION_TEMPERATURE must be in [0, 2]")
        if self.completion_max_tokens < 128:
            raise ValueError("COMPLETION_MAX_TOKENS must be >= 128")
        if self.aux_max_tokens < 64:
            raise ValueError("AUX_MAX_TOKENS must be >= 64")

        if not self.channel_prefix.strip():
            raise ValueError("CHANNEL_PREFIX cannot be empty")
        if self.history_limit < 1:
            raise ValueError("HISTORY_LIMIT must be >= 1")
        if self.rename_cadence < 1:
            raise ValueError("RENAME_CADENCE must be >= 1")
        if self.rename_cadence > self.history_limit:
            raise ValueError("RENAME_CADENCE must be <= HISTORY_LIMIT")
        if self.typing_interval_seconds <= 0:
            raise ValueError("TYPING_INTERVAL_SECONDS must be > 0")
        if self.inactivity_threshold_hours <= 0:
            raise ValueError("INACTIVITY_THRESHOLD_HOURS must be > 0")
        if self.cleanup_interval_minutes < 1:
            raise ValueError("CLEANUP_INTERVAL_MINUTES must be >= 1")
