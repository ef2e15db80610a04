"""Configuration: environment variables plus the key-value settings table.

Environment values are read at call time so tests can set them per test.

Known settings keys:
    llm_api_key: API key for the configured LLM provider (overrides LLM_API_KEY).
"""

import os
from dataclasses import dataclass
from typing import Optional

from cookin.db.database import get_connection

DEFAULT_MODELS = {
    "anthropic": "claude-opus-4-5-20251101",
    "openai": "gpt-4.1-mini",
    "openai-compatible": "gpt-4.1-mini",
}


def get_setting(key: str, default: str = None) -> str:
    """Return the value for a settings key, or default if not found."""
    conn = get_connection()
    try:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default
    finally:
        conn.close()


def set_setting(key: str, value: str) -> None:
    """Insert or update a settings key-value pair (upsert)."""
    conn = get_connection()
    try:
        conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (key, value),
        )
        conn.commit()
    finally:
        conn.close()


@dataclass
class LLMConfig:
    provider: str
    model: str
    api_key: Optional[str]
    base_url: Optional[str] = None


def get_llm_config() -> LLMConfig:
    """Build the LLM provider config from the environment and settings table."""
    provider = os.environ.get("LLM_PROVIDER", "anthropic").strip().lower()
    model = os.environ.get("LLM_MODEL") or DEFAULT_MODELS.get(provider, "")
    api_key = get_setting("llm_api_key") or os.environ.get("LLM_API_KEY")
    return LLMConfig(
        provider=provider,
        model=model,
        api_key=api_key,
        base_url=os.environ.get("LLM_BASE_URL") or None,
    )


@dataclass
class TwilioConfig:
    account_sid: str
    auth_token: str
    whatsapp_number: str

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.whatsapp_number)


def get_twilio_config() -> TwilioConfig:
    return TwilioConfig(
        account_sid=os.environ.get("TWILIO_ACCOUNT_SID", ""),
        auth_token=os.environ.get("TWILIO_AUTH_TOKEN", ""),
        whatsapp_number=os.environ.get("TWILIO_WHATSAPP_NUMBER", ""),
    )
