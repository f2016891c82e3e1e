"""Runtime configuration.

Secrets (RingCentral credentials, Gemini key) live in ``.env`` and are read
through python-dotenv. Non-secret, stable values such as the preset chat
groups are tracked here in source control.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from chatdigest.errors import ConfigError

# Predefined chat groups offered in the UI, keyed by chat id.
PRESET_CHAT_GROUPS: dict[str, str] = {
    "7595909126": "Global CC TAM",
    "21861851142": "Global RingEX TAM",
    "1310416902": "Global Advanced Support (UC)",
    "17273856006": "CC Support (NA, EMEA, and APAC)",
    "122943823878": "TAM Message Board",
}

REQUIRED_ENV_VARS = ("RC_SERVER", "RC_CLIENT_ID", "RC_CLIENT_SECRET", "RC_JWT", "GEMINI_API_KEY")
OPTIONAL_ENV_VARS = ("LOG_LEVEL", "PORT", "REPORTS_DIR", "LOGS_DIR", "GEMINI_MODEL")
SENSITIVE_MARKERS = ("SECRET", "JWT", "KEY")


def group_name_for(chat_id: str) -> str:
    return PRESET_CHAT_GROUPS.get(chat_id, f"Custom Group ({chat_id})")


def mask_sensitive(key: str, value: str) -> str:
    """Show only the first 8 characters of secret-looking values."""
    if any(marker in key for marker in SENSITIVE_MARKERS):
        return value[:8] + "***"
    return value


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    rc_server: str = ""
    rc_client_id: str = ""
    rc_client_secret: str = ""
    rc_jwt: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    host: str = "0.0.0.0"
    port: int = 3000
    reports_dir: str = "./reports"
    logs_dir: str = "./logs"
    log_level: str = "info"
    page_size: int = 250
    max_pages: int = 20
    max_attempts: int = 3
    initial_backoff_ms: int = 2000
    recent_days: int = 3

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, *, dotenv: bool = True) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ`` after loading .env)."""
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ
        return cls(
            rc_server=env.get("RC_SERVER", ""),
            rc_client_id=env.get("RC_CLIENT_ID", ""),
            rc_client_secret=env.get("RC_CLIENT_SECRET", ""),
            rc_jwt=env.get("RC_JWT", ""),
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            gemini_model=env.get("GEMINI_MODEL") or cls.gemini_model,
            host=env.get("HOST") or cls.host,
            port=_int_from_env(env, "PORT", cls.port),
            reports_dir=env.get("REPORTS_DIR") or cls.reports_dir,
            logs_dir=env.get("LOGS_DIR") or cls.logs_dir,
            log_level=(env.get("LOG_LEVEL") or cls.log_level).lower(),
            page_size=_int_from_env(env, "CHATDIGEST_PAGE_SIZE", cls.page_size),
            max_pages=_int_from_env(env, "CHATDIGEST_MAX_PAGES", cls.max_pages),
            max_attempts=_int_from_env(env, "CHATDIGEST_MAX_ATTEMPTS", cls.max_attempts),
            initial_backoff_ms=_int_from_env(env, "CHATDIGEST_INITIAL_BACKOFF_MS", cls.initial_backoff_ms),
            recent_days=_int_from_env(env, "CHATDIGEST_RECENT_DAYS", cls.recent_days),
        )
