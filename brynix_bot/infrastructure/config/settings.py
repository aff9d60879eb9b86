"""
Settings Module - Centralized Configuration Management
=======================================================

ARCHITECTURAL DECISION:
- All configuration is loaded from environment variables (no hardcoded secrets)
- Settings are immutable dataclasses grouped per external collaborator
- Single source of truth for all configurable values

The bot runs as a long-lived server; there are no CLI flags.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from typing import Tuple

# Load .env file if present (development convenience)
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # python-dotenv is optional


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _first_env(*names: str, default: str = "") -> str:
    """Return the first non-empty variable among several accepted names."""
    for name in names:
        value = os.getenv(name, "")
        if value:
            return value
    return default


@dataclass(frozen=True)
class WhatsAppSettings:
    """WhatsApp Web client and supervisor settings."""

    # Persistent Chrome profile keeps the pairing between restarts
    session_path: Path = field(
        default_factory=lambda: Path(os.getenv("WA_SESSION_PATH", "/var/data/wa-session"))
    )

    # Must be False the first time if the QR is scanned from the browser window;
    # the QR endpoint works in both modes.
    headless: bool = field(default_factory=lambda: _env_bool("WA_HEADLESS", True))

    # Supervisor timings (seconds)
    reinit_cooldown: int = field(default_factory=lambda: _env_int("WA_REINIT_COOLDOWN", 30))
    watchdog_interval: int = field(default_factory=lambda: _env_int("WA_WATCHDOG_INTERVAL", 60))

    # How often the browser is scanned for unread chats
    poll_interval: int = field(default_factory=lambda: _env_int("WA_POLL_INTERVAL", 3))
    page_load_timeout: int = 60


@dataclass(frozen=True)
class BotSettings:
    """Conversation behaviour."""

    aliases: Tuple[str, ...] = field(
        default_factory=lambda: tuple(
            dict.fromkeys(
                a.strip().lower()
                for a in os.getenv("BOT_ALIASES", "alice,bot").split(",")
                if a.strip()
            )
        )
    )

    # Route slash commands in 1:1 chats through the group command path
    private_commands: bool = field(default_factory=lambda: _env_bool("BOT_PRIVATE_COMMANDS", False))

    # WhatsApp rejects very long bodies; replies are split above this size
    reply_chunk_size: int = field(default_factory=lambda: _env_int("REPLY_CHUNK_SIZE", 3500))

    preview_limit: int = 8
    summary_preview_limit: int = 10


@dataclass(frozen=True)
class LLMSettings:
    """OpenAI-compatible chat completion settings for 1:1 replies."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    api_url: str = field(
        default_factory=lambda: os.getenv(
            "AI_API_URL", "https://api.openai.com/v1/chat/completions"
        )
    )
    model: str = field(default_factory=lambda: os.getenv("AI_MODEL", "gpt-4o-mini").strip())

    temperature: float = 0.5
    max_tokens: int = 550
    timeout_seconds: int = 30


@dataclass(frozen=True)
class GoogleSettings:
    """Google Sheets (service account) and Drive (OAuth) credentials."""

    service_account_json: str = field(default_factory=lambda: os.getenv("GOOGLE_SA_JSON", ""))

    oauth_client_id: str = field(
        default_factory=lambda: _first_env("GOOGLE_OAUTH_CLIENT_ID", "DRIVE_CLIENT_ID")
    )
    oauth_client_secret: str = field(
        default_factory=lambda: _first_env("GOOGLE_OAUTH_CLIENT_SECRET", "DRIVE_CLIENT_SECRET")
    )
    oauth_refresh_token: str = field(
        default_factory=lambda: _first_env("GOOGLE_OAUTH_REFRESH_TOKEN", "DRIVE_REFRESH_TOKEN")
    )
    drive_root_folder_id: str = field(
        default_factory=lambda: _first_env("GOOGLE_DRIVE_ROOT_FOLDER_ID", "DRIVE_ROOT_FOLDER_ID")
    )

    token_uri: str = "https://oauth2.googleapis.com/token"
    project_docs_folder: str = "Documentos de Projeto"

    @property
    def has_drive_oauth(self) -> bool:
        return bool(
            self.oauth_client_id
            and self.oauth_client_secret
            and self.oauth_refresh_token
            and self.drive_root_folder_id
        )


@dataclass(frozen=True)
class TTSSettings:
    """Google Cloud Text-to-Speech voice settings."""

    voice: str = field(default_factory=lambda: os.getenv("TTS_VOICE", "pt-BR-Neural2-A").strip())
    speaking_rate: float = field(default_factory=lambda: float(os.getenv("TTS_SPEAKING_RATE", "1.0")))
    pitch: float = field(default_factory=lambda: float(os.getenv("TTS_PITCH", "0.0")))
    api_url: str = "https://texttospeech.googleapis.com/v1/text:synthesize"


@dataclass(frozen=True)
class AlertSettings:
    """Optional outbound webhook (e.g. Zapier) for lifecycle alerts."""

    webhook_url: str = field(default_factory=lambda: os.getenv("ALERT_WEBHOOK_URL", ""))
    timeout_seconds: int = 10


@dataclass(frozen=True)
class StorageSettings:
    """Conversation link persistence."""

    # .json -> JSON document, .db/.sqlite -> SQLite table, empty -> memory only
    links_db_path: str = field(
        default_factory=lambda: os.getenv("LINKS_DB_PATH", "/var/data/links-db.json")
    )


@dataclass(frozen=True)
class Settings:
    """
    Root settings container - Single source of truth for all configuration.

    Usage:
        from brynix_bot.infrastructure.config import get_settings
        settings = get_settings()
        print(settings.llm.model)
    """

    whatsapp: WhatsAppSettings = field(default_factory=WhatsAppSettings)
    bot: BotSettings = field(default_factory=BotSettings)
    llm: LLMSettings = field(default_factory=LLMSettings)
    google: GoogleSettings = field(default_factory=GoogleSettings)
    tts: TTSSettings = field(default_factory=TTSSettings)
    alerts: AlertSettings = field(default_factory=AlertSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("PORT", 3000))

    def validate(self) -> list[str]:
        """
        Validate settings and return list of warnings/errors.
        Returns empty list if all settings are valid.
        """
        issues = []

        if not self.llm.api_key:
            issues.append(
                "WARNING: OPENAI_API_KEY not set. "
                "Private chats will only get the fallback reply."
            )

        if not self.google.service_account_json:
            issues.append(
                "WARNING: GOOGLE_SA_JSON not set. "
                "Project summaries and text-to-speech are unavailable."
            )

        if not self.google.has_drive_oauth:
            issues.append(
                "WARNING: Drive OAuth variables incomplete. "
                "Attachments will not be saved."
            )

        if not self.alerts.webhook_url:
            issues.append("INFO: ALERT_WEBHOOK_URL not set. Alerts are only logged.")

        return issues


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get singleton Settings instance.
    Cached to ensure consistent settings throughout application lifecycle.
    """
    return Settings()
