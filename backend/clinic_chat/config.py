"""Clinic chat application configuration.

Loads settings from two YAML files:
  * clinic_chat.settings.yaml  : non-secret configuration
  * clinic_chat.secrets.yaml   : credentials (never committed)

The resulting ``ClinicChatConfig`` is passed explicitly to every service
constructor; nothing in the application reads environment variables or
module-level configuration at call time.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("clinic_chat.settings.yaml")
SECRETS_FILE  = Path("clinic_chat.secrets.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    try:
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return data


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class ApiKeySecret(BaseModel):
    api_key: Optional[str] = None


class GoogleOAuthSecrets(BaseModel):
    client_id:     Optional[str] = None
    client_secret: Optional[str] = None


class Secrets(BaseModel):
    gemini:    ApiKeySecret       = Field(default_factory=ApiKeySecret)
    openai:    ApiKeySecret       = Field(default_factory=ApiKeySecret)
    anthropic: ApiKeySecret       = Field(default_factory=ApiKeySecret)
    google:    GoogleOAuthSecrets = Field(default_factory=GoogleOAuthSecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 8000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class LoggingSettings(BaseModel):
    level: str = "info"


class StoreSettings(BaseModel):
    db_path: str = "clinic_chat.duckdb"


class ChatSettings(BaseModel):
    message_window:       int = Field(default=100, ge=1)
    invite_code_length:   int = Field(default=6, ge=4, le=12)
    invite_code_attempts: int = Field(default=5, ge=1)


class SummarySettings(BaseModel):
    """Configuration for the conversation summarizer."""
    enabled:         bool                                   = True
    provider:        Literal["gemini", "openai", "anthropic"] = "gemini"
    model:           Optional[str]                          = None
    min_messages:    int                                    = Field(default=3, ge=1)
    max_messages:    int                                    = Field(default=50, ge=1)
    timeout_seconds: float                                  = Field(default=60, gt=0)
    language:        str                                    = "Japanese"


class NotifierSettings(BaseModel):
    """Best-effort message logging to an external HTTP endpoint."""
    enabled:         bool          = False
    endpoint_url:    Optional[str] = None
    timeout_seconds: float         = Field(default=10, gt=0)

    @model_validator(mode="after")
    def _require_url_when_enabled(self) -> "NotifierSettings":
        if self.enabled and not self.endpoint_url:
            raise ValueError("notifier.endpoint_url is required when the notifier is enabled")
        return self


class GoogleAuthSettings(BaseModel):
    enabled: bool = True


class AuthSettings(BaseModel):
    google: GoogleAuthSettings = Field(default_factory=GoogleAuthSettings)


class ImageSettings(BaseModel):
    max_width:        int = Field(default=400, ge=16)
    jpeg_quality:     int = Field(default=60, ge=1, le=95)
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)


class ClinicChatConfig(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)
    store:    StoreSettings    = Field(default_factory=StoreSettings)
    chat:     ChatSettings     = Field(default_factory=ChatSettings)
    summary:  SummarySettings  = Field(default_factory=SummarySettings)
    notifier: NotifierSettings = Field(default_factory=NotifierSettings)
    auth:     AuthSettings     = Field(default_factory=AuthSettings)
    images:   ImageSettings    = Field(default_factory=ImageSettings)
    secrets:  Secrets          = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def _resolve_db_path(db_path: str, settings_dir: Path) -> str:
    if db_path == ":memory:":
        return db_path
    path = Path(db_path).expanduser()
    if path.is_absolute():
        return str(path)
    return str(settings_dir / path)


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> ClinicChatConfig:
    """Load and merge settings + secrets into a single *ClinicChatConfig*.

    Raises:
        ConfigurationError: If a file is malformed or fails validation.
    """
    settings_path = Path(settings_path) if settings_path else SETTINGS_FILE
    secrets_path = Path(secrets_path) if secrets_path else settings_path.with_name(SECRETS_FILE.name)

    settings_data = _load_yaml(settings_path)
    secrets_data  = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in ClinicChatConfig
    settings_data["secrets"] = secrets_data

    try:
        config = ClinicChatConfig(**settings_data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    config.store.db_path = _resolve_db_path(
        config.store.db_path, settings_path.resolve().parent
    )
    logger.info(
        "Settings loaded (server=%s:%s, store=%s, summary.provider=%s, notifier.enabled=%s)",
        config.server.host,
        config.server.port,
        config.store.db_path,
        config.summary.provider,
        config.notifier.enabled,
    )
    return config
