"""Pydantic settings loaded from .env, with conf.json overlay."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent

# ---------------------------------------------------------------------------
# conf.json: runtime config (separate from .env secrets)
# ---------------------------------------------------------------------------


def get_switchai_dir() -> Path:
    """Resolve the data directory. SWITCHAI_DIR env var or ~/.config/switchai."""
    d = os.environ.get("SWITCHAI_DIR", "")
    return Path(d).expanduser() if d else Path.home() / ".config" / "switchai"


class SwitchaiConfig(BaseModel):
    database_url: str = ""
    log_level: str = ""
    log_file: str = ""
    openrouter_base_url: str = ""
    title_model: str = ""
    summary_model: str = ""
    max_history_messages: int | None = None
    cors_allow_all_origins: bool | None = None  # None = use Settings default


_logger = logging.getLogger(__name__)


def load_conf() -> SwitchaiConfig:
    """Load conf.json from the data directory."""
    conf_path = get_switchai_dir() / "conf.json"
    if conf_path.exists():
        try:
            return SwitchaiConfig.model_validate_json(conf_path.read_text())
        except Exception:
            _logger.warning("Failed to parse %s, using defaults", conf_path, exc_info=True)
    return SwitchaiConfig()


def save_conf(config: SwitchaiConfig) -> None:
    """Save conf.json to the data directory."""
    switchai_dir = get_switchai_dir()
    switchai_dir.mkdir(parents=True, exist_ok=True)
    (switchai_dir / "conf.json").write_text(config.model_dump_json(indent=2))


# ---------------------------------------------------------------------------
# Secret auto-generation
# ---------------------------------------------------------------------------


def _ensure_secrets(env_file: Path) -> None:
    """Generate FIELD_ENCRYPTION_KEY if missing and append it to .env."""
    from cryptography.fernet import Fernet

    if os.environ.get("FIELD_ENCRYPTION_KEY"):
        return

    key = Fernet.generate_key().decode()
    os.environ["FIELD_ENCRYPTION_KEY"] = key
    env_file.parent.mkdir(parents=True, exist_ok=True)
    with open(env_file, "a") as f:
        f.write(f"\nFIELD_ENCRYPTION_KEY={key}\n")


# ---------------------------------------------------------------------------
# Model parameter ranges (validated by services.llm before any provider call)
# ---------------------------------------------------------------------------


class ParameterRange(BaseModel):
    min: float
    max: float
    default: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


MODEL_PARAMETER_RANGES: dict[str, ParameterRange] = {
    "temperature": ParameterRange(min=0.0, max=2.0, default=0.7),
    "max_tokens": ParameterRange(min=1, max=8192, default=2048),
    "top_p": ParameterRange(min=0.0, max=1.0, default=1.0),
    "frequency_penalty": ParameterRange(min=-2.0, max=2.0, default=0.0),
    "presence_penalty": ParameterRange(min=-2.0, max=2.0, default=0.0),
}

# ---------------------------------------------------------------------------
# Bootstrap: load .env, generate secrets, load conf.json
# ---------------------------------------------------------------------------

_env_file = BASE_DIR.parent / ".env"
load_dotenv(_env_file)
_ensure_secrets(_env_file)
_conf = load_conf()

# ---------------------------------------------------------------------------
# Settings (pydantic-settings): .env / env vars override conf.json defaults
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    DEBUG: bool = False

    DATABASE_URL: str = _conf.database_url or f"sqlite:///{BASE_DIR / 'db.sqlite3'}"
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 30.0

    FIELD_ENCRYPTION_KEY: str = ""

    CORS_ALLOW_ALL_ORIGINS: bool = (
        _conf.cors_allow_all_origins if _conf.cors_allow_all_origins is not None else True
    )

    LOG_LEVEL: str = _conf.log_level or "INFO"
    LOG_FILE: str = _conf.log_file or ""
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    OPENROUTER_BASE_URL: str = _conf.openrouter_base_url or "https://openrouter.ai/api/v1"
    PROVIDER_TIMEOUT_SECONDS: float = 60.0

    TITLE_MODEL: str = _conf.title_model or "anthropic/claude-3.5-sonnet"
    SUMMARY_MODEL: str = _conf.summary_model or "anthropic/claude-3.5-sonnet"

    MAX_HISTORY_MESSAGES: int = (
        _conf.max_history_messages if _conf.max_history_messages is not None else 50
    )
    MAX_MESSAGE_LENGTH: int = 10_000

    model_config = ConfigDict(
        env_file=str(BASE_DIR.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
