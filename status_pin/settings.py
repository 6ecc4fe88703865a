from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    openclaw_home: Path = Field(
        default_factory=lambda: Path.home() / ".openclaw",
        alias="OPENCLAW_HOME",
        description="OpenClaw home directory holding agents/ and openclaw.json",
    )
    agent_id: str = Field(
        "main",
        alias="STATUS_PIN_AGENT_ID",
        description="Agent whose sessions are monitored (matches agent:<id>:*)",
    )

    # Update cycle
    cooldown_ms: int = Field(
        3000,
        alias="STATUS_PIN_COOLDOWN_MS",
        description="Minimum interval between two publish passes",
    )
    trailing_update: bool = Field(
        False,
        alias="STATUS_PIN_TRAILING_UPDATE",
        description="Schedule one catch-up pass when a trigger is dropped by the cooldown",
    )

    # Session overrides
    context_window_override: Optional[int] = Field(
        default=None,
        alias="STATUS_PIN_CONTEXT_WINDOW",
        description="Context window in tokens; auto-detected from OpenRouter when unset",
    )
    chat_id_override: Optional[str] = Field(
        default=None,
        alias="STATUS_PIN_CHAT_ID",
        description="Target chat id; auto-detected from the session delivery target when unset",
    )
    delivery_channel: str = Field(
        "telegram",
        alias="STATUS_PIN_CHANNEL",
        description="Channel type expected in deliveryContext.to, e.g. 'telegram:123'",
    )

    state_file: Optional[Path] = Field(
        default=None,
        alias="STATUS_PIN_STATE_FILE",
        description="Where the pinned message record is persisted",
    )

    # Watchers
    registry_debounce_ms: int = Field(1000, alias="STATUS_PIN_REGISTRY_DEBOUNCE_MS")
    log_poll_interval: float = Field(
        5.0,
        alias="STATUS_PIN_LOG_POLL_INTERVAL",
        description="Seconds between existence checks while the session log is missing",
    )
    watcher_restart_delay: float = Field(
        5.0,
        alias="STATUS_PIN_WATCHER_RESTART_DELAY",
        description="Seconds to wait before reattaching a failed watcher",
    )

    # Credentials
    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    openrouter_api_key: Optional[str] = Field(default=None, alias="OPENROUTER_API_KEY")

    # Upstream endpoints
    telegram_api_base: str = Field("https://api.telegram.org", alias="TELEGRAM_API_BASE")
    openrouter_api_base: str = Field(
        "https://openrouter.ai/api/v1", alias="OPENROUTER_API_BASE"
    )
    http_timeout: float = Field(30.0, alias="STATUS_PIN_HTTP_TIMEOUT")

    # Application log level for our status_pin logger.
    # Can be overridden via LOG_LEVEL env var, e.g. "DEBUG" while debugging.
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_timezone: Optional[str] = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'Asia/Shanghai'. Defaults to system local time.",
    )
    log_dir: Path = Field(Path("logs"), alias="LOG_DIR")

    @field_validator("openclaw_home", "state_file", "log_dir", mode="after")
    @classmethod
    def _expand_home(cls, value):
        return value.expanduser() if value is not None else value

    @field_validator("context_window_override", mode="before")
    @classmethod
    def _empty_or_zero_is_unset(cls, value):
        if value in (None, "", "0", 0):
            return None
        return value

    @field_validator("chat_id_override", "telegram_bot_token", "openrouter_api_key", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def sessions_file(self) -> Path:
        return self.openclaw_home / "agents" / self.agent_id / "sessions" / "sessions.json"

    @property
    def openclaw_config_file(self) -> Path:
        return self.openclaw_home / "openclaw.json"

    @property
    def auth_profiles_file(self) -> Path:
        return self.openclaw_home / "agents" / self.agent_id / "agent" / "auth-profiles.json"

    @property
    def resolved_state_file(self) -> Path:
        if self.state_file is not None:
            return self.state_file
        return self.openclaw_home / "status-pin" / "pin-state.json"


settings = Settings()  # Reads from environment if available
