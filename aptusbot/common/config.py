"""
Configuration management for the Aptus booking bot
"""
import os
import yaml
from pathlib import Path
from datetime import date, datetime, timedelta
from typing import Optional, List, Dict
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from dateutil import parser as date_parser
import pytz

from .schedule import PassSchedule, PassTime, DEFAULT_PASSES


class CredentialsConfig(BaseModel):
    model_config = {"frozen": True}

    username: str
    password: str


class PortalConfig(BaseModel):
    base_url: str
    booking_group_id: int = 2
    timeout: float = 30.0
    max_login_redirects: int = 30
    max_action_redirects: int = 10
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36"
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SyncConfig(BaseModel):
    weeks: int = Field(default=3, ge=1)
    poll_interval_seconds: int = Field(default=300, ge=1)
    login_retries: int = Field(default=3, ge=1)
    login_retry_delay_ms: int = 1000
    timezone: str = "Europe/Stockholm"
    notify_unseen: bool = False

    @property
    def tz(self):
        return pytz.timezone(self.timezone)

    def current_monday(self, now: Optional[datetime] = None) -> date:
        """Most recent Monday (today if it is Monday) in the configured timezone"""
        now = now or datetime.now(self.tz)
        if now.tzinfo is not None:
            now = now.astimezone(self.tz)
        today = now.date()
        return today - timedelta(days=today.weekday())


class ScheduleConfig(BaseModel):
    passes: Dict[int, PassTime] = Field(default_factory=lambda: dict(DEFAULT_PASSES))

    @field_validator("passes")
    @classmethod
    def _valid_table(cls, value: Dict[int, PassTime]) -> Dict[int, PassTime]:
        PassSchedule(value)
        return value

    def build(self) -> PassSchedule:
        return PassSchedule(self.passes)


class StorageConfig(BaseModel):
    path: Optional[str] = "aptusbot.sqlite"  # None keeps slots in memory


class WebhookConfig(BaseModel):
    enabled: bool = False
    url: Optional[str] = None


class TelegramConfig(BaseModel):
    enabled: bool = False
    bot_token: Optional[str] = None
    bot_username: Optional[str] = None
    chat_ids: List[str] = Field(default_factory=list)
    poll_timeout: int = 30


class NotificationsConfig(BaseModel):
    console: bool = True
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: Optional[str] = "aptusbot.log"


class Config(BaseModel):
    """Main configuration class"""
    credentials: CredentialsConfig
    portal: PortalConfig
    sync: SyncConfig = Field(default_factory=SyncConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from YAML file"""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls(**data)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables (and a .env file)"""
        load_dotenv()
        chat_ids = [c.strip() for c in os.environ.get("TELEGRAM_CHAT_ID", "").split(",") if c.strip()]
        bot_token = os.environ.get("TELEGRAM_BOT_TOKEN")
        return cls(
            credentials=CredentialsConfig(
                username=os.environ["APTUS_USERNAME"],
                password=os.environ["APTUS_PASSWORD"]
            ),
            portal=PortalConfig(
                base_url=os.environ["APTUS_BASE_URL"],
                booking_group_id=int(os.environ.get("APTUS_BOOKING_GROUP_ID", "2")),
            ),
            sync=SyncConfig(
                weeks=int(os.environ.get("APTUS_WEEKS", "3")),
                poll_interval_seconds=int(os.environ.get("APTUS_POLL_INTERVAL", "300")),
            ),
            storage=StorageConfig(
                path=os.environ.get("APTUS_DB_PATH", "aptusbot.sqlite"),
            ),
            notifications=NotificationsConfig(
                telegram=TelegramConfig(
                    enabled=bool(bot_token and chat_ids),
                    bot_token=bot_token,
                    bot_username=os.environ.get("TELEGRAM_BOT_USERNAME"),
                    chat_ids=chat_ids,
                ),
            ),
        )

    def to_yaml(self, path: str | Path):
        """Save configuration to YAML file"""
        path = Path(path)
        with open(path, 'w') as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)


def parse_date(value: str) -> date:
    """Parse a user-supplied date ("2025-06-02", "June 2 2025", ...)"""
    return date_parser.parse(value).date()


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from file or environment"""
    if path:
        return Config.from_yaml(path)

    # Try default locations
    default_paths = [
        Path("config/config.yaml"),
        Path("config.yaml"),
        Path.home() / ".aptusbot" / "config.yaml",
    ]

    for p in default_paths:
        if p.exists():
            return Config.from_yaml(p)

    # Fall back to environment variables
    try:
        return Config.from_env()
    except KeyError as e:
        raise RuntimeError(
            f"No config file found and missing environment variable: {e}. "
            f"Create config/config.yaml or set APTUS_* environment variables."
        )
