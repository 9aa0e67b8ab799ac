"""
Tests for configuration management (aptusbot/common/config.py)
"""
import pytest
import tempfile
import os
from datetime import date, datetime

import pytz

from aptusbot.common.config import (
    Config,
    CredentialsConfig,
    PortalConfig,
    SyncConfig,
    ScheduleConfig,
    WebhookConfig,
    TelegramConfig,
    NotificationsConfig,
    load_config,
    parse_date,
)
from aptusbot.common.schedule import PassTime

ENV_KEYS = [
    "APTUS_USERNAME", "APTUS_PASSWORD", "APTUS_BASE_URL", "APTUS_BOOKING_GROUP_ID",
    "APTUS_WEEKS", "APTUS_POLL_INTERVAL", "APTUS_DB_PATH",
    "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "TELEGRAM_BOT_USERNAME",
]


@pytest.fixture()
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestCredentialsConfig:
    def test_create_credentials(self):
        creds = CredentialsConfig(username="alice", password="secret123")
        assert creds.username == "alice"
        assert creds.password == "secret123"

    def test_credentials_required_fields(self):
        with pytest.raises(Exception):
            CredentialsConfig(username="alice")

    def test_credentials_are_immutable(self):
        creds = CredentialsConfig(username="alice", password="secret123")
        with pytest.raises(Exception):
            creds.password = "changed"


class TestPortalConfig:
    def test_defaults(self):
        portal = PortalConfig(base_url="https://aptus.test")
        assert portal.booking_group_id == 2
        assert portal.max_login_redirects == 30
        assert portal.max_action_redirects == 10
        assert "Chrome" in portal.user_agent

    def test_trailing_slash_stripped(self):
        assert PortalConfig(base_url="https://aptus.test/").base_url == "https://aptus.test"


class TestSyncConfig:
    def test_defaults(self):
        sync = SyncConfig()
        assert sync.weeks == 3
        assert sync.poll_interval_seconds == 300
        assert sync.login_retries == 3
        assert sync.login_retry_delay_ms == 1000
        assert sync.notify_unseen is False

    def test_weeks_must_be_positive(self):
        with pytest.raises(Exception):
            SyncConfig(weeks=0)

    def test_tz(self):
        assert SyncConfig(timezone="UTC").tz == pytz.UTC

    @pytest.mark.parametrize("now, expected", [
        (datetime(2025, 6, 2, 9, 0), date(2025, 6, 2)),    # Monday
        (datetime(2025, 6, 5, 23, 0), date(2025, 6, 2)),   # Thursday
        (datetime(2025, 6, 8, 12, 0), date(2025, 6, 2)),   # Sunday
    ])
    def test_current_monday(self, now, expected):
        assert SyncConfig().current_monday(now) == expected

    def test_current_monday_uses_configured_timezone(self):
        # 23:30 UTC Sunday is already Monday in Stockholm
        now = pytz.UTC.localize(datetime(2025, 6, 8, 23, 30))
        assert SyncConfig(timezone="Europe/Stockholm").current_monday(now) == date(2025, 6, 9)


class TestScheduleConfig:
    def test_default_table(self):
        schedule = ScheduleConfig().build()
        assert len(schedule) == 8
        assert schedule.pass_for_end_time("12:00") == 1

    def test_custom_table(self):
        schedule = ScheduleConfig(passes={1: PassTime(start="08:00", end="09:00")}).build()
        assert schedule.pass_numbers == [1]

    def test_out_of_range_pass_rejected_at_load(self):
        with pytest.raises(ValueError):
            ScheduleConfig(passes={8: PassTime(start="22:00", end="23:00")})


class TestNotificationsConfig:
    def test_defaults(self):
        config = NotificationsConfig()
        assert config.console is True
        assert config.webhook.enabled is False
        assert config.telegram.enabled is False
        assert config.telegram.chat_ids == []

    def test_telegram_config(self):
        telegram = TelegramConfig(enabled=True, bot_token="123:abc", chat_ids=["1", "2"])
        assert telegram.poll_timeout == 30
        assert telegram.chat_ids == ["1", "2"]

    def test_webhook_config(self):
        webhook = WebhookConfig(enabled=True, url="https://hooks.example.com/x")
        assert webhook.url == "https://hooks.example.com/x"


class TestConfig:
    def test_create_minimal_config(self):
        config = Config(
            credentials=CredentialsConfig(username="alice", password="secret"),
            portal=PortalConfig(base_url="https://aptus.test"),
        )
        assert config.sync.weeks == 3
        assert config.storage.path == "aptusbot.sqlite"
        assert config.logging.level == "INFO"

    def test_from_yaml_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml("/nonexistent/path/config.yaml")

    def test_from_yaml_valid_file(self):
        yaml_content = """
credentials:
  username: alice
  password: secret123
portal:
  base_url: "https://aptus.test/"
  booking_group_id: 5
sync:
  weeks: 4
  timezone: "UTC"
storage:
  path: null
notifications:
  telegram:
    enabled: true
    bot_token: "123:abc"
    chat_ids: ["42"]
"""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(yaml_content)
            f.flush()
            try:
                config = Config.from_yaml(f.name)
                assert config.credentials.username == "alice"
                assert config.portal.base_url == "https://aptus.test"
                assert config.portal.booking_group_id == 5
                assert config.sync.weeks == 4
                assert config.storage.path is None
                assert config.notifications.telegram.chat_ids == ["42"]
            finally:
                os.unlink(f.name)

    def test_from_env(self, clean_env):
        clean_env.setenv("APTUS_USERNAME", "env-user")
        clean_env.setenv("APTUS_PASSWORD", "envpassword")
        clean_env.setenv("APTUS_BASE_URL", "https://aptus.test")
        clean_env.setenv("APTUS_BOOKING_GROUP_ID", "7")
        clean_env.setenv("APTUS_WEEKS", "4")

        config = Config.from_env()
        assert config.credentials.username == "env-user"
        assert config.credentials.password == "envpassword"
        assert config.portal.booking_group_id == 7
        assert config.sync.weeks == 4
        assert config.notifications.telegram.enabled is False

    def test_from_env_with_telegram(self, clean_env):
        clean_env.setenv("APTUS_USERNAME", "env-user")
        clean_env.setenv("APTUS_PASSWORD", "envpassword")
        clean_env.setenv("APTUS_BASE_URL", "https://aptus.test")
        clean_env.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        clean_env.setenv("TELEGRAM_CHAT_ID", "11, 22,")

        config = Config.from_env()
        assert config.notifications.telegram.enabled is True
        assert config.notifications.telegram.chat_ids == ["11", "22"]

    def test_from_env_missing_required(self, clean_env):
        with pytest.raises(KeyError):
            Config.from_env()

    def test_to_yaml(self):
        config = Config(
            credentials=CredentialsConfig(username="alice", password="secret"),
            portal=PortalConfig(base_url="https://aptus.test"),
        )
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            try:
                config.to_yaml(f.name)
                loaded = Config.from_yaml(f.name)
                assert loaded.credentials.username == config.credentials.username
                assert loaded.portal.base_url == config.portal.base_url
                assert loaded.schedule.build().label(0) == "07:00 - 10:00"
            finally:
                os.unlink(f.name)


class TestParseDate:
    def test_iso(self):
        assert parse_date("2025-06-02") == date(2025, 6, 2)

    def test_free_form(self):
        assert parse_date("June 2 2025") == date(2025, 6, 2)


class TestLoadConfig:
    def test_load_config_with_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "credentials:\n  username: load\n  password: pw\n"
            "portal:\n  base_url: https://aptus.test\n"
        )
        config = load_config(str(path))
        assert config.credentials.username == "load"

    def test_load_config_falls_back_to_env(self, clean_env, tmp_path):
        # Clear default paths
        clean_env.chdir(tmp_path)
        clean_env.setenv("HOME", str(tmp_path))
        clean_env.setenv("APTUS_USERNAME", "fallback")
        clean_env.setenv("APTUS_PASSWORD", "pw")
        clean_env.setenv("APTUS_BASE_URL", "https://aptus.test")

        config = load_config()
        assert config.credentials.username == "fallback"

    def test_load_config_no_config_raises_error(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        clean_env.setenv("HOME", str(tmp_path))

        with pytest.raises(RuntimeError, match="No config file found"):
            load_config()
