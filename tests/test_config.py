"""Tests for environment-driven settings."""

from datetime import timedelta

import pytest

from acars_bot.config import (
    DEFAULT_ADMIN_PASSWORD,
    BotSettings,
    SupabaseSettings,
    TrackerSettings,
    env_channel_id,
    get_secret,
)

ENV_VARS = [
    'DISCORD_BOT_TOKEN', 'DISCORD_TOKEN', 'GUILD_ID', 'FLIGHT_STATUS_CHANNEL_ID',
    'QUOTE_USER_IDS', 'QUOTE_INTERVAL_HOURS', 'ADMIN_PASSWORD', 'ALLOWED_ORIGINS', 'PORT',
    'SUPABASE_URL', 'SUPABASE_ANON_KEY', 'FLIGHT_POLL_INTERVAL_SECONDS',
    'FLIGHT_ALTITUDE_THRESHOLD_FT', 'FLIGHT_EMPTY_POLLS_BEFORE_RESET',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_tracker_defaults():
    settings = TrackerSettings()

    assert settings.poll_interval == timedelta(minutes=2)
    assert settings.heartbeat_interval == timedelta(minutes=2)
    assert settings.altitude_threshold_ft == 2000
    assert settings.speed_threshold_kts == 50
    assert settings.position_threshold_nm == 10
    assert settings.crash_descent_ft == 10000
    assert settings.crash_window == timedelta(seconds=60)
    assert settings.history_window == timedelta(seconds=120)
    assert settings.empty_polls_before_reset == 1


def test_tracker_from_env(monkeypatch):
    monkeypatch.setenv('FLIGHT_POLL_INTERVAL_SECONDS', '30')
    monkeypatch.setenv('FLIGHT_ALTITUDE_THRESHOLD_FT', 'lots')
    monkeypatch.setenv('FLIGHT_EMPTY_POLLS_BEFORE_RESET', '0')

    settings = TrackerSettings.from_env()

    assert settings.poll_interval == timedelta(seconds=30)
    assert settings.altitude_threshold_ft == 2000
    assert settings.empty_polls_before_reset == 1


def test_legacy_token_name(monkeypatch):
    monkeypatch.setenv('DISCORD_TOKEN', 'legacy')
    assert get_secret('DISCORD', 'BOT_TOKEN') == 'legacy'

    monkeypatch.setenv('DISCORD_BOT_TOKEN', 'current')
    assert get_secret('DISCORD', 'BOT_TOKEN') == 'current'


def test_env_channel_id(monkeypatch):
    monkeypatch.setenv('FLIGHT_STATUS_CHANNEL_ID', ' 1234567890 ')
    assert env_channel_id('FLIGHT_STATUS_CHANNEL_ID') == 1234567890

    monkeypatch.setenv('FLIGHT_STATUS_CHANNEL_ID', '#flights')
    assert env_channel_id('FLIGHT_STATUS_CHANNEL_ID') is None


def test_bot_settings_from_env(monkeypatch):
    monkeypatch.setenv('DISCORD_BOT_TOKEN', 'token')
    monkeypatch.setenv('QUOTE_USER_IDS', '111, 222,nope')
    monkeypatch.setenv('ALLOWED_ORIGINS', 'https://a.example.com, https://b.example.com')
    monkeypatch.setenv('SUPABASE_URL', 'https://project.supabase.co/')
    monkeypatch.setenv('SUPABASE_ANON_KEY', 'anon')
    monkeypatch.setenv('GUILD_ID', '42')

    settings = BotSettings.from_env()

    assert settings.token == 'token'
    assert settings.sync_guild_id == 42
    assert settings.quote_user_ids == [111, 222]
    assert settings.api.allowed_origins == ['https://a.example.com', 'https://b.example.com']
    assert settings.api.admin_password == DEFAULT_ADMIN_PASSWORD
    assert settings.api.port == 3000
    assert settings.supabase.url == 'https://project.supabase.co'
    assert settings.supabase.configured


def test_supabase_not_configured_without_key():
    assert not SupabaseSettings(url='https://project.supabase.co').configured
