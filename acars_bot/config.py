# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Configuration - environment variables, optionally loaded from a .env file.

Secrets are looked up as SECTION_KEY, so get_secret('DISCORD', 'BOT_TOKEN')
reads DISCORD_BOT_TOKEN. Numeric settings that fail to parse fall back to
their default with a warning rather than stopping the bot.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_PASSWORD = 'admin123'

# Older names still honoured, checked after the canonical one
LEGACY_SECRET_NAMES = {
    ('DISCORD', 'BOT_TOKEN'): ('DISCORD_TOKEN',),
}


def get_secret(section: str, key: str, default: Optional[str] = None) -> Optional[str]:
    """Look up SECTION_KEY (then any legacy alias) in the environment."""
    names = (f"{section}_{key}".upper(),) + LEGACY_SECRET_NAMES.get((section, key), ())
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return default


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using default {default}")
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def env_channel_id(name: str) -> Optional[int]:
    """Read a Discord snowflake; anything non-numeric is ignored."""
    raw = os.getenv(name)
    if raw and raw.strip().isdigit():
        return int(raw.strip())
    if raw:
        logger.warning(f"Invalid {name} (not numeric), ignoring")
    return None


def env_list(name: str) -> List[str]:
    raw = os.getenv(name, '')
    return [item.strip() for item in raw.split(',') if item.strip()]


@dataclass
class TrackerSettings:
    """Thresholds and cadence for the flight tracker."""
    poll_interval: timedelta = timedelta(minutes=2)
    heartbeat_interval: timedelta = timedelta(minutes=2)
    altitude_threshold_ft: float = 2000.0
    speed_threshold_kts: float = 50.0
    position_threshold_nm: float = 10.0
    crash_descent_ft: float = 10000.0
    crash_window: timedelta = timedelta(seconds=60)
    history_window: timedelta = timedelta(seconds=120)
    airborne_altitude_ft: float = 500.0
    climb_threshold_fpm: float = 500.0
    descent_threshold_fpm: float = -500.0
    cruise_band_fpm: float = 200.0
    empty_polls_before_reset: int = 1

    @classmethod
    def from_env(cls) -> 'TrackerSettings':
        defaults = cls()
        return cls(
            poll_interval=timedelta(seconds=env_float(
                'FLIGHT_POLL_INTERVAL_SECONDS', defaults.poll_interval.total_seconds())),
            heartbeat_interval=timedelta(seconds=env_float(
                'FLIGHT_HEARTBEAT_SECONDS', defaults.heartbeat_interval.total_seconds())),
            altitude_threshold_ft=env_float('FLIGHT_ALTITUDE_THRESHOLD_FT', defaults.altitude_threshold_ft),
            speed_threshold_kts=env_float('FLIGHT_SPEED_THRESHOLD_KTS', defaults.speed_threshold_kts),
            position_threshold_nm=env_float('FLIGHT_POSITION_THRESHOLD_NM', defaults.position_threshold_nm),
            crash_descent_ft=env_float('FLIGHT_CRASH_DESCENT_FT', defaults.crash_descent_ft),
            crash_window=timedelta(seconds=env_float(
                'FLIGHT_CRASH_WINDOW_SECONDS', defaults.crash_window.total_seconds())),
            history_window=timedelta(seconds=env_float(
                'FLIGHT_HISTORY_WINDOW_SECONDS', defaults.history_window.total_seconds())),
            airborne_altitude_ft=env_float('FLIGHT_AIRBORNE_ALTITUDE_FT', defaults.airborne_altitude_ft),
            empty_polls_before_reset=max(1, env_int(
                'FLIGHT_EMPTY_POLLS_BEFORE_RESET', defaults.empty_polls_before_reset)),
        )


@dataclass
class SupabaseSettings:
    url: Optional[str] = None
    anon_key: Optional[str] = None
    flights_table: str = 'active_flights'

    @property
    def configured(self) -> bool:
        return bool(self.url and self.anon_key)

    @classmethod
    def from_env(cls) -> 'SupabaseSettings':
        url = get_secret('SUPABASE', 'URL')
        return cls(
            url=url.rstrip('/') if url else None,
            anon_key=get_secret('SUPABASE', 'ANON_KEY'),
            flights_table=os.getenv('SUPABASE_FLIGHTS_TABLE', 'active_flights'),
        )


@dataclass
class ApiSettings:
    enabled: bool = True
    host: str = '0.0.0.0'
    port: int = 3000
    admin_password: str = DEFAULT_ADMIN_PASSWORD
    announcement_channel_id: Optional[int] = None
    allowed_origins: List[str] = field(default_factory=lambda: ['http://localhost:3000'])

    @classmethod
    def from_env(cls) -> 'ApiSettings':
        password = get_secret('ADMIN', 'PASSWORD')
        if not password:
            logger.warning("ADMIN_PASSWORD not set, API is using the default password")
            password = DEFAULT_ADMIN_PASSWORD
        return cls(
            enabled=env_bool('API_ENABLED', True),
            host=os.getenv('API_HOST', '0.0.0.0'),
            port=env_int('PORT', 3000),
            admin_password=password,
            announcement_channel_id=env_channel_id('ANNOUNCEMENT_CHANNEL_ID'),
            allowed_origins=env_list('ALLOWED_ORIGINS') or ['http://localhost:3000'],
        )


@dataclass
class BotSettings:
    """Everything the bot needs at startup."""
    token: Optional[str] = None
    command_prefix: str = '!'
    sync_guild_id: Optional[int] = None
    flight_channel_id: Optional[int] = None
    dm_log_channel_id: Optional[int] = None
    quote_user_ids: List[int] = field(default_factory=list)
    quote_interval: timedelta = timedelta(hours=24)
    status_rotation_interval: timedelta = timedelta(minutes=5)
    tracker: TrackerSettings = field(default_factory=TrackerSettings)
    supabase: SupabaseSettings = field(default_factory=SupabaseSettings)
    api: ApiSettings = field(default_factory=ApiSettings)

    @classmethod
    def from_env(cls) -> 'BotSettings':
        quote_users = []
        for raw in env_list('QUOTE_USER_IDS'):
            if raw.isdigit():
                quote_users.append(int(raw))
            else:
                logger.warning(f"Ignoring invalid QUOTE_USER_IDS entry {raw!r}")

        return cls(
            token=get_secret('DISCORD', 'BOT_TOKEN'),
            command_prefix=os.getenv('COMMAND_PREFIX', '!'),
            sync_guild_id=env_channel_id('GUILD_ID'),
            flight_channel_id=env_channel_id('FLIGHT_STATUS_CHANNEL_ID'),
            dm_log_channel_id=env_channel_id('DM_LOG_CHANNEL_ID'),
            quote_user_ids=quote_users,
            quote_interval=timedelta(hours=env_float('QUOTE_INTERVAL_HOURS', 24)),
            status_rotation_interval=timedelta(minutes=env_float('STATUS_ROTATION_MINUTES', 5)),
            tracker=TrackerSettings.from_env(),
            supabase=SupabaseSettings.from_env(),
            api=ApiSettings.from_env(),
        )
