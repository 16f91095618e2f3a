"""Shared fixtures and Discord fakes for the ACARS Bot test suite."""

from datetime import datetime, timedelta, timezone

import pytest

from acars_bot.config import TrackerSettings
from acars_bot.tracking import FlightEventDetector, FlightSnapshot

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds):
    """Timestamp `seconds` after T0."""
    return T0 + timedelta(seconds=seconds)


def snap(flight_id='ACA101', **fields):
    return FlightSnapshot(id=flight_id, **fields)


class FakeChannel:
    def __init__(self, channel_id=1, fail=False):
        self.id = channel_id
        self.fail = fail
        self.sent = []

    async def send(self, content=None, embed=None, **kwargs):
        if self.fail:
            raise RuntimeError('channel unavailable')
        self.sent.append({'content': content, 'embed': embed})
        return self.sent[-1]


class FakeUser:
    def __init__(self, user_id, bot=False, name='pilot'):
        self.id = user_id
        self.bot = bot
        self.name = name
        self.sent = []

    async def send(self, content=None, embed=None, **kwargs):
        self.sent.append({'content': content, 'embed': embed})
        return self.sent[-1]

    def __str__(self):
        return self.name


class FakeBot:
    """Just enough of commands.Bot for services and notifiers."""

    def __init__(self, channels=None, users=None):
        self.channels = {c.id: c for c in (channels or [])}
        self.users = {u.id: u for u in (users or [])}
        self.fetched_channels = []

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def fetch_channel(self, channel_id):
        self.fetched_channels.append(channel_id)
        raise LookupError(f'unknown channel {channel_id}')

    def get_user(self, user_id):
        return self.users.get(user_id)

    async def fetch_user(self, user_id):
        raise LookupError(f'unknown user {user_id}')


@pytest.fixture
def settings():
    return TrackerSettings()


@pytest.fixture
def detector(settings):
    return FlightEventDetector(settings)
