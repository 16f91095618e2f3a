# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Announcement service - styled announcement embeds for any text channel."""

import logging
from datetime import datetime, timezone

import discord

from ..utils.errors import AnnouncementError

logger = logging.getLogger(__name__)

DEFAULT_COLOR = 0x5865F2  # Discord blurple

# Offered by the /announcement color autocomplete
ANNOUNCEMENT_COLORS = [
    {'name': '🔵 Discord Blurple', 'value': '5865F2'},
    {'name': '🟢 Green', 'value': '57F287'},
    {'name': '🔴 Red', 'value': 'ED4245'},
    {'name': '🟡 Yellow', 'value': 'FEE75C'},
    {'name': '🟣 Purple', 'value': 'EB459E'},
    {'name': '⚫ White', 'value': 'FFFFFF'},
    {'name': '⚪ Light Gray', 'value': 'B9BBBE'},
    {'name': '🔵 Blue', 'value': '3498DB'},
    {'name': '🟠 Orange', 'value': 'E67E22'},
    {'name': '🔵 Cyan', 'value': '1ABC9C'},
    {'name': '🟢 Lime', 'value': '2ECC71'},
    {'name': '🔴 Dark Red', 'value': 'C0392B'},
    {'name': '🟣 Pink', 'value': 'E91E63'},
    {'name': '🟡 Gold', 'value': 'F1C40F'},
    {'name': '🔵 Navy', 'value': '34495E'},
    {'name': '🟢 Emerald', 'value': '10B981'},
    {'name': '🔴 Crimson', 'value': 'DC143C'},
    {'name': '🟣 Lavender', 'value': '9B59B6'},
    {'name': '🟡 Amber', 'value': 'FFBF00'},
    {'name': '🔵 Sky Blue', 'value': '87CEEB'},
    {'name': '🟢 Mint', 'value': '98FB98'},
    {'name': '🔴 Rose', 'value': 'FF69B4'},
    {'name': '🟣 Magenta', 'value': 'FF00FF'},
    {'name': '⚫ Black', 'value': '000000'},
    {'name': '⚪ Silver', 'value': 'C0C0C0'},
]

MAX_CHOICES = 25


def parse_color(value) -> int:
    """
    Parse an embed color.

    Accepts ints, '#RRGGBB', '0xRRGGBB' and bare 'RRGGBB'. Anything else
    (or an out-of-range value) falls back to blurple.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_COLOR
    if isinstance(value, int):
        return value if 0 <= value <= 0xFFFFFF else DEFAULT_COLOR

    text = str(value).strip().lower()
    if text.startswith('#'):
        text = text[1:]
    elif text.startswith('0x'):
        text = text[2:]
    if not text:
        return DEFAULT_COLOR
    try:
        color = int(text, 16)
    except ValueError:
        return DEFAULT_COLOR
    return color if color <= 0xFFFFFF else DEFAULT_COLOR


def color_choices(search: str):
    """
    Autocomplete choices for the color option.

    A 3-6 digit hex string not already in the list is offered first as a
    custom color. Discord caps the list at 25 entries.
    """
    term = (search or '').strip().lstrip('#').lower()
    filtered = [
        c for c in ANNOUNCEMENT_COLORS
        if term in c['name'].lower() or term in c['value'].lower()
    ]

    is_hex = 3 <= len(term) <= 6 and all(ch in '0123456789abcdef' for ch in term)
    if is_hex and not any(c['value'].lower() == term for c in ANNOUNCEMENT_COLORS):
        filtered.insert(0, {'name': f"🎨 Custom: #{term.upper()}", 'value': term.upper()})

    return filtered[:MAX_CHOICES]


def build_announcement_embed(title: str, message: str, color=None) -> discord.Embed:
    embed = discord.Embed(
        title=title,
        description=message,
        color=parse_color(color),
        timestamp=datetime.now(timezone.utc),
    )
    embed.set_footer(text='ACARS Bot Announcement')
    return embed


class AnnouncementService:
    """Sends announcements through the bot's gateway connection."""

    def __init__(self, bot):
        self.bot = bot

    async def send_announcement(self, channel_id, title: str, message: str, color=None):
        """
        Send an announcement embed.

        Raises:
            AnnouncementError: missing channel ID, unknown channel or
                empty title/message.
        """
        if not channel_id:
            raise AnnouncementError('Channel ID is required')
        if not title or not message:
            raise AnnouncementError('Title and message are required')

        try:
            channel_id = int(channel_id)
        except (TypeError, ValueError):
            raise AnnouncementError(f"Invalid channel ID {channel_id!r}")

        channel = self.bot.get_channel(channel_id)
        if channel is None:
            raise AnnouncementError(f"Channel with ID {channel_id} not found")

        sent = await channel.send(embed=build_announcement_embed(title, message, color))
        logger.info(f"Announcement sent: \"{title}\" to channel {channel_id}")
        return sent
