# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Flight notifier - renders flight events as embeds and posts them.

Delivery failures are logged and reported as False; they never reach the
poll scheduler.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import discord

from .models import EventKind, FlightEvent, FlightSnapshot

logger = logging.getLogger(__name__)


EVENT_STYLES = {
    EventKind.TRACKING_STARTED: {'icon': '📡', 'title': 'Now tracking', 'color': 0x1E88E5},
    EventKind.TAKEOFF: {'icon': '🛫', 'title': 'Takeoff', 'color': 0x43A047},
    EventKind.LANDING: {'icon': '🛬', 'title': 'Landing', 'color': 0xFF6F00},
    EventKind.CRASH: {'icon': '🚨', 'title': 'Rapid descent detected', 'color': 0xFF0000},
    EventKind.UPDATE: {'icon': '✈️', 'title': 'Flight update', 'color': 0x607D8B},
}


def _format_feet(value: Optional[float]) -> Optional[str]:
    return f"{value:,.0f} ft" if value is not None else None


def build_flight_embed(snapshot: FlightSnapshot, title: str, color: int,
                       vertical_speed: Optional[float] = None,
                       timestamp: Optional[datetime] = None,
                       footer: str = 'ACARS Bot Flight Status') -> discord.Embed:
    """Build the common flight status embed for one snapshot."""
    altitude = _format_feet(snapshot.altitude) or 'N/A'
    agl = _format_feet(snapshot.altitude_agl)
    if agl:
        altitude += f" ({agl} AGL)"

    lines = [
        f"**Aircraft:** {snapshot.aircraft_type or 'Unknown'}",
        f"**Route:** {snapshot.origin or 'Unknown'} ➝ {snapshot.destination or 'Unknown'}",
        f"**Altitude:** {altitude}",
    ]
    if vertical_speed is None:
        vertical_speed = snapshot.vertical_speed
    if vertical_speed is not None:
        lines.append(f"**Vertical Speed:** {vertical_speed:+,.0f} fpm")
    if snapshot.speed is not None:
        lines.append(f"**Speed:** {snapshot.speed:,.0f} kts")
    if snapshot.heading is not None:
        lines.append(f"**Heading:** {snapshot.heading:03.0f}°")
    if snapshot.has_position:
        lines.append(f"**Position:** {snapshot.latitude:.4f}, {snapshot.longitude:.4f}")

    embed = discord.Embed(
        title=title,
        description='\n'.join(lines),
        color=color,
        timestamp=timestamp or datetime.now(timezone.utc),
    )

    engine_info = []
    if snapshot.engine_type:
        engine_info.append(f"Type: {snapshot.engine_type}")
    if snapshot.engine_model:
        engine_info.append(f"Model: {snapshot.engine_model}")
    if snapshot.engine_count:
        engine_info.append(f"Count: {snapshot.engine_count}")
    if snapshot.engines:
        engine_info.append(f"Info: {snapshot.engines}")
    if engine_info:
        embed.add_field(name="Engine Info", value='\n'.join(engine_info), inline=False)

    embed.set_footer(text=footer)
    return embed


def render_event(event: FlightEvent) -> discord.Embed:
    """Render a flight event as a Discord embed."""
    style = EVENT_STYLES[event.kind]
    snapshot = event.snapshot
    embed = build_flight_embed(
        snapshot,
        title=f"{style['icon']} {style['title']} - {snapshot.display_name}",
        color=style['color'],
        vertical_speed=event.state.last_vertical_speed,
        timestamp=event.occurred_at,
    )

    if event.kind == EventKind.CRASH:
        details = event.details
        value = f"Lost **{details['descent_ft']:,.0f} ft** from {details['peak_altitude_ft']:,.0f} ft"
        if details.get('rate_fpm') is not None:
            value += f"\n≈ {details['rate_fpm']:,} ft/min"
        embed.add_field(name="⚠️ Descent", value=value, inline=False)
    elif event.kind == EventKind.UPDATE and event.reasons:
        embed.add_field(name="Why", value='\n'.join(f"• {r}" for r in event.reasons), inline=False)

    embed.add_field(name="Phase", value=event.state.phase.value.title(), inline=True)
    embed.add_field(name="Vertical", value=event.state.vertical_phase.value.title(), inline=True)
    return embed


class DiscordFlightNotifier:
    """Posts flight events to a fixed Discord channel."""

    def __init__(self, bot, channel_id: int):
        self.bot = bot
        self.channel_id = channel_id

    async def _get_channel(self):
        channel = self.bot.get_channel(self.channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(self.channel_id)
        return channel

    async def send_embed(self, embed: discord.Embed) -> bool:
        try:
            channel = await self._get_channel()
            await channel.send(embed=embed)
            return True
        except Exception as e:
            logger.error(f"Failed to post to flight channel {self.channel_id}: {e}")
            return False

    async def notify(self, event: FlightEvent) -> bool:
        """Deliver one event. Returns False (and logs) when delivery fails."""
        try:
            embed = render_event(event)
        except Exception as e:
            logger.error(f"Failed to render {event.kind.value} event for {event.flight_id}: {e}",
                         exc_info=True)
            return False
        delivered = await self.send_embed(embed)
        if delivered:
            logger.info(f"Posted {event.kind.value} for {event.snapshot.display_name}")
        return delivered
