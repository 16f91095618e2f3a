# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Flight Tracker Cog - live flight status from the active flights table.
Polls Supabase in the background and posts takeoffs, landings, crashes and
periodic updates to the flight status channel.
"""

import logging
import random
from datetime import datetime, timezone

import discord
from discord.ext import commands

from ..tracking import FlightEventDetector, FlightTracker
from ..tracking.notifier import DiscordFlightNotifier, build_flight_embed
from ..tracking.source import SupabaseFlightSource
from ..utils.errors import SourceUnavailable
from ..utils.scheduler import PollScheduler

logger = logging.getLogger(__name__)

MAX_STATUS_FLIGHTS = 10


class FlightTrackerCog(commands.Cog, name='FlightTracker'):
    """Background flight tracking and flight status commands."""

    def __init__(self, bot):
        self.bot = bot
        settings = bot.settings
        self.channel_id = settings.flight_channel_id
        self.configured = bool(settings.supabase.configured and self.channel_id)

        self.source = SupabaseFlightSource(settings.supabase)
        self.notifier = DiscordFlightNotifier(bot, self.channel_id)
        self.tracker = FlightTracker(
            self.source,
            self.notifier,
            FlightEventDetector(settings.tracker),
        )
        self.scheduler = PollScheduler(
            'flight-poll',
            settings.tracker.poll_interval,
            self.tracker.run_cycle,
            wait_until=bot.wait_until_ready,
        )

    async def cog_load(self):
        """Start polling when Supabase and the status channel are configured."""
        if self.configured:
            self.scheduler.start()
        else:
            logger.warning("Flight tracking disabled: set SUPABASE_URL, SUPABASE_ANON_KEY "
                           "and FLIGHT_STATUS_CHANNEL_ID to enable it")

    async def cog_unload(self):
        self.scheduler.stop()
        await self.scheduler.wait_idle()
        await self.source.close()

    @commands.hybrid_command(name='flight_status', description='Show what the flight tracker is following')
    async def flight_status(self, ctx: commands.Context):
        """
        Show the flight tracker status and the flights currently tracked.

        Usage:
            !flight_status
            /flight_status
        """
        running = self.scheduler.is_running()
        embed = discord.Embed(
            title="📡 Flight Tracker Status",
            color=0x43A047 if running else 0x757575,
            timestamp=datetime.now(timezone.utc),
        )
        embed.add_field(name="Status", value="🟢 Running" if running else "🔴 Stopped", inline=True)
        channel = self.bot.get_channel(self.channel_id) if self.channel_id else None
        embed.add_field(name="Channel", value=channel.mention if channel else "Not set", inline=True)
        embed.add_field(
            name="Interval",
            value=f"Every {self.scheduler.interval.total_seconds():g}s",
            inline=True
        )

        result = self.tracker.last_result
        if result:
            embed.add_field(
                name="Last Poll",
                value=f"<t:{int(result.started_at.timestamp())}:R> • {result.flights} active, "
                      f"{len(result.events)} event(s)",
                inline=False
            )
        if self.tracker.last_error:
            embed.add_field(name="⚠️ Last Error", value=self.tracker.last_error[:1000], inline=False)

        states = self.tracker.store.states()
        if states:
            lines = []
            for state in states[:MAX_STATUS_FLIGHTS]:
                altitude = f"{state.last_altitude:,.0f} ft" if state.last_altitude is not None else "N/A"
                flag = " 🚨" if state.crash_detected else ""
                lines.append(f"`{state.flight_id}` {state.phase.value} / "
                             f"{state.vertical_phase.value} @ {altitude}{flag}")
            if len(states) > MAX_STATUS_FLIGHTS:
                lines.append(f"... and {len(states) - MAX_STATUS_FLIGHTS} more")
            embed.add_field(name=f"Tracked Flights ({len(states)})", value='\n'.join(lines), inline=False)
        else:
            embed.add_field(name="Tracked Flights", value="None", inline=False)

        embed.set_footer(text="ACARS Bot Flight Tracker")
        await ctx.send(embed=embed)

    @commands.hybrid_command(name='flights_enable', description='Start background flight tracking')
    @commands.is_owner()
    async def flights_enable(self, ctx: commands.Context):
        """
        Start the background flight poller.

        Requires: Bot owner only
        """
        if not self.configured:
            await ctx.send("❌ Flight tracking is not configured. Set SUPABASE_URL, SUPABASE_ANON_KEY "
                           "and FLIGHT_STATUS_CHANNEL_ID.")
            return

        self.scheduler.start()
        await ctx.send("✅ Flight tracking **enabled**.")

    @commands.hybrid_command(name='flights_disable', description='Stop background flight tracking')
    @commands.is_owner()
    async def flights_disable(self, ctx: commands.Context):
        """
        Stop the background flight poller after the current poll finishes.

        Requires: Bot owner only
        """
        self.scheduler.stop()
        await ctx.send("✅ Flight tracking **disabled**.")

    @commands.hybrid_command(name='testflight', description='Post every active flight to the flight status channel (Admin only)')
    @commands.has_permissions(administrator=True)
    async def testflight(self, ctx: commands.Context):
        """
        Post a status embed for every active flight, bypassing the tracker.
        Useful for checking the Supabase connection and embed layout.

        Requires: Administrator
        """
        await ctx.defer(ephemeral=True)

        if not self.bot.settings.supabase.configured:
            await ctx.send("❌ Supabase is not configured. Please set SUPABASE_URL and SUPABASE_ANON_KEY.",
                           ephemeral=True)
            return
        if not self.channel_id:
            await ctx.send("❌ FLIGHT_STATUS_CHANNEL_ID is not set.", ephemeral=True)
            return

        try:
            flights = await self.source.fetch_active_flights()
        except SourceUnavailable as e:
            logger.error(f"testflight: {e}")
            await ctx.send(f"❌ Failed to fetch active flights: {e}", ephemeral=True)
            return

        if not flights:
            await ctx.send("✅ No active flights found in Supabase.", ephemeral=True)
            return

        sent = 0
        failed = 0
        for flight in flights:
            embed = build_flight_embed(
                flight,
                title=f"✈️ Flight update - {flight.display_name}",
                color=random.randint(0, 0xFFFFFF),
                footer='ACARS Bot Flight Status (Test)',
            )
            if await self.notifier.send_embed(embed):
                sent += 1
            else:
                failed += 1

        summary = f"✅ Sent {sent} flight status update(s) to the flight status channel."
        if failed:
            summary += f" ({failed} failed)"
        await ctx.send(summary, ephemeral=True)


async def setup(bot):
    """Load the FlightTracker cog."""
    await bot.add_cog(FlightTrackerCog(bot))
    logger.info("FlightTracker cog loaded")
