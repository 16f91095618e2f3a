#!/usr/bin/env python3
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
ACARS Bot - main entry point.

Loads the cogs, syncs slash commands, starts the announcement API and the
background jobs, then connects to Discord.

Usage:
    acars-bot
    python -m acars_bot.bot

Environment Variables:
    DISCORD_BOT_TOKEN (or DISCORD_TOKEN) - Required
    See .env.example for everything else
"""

import logging
import os
import sys
from datetime import datetime, timezone

import discord
from discord.ext import commands
from dotenv import load_dotenv

from .api import AnnouncementApi, SupabaseAuthVerifier
from .config import BotSettings
from .services.announcements import AnnouncementService
from .utils.scheduler import PollScheduler

logger = logging.getLogger('acars_bot')


EXTENSIONS = [
    'acars_bot.cogs.general',
    'acars_bot.cogs.messaging',
    'acars_bot.cogs.voice',
    'acars_bot.cogs.quotes',
    'acars_bot.cogs.flight_tracker',
]

# Rotated through by the status-rotation job
STATUS_ROTATION = [
    (discord.ActivityType.watching, 'COMPANY MSG'),
    (discord.ActivityType.listening, 'ACARS uplinks'),
    (discord.ActivityType.watching, 'active flights'),
    (discord.ActivityType.playing, '/help for commands'),
]

# Hosting platforms that run a build step without a Discord connection
BUILD_ENV_MARKERS = ('CI', 'CF_PAGES', 'CF_PAGES_BRANCH', 'VERCEL', 'NETLIFY')


class AcarsBot(commands.Bot):
    """ACARS Bot client."""

    def __init__(self, settings: BotSettings):
        intents = discord.Intents.default()
        super().__init__(
            command_prefix=commands.when_mentioned_or(settings.command_prefix),
            intents=intents,
            help_command=None,
        )
        self.settings = settings
        self.started_at = datetime.now(timezone.utc)
        self.api = None
        self._status_index = 0
        self.status_rotation = PollScheduler(
            'status-rotation',
            settings.status_rotation_interval,
            self.rotate_status,
            wait_until=self.wait_until_ready,
        )

    async def setup_hook(self):
        for extension in EXTENSIONS:
            try:
                await self.load_extension(extension)
            except Exception as e:
                logger.error(f"Failed to load {extension}: {e}", exc_info=True)

        await self.sync_commands()

        if self.settings.api.enabled:
            verifier = None
            if self.settings.supabase.configured:
                verifier = SupabaseAuthVerifier(self.settings.supabase)
                logger.info("Supabase integration enabled for the announcement API")
            self.api = AnnouncementApi(AnnouncementService(self), self.settings.api, verifier)
            try:
                await self.api.start()
            except OSError as e:
                logger.error(f"Could not start API server: {e}")
                self.api = None

        self.status_rotation.start()

    async def sync_commands(self):
        """Sync slash commands to GUILD_ID (instant) or globally (up to an hour)."""
        try:
            guild_id = self.settings.sync_guild_id
            if guild_id:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                logger.info(f"Synced {len(synced)} application commands to guild {guild_id}")
            else:
                synced = await self.tree.sync()
                logger.info(f"Synced {len(synced)} application commands globally")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync application commands: {e}")

    async def rotate_status(self):
        activity_type, name = STATUS_ROTATION[self._status_index % len(STATUS_ROTATION)]
        self._status_index += 1
        await self.change_presence(
            activity=discord.Activity(type=activity_type, name=name),
            status=discord.Status.online,
        )

    async def on_ready(self):
        logger.info(f"Ready! Logged in as {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")

    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, (commands.MissingPermissions, commands.NotOwner, commands.CheckFailure)):
            await ctx.send("❌ You do not have permission to use this command.", ephemeral=True)
            return
        if isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
            await ctx.send(f"❌ {error}", ephemeral=True)
            return

        logger.error(f"Error executing {ctx.command}: {error}", exc_info=error)
        try:
            await ctx.send("❌ There was an error while executing this command!", ephemeral=True)
        except discord.HTTPException:
            pass

    async def close(self):
        self.status_rotation.stop()
        if self.api is not None:
            await self.api.stop()
            if self.api.verifier is not None:
                await self.api.verifier.close()
        await super().close()


def is_build_environment() -> bool:
    return any(os.getenv(name) for name in BUILD_ENV_MARKERS)


def main():
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    if is_build_environment():
        logger.info("Build environment detected, skipping Discord bot startup")
        return 0

    settings = BotSettings.from_env()
    if not settings.token:
        logger.error("DISCORD_BOT_TOKEN is not set! Add it to your environment or .env file.")
        return 1

    bot = AcarsBot(settings)
    try:
        bot.run(settings.token, log_handler=None)
    except discord.LoginFailure as e:
        logger.error(f"Failed to login to Discord: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
