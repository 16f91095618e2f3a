# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Messaging Cog - announcements and direct messages.
Staff-only commands for posting company messages and DMing members.
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..services.announcements import AnnouncementService, color_choices
from ..services.quotes import DMS_CLOSED
from ..utils.errors import AnnouncementError

logger = logging.getLogger(__name__)

MASS_DM_DELAY = 0.5
MAX_LISTED = 10


def parse_user_ids(raw: str) -> List[int]:
    """
    Parse a comma/space separated list of user IDs or mentions.

    '123, <@456>,<@!789>' -> [123, 456, 789]. Duplicates are dropped,
    order is kept, anything non-numeric is ignored.
    """
    ids = []
    for token in re.split(r'[,\s]+', raw or ''):
        token = re.sub(r'[<@!>]', '', token).strip()
        if token.isdigit() and int(token) not in ids:
            ids.append(int(token))
    return ids


def _truncate(text: str, limit: int = 1000) -> str:
    return text if len(text) <= limit else text[:limit] + '...'


class Messaging(commands.Cog):
    """Announcements and direct messages."""

    def __init__(self, bot):
        self.bot = bot
        self.announcer = AnnouncementService(bot)

    @commands.hybrid_command(name='announcement', description='Send an announcement to a channel')
    @commands.has_permissions(manage_messages=True)
    @app_commands.describe(
        channel='The channel to send the announcement to',
        title='The title of the announcement',
        message='The announcement message',
        color='Color for the announcement (select from list or enter hex code)',
    )
    async def announcement(self, ctx: commands.Context, channel: discord.TextChannel,
                           title: str, message: str, color: Optional[str] = None):
        """
        Post a styled announcement embed.

        Usage:
            /announcement channel:#news title:Hello message:World color:57F287

        Requires: Manage Messages permission
        """
        if ctx.guild and not channel.permissions_for(ctx.guild.me).send_messages:
            await ctx.send(f"❌ I don't have permission to send messages in {channel.mention}.", ephemeral=True)
            return

        await ctx.defer(ephemeral=True)
        try:
            await self.announcer.send_announcement(channel.id, title, message, color)
        except (AnnouncementError, discord.HTTPException) as e:
            logger.error(f"Error in announcement command: {e}")
            await ctx.send(f"❌ Failed to send announcement: {e}", ephemeral=True)
            return

        await ctx.send(f"✅ Announcement sent to {channel.mention}!", ephemeral=True)

    @announcement.autocomplete('color')
    async def announcement_color_autocomplete(self, interaction: discord.Interaction, current: str):
        return [
            app_commands.Choice(name=choice['name'], value=choice['value'])
            for choice in color_choices(current)
        ]

    @commands.hybrid_command(name='dm', description='Send a direct message to a user (Admin only)')
    @commands.has_permissions(administrator=True)
    async def dm(self, ctx: commands.Context, user: discord.User, *, message: str):
        """
        Send a direct message to a user.

        Requires: Administrator
        """
        if user.bot:
            await ctx.send("❌ Cannot send DMs to bots.", ephemeral=True)
            return

        await ctx.defer(ephemeral=True)
        try:
            await user.send(message)
        except discord.Forbidden as e:
            if e.code == DMS_CLOSED:
                await ctx.send(f"❌ Cannot send DM to {user}. They may have DMs disabled or the bot blocked.",
                               ephemeral=True)
            else:
                await ctx.send(f"❌ Failed to send DM: {e}", ephemeral=True)
            return
        except discord.HTTPException as e:
            logger.error(f"Error sending DM: {e}")
            await ctx.send(f"❌ Failed to send DM: {e}", ephemeral=True)
            return

        logger.info(f"DM sent by {ctx.author} ({ctx.author.id}) to {user} ({user.id})")
        await ctx.send(f"✅ Successfully sent DM to {user} ({user.id})", ephemeral=True)

    @commands.hybrid_command(name='massdm', description='Send a direct message to multiple users (Admin only)')
    @commands.has_permissions(administrator=True)
    @app_commands.describe(users='User IDs or mentions, comma-separated', message='The message to send')
    async def massdm(self, ctx: commands.Context, users: str, *, message: str):
        """
        DM the same message to several users.

        Usage:
            /massdm users:123456789,@someone message:Hello!

        Requires: Administrator
        """
        user_ids = parse_user_ids(users)
        if not user_ids:
            await ctx.send("❌ No valid user IDs provided.", ephemeral=True)
            return

        await ctx.defer(ephemeral=True)

        success, failed, not_found, bots = [], [], [], []
        for user_id in user_ids:
            try:
                target = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            except discord.HTTPException:
                not_found.append(user_id)
                continue

            if target.bot:
                bots.append(str(target))
                continue

            try:
                await target.send(message)
                success.append(target)
            except discord.HTTPException as e:
                error = 'DMs disabled' if getattr(e, 'code', None) == DMS_CLOSED else str(e)
                failed.append((target, error))

            # Small delay to avoid rate limits
            await asyncio.sleep(MASS_DM_DELAY)

        summary = (f"**Mass DM Summary**\nTotal: {len(user_ids)} | ✅ Success: {len(success)} "
                   f"| ❌ Failed: {len(failed)}")
        if not_found:
            summary += f" | 🔍 Not Found: {len(not_found)}"
        if bots:
            summary += f" | 🤖 Bots Skipped: {len(bots)}"

        if failed:
            summary += "\n\n**Failed DMs:**\n"
            summary += ''.join(f"• {u} ({u.id}): {err}\n" for u, err in failed[:MAX_LISTED])
            if len(failed) > MAX_LISTED:
                summary += f"... and {len(failed) - MAX_LISTED} more\n"
        if not_found:
            summary += "\n**Users Not Found:**\n"
            summary += ''.join(f"• {uid}\n" for uid in not_found[:MAX_LISTED])
            if len(not_found) > MAX_LISTED:
                summary += f"... and {len(not_found) - MAX_LISTED} more\n"

        await ctx.send(summary[:2000], ephemeral=True)
        logger.info(f"Mass DM sent by {ctx.author} ({ctx.author.id}) to {len(user_ids)} users. "
                    f"Success: {len(success)}, Failed: {len(failed)}")

        await self._log_mass_dm(ctx, message, len(user_ids), success, failed)

    async def _log_mass_dm(self, ctx, message, total, success, failed):
        """Post a summary of a mass DM to the DM log channel, if configured."""
        channel_id = self.bot.settings.dm_log_channel_id
        if not channel_id:
            return
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            logger.warning(f"DM log channel {channel_id} not found")
            return

        embed = discord.Embed(
            title="Mass DM Sent",
            description=_truncate(f"**From:** {ctx.author} ({ctx.author.id})\n**Message:**\n{message}", 4000),
            color=0x57F287 if success else 0xED4245,
            timestamp=datetime.now(timezone.utc)
        )
        embed.add_field(name="Total Users", value=str(total), inline=True)
        embed.add_field(name="✅ Successful", value=str(len(success)), inline=True)
        embed.add_field(name="❌ Failed", value=str(len(failed)), inline=True)
        if success:
            embed.add_field(
                name=f"Recipients ({len(success)})",
                value=_truncate('\n'.join(f"{u} ({u.id})" for u in success[:MAX_LISTED])),
                inline=False
            )
        if failed:
            embed.add_field(
                name="Failures",
                value=_truncate('\n'.join(f"{u}: {err}" for u, err in failed[:5])),
                inline=False
            )
        embed.set_footer(text='ACARS Bot Mass DM Log')

        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Error sending mass DM log: {e}")


async def setup(bot):
    """Load the Messaging cog."""
    await bot.add_cog(Messaging(bot))
    logger.info("Messaging cog loaded")
