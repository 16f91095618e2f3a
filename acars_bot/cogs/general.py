# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
General Cog - everyday utility commands.
Dice, coin flips, avatars, user/server info, uptime and help.
"""

import logging
import random
from datetime import datetime, timezone
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

logger = logging.getLogger(__name__)

EMBED_COLOR = 0x0099FF
FOOTER = 'ACARS Bot'


def format_uptime(seconds: float) -> str:
    """Format a duration as '1d 2h 3m 4s'."""
    seconds = int(max(seconds, 0))
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{days}d {hours}h {minutes}m {seconds}s"


def discord_timestamp(moment: Optional[datetime]) -> str:
    if moment is None:
        return 'Unknown'
    return f"<t:{int(moment.timestamp())}:R>"


class General(commands.Cog):
    """Everyday utility commands."""

    def __init__(self, bot):
        self.bot = bot
        self.rng = random.Random()

    @commands.hybrid_command(name='roll', description='Roll a dice (1-100)')
    @app_commands.rename(maximum='max')
    @app_commands.describe(maximum='Maximum number (default: 100)')
    async def roll(self, ctx: commands.Context, maximum: commands.Range[int, 1, 1000] = 100):
        """
        Roll a dice between 1 and max (default 100, up to 1000).

        Usage:
            !roll
            !roll 20
            /roll max:20
        """
        result = self.rng.randint(1, maximum)
        await ctx.send(f"🎲 You rolled a **{result}** (1-{maximum})")

    @commands.hybrid_command(name='flip', description='Flip a coin')
    async def flip(self, ctx: commands.Context):
        """Flip a coin."""
        result = 'Heads' if self.rng.random() < 0.5 else 'Tails'
        await ctx.send(f"🪙 **{result}!**")

    @commands.hybrid_command(name='avatar', description="Get a user's avatar")
    async def avatar(self, ctx: commands.Context, user: Optional[discord.User] = None):
        """Show a user's avatar (defaults to you)."""
        user = user or ctx.author
        embed = discord.Embed(
            title=f"{user.name}'s Avatar",
            color=EMBED_COLOR,
            timestamp=datetime.now(timezone.utc)
        )
        embed.set_image(url=user.display_avatar.with_size(512).url)
        embed.set_footer(text=FOOTER)
        await ctx.send(embed=embed)

    @commands.hybrid_command(name='userinfo', description='Get information about a user')
    async def userinfo(self, ctx: commands.Context, user: Optional[discord.User] = None):
        """Show account and membership details for a user (defaults to you)."""
        user = user or ctx.author
        member = ctx.guild.get_member(user.id) if ctx.guild else None

        embed = discord.Embed(
            title=f"User Info: {user}",
            color=EMBED_COLOR,
            timestamp=datetime.now(timezone.utc)
        )
        embed.set_thumbnail(url=user.display_avatar.url)
        embed.add_field(name="🆔 User ID", value=str(user.id), inline=True)
        embed.add_field(name="📅 Account Created", value=discord_timestamp(user.created_at), inline=True)
        embed.add_field(name="🤖 Bot", value="Yes" if user.bot else "No", inline=True)

        if member:
            # @everyone is always present and not worth counting
            role_count = len(member.roles) - 1
            embed.add_field(name="📥 Joined Server", value=discord_timestamp(member.joined_at), inline=True)
            embed.add_field(name="🎭 Roles", value=str(role_count) if role_count > 0 else "None", inline=True)
            embed.add_field(name="👑 Highest Role", value=member.top_role.mention, inline=True)

        embed.set_footer(text=FOOTER)
        await ctx.send(embed=embed)

    @commands.hybrid_command(name='serverinfo', description='Get information about this server')
    @commands.guild_only()
    async def serverinfo(self, ctx: commands.Context):
        """Show details about the current server."""
        guild = ctx.guild

        embed = discord.Embed(
            title=f"Server Info: {guild.name}",
            color=EMBED_COLOR,
            timestamp=datetime.now(timezone.utc)
        )
        if guild.icon:
            embed.set_thumbnail(url=guild.icon.url)

        embed.add_field(name="👑 Owner", value=f"<@{guild.owner_id}>", inline=True)
        embed.add_field(name="🆔 Server ID", value=str(guild.id), inline=True)
        embed.add_field(name="📅 Created", value=discord_timestamp(guild.created_at), inline=True)
        embed.add_field(name="👥 Members", value=str(guild.member_count), inline=True)
        embed.add_field(name="📝 Channels", value=str(len(guild.channels)), inline=True)
        embed.add_field(name="😀 Emojis", value=str(len(guild.emojis)), inline=True)
        embed.add_field(name="✅ Verification Level", value=str(guild.verification_level), inline=True)
        embed.add_field(name="🎭 Roles", value=str(len(guild.roles)), inline=True)
        embed.add_field(name="🚀 Boost Level", value=str(guild.premium_tier), inline=True)

        embed.set_footer(text=FOOTER)
        await ctx.send(embed=embed)

    @commands.hybrid_command(name='uptime', description='Check how long the bot has been online')
    async def uptime(self, ctx: commands.Context):
        """Show how long the bot has been online."""
        elapsed = (datetime.now(timezone.utc) - self.bot.started_at).total_seconds()
        embed = discord.Embed(
            title="🤖 Bot Uptime",
            description=f"ACARS has been online for **{format_uptime(elapsed)}**",
            color=EMBED_COLOR,
            timestamp=datetime.now(timezone.utc)
        )
        embed.set_footer(text=FOOTER)
        await ctx.send(embed=embed)

    @commands.hybrid_command(name='help', description='Shows all available commands')
    async def help(self, ctx: commands.Context):
        """List every command the bot offers."""
        embed = discord.Embed(
            title="ACARS Bot Commands",
            description="Here are all the available commands:",
            color=EMBED_COLOR,
            timestamp=datetime.now(timezone.utc)
        )
        # Discord allows at most 25 fields per embed
        for command in sorted(self.bot.commands, key=lambda c: c.name)[:25]:
            if command.hidden:
                continue
            embed.add_field(
                name=f"/{command.name}",
                value=command.description or command.short_doc or "No description",
                inline=True
            )
        embed.set_footer(text=FOOTER)
        await ctx.send(embed=embed)


async def setup(bot):
    """Load the General cog."""
    await bot.add_cog(General(bot))
    logger.info("General cog loaded")
