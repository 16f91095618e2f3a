# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Quotes Cog - periodic inspirational quote DMs.
Every QUOTE_INTERVAL_HOURS each user in QUOTE_USER_IDS gets a quote.
"""

import logging

from discord.ext import commands

from ..services.quotes import QuoteService
from ..utils.errors import DeliveryFailure
from ..utils.scheduler import PollScheduler

logger = logging.getLogger(__name__)


class Quotes(commands.Cog):
    """Inspirational quotes by DM."""

    def __init__(self, bot):
        self.bot = bot
        self.service = QuoteService(bot)
        self.recipients = list(bot.settings.quote_user_ids)
        self.scheduler = PollScheduler(
            'quote-dm',
            bot.settings.quote_interval,
            self.send_quotes,
            wait_until=bot.wait_until_ready,
        )

    async def cog_load(self):
        if self.recipients:
            self.scheduler.start()
        else:
            logger.info("No QUOTE_USER_IDS configured, quote DMs idle")

    async def cog_unload(self):
        self.scheduler.stop()

    async def send_quotes(self):
        """DM a quote to every recipient; one failure does not stop the rest."""
        delivered = 0
        for user_id in self.recipients:
            try:
                await self.service.send_quote(user_id)
                delivered += 1
            except DeliveryFailure as e:
                logger.warning(f"Quote DM to {user_id} failed: {e}")
        logger.info(f"Quote DMs: {delivered}/{len(self.recipients)} delivered")

    @commands.hybrid_command(name='quote', description='Get an inspirational aviation quote by DM')
    async def quote(self, ctx: commands.Context):
        """
        DM yourself a piece of aviation wisdom.

        Usage:
            !quote
            /quote
        """
        try:
            await self.service.send_quote(ctx.author.id)
        except DeliveryFailure as e:
            await ctx.send(f"❌ {e}", ephemeral=True)
            return
        await ctx.send("✅ Check your DMs!", ephemeral=True)


async def setup(bot):
    """Load the Quotes cog."""
    await bot.add_cog(Quotes(bot))
    logger.info("Quotes cog loaded")
