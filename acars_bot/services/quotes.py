# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Quote service - questionable aviation wisdom, delivered by DM."""

import logging
import random
from datetime import datetime, timezone

import discord

from ..utils.errors import DeliveryFailure

logger = logging.getLogger(__name__)

# Discord error code for "Cannot send messages to this user"
DMS_CLOSED = 50007


INSPIRATIONAL_QUOTES = [
    "Don't crash into things. That's aviation rule number one. - George Washington",
    "The best way to land a plane is on the runway, not in a tree. Trust me on this. - Abraham Lincoln",
    "If you see a mountain, don't fly into it. Fly around it. Very important. - Theodore Roosevelt",
    "Always check your fuel before takeoff. Running out of gas mid-flight is considered bad form. - Franklin D. Roosevelt",
    "Birds can fly. Planes can fly. But if you mix them up, you're gonna have a bad time. - John F. Kennedy",
    "The ground is not your friend when you're supposed to be in the air. Stay up there. - Ronald Reagan",
    "Two wings are better than one. Three wings? That's just showing off. - George W. Bush",
    "If your plane is on fire, that's usually a sign something went wrong. - Barack Obama",
    "The sky is the limit, but only if you remember to check your altitude. - Joe Biden",
    "Flying is 90% confidence and 10% not hitting things. - Dwight D. Eisenhower",
    "A good pilot knows when to land. A great pilot knows when NOT to land. - Harry S. Truman",
    "If you're upside down, you're probably doing it wrong. - Lyndon B. Johnson",
    "The runway is that long flat thing. Try to land on it, not next to it. - Richard Nixon",
    "Gravity is not a suggestion. It's a law. Plan accordingly. - Gerald Ford",
    "If your co-pilot is screaming, you might want to listen. - Jimmy Carter",
    "Flying backwards is impressive, but not recommended for commercial flights. - Bill Clinton",
    "The best landing is the one where everyone walks away. - George H.W. Bush",
    "If you see another plane coming at you, turn. Just turn. - Thomas Jefferson",
    "Altitude is your friend. The ground is not. Remember this. - James Madison",
    "The sky is big. Use all of it. Don't just use the part near the ground. - Ulysses S. Grant",
    "Flying is easy. Landing is the hard part. Try to do both. - Calvin Coolidge",
    "The best way to avoid a crash is to not crash. Revolutionary, I know. - Herbert Hoover",
    "If you're lost, ask for directions. Preferably before you run out of fuel. - John Adams",
    "A plane should have wings. This is not optional. - James Monroe",
    "If you can't see where you're going, slow down. Or stop. Stopping is good too. - Warren G. Harding",
    "If your plane is making sounds it shouldn't make, that's your cue to land. - Martin Van Buren",
    "If you're not sure if you should fly, the answer is probably no. - Chester A. Arthur",
    "Flying is like walking, but higher up and with more consequences. - Benjamin Harrison",
    "If you see a bird, don't try to race it. You'll lose. - William Henry Harrison",
    "Altitude is not a suggestion. It's a requirement. - Millard Fillmore",
]


def split_quote(quote: str):
    """Split 'text - Author' into (text, author); author is None if missing."""
    text, sep, author = quote.rpartition(' - ')
    if not sep:
        return quote, None
    return text, author


def build_quote_embed(quote: str) -> discord.Embed:
    text, author = split_quote(quote)
    embed = discord.Embed(
        title='💡 Daily Inspiration',
        description=f'"{text}"',
        color=0x5865F2,
        timestamp=datetime.now(timezone.utc),
    )
    embed.set_footer(text=author or 'Unknown')
    return embed


class QuoteService:
    """Picks quotes and DMs them to users."""

    def __init__(self, bot, quotes=None, rng=None):
        self.bot = bot
        self.quotes = list(quotes or INSPIRATIONAL_QUOTES)
        self.rng = rng or random.Random()

    def get_random_quote(self) -> str:
        return self.rng.choice(self.quotes)

    async def _resolve_user(self, user_id: int):
        user = self.bot.get_user(user_id)
        if user is not None:
            return user
        try:
            user = await self.bot.fetch_user(user_id)
        except discord.HTTPException as e:
            raise DeliveryFailure(f"User with ID {user_id} not found or not accessible: {e}") from e
        logger.debug(f"Fetched user {user_id} from Discord API")
        return user

    async def send_quote(self, user_id: int):
        """
        DM a random quote to a user.

        Raises:
            DeliveryFailure: unknown user, bot account, or DMs closed.
        """
        user = await self._resolve_user(user_id)
        if user.bot:
            raise DeliveryFailure('Cannot send DMs to bots')

        try:
            sent = await user.send(embed=build_quote_embed(self.get_random_quote()))
        except discord.Forbidden as e:
            if e.code == DMS_CLOSED:
                raise DeliveryFailure(
                    f"Cannot send DM to {user}. They may have DMs disabled or the bot blocked."
                ) from e
            raise DeliveryFailure(f"Failed to send DM: {e}") from e
        except discord.HTTPException as e:
            raise DeliveryFailure(f"Failed to send DM: {e}") from e

        logger.info(f"Inspirational quote sent to user {user_id} ({user})")
        return sent
