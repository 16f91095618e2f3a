# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""
Voice Cog - play an MP3 in a voice channel, then leave.
Needs FFmpeg on the PATH and the discord.py voice extra (PyNaCl).
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import discord
from discord.ext import commands

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_FILE = 'Johncena.mp3'


def resolve_audio_path(file: Optional[str], base_dir: Optional[Path] = None) -> Path:
    """
    Resolve and validate an audio file path.

    Relative paths are resolved against base_dir (default: working directory).

    Raises:
        FileNotFoundError: the file does not exist
        ValueError: the file is not an MP3
    """
    path = Path(file or DEFAULT_AUDIO_FILE)
    if not path.is_absolute():
        path = (base_dir or Path.cwd()) / path
    if not path.is_file():
        raise FileNotFoundError(f"File not found at `{file or DEFAULT_AUDIO_FILE}`")
    if path.suffix.lower() != '.mp3':
        raise ValueError("File must be an MP3 file")
    return path


class Voice(commands.Cog):
    """Voice channel playback."""

    def __init__(self, bot):
        self.bot = bot

    @commands.hybrid_command(name='play', description='Join a voice channel and play an MP3 file')
    @commands.guild_only()
    async def play(self, ctx: commands.Context, channel: discord.VoiceChannel, file: Optional[str] = None):
        """
        Join a voice channel, play an MP3 and disconnect when it ends.

        Usage:
            /play channel:General
            /play channel:General file:sounds/intro.mp3
        """
        await ctx.defer()

        try:
            path = resolve_audio_path(file)
        except (FileNotFoundError, ValueError) as e:
            await ctx.send(f"❌ Error: {e}")
            return

        if ctx.guild.voice_client is not None:
            await ctx.send("❌ Already playing in a voice channel, try again when it finishes.")
            return

        try:
            voice = await channel.connect()
        except (discord.ClientException, asyncio.TimeoutError) as e:
            logger.error(f"Voice connection error: {e}")
            await ctx.send(f"❌ Connection error: {e}")
            return

        def after_playback(error):
            # Runs on the audio thread
            asyncio.run_coroutine_threadsafe(self._finished(ctx, voice, channel, path, error), self.bot.loop)

        try:
            voice.play(discord.FFmpegPCMAudio(str(path)), after=after_playback)
        except Exception as e:
            logger.error(f"Error in play command: {e}", exc_info=True)
            await voice.disconnect()
            await ctx.send(f"❌ Error: {e}")
            return

        await ctx.send(f"🎵 Now playing `{path.name}` in {channel.name}...")

    async def _finished(self, ctx, voice, channel, path, error):
        try:
            await voice.disconnect()
        except Exception as e:
            logger.error(f"Error leaving voice channel: {e}")

        if error:
            logger.error(f"Audio player error: {error}")
            await ctx.send(f"❌ Error playing audio: {error}")
        else:
            await ctx.send(f"✅ Finished playing `{path.name}` in {channel.name} and left the channel.")


async def setup(bot):
    """Load the Voice cog."""
    await bot.add_cog(Voice(bot))
    logger.info("Voice cog loaded")
