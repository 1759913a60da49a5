import logging

import discord
from discord.ext import commands

log = logging.getLogger(__name__)


class MessageModerationCog(commands.Cog):
    """Runs every human message through the moderation pipeline."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.author.bot:
            return
        pipeline = getattr(self.bot, "pipeline", None)
        if pipeline is None:
            return
        try:
            await pipeline.handle_message(message)
        except Exception:
            log.exception(
                "Moderation failed for message %s in channel %s",
                message.id,
                getattr(message.channel, "id", None),
            )


async def setup(bot: commands.Bot):
    await bot.add_cog(MessageModerationCog(bot))
