import discord
from discord.ext import commands
from .base import BaseLogger
from database.queries import increment_metric

class MessageActivity(BaseLogger):
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.guild is None or message.author.bot:
            return
        await increment_metric(message.guild.id, "message_count")

async def setup(bot: commands.Bot):
    await bot.add_cog(MessageActivity(bot))
