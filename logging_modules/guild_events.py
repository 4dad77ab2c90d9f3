import discord
from discord.ext import commands
from database.queries import delete_guild_data
from utils.logger import get_logger

log = get_logger()

class GuildEvents(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild):
        """
        Triggered when the bot is kicked, banned, or leaves a guild.
        Drops the in-memory guard state and every stored row for it.
        """
        log.discord(f"Bot removed from guild: {guild.name} ({guild.id}). Cleaning up.")
        self.bot.guard.forget_guild(guild.id)
        await delete_guild_data(guild.id)

async def setup(bot: commands.Bot):
    await bot.add_cog(GuildEvents(bot))
