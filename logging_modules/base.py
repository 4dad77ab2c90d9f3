import discord
from typing import Optional
from discord.ext import commands
from database.queries import get_guild_settings
from utils.logger import get_logger
from utils.rate_limiter import send_with_backoff

log = get_logger()

class BaseLogger(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.module_name = self.__class__.__name__

    @property
    def guard(self):
        return self.bot.guard

    async def get_channel(self, guild: discord.Guild, alert: bool = False) -> Optional[discord.TextChannel]:
        """
        Resolve where to post. Alerts go to alert_channel_id and fall back to the log channel;
        regular events only ever go to the log channel.
        """
        settings = await get_guild_settings(guild.id)
        if not settings:
            return None

        log_id = settings.get("log_channel_id")
        target_id = settings.get("alert_channel_id") if alert else log_id

        channel = guild.get_channel(target_id) if target_id else None
        if not channel and alert and log_id and log_id != target_id:
            channel = guild.get_channel(log_id)
        return channel

    async def log_event(self, guild: discord.Guild, embed: discord.Embed):
        try:
            channel = await self.get_channel(guild)
            if channel:
                await channel.send(embed=embed)
        except Exception as e:
            log.error(f"Error logging event in {self.module_name}", exc_info=e)

    async def send_alert(self, guild: discord.Guild, embed: discord.Embed) -> bool:
        channel = await self.get_channel(guild, alert=True)
        if not channel:
            log.warning(f"[{self.module_name}] No alert channel configured for guild {guild.id}")
            return False

        ok, error = await send_with_backoff(lambda: channel.send(embed=embed))
        if not ok:
            log.error(f"[{self.module_name}] Failed to deliver alert to guild {guild.id}", exc_info=error)
        return ok
