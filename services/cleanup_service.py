from discord.ext import commands, tasks
from database.queries import purge_expired_rows
from utils.logger import get_logger

log = get_logger()

class CleanupService(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.sweep_task.start()
        self.retention_task.start()

    def cog_unload(self):
        self.sweep_task.cancel()
        self.retention_task.cancel()

    @tasks.loop(minutes=30)
    async def sweep_task(self):
        """
        Evicts expired audit reports and cooldown records from memory.
        Reads already ignore stale entries; this only bounds growth for guilds no longer seen.
        """
        try:
            self.bot.guard.sweep()
        except Exception as e:
            log.error("Guard sweep failed", exc_info=e)

    @tasks.loop(hours=24)
    async def retention_task(self):
        """Deletes audit logs older than 30 days and metrics older than 90 days."""
        removed = await purge_expired_rows()
        if removed > 0:
            log.database(f"Cleanup Task: Permanently removed {removed} expired row(s).")

    @sweep_task.before_loop
    @retention_task.before_loop
    async def before_cleanup(self):
        await self.bot.wait_until_ready()

async def setup(bot: commands.Bot):
    await bot.add_cog(CleanupService(bot))
