import discord
from discord import app_commands
from discord.ext import commands
from .base import BaseLogger
from utils.embed_builder import EmbedBuilder
from utils.logger import get_logger

log = get_logger()

class ErrorLogger(BaseLogger):
    def __init__(self, bot):
        super().__init__(bot)
        # Global error handler for app commands
        bot.tree.on_error = self.on_app_command_error

    async def _reply(self, interaction: discord.Interaction, embed: discord.Embed):
        if not interaction.response.is_done():
            await interaction.response.send_message(embed=embed, ephemeral=True)
        else:
            await interaction.followup.send(embed=embed, ephemeral=True)

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        if isinstance(error, app_commands.MissingPermissions):
            await self._reply(interaction, EmbedBuilder.troubleshoot("missing_permissions"))
            return

        if isinstance(error, app_commands.NoPrivateMessage):
            await self._reply(interaction, EmbedBuilder.error("Guild Only", "This command cannot be used in Direct Messages."))
            return

        if isinstance(error, app_commands.BotMissingPermissions):
            missing = ", ".join(error.missing_permissions)
            await self._reply(interaction, EmbedBuilder.troubleshoot("bot_missing_permissions", f"Missing: `{missing}`"))
            return

        if isinstance(error, app_commands.CommandOnCooldown):
            await self._reply(interaction, EmbedBuilder.error("Cooldown", f"Please wait {error.retry_after:.1f}s before using this command again."))
            return

        command_name = interaction.command.name if interaction.command else "command"
        log.error(f"App Command Error in /{command_name}", exc_info=error)

        if interaction.guild:
            embed = EmbedBuilder.error(
                title="Command Error",
                description=f"An error occurred while executing `/{command_name}`.",
                fields=[("Error", str(error), False)]
            )
            await self.log_event(interaction.guild, embed)

        await self._reply(interaction, EmbedBuilder.error("Error", "An unexpected error occurred."))

async def setup(bot: commands.Bot):
    await bot.add_cog(ErrorLogger(bot))
