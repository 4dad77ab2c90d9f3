import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional
from database.queries import upsert_guild_settings, get_guild_settings
from utils.embed_builder import EmbedBuilder

class Setup(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    setup_group = app_commands.Group(name="setup", description="Configure the bot for your server")

    @app_commands.command(name="commands", description="Show available commands")
    async def cmd_help(self, interaction: discord.Interaction):
        embed = EmbedBuilder.build(
            title="Friday Help",
            description="Here are the available commands:",
            fields=[
                ("/setup channels", "Choose the log channel and the raid alert channel.", False),
                ("/setup show", "Show the current channel configuration.", False),
                ("/audit [refresh]", "Structure and security audit (cached for a few hours).", False),
                ("/security", "Security issues only.", False),
                ("/audit-history", "Scores of previous audits.", False),
                ("/activity [days]", "Joins, leaves, messages and the weekly trend.", False),
                ("/schema", "Map of categories, channels and main roles.", False),
                ("/scalecheck", "Channels, roles and staffing against server size.", False),
                ("/mee6", "How MEE6 is set up alongside Friday.", False),
                ("/antiraid status|enable|disable|configure|channel|reset", "Join-rate raid detection.", False),
                ("/guard stats|invalidate", "Audit cache and cooldown state.", False),
                ("/backup create|list", "Snapshot roles and channels.", False)
            ]
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @setup_group.command(name="channels", description="Set where logs and raid alerts are posted")
    @app_commands.describe(
        log_channel="Joins and leaves (defaults to this channel)",
        alert_channel="Raid alerts (defaults to the log channel)"
    )
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(administrator=True)
    @app_commands.checks.cooldown(1, 40, key=lambda i: (i.guild_id, i.user.id))
    async def channels(
        self,
        interaction: discord.Interaction,
        log_channel: Optional[discord.TextChannel] = None,
        alert_channel: Optional[discord.TextChannel] = None
    ):
        log_id = log_channel.id if log_channel else interaction.channel_id
        alert_id = alert_channel.id if alert_channel else None

        if not await upsert_guild_settings(interaction.guild_id, log_channel_id=log_id, alert_channel_id=alert_id):
            await interaction.response.send_message(
                embed=EmbedBuilder.error("Setup Failed", "Settings could not be saved. Try again later."),
                ephemeral=True
            )
            return

        alert_text = f"<#{alert_id}>" if alert_id else f"<#{log_id}> (same as logs)"
        embed = EmbedBuilder.success(
            title="Setup Complete",
            description=f"Logs: <#{log_id}>\nRaid alerts: {alert_text}"
        )
        await interaction.response.send_message(embed=embed)

    @setup_group.command(name="show", description="Show the current channel configuration")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def show(self, interaction: discord.Interaction):
        settings = await get_guild_settings(interaction.guild_id)
        if not settings or not settings.get("log_channel_id"):
            await interaction.response.send_message(embed=EmbedBuilder.troubleshoot("not_configured"), ephemeral=True)
            return

        alert_id = settings.get("alert_channel_id")
        embed = EmbedBuilder.info(
            title="Configuration",
            description="Current channels for this server.",
            fields=[
                ("Logs", f"<#{settings['log_channel_id']}>", True),
                ("Raid Alerts", f"<#{alert_id}>" if alert_id else "Log channel", True)
            ]
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

async def setup(bot: commands.Bot):
    await bot.add_cog(Setup(bot))
