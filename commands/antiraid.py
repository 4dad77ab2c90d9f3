import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional
from database.queries import upsert_guild_settings
from utils.embed_builder import EmbedBuilder
from utils.logger import get_logger

log = get_logger()

class AntiRaid(commands.Cog):
    """Admin surface for the join-rate detector. Changes apply immediately and are persisted."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def detector(self):
        return self.bot.guard.raid

    antiraid_group = app_commands.Group(name="antiraid", description="Configure raid detection")

    def status_embed(self, guild_id: int) -> discord.Embed:
        status = self.detector.status(guild_id)
        state = "🚨 Alert open" if status["triggered"] else "Idle"
        fields = [
            ("Enabled", "Yes" if status["enabled"] else "No", True),
            ("State", state, True),
            ("Threshold", f"{status['threshold']} joins", True),
            ("Window", f"{status['window_ms'] / 1000:g}s", True),
            ("Joins In Window", str(status["window_count"]), True),
        ]
        if status["triggered_at"] is not None:
            fields.append(("Triggered", f"<t:{status['triggered_at'] // 1000}:R> at {status['join_count_at_trigger']} joins", False))
        return EmbedBuilder.info(title="Anti-Raid Status", description="Join-rate monitoring for this server.", fields=fields)

    @antiraid_group.command(name="status", description="Show anti-raid settings and state")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def status(self, interaction: discord.Interaction):
        await interaction.response.send_message(embed=self.status_embed(interaction.guild_id), ephemeral=True)

    @antiraid_group.command(name="enable", description="Turn raid detection on")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def enable(self, interaction: discord.Interaction):
        self.detector.configure(interaction.guild_id, enabled=True)
        await upsert_guild_settings(interaction.guild_id, antiraid_enabled=True)
        await interaction.response.send_message(embed=EmbedBuilder.success("Anti-Raid Enabled", "Join rate is now monitored."), ephemeral=True)

    @antiraid_group.command(name="disable", description="Turn raid detection off")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def disable(self, interaction: discord.Interaction):
        self.detector.configure(interaction.guild_id, enabled=False)
        await upsert_guild_settings(interaction.guild_id, antiraid_enabled=False)
        await interaction.response.send_message(embed=EmbedBuilder.warning("Anti-Raid Disabled", "Raid alerts will not be sent."), ephemeral=True)

    @antiraid_group.command(name="configure", description="Change the join threshold and window")
    @app_commands.describe(threshold="Joins that count as a raid", window_seconds="Length of the sliding window")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def configure(
        self,
        interaction: discord.Interaction,
        threshold: Optional[app_commands.Range[int, 1, 500]] = None,
        window_seconds: Optional[app_commands.Range[int, 1, 3600]] = None
    ):
        if threshold is None and window_seconds is None:
            await interaction.response.send_message(
                embed=EmbedBuilder.error("Nothing To Change", "Pass a threshold, a window, or both."),
                ephemeral=True
            )
            return

        self.detector.configure(
            interaction.guild_id,
            threshold=threshold,
            window_ms=window_seconds * 1000 if window_seconds is not None else None
        )

        changes = {}
        if threshold is not None:
            changes["raid_threshold"] = threshold
        if window_seconds is not None:
            changes["raid_window_seconds"] = window_seconds
        await upsert_guild_settings(interaction.guild_id, **changes)

        log.info(f"[AntiRaid] Guild {interaction.guild_id} reconfigured: {changes}")
        await interaction.response.send_message(embed=self.status_embed(interaction.guild_id), ephemeral=True)

    @antiraid_group.command(name="channel", description="Send raid alerts to a channel")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def channel(self, interaction: discord.Interaction, channel: discord.TextChannel):
        await upsert_guild_settings(interaction.guild_id, alert_channel_id=channel.id)
        await interaction.response.send_message(
            embed=EmbedBuilder.success("Alert Channel Set", f"Raid alerts will be posted in {channel.mention}."),
            ephemeral=True
        )

    @antiraid_group.command(name="reset", description="Close the current raid alert early")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def reset(self, interaction: discord.Interaction):
        if self.detector.reset_alert(interaction.guild_id):
            embed = EmbedBuilder.success("Alert Closed", "A new burst of joins will raise a fresh alert.")
        else:
            embed = EmbedBuilder.info("No Open Alert", "There is no raid alert to close.")
        await interaction.response.send_message(embed=embed, ephemeral=True)

async def setup(bot: commands.Bot):
    await bot.add_cog(AntiRaid(bot))
