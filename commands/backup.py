import discord
from discord import app_commands
from discord.ext import commands
import io
import json
from database.queries import save_config_backup, get_config_backups
from utils.analyzer import snapshot_config
from utils.embed_builder import EmbedBuilder

class Backup(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    backup_group = app_commands.Group(name="backup", description="Snapshot roles and channels")

    @backup_group.command(name="create", description="Save a snapshot of roles and channels")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(administrator=True)
    async def create(self, interaction: discord.Interaction):
        decision = self.bot.guard.rate_limiter.check(interaction.guild_id, "backup")
        if not decision.allowed:
            await interaction.response.send_message(
                embed=EmbedBuilder.rate_limited("backup create", decision.remaining_seconds),
                ephemeral=True
            )
            return

        snapshot = snapshot_config(interaction.guild)
        if not await save_config_backup(interaction.guild_id, snapshot):
            await interaction.response.send_message(
                embed=EmbedBuilder.error("Backup Failed", "The snapshot could not be stored."),
                ephemeral=True
            )
            return

        await interaction.response.send_message(
            embed=EmbedBuilder.success(
                "Backup Saved",
                f"Stored {len(snapshot['roles'])} roles and {len(snapshot['channels'])} channels."
            ),
            ephemeral=True
        )

    @backup_group.command(name="list", description="List stored snapshots, attaching the newest")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(administrator=True)
    async def list_backups(self, interaction: discord.Interaction):
        backups = await get_config_backups(interaction.guild_id)
        if not backups:
            await interaction.response.send_message(
                embed=EmbedBuilder.warning("No Backups", "Run `/backup create` first."),
                ephemeral=True
            )
            return

        lines = [
            f"`#{b['id']}` {b['created_at']} ({len(b['snapshot']['roles'])} roles, {len(b['snapshot']['channels'])} channels)"
            for b in backups
        ]
        newest = backups[0]
        file = discord.File(
            io.BytesIO(json.dumps(newest["snapshot"], indent=2).encode("utf-8")),
            filename=f"backup_{interaction.guild_id}_{newest['id']}.json"
        )
        await interaction.response.send_message(
            embed=EmbedBuilder.info("Config Backups", "\n".join(lines)),
            file=file,
            ephemeral=True
        )

async def setup(bot: commands.Bot):
    await bot.add_cog(Backup(bot))
