import discord
from discord import app_commands
from discord.ext import commands
from commands.audit import admit, format_issues, score_color
from database.queries import get_daily_metrics
from utils.analyzer import analyze_structure
from utils.insights import analyze_scaling, check_mee6, server_schema
from utils.embed_builder import EmbedBuilder
from utils.logger import get_logger

log = get_logger()

SCALING_DAYS = 14

SYMBIOSIS_LABELS = {
    "excellent": "Excellent",
    "good": "Good",
    "basic": "Basic",
    "minimal": "Minimal",
    "no_mee6": "MEE6 not present",
}

def render_schema(schema: dict) -> str:
    overview = schema["overview"]
    lines = [
        "```",
        f"Members:        {overview['members']}",
        f"Categories:     {overview['categories']}",
        f"Text Channels:  {overview['text_channels']}",
        f"Voice Channels: {overview['voice_channels']}",
        f"Roles:          {overview['roles']}",
        "```",
    ]
    for category, channels in schema["categories"].items():
        lines.append(f"📂 **{category}**")
        for channel in channels:
            icon = "🔊" if channel["kind"] == "voice" else ("🔞" if channel["nsfw"] else "💬")
            lines.append(f"  {icon} {channel['name']}")
    return "\n".join(lines)

class Insights(commands.Cog):
    """Growth and layout reports. Each command spends its own per-guild cooldown."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def guard(self):
        return self.bot.guard

    @app_commands.command(name="schema", description="Map this server's categories, channels and main roles")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def schema(self, interaction: discord.Interaction):
        if not await admit(self.guard, interaction, "schema"):
            return

        schema = server_schema(analyze_structure(interaction.guild))
        roles = "\n".join(
            f"• **{r['name']}** ({r['member_count']} members){' ⚠️' if r['dangerous'] else ''}"
            for r in schema["top_roles"]
        ) or "No populated roles."

        embed = EmbedBuilder.info(
            title=f"Server Map: {schema['name']}",
            description=render_schema(schema),
            fields=[("Main Roles", roles, False)]
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="scalecheck", description="Check channels, roles and staffing against server size")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def scalecheck(self, interaction: discord.Interaction):
        if not await admit(self.guard, interaction, "scalecheck"):
            return

        await interaction.response.defer(ephemeral=True)
        rows = await get_daily_metrics(interaction.guild_id, days=SCALING_DAYS)
        scaling = analyze_scaling(interaction.guild, rows)
        channels = scaling["channels"]
        roles = scaling["roles"]
        engagement = scaling["engagement"]
        log.info(f"[Insights] Scale check for guild {interaction.guild_id}: score {scaling['score']}")

        fields = [
            ("Score", f"**{scaling['score']}**/100", True),
            ("Phase", scaling["phase"], True),
            ("Progress", f"{scaling['progress']}% of {scaling['target_members']}", True),
            ("Channels", f"{channels['total']} ({channels['status'].replace('_', ' ')}, ~{channels['recommended']} recommended)", False),
            ("Roles", f"{roles['total']} total, {roles['orphaned']} empty, {roles['staff']} staff", False),
        ]
        if len(rows) >= 7:
            fields.append((
                "This Week",
                f"+{engagement['joins']} / -{engagement['leaves']} members ({engagement['growth_rate']:+.2f}%), {engagement['messages']} messages",
                False
            ))
        if scaling["recommendations"]:
            fields.append(("Recommendations", "\n".join(f"• {tip}" for tip in scaling["recommendations"]), False))

        embed = EmbedBuilder.build(
            title="Scale Check",
            description=format_issues(scaling["issues"]),
            color=score_color(scaling["score"]),
            fields=fields
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="mee6", description="Check how MEE6 is set up alongside Friday")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def mee6(self, interaction: discord.Interaction):
        if not await admit(self.guard, interaction, "mee6"):
            return

        result = check_mee6(interaction.guild)
        if not result["present"]:
            await interaction.response.send_message(
                embed=EmbedBuilder.info("MEE6 Not Found", "MEE6 is not in this server. Friday works on its own."),
                ephemeral=True
            )
            return

        features = ", ".join(f.replace("_", " ") for f in result["features"]) or "none detected"
        fields = [
            ("Compatibility", f"{SYMBIOSIS_LABELS[result['symbiosis']]} ({result['score']}/100)", True),
            ("Premium", "Likely" if result["premium"] else "No", True),
            ("Features", features, False),
        ]
        if result["level_roles"]:
            fields.append(("Level Roles", ", ".join(r["name"] for r in result["level_roles"][:10]), False))
        if result["conflicts"]:
            fields.append(("Notes", "\n".join(c["message"] for c in result["conflicts"]), False))

        await interaction.response.send_message(
            embed=EmbedBuilder.info(title="MEE6 Compatibility", description="Channels and roles MEE6 appears to manage.", fields=fields),
            ephemeral=True
        )

async def setup(bot: commands.Bot):
    await bot.add_cog(Insights(bot))
