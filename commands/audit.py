import discord
from discord import app_commands
from discord.ext import commands
from database.queries import save_audit_log, get_audit_history, get_daily_metrics
from utils.analyzer import build_security_report
from utils.insights import calculate_trends
from utils.embed_builder import EmbedBuilder
from utils.logger import get_logger

log = get_logger()

MAX_ISSUES_SHOWN = 10
TREND_DAYS = 14

SEVERITY_ICONS = {
    "CRITICAL": "🔴",
    "HIGH": "🟠",
    "MEDIUM": "🟡",
    "WARNING": "🟡",
    "LOW": "🔵",
}

def score_color(score: int) -> discord.Color:
    if score >= 80:
        return discord.Color.green()
    if score >= 50:
        return discord.Color.gold()
    return discord.Color.red()

def format_issues(issues: list) -> str:
    if not issues:
        return "No issues found. ✅"
    lines = [f"{SEVERITY_ICONS.get(i['severity'], '⚪')} **{i['severity']}** {i['message']}" for i in issues[:MAX_ISSUES_SHOWN]]
    if len(issues) > MAX_ISSUES_SHOWN:
        lines.append(f"...and {len(issues) - MAX_ISSUES_SHOWN} more")
    return "\n".join(lines)

async def admit(guard, interaction: discord.Interaction, command: str) -> bool:
    """Spend the guild's cooldown slot for command, or reply with the time left."""
    decision = guard.rate_limiter.check(interaction.guild_id, command)
    if not decision.allowed:
        await interaction.response.send_message(
            embed=EmbedBuilder.rate_limited(command, decision.remaining_seconds),
            ephemeral=True
        )
    return decision.allowed

def summarize_metrics(rows: list) -> dict:
    totals = {"join_count": 0, "leave_count": 0, "message_count": 0}
    for row in rows:
        for key in totals:
            totals[key] += row.get(key) or 0
    return totals

class Audit(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def guard(self):
        return self.bot.guard

    async def get_report(self, guild: discord.Guild, refresh: bool = False):
        """
        Cached report for guild, generating (and persisting) a new one on a miss or when refresh is set.
        Returns (report, from_cache). The caller has already passed the rate limit.
        """
        if not refresh:
            cached = self.guard.cache.get(guild.id)
            if cached is not None:
                return cached, True

        report = build_security_report(guild)
        self.guard.cache.set(guild.id, report)
        await save_audit_log(guild.id, report)
        log.info(f"[Audit] Generated report for guild {guild.id} (score {report['score']})")
        return report, False

    async def _admit(self, interaction: discord.Interaction, command: str) -> bool:
        return await admit(self.guard, interaction, command)

    @app_commands.command(name="audit", description="Run a structure and security audit of this server")
    @app_commands.describe(refresh="Ignore the cached report and analyze again")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def audit(self, interaction: discord.Interaction, refresh: bool = False):
        if not await self._admit(interaction, "audit"):
            return

        await interaction.response.defer()
        report, from_cache = await self.get_report(interaction.guild, refresh=refresh)
        structure = report["structure"]
        age = report["age_separation"]

        embed = EmbedBuilder.build(
            title=f"Server Audit: {structure['name']}",
            description=format_issues(report["security_issues"] + age["issues"]),
            color=score_color(report["score"]),
            footer="Cached report" if from_cache else "Fresh report",
            fields=[
                ("Score", f"**{report['score']}**/100", True),
                ("Members", str(structure["member_count"]), True),
                ("Roles", str(len(structure["roles"])), True),
                ("Categories", str(len(structure["categories"])), True),
                ("Text / Voice", f"{len(structure['text_channels'])} / {len(structure['voice_channels'])}", True),
                ("Age Separation", "Configured" if age["configured"] else "Not configured", True),
            ]
        )
        await interaction.followup.send(embed=embed)

    @app_commands.command(name="security", description="Show security issues for this server")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def security(self, interaction: discord.Interaction):
        if not await self._admit(interaction, "security"):
            return

        await interaction.response.defer(ephemeral=True)
        report, from_cache = await self.get_report(interaction.guild)

        embed = EmbedBuilder.build(
            title="Security Report",
            description=format_issues(report["security_issues"]),
            color=score_color(report["score"]),
            footer="Cached report" if from_cache else "Fresh report",
            fields=[("Score", f"**{report['score']}**/100", True)]
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="audit-history", description="Show recent audit scores")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def audit_history(self, interaction: discord.Interaction):
        rows = await get_audit_history(interaction.guild_id)
        if not rows:
            await interaction.response.send_message(
                embed=EmbedBuilder.warning("No History", "No audits have been run on this server yet."),
                ephemeral=True
            )
            return

        lines = [f"`{row['created_at']}` score **{row['score']}** ({row['issue_count']} issues)" for row in rows]
        await interaction.response.send_message(
            embed=EmbedBuilder.info("Audit History", "\n".join(lines)),
            ephemeral=True
        )

    @app_commands.command(name="activity", description="Joins, leaves and messages over the last days")
    @app_commands.describe(days="How many days to include")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def activity(self, interaction: discord.Interaction, days: app_commands.Range[int, 1, 90] = 7):
        rows = await get_daily_metrics(interaction.guild_id, days=days)
        if not rows:
            await interaction.response.send_message(
                embed=EmbedBuilder.warning("No Data", "No activity has been recorded yet."),
                ephemeral=True
            )
            return

        totals = summarize_metrics(rows)
        fields = [
            ("Joins", str(totals["join_count"]), True),
            ("Leaves", str(totals["leave_count"]), True),
            ("Net Growth", f"{totals['join_count'] - totals['leave_count']:+d}", True),
            ("Messages", str(totals["message_count"]), True),
        ]

        trends = calculate_trends(await get_daily_metrics(interaction.guild_id, days=TREND_DAYS))
        if trends is not None:
            fields.append((
                "Trend (last 7 days vs previous)",
                f"Members {trends['member_trend']:+.1f}% · Messages {trends['message_trend']:+.1f}%",
                False
            ))

        embed = EmbedBuilder.info(
            title=f"Activity: last {days} day(s)",
            description=f"Based on {len(rows)} day(s) of data.",
            fields=fields
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    guard_group = app_commands.Group(name="guard", description="Inspect the audit cache and cooldowns")

    @guard_group.command(name="stats", description="Show cache and cooldown counters")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def guard_stats(self, interaction: discord.Interaction):
        stats = self.guard.stats()
        age_ms = self.guard.cache.age_ms(interaction.guild_id)
        cached = f"{age_ms // 60000} min old" if age_ms is not None else "none"

        embed = EmbedBuilder.info(
            title="Guard Stats",
            description="In-memory state since the last restart.",
            fields=[
                ("Cached Reports", str(stats["cache_size"]), True),
                ("Cooldown Entries", str(stats["rate_limit_entries"]), True),
                ("Tracked Guilds", str(stats["tracked_guilds"]), True),
                ("Open Raid Alerts", str(stats["open_alerts"]), True),
                ("This Server's Report", cached, True),
            ]
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @guard_group.command(name="invalidate", description="Drop this server's cached audit report")
    @app_commands.guild_only()
    @app_commands.checks.has_permissions(manage_guild=True)
    async def guard_invalidate(self, interaction: discord.Interaction):
        if self.guard.cache.invalidate(interaction.guild_id):
            embed = EmbedBuilder.success("Cache Cleared", "The next `/audit` will analyze the server again.")
        else:
            embed = EmbedBuilder.info("Nothing Cached", "There was no cached report for this server.")
        await interaction.response.send_message(embed=embed, ephemeral=True)

async def setup(bot: commands.Bot):
    await bot.add_cog(Audit(bot))
