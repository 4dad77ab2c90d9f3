import discord
from discord.ext import commands
from .base import BaseLogger
from database.queries import increment_metric
from utils.embed_builder import EmbedBuilder
from utils.logger import get_logger
from utils.raid_detector import RaidDecisionKind
import datetime

log = get_logger()

NEW_ACCOUNT_DAYS = 7

class MemberJoin(BaseLogger):
    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member):
        guild = member.guild

        decision = self.guard.raid.observe_join(guild.id)
        if decision.kind is RaidDecisionKind.TRIGGERED:
            await self.send_raid_alert(guild, decision.count)

        await increment_metric(guild.id, "join_count", member_count=guild.member_count)

        age = datetime.datetime.now(datetime.timezone.utc) - member.created_at
        is_new_account = age.days < NEW_ACCOUNT_DAYS

        description = f"{member.mention} {member.name} has joined the server."
        notes = []
        if decision.kind is not RaidDecisionKind.NONE:
            notes.append("Joined during a raid alert.")
        if is_new_account:
            notes.append(f"Account is less than {NEW_ACCOUNT_DAYS} days old.")
        if notes:
            description += "\n⚠️ **Potential Risk:** " + " ".join(notes)

        embed = EmbedBuilder.build(
            title="Member Joined",
            description=description,
            color=discord.Color.orange() if notes else discord.Color.green(),
            author=member,
            footer=f"ID: {member.id}",
            fields=[
                ("Account Created", f"<t:{int(member.created_at.timestamp())}:R>", True),
                ("Member Count", str(guild.member_count), True)
            ]
        )

        await self.log_event(guild, embed)

    async def send_raid_alert(self, guild: discord.Guild, count: int):
        status = self.guard.raid.status(guild.id)
        window_seconds = status["window_ms"] / 1000
        cooldown_minutes = self.guard.raid.cooldown_ms / 60000

        embed = EmbedBuilder.build(
            title="🚨 Possible Raid Detected",
            description=(
                f"**{count}** members joined within **{window_seconds:g}s** "
                f"(threshold {status['threshold']}).\n"
                f"Further alerts are muted for {cooldown_minutes:g} minutes."
            ),
            color=discord.Color.dark_red(),
            footer=f"Guild ID: {guild.id}",
            fields=[("Member Count", str(guild.member_count), True)]
        )
        await self.send_alert(guild, embed)

async def setup(bot: commands.Bot):
    await bot.add_cog(MemberJoin(bot))
