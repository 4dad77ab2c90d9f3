import discord
from discord.ext import commands
from .base import BaseLogger
from database.queries import increment_metric
from utils.embed_builder import EmbedBuilder

MAX_ROLES_SHOWN = 20

class MemberLeave(BaseLogger):
    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member):
        guild = member.guild
        await increment_metric(guild.id, "leave_count", member_count=guild.member_count)

        roles = [r.mention for r in member.roles if r != guild.default_role]
        shown = ", ".join(roles[:MAX_ROLES_SHOWN]) or "None"
        if len(roles) > MAX_ROLES_SHOWN:
            shown += f" (+{len(roles) - MAX_ROLES_SHOWN} more)"

        embed = EmbedBuilder.error(
            title="Member Left",
            description=f"{member.mention} {member.name} has left the server.",
            author=member,
            footer=f"ID: {member.id}",
            fields=[
                ("Roles", shown, False),
                ("Member Count", str(guild.member_count), True)
            ]
        )

        await self.log_event(guild, embed)

async def setup(bot: commands.Bot):
    await bot.add_cog(MemberLeave(bot))
