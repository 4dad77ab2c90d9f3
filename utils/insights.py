# Growth, layout and companion-bot heuristics
# Backs /schema, /scalecheck, /mee6 and the trend line of /activity. Pure functions over
# discord objects and daily_metrics rows; nothing here touches the network.

import re
import discord
from dataclasses import dataclass
from typing import Dict, List, Optional

MEE6_BOT_ID = 159985870458322944

# Channel-name keywords (English and Italian) hinting at a MEE6 plugin
MEE6_FEATURES = {
    "leveling": ["livello", "level", "xp", "rank", "classifica", "leaderboard", "lvl"],
    "welcome": ["benvenuto", "welcome", "arrivals", "arrivi", "join", "nuovo", "nuovi"],
    "moderation": ["mod-log", "modlog", "logs", "warns", "mute", "sanzioni", "ban-log"],
    "reaction_roles": ["reaction-role", "ruoli", "roles", "self-assign", "auto-ruoli", "ottieni-ruoli"],
    "captcha": ["verifica", "verify", "captcha", "gate", "ingresso"],
    "streaming": ["twitch", "youtube", "live", "streaming", "notifiche-live"],
}

MEE6_ROLE_PATTERNS = [
    re.compile(r"^level\s*\d+$", re.IGNORECASE),
    re.compile(r"^lvl\s*\d+$", re.IGNORECASE),
    re.compile(r"^livello\s*\d+$", re.IGNORECASE),
    re.compile(r"mee6", re.IGNORECASE),
    re.compile(r"^tier\s*\d+$", re.IGNORECASE),
    re.compile(r"^\d+\s*(xp|level|lvl)$", re.IGNORECASE),
]

STAFF_KEYWORDS = ("mod", "admin", "staff", "helper", "owner")

TARGET_MEMBERS = 1000
ORPHANED_ROLES_MAX = 0.2
STAFF_RATIO_MIN = 0.02
STAFF_RATIO_MAX = 0.1
MAX_SCHEMA_ROLES = 10
NO_CATEGORY = "No category"


@dataclass(frozen=True)
class GrowthPhase:
    name: str
    max_members: float
    min_channels: int
    max_channels: int
    optimal_channels: int


GROWTH_PHASES = [
    GrowthPhase("Launch", 50, 4, 15, 8),
    GrowthPhase("Base", 100, 8, 20, 12),
    GrowthPhase("Growth", 500, 12, 30, 20),
    GrowthPhase("Mature", 1000, 15, 40, 25),
    GrowthPhase("Large", 5000, 20, 50, 35),
    GrowthPhase("Mega", float("inf"), 25, 65, 45),
]


def growth_phase(member_count: int) -> GrowthPhase:
    return next((p for p in GROWTH_PHASES if member_count <= p.max_members), GROWTH_PHASES[-1])


def channel_status(channel_count: int, member_count: int) -> str:
    phase = growth_phase(member_count)
    if channel_count < phase.min_channels:
        return "under_scaled"
    if channel_count > phase.max_channels:
        return "over_scaled"
    if phase.optimal_channels - 5 <= channel_count <= phase.optimal_channels + 10:
        return "optimal"
    return "good"


def is_level_role(name: str) -> bool:
    return any(pattern.search(name) for pattern in MEE6_ROLE_PATTERNS)


def server_schema(structure: dict) -> dict:
    """Channels grouped by category (in listing order) and the most senior populated roles."""
    categories: Dict[str, List[dict]] = {}
    for channel in structure["text_channels"]:
        categories.setdefault(channel["category"] or NO_CATEGORY, []).append(
            {"name": channel["name"], "kind": "text", "nsfw": channel["nsfw"]}
        )
    for channel in structure["voice_channels"]:
        categories.setdefault(channel["category"] or NO_CATEGORY, []).append(
            {"name": channel["name"], "kind": "voice", "nsfw": False}
        )

    roles = sorted(
        (r for r in structure["roles"] if not r["is_everyone"] and r["member_count"] > 0),
        key=lambda r: r["position"],
        reverse=True
    )[:MAX_SCHEMA_ROLES]

    return {
        "name": structure["name"],
        "overview": {
            "members": structure["member_count"],
            "categories": len(structure["categories"]),
            "text_channels": len(structure["text_channels"]),
            "voice_channels": len(structure["voice_channels"]),
            "roles": len(structure["roles"]),
        },
        "categories": categories,
        "top_roles": [
            {"name": r["name"], "member_count": r["member_count"], "dangerous": bool(r["dangerous_perms"])}
            for r in roles
        ],
    }


def weekly_engagement(rows: List[dict], member_count: int) -> dict:
    """Totals over the last 7 daily rows. Left at zero until a full week is recorded."""
    engagement = {"messages": 0, "joins": 0, "leaves": 0, "net_growth": 0, "growth_rate": 0.0}
    if len(rows) < 7:
        return engagement

    week = rows[-7:]
    engagement["messages"] = sum(r.get("message_count") or 0 for r in week)
    engagement["joins"] = sum(r.get("join_count") or 0 for r in week)
    engagement["leaves"] = sum(r.get("leave_count") or 0 for r in week)
    engagement["net_growth"] = engagement["joins"] - engagement["leaves"]
    engagement["growth_rate"] = round(engagement["net_growth"] / max(member_count, 1) * 100, 2)
    return engagement


def analyze_scaling(guild: discord.Guild, daily_rows: Optional[List[dict]] = None) -> dict:
    member_count = guild.member_count or 0
    text = sum(1 for c in guild.channels if c.type == discord.ChannelType.text)
    voice = sum(1 for c in guild.channels if c.type == discord.ChannelType.voice)
    phase = growth_phase(member_count)

    roles = {"total": len(guild.roles), "with_members": 0, "orphaned": 0, "staff": 0, "level": 0, "orphaned_names": []}
    for role in guild.roles:
        if role.id == guild.id:
            continue
        if role.members:
            roles["with_members"] += 1
        else:
            roles["orphaned"] += 1
            if len(roles["orphaned_names"]) < 5:
                roles["orphaned_names"].append(role.name)
        lowered = role.name.lower()
        if any(keyword in lowered for keyword in STAFF_KEYWORDS):
            roles["staff"] += 1
        if is_level_role(role.name):
            roles["level"] += 1

    result = {
        "member_count": member_count,
        "target_members": TARGET_MEMBERS,
        "progress": round(min(member_count / TARGET_MEMBERS * 100, 100), 1),
        "phase": phase.name,
        "channels": {
            "text": text,
            "voice": voice,
            "total": text + voice,
            "status": channel_status(text + voice, member_count),
            "recommended": phase.optimal_channels,
        },
        "roles": roles,
        "engagement": weekly_engagement(daily_rows or [], member_count),
        "issues": [],
        "recommendations": [],
        "score": 100,
    }
    issues = result["issues"]
    tips = result["recommendations"]

    orphaned_ratio = roles["orphaned"] / max(roles["total"], 1)
    if orphaned_ratio > ORPHANED_ROLES_MAX:
        issues.append({
            "type": "ORPHANED_ROLES",
            "severity": "MEDIUM",
            "message": f"{roles['orphaned']} roles have no members ({orphaned_ratio * 100:.0f}%)",
        })
        result["score"] -= 10
        tips.append("Delete unused roles to keep the hierarchy simple")

    status = result["channels"]["status"]
    total = result["channels"]["total"]
    if status == "over_scaled":
        issues.append({
            "type": "TOO_MANY_CHANNELS",
            "severity": "LOW",
            "message": f"{phase.name} phase: {total} channels (about {phase.optimal_channels} recommended)",
        })
        result["score"] -= 5
        tips.append("Merge similar channels or wait for the community to grow into them")
    elif status == "under_scaled":
        issues.append({
            "type": "FEW_CHANNELS",
            "severity": "LOW",
            "message": f"{phase.name} phase: {total} channels (about {phase.optimal_channels} recommended)",
        })
        result["score"] -= 5
        tips.append("Add topic channels so conversations have somewhere to go")

    staff_ratio = roles["staff"] / max(member_count, 1)
    if staff_ratio < STAFF_RATIO_MIN and member_count > 30:
        issues.append({
            "type": "UNDERSTAFFED",
            "severity": "HIGH",
            "message": f"Small moderation team ({roles['staff']} staff roles for {member_count} members)",
        })
        result["score"] -= 15
        tips.append("Recruit more moderators")
    elif staff_ratio > STAFF_RATIO_MAX:
        issues.append({
            "type": "OVERSTAFFED",
            "severity": "LOW",
            "message": "Moderation team is very large for the member count",
        })
        result["score"] -= 5

    net_growth = result["engagement"]["net_growth"]
    if net_growth < 0:
        issues.append({
            "type": "NEGATIVE_GROWTH",
            "severity": "HIGH",
            "message": f"Negative growth this week: {net_growth} members",
        })
        result["score"] -= 20
        tips.append("Work on retention: events, exclusive content, member engagement")

    if member_count < 100:
        tips.append("Early phase: focus on quality content and personal invites")
    elif member_count < 500:
        tips.append("Growth phase: partnerships, cross-server events and server listings")
    elif member_count < 1000:
        tips.append("Almost there: focus on community features")

    result["score"] = max(0, min(100, result["score"]))
    return result


def _percent_change(recent: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return round((recent - previous) / previous * 100, 1)


def calculate_trends(rows: List[dict]) -> Optional[dict]:
    """
    Compare the newest 7 daily rows against the oldest 7 (rows ascending by day, up to 14).
    With fewer than 14 rows the two halves overlap. None below two data points.
    """
    if len(rows) < 2:
        return None

    recent = rows[-7:]
    previous = rows[:7]

    def average(chunk, key):
        return sum(r.get(key) or 0 for r in chunk) / len(chunk)

    return {
        "member_trend": _percent_change(average(recent, "member_count"), average(previous, "member_count")),
        "message_trend": _percent_change(average(recent, "message_count"), average(previous, "message_count")),
        "data_points": len(rows),
    }


def check_mee6(guild: discord.Guild) -> dict:
    """How MEE6 is set up here, so Friday's features can be pitched around it."""
    result = {
        "present": False,
        "premium": False,
        "symbiosis": "no_mee6",
        "score": 100,
        "features": [],
        "level_roles": [],
        "channels": [],
        "conflicts": [],
    }

    mee6 = guild.get_member(MEE6_BOT_ID)
    if mee6 is None:
        return result
    result["present"] = True

    for role in guild.roles:
        if is_level_role(role.name):
            result["level_roles"].append({"name": role.name, "members": len(role.members)})
    if result["level_roles"]:
        result["features"].append("leveling")
        result["premium"] = True

    for channel in guild.channels:
        if channel.type != discord.ChannelType.text:
            continue
        lowered = channel.name.lower()
        for feature, keywords in MEE6_FEATURES.items():
            if not any(keyword in lowered for keyword in keywords):
                continue
            if feature not in result["features"]:
                result["features"].append(feature)
            if not any(c["name"] == channel.name for c in result["channels"]):
                result["channels"].append({"name": channel.name, "feature": feature, "id": channel.id})

    if "captcha" in result["features"]:
        result["premium"] = True

    me = guild.me
    if me is not None and me.top_role.position > mee6.top_role.position:
        result["conflicts"].append({"type": "ROLE_HIERARCHY", "message": "Friday sits above MEE6 in the role hierarchy"})
    if mee6.guild_permissions.administrator:
        result["conflicts"].append({"type": "MEE6_ADMIN", "message": "MEE6 has Administrator"})

    count = len(result["features"])
    if count >= 4:
        result["symbiosis"], result["score"] = "excellent", 100
    elif count >= 2:
        result["symbiosis"], result["score"] = "good", 85
    elif count >= 1:
        result["symbiosis"], result["score"] = "basic", 70
    else:
        result["symbiosis"], result["score"] = "minimal", 50

    return result
