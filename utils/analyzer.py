# Server structure and security heuristics
# Produces the audit report that /audit and /security serve (and cache).

import discord
from datetime import datetime, timezone
from typing import Dict, List

AGE_KEYWORDS = {
    "minors": ["minor", "under18", "under 18", "-18", "teen", "minore", "minorenne", "minorenni"],
    "adults": ["adult", "over18", "over 18", "18+", "+18", "nsfw", "mature", "adulto", "adulti", "maggiorenne"],
}

DANGEROUS_PERMISSIONS = [
    "administrator",
    "manage_guild",
    "manage_roles",
    "manage_channels",
    "ban_members",
    "kick_members",
    "mention_everyone",
]

SECURITY_PENALTIES = {"CRITICAL": 25, "HIGH": 15, "MEDIUM": 10, "LOW": 5}
AGE_PENALTIES = {"CRITICAL": 30, "HIGH": 20, "WARNING": 10}


def dangerous_permissions(permissions: discord.Permissions) -> List[str]:
    return [name for name in DANGEROUS_PERMISSIONS if getattr(permissions, name, False)]


def _matches(name: str, keywords: List[str]) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in keywords)


def analyze_structure(guild: discord.Guild) -> dict:
    structure = {
        "name": guild.name,
        "member_count": guild.member_count,
        "categories": [],
        "text_channels": [],
        "voice_channels": [],
        "roles": [],
        "security_issues": [],
    }

    for channel in guild.channels:
        category = channel.category.name if getattr(channel, "category", None) else None
        if channel.type == discord.ChannelType.category:
            structure["categories"].append({"id": channel.id, "name": channel.name, "position": channel.position})
        elif channel.type == discord.ChannelType.text:
            structure["text_channels"].append({
                "id": channel.id,
                "name": channel.name,
                "category": category,
                "nsfw": bool(getattr(channel, "nsfw", False)),
            })
        elif channel.type == discord.ChannelType.voice:
            structure["voice_channels"].append({"id": channel.id, "name": channel.name, "category": category})

    for role in guild.roles:
        perms = dangerous_permissions(role.permissions)
        is_everyone = role.id == guild.id
        structure["roles"].append({
            "id": role.id,
            "name": role.name,
            "position": role.position,
            "member_count": len(role.members),
            "dangerous_perms": perms,
            "is_everyone": is_everyone,
        })

        if is_everyone and perms:
            structure["security_issues"].append({
                "type": "DANGEROUS_EVERYONE_PERMS",
                "severity": "HIGH",
                "message": f"@everyone has dangerous permissions: {', '.join(perms)}",
            })

    return structure


def _can_view(channel, role, everyone_id: int) -> bool:
    """Whether role can see channel, looking only at overwrites (role first, then @everyone)."""
    overwrites = channel.overwrites
    own = next((ow for target, ow in overwrites.items() if target.id == role.id), None)
    if own is not None and own.view_channel is not None:
        return own.view_channel

    everyone = next((ow for target, ow in overwrites.items() if target.id == everyone_id), None)
    if everyone is not None and everyone.view_channel is False:
        return False
    return True


def check_age_separation(guild: discord.Guild) -> dict:
    minor_roles = [r for r in guild.roles if _matches(r.name, AGE_KEYWORDS["minors"])]
    adult_roles = [r for r in guild.roles if _matches(r.name, AGE_KEYWORDS["adults"])]

    result = {
        "configured": bool(minor_roles and adult_roles),
        "minor_roles": [r.name for r in minor_roles],
        "adult_roles": [r.name for r in adult_roles],
        "issues": [],
        "recommendations": [],
    }

    if not result["configured"]:
        result["recommendations"].append({
            "type": "CREATE_AGE_ROLES",
            "message": "Create separate roles for minors and adults (e.g. \"Under18\", \"Over18\")",
        })
        return result

    for channel in guild.channels:
        if channel.type not in (discord.ChannelType.text, discord.ChannelType.voice):
            continue

        minor_can_view = any(_can_view(channel, role, guild.id) for role in minor_roles)
        adult_can_view = any(_can_view(channel, role, guild.id) for role in adult_roles)

        if getattr(channel, "nsfw", False) and minor_can_view:
            result["issues"].append({
                "type": "MINOR_ACCESS_NSFW",
                "severity": "CRITICAL",
                "channel": channel.name,
                "channel_id": channel.id,
                "message": f"Minor roles can access NSFW channel #{channel.name}",
            })

        if minor_can_view and adult_can_view and "adult" in channel.name.lower():
            result["issues"].append({
                "type": "MIXED_AGE_CHANNEL",
                "severity": "WARNING",
                "channel": channel.name,
                "channel_id": channel.id,
                "message": f"#{channel.name} is reachable by both minors and adults",
            })

    return result


def calculate_security_score(security_issues: List[dict], age_issues: List[dict]) -> int:
    score = 100
    for issue in security_issues:
        score -= SECURITY_PENALTIES.get(issue["severity"], 0)
    for issue in age_issues:
        score -= AGE_PENALTIES.get(issue["severity"], 0)
    return max(0, score)


def build_security_report(guild: discord.Guild) -> dict:
    structure = analyze_structure(guild)
    age_separation = check_age_separation(guild)
    issues = list(structure["security_issues"])

    if guild.default_role.permissions.create_instant_invite:
        issues.append({
            "type": "EVERYONE_CAN_INVITE",
            "severity": "MEDIUM",
            "message": "Everyone can create invites to the server",
        })

    level = int(guild.verification_level.value)
    if level < discord.VerificationLevel.medium.value:
        issues.append({
            "type": "LOW_VERIFICATION",
            "severity": "MEDIUM",
            "message": f"Low verification level ({level}/4). Consider raising it.",
        })

    return {
        "guild_id": guild.id,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "structure": structure,
        "age_separation": age_separation,
        "security_issues": issues,
        "score": calculate_security_score(issues, age_separation["issues"]),
    }


def snapshot_config(guild: discord.Guild) -> Dict[str, list]:
    """Roles and channels as plain data, for config backups."""
    return {
        "roles": [
            {"name": r.name, "position": r.position, "permissions": r.permissions.value, "color": r.color.value}
            for r in guild.roles
        ],
        "channels": [
            {
                "name": c.name,
                "type": str(c.type),
                "position": c.position,
                "category": c.category.name if getattr(c, "category", None) else None,
            }
            for c in guild.channels
        ],
    }
