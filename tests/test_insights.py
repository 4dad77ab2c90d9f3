import pytest
import discord
from types import SimpleNamespace
from utils.insights import (
    MEE6_BOT_ID,
    analyze_scaling,
    calculate_trends,
    channel_status,
    check_mee6,
    growth_phase,
    is_level_role,
    server_schema,
    weekly_engagement,
)

GUILD_ID = 1

def make_role(role_id, name, members=0, position=0):
    return SimpleNamespace(id=role_id, name=name, position=position, members=[object()] * members)

def make_channel(channel_id, name, kind=discord.ChannelType.text):
    return SimpleNamespace(id=channel_id, name=name, type=kind)

def make_guild(member_count, roles=None, channels=None, members=None, me=None):
    members = members or {}
    return SimpleNamespace(
        id=GUILD_ID,
        member_count=member_count,
        roles=[make_role(GUILD_ID, "@everyone", members=member_count)] + (roles or []),
        channels=channels or [],
        get_member=members.get,
        me=me,
    )

def day(joins=0, leaves=0, messages=0, members=0):
    return {"join_count": joins, "leave_count": leaves, "message_count": messages, "member_count": members}

def test_growth_phase_boundaries():
    assert growth_phase(50).name == "Launch"
    assert growth_phase(51).name == "Base"
    assert growth_phase(1000).name == "Mature"
    assert growth_phase(10**6).name == "Mega"

def test_channel_status_against_phase():
    # Launch: min 4, max 15, optimal 8
    assert channel_status(3, 20) == "under_scaled"
    assert channel_status(16, 20) == "over_scaled"
    assert channel_status(8, 20) == "optimal"
    # Mega: min 25, max 65, optimal 45
    assert channel_status(30, 10_000) == "good"

def test_level_role_patterns():
    assert is_level_role("Level 10")
    assert is_level_role("livello5")
    assert is_level_role("20 XP")
    assert not is_level_role("Moderator")

def test_server_schema_groups_channels_and_ranks_roles():
    structure = {
        "name": "Test Guild",
        "member_count": 10,
        "categories": [{"id": 1, "name": "Info", "position": 0}],
        "text_channels": [
            {"id": 2, "name": "rules", "category": "Info", "nsfw": False},
            {"id": 3, "name": "loose", "category": None, "nsfw": True},
        ],
        "voice_channels": [{"id": 4, "name": "Lounge", "category": "Info"}],
        "roles": [
            {"name": "@everyone", "position": 0, "member_count": 10, "dangerous_perms": [], "is_everyone": True},
            {"name": "Member", "position": 1, "member_count": 8, "dangerous_perms": [], "is_everyone": False},
            {"name": "Admin", "position": 9, "member_count": 1, "dangerous_perms": ["administrator"], "is_everyone": False},
            {"name": "Empty", "position": 5, "member_count": 0, "dangerous_perms": [], "is_everyone": False},
        ],
    }

    schema = server_schema(structure)

    assert schema["overview"]["text_channels"] == 2
    assert [c["name"] for c in schema["categories"]["Info"]] == ["rules", "Lounge"]
    assert schema["categories"]["No category"] == [{"name": "loose", "kind": "text", "nsfw": True}]
    assert [r["name"] for r in schema["top_roles"]] == ["Admin", "Member"]
    assert schema["top_roles"][0]["dangerous"] is True

def test_weekly_engagement_needs_full_week():
    assert weekly_engagement([day(joins=5)] * 6, 100)["joins"] == 0

    rows = [day(joins=100)] + [day(joins=2, leaves=3, messages=10)] * 7
    engagement = weekly_engagement(rows, 100)
    assert engagement["joins"] == 14
    assert engagement["net_growth"] == -7
    assert engagement["growth_rate"] == -7.0

def test_scaling_small_healthy_server():
    guild = make_guild(
        20,
        roles=[make_role(2, "Mod", members=1), make_role(3, "Member", members=19)],
        channels=[make_channel(i, f"chat-{i}") for i in range(8)],
    )
    result = analyze_scaling(guild)

    assert result["phase"] == "Launch"
    assert result["channels"]["status"] == "optimal"
    assert result["issues"] == []
    assert result["score"] == 100
    assert result["progress"] == 2.0

def test_scaling_flags_orphans_staffing_and_decline():
    guild = make_guild(
        200,
        roles=[make_role(10 + i, f"Old {i}") for i in range(4)] + [make_role(2, "Member", members=200)],
        channels=[make_channel(i, f"chat-{i}") for i in range(20)],
    )
    rows = [day(joins=1, leaves=2)] * 7

    result = analyze_scaling(guild, rows)

    types = [i["type"] for i in result["issues"]]
    assert types == ["ORPHANED_ROLES", "UNDERSTAFFED", "NEGATIVE_GROWTH"]
    assert result["roles"]["orphaned_names"] == ["Old 0", "Old 1", "Old 2", "Old 3"]
    assert result["score"] == 100 - 10 - 15 - 20

def test_scaling_penalties_accumulate():
    guild = make_guild(
        1000,
        roles=[make_role(10 + i, f"Old {i}") for i in range(10)],
        channels=[make_channel(i, f"chat-{i}") for i in range(100)],
    )
    result = analyze_scaling(guild, [day(leaves=50)] * 7)
    assert result["score"] == 100 - 10 - 5 - 15 - 20

def test_trends_compare_halves():
    assert calculate_trends([day(messages=5)]) is None

    rows = [day(messages=10, members=100)] * 7 + [day(messages=20, members=110)] * 7
    trends = calculate_trends(rows)
    assert trends == {"member_trend": 10.0, "message_trend": 100.0, "data_points": 14}

def test_trends_without_previous_activity():
    trends = calculate_trends([day()] * 7 + [day(messages=3)] * 7)
    assert trends["message_trend"] == 0.0

def mee6_member(position=1, administrator=False):
    return SimpleNamespace(
        top_role=SimpleNamespace(position=position),
        guild_permissions=discord.Permissions(administrator=administrator),
    )

def test_mee6_absent():
    result = check_mee6(make_guild(10))
    assert result["present"] is False
    assert result["symbiosis"] == "no_mee6"

def test_mee6_features_and_conflicts():
    guild = make_guild(
        50,
        roles=[make_role(2, "Level 5", members=3)],
        channels=[
            make_channel(10, "welcome"),
            make_channel(11, "verify-here"),
            make_channel(12, "Lounge", kind=discord.ChannelType.voice),
        ],
        members={MEE6_BOT_ID: mee6_member(position=1, administrator=True)},
        me=SimpleNamespace(top_role=SimpleNamespace(position=4)),
    )

    result = check_mee6(guild)

    assert result["present"] is True
    assert result["premium"] is True
    assert result["features"] == ["leveling", "welcome", "captcha"]
    assert [c["name"] for c in result["channels"]] == ["welcome", "verify-here"]
    assert [c["type"] for c in result["conflicts"]] == ["ROLE_HIERARCHY", "MEE6_ADMIN"]
    assert (result["symbiosis"], result["score"]) == ("good", 85)

def test_mee6_present_without_features():
    guild = make_guild(10, members={MEE6_BOT_ID: mee6_member()}, me=None)
    result = check_mee6(guild)
    assert (result["symbiosis"], result["score"]) == ("minimal", 50)
    assert result["conflicts"] == []
