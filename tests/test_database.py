import pytest
import pytest_asyncio
from database.core import DatabaseManager
from database import queries

@pytest_asyncio.fixture
async def memory_db(mocker):
    manager = DatabaseManager(":memory:")
    await manager.connect()
    mocker.patch.object(queries, "db", manager)
    yield manager
    await manager.close()

@pytest.mark.asyncio
async def test_upsert_only_touches_given_fields(memory_db):
    assert await queries.upsert_guild_settings(1, log_channel_id=100, alert_channel_id=200)
    assert await queries.upsert_guild_settings(1, antiraid_enabled=False, raid_threshold=5)

    settings = await queries.get_guild_settings(1)
    assert settings["log_channel_id"] == 100
    assert settings["alert_channel_id"] == 200
    assert settings["antiraid_enabled"] == 0
    assert settings["raid_threshold"] == 5
    assert settings["raid_window_seconds"] is None

    assert await queries.get_guild_settings(2) is None

@pytest.mark.asyncio
async def test_raid_settings_only_for_overridden_guilds(memory_db):
    await queries.upsert_guild_settings(1, log_channel_id=100)
    await queries.upsert_guild_settings(2, raid_window_seconds=60)

    rows = await queries.get_all_raid_settings()
    assert rows == [{"guild_id": 2, "antiraid_enabled": None, "raid_threshold": None, "raid_window_seconds": 60}]

@pytest.mark.asyncio
async def test_audit_history_newest_first(memory_db):
    await queries.save_audit_log(1, {"score": 60, "security_issues": [{}, {}]})
    await queries.save_audit_log(1, {"score": 90, "security_issues": []})
    await queries.save_audit_log(2, {"score": 10, "security_issues": []})

    history = await queries.get_audit_history(1)
    assert [(h["score"], h["issue_count"]) for h in history] == [(90, 0), (60, 2)]

@pytest.mark.asyncio
async def test_daily_metrics_counters(memory_db):
    await queries.increment_metric(1, "join_count", member_count=10)
    await queries.increment_metric(1, "join_count", member_count=11)
    await queries.increment_metric(1, "message_count")

    rows = await queries.get_daily_metrics(1)
    assert len(rows) == 1
    assert rows[0]["join_count"] == 2
    assert rows[0]["leave_count"] == 0
    assert rows[0]["message_count"] == 1
    assert rows[0]["member_count"] == 11

@pytest.mark.asyncio
async def test_unknown_metric_column_is_rejected(memory_db):
    with pytest.raises(ValueError):
        await queries.increment_metric(1, "guild_id")

@pytest.mark.asyncio
async def test_config_backups_are_capped(memory_db):
    for i in range(queries.MAX_BACKUPS_PER_GUILD + 3):
        await queries.save_config_backup(1, {"roles": [], "channels": [], "n": i})

    backups = await queries.get_config_backups(1, limit=50)
    assert len(backups) == queries.MAX_BACKUPS_PER_GUILD
    assert backups[0]["snapshot"]["n"] == queries.MAX_BACKUPS_PER_GUILD + 2

@pytest.mark.asyncio
async def test_purge_expired_rows(memory_db):
    await queries.save_audit_log(1, {"score": 50, "security_issues": []})
    await memory_db.connection.execute(
        "INSERT INTO audit_logs (guild_id, score, created_at) VALUES (1, 40, datetime('now', '-40 days'))"
    )
    await memory_db.connection.execute(
        "INSERT INTO daily_metrics (guild_id, day, join_count) VALUES (1, date('now', '-100 days'), 3)"
    )
    await memory_db.connection.commit()

    assert await queries.purge_expired_rows() == 2
    assert [h["score"] for h in await queries.get_audit_history(1)] == [50]

@pytest.mark.asyncio
async def test_delete_guild_data(memory_db):
    await queries.upsert_guild_settings(1, log_channel_id=100)
    await queries.save_audit_log(1, {"score": 50, "security_issues": []})
    await queries.upsert_guild_settings(2, log_channel_id=200)

    await queries.delete_guild_data(1)

    assert await queries.get_guild_settings(1) is None
    assert await queries.get_audit_history(1) == []
    assert await queries.get_guild_settings(2) is not None

@pytest.mark.asyncio
async def test_queries_without_connection(mocker):
    mocker.patch.object(queries, "db", DatabaseManager(":memory:"))
    assert await queries.get_guild_settings(1) is None
    assert await queries.upsert_guild_settings(1, log_channel_id=1) is False
    assert await queries.get_audit_history(1) == []
    assert await queries.purge_expired_rows() == 0

@pytest.mark.asyncio
async def test_metric_day_matches_query_clock(memory_db):
    await queries.increment_metric(1, "leave_count")

    cursor = await memory_db.connection.execute("SELECT date('now') AS today")
    today = (await cursor.fetchone())["today"]
    rows = await queries.get_daily_metrics(1, days=0)
    assert [r["day"] for r in rows] == [today]
