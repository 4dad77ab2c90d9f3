import json
from typing import List, Optional
from .core import db, log

# Metric columns listeners are allowed to bump
METRIC_COLUMNS = ("join_count", "leave_count", "message_count")

AUDIT_RETENTION_DAYS = 30
METRICS_RETENTION_DAYS = 90
MAX_BACKUPS_PER_GUILD = 10

_UNSET = object()

async def upsert_guild_settings(
    guild_id: int,
    log_channel_id=_UNSET,
    alert_channel_id=_UNSET,
    antiraid_enabled=_UNSET,
    raid_threshold=_UNSET,
    raid_window_seconds=_UNSET
) -> bool:
    """
    Create or update guild settings. Only the fields passed are changed.
    """
    if not db.connection:
        return False

    changes = {
        "log_channel_id": log_channel_id,
        "alert_channel_id": alert_channel_id,
        "antiraid_enabled": antiraid_enabled,
        "raid_threshold": raid_threshold,
        "raid_window_seconds": raid_window_seconds,
    }
    changes = {k: v for k, v in changes.items() if v is not _UNSET}
    if "antiraid_enabled" in changes and changes["antiraid_enabled"] is not None:
        changes["antiraid_enabled"] = int(bool(changes["antiraid_enabled"]))

    try:
        await db.connection.execute(
            "INSERT INTO guild_settings (guild_id) VALUES (?) ON CONFLICT(guild_id) DO NOTHING",
            (guild_id,)
        )
        if changes:
            assignments = ", ".join(f"{column} = ?" for column in changes)
            await db.connection.execute(
                f"UPDATE guild_settings SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE guild_id = ?",
                (*changes.values(), guild_id)
            )
        await db.connection.commit()
        return True
    except Exception as e:
        log.error(f"Failed to upsert settings for guild {guild_id}", exc_info=e)
        return False

async def get_guild_settings(guild_id: int) -> Optional[dict]:
    if not db.connection:
        return None

    try:
        cursor = await db.connection.execute("SELECT * FROM guild_settings WHERE guild_id = ?", (guild_id,))
        row = await cursor.fetchone()
        return dict(row) if row else None
    except Exception as e:
        log.error(f"Failed to fetch settings for guild {guild_id}", exc_info=e)
        return None

async def get_all_raid_settings() -> List[dict]:
    """Every guild with an anti-raid override, for restoring the detector at startup."""
    if not db.connection:
        return []

    try:
        cursor = await db.connection.execute("""
            SELECT guild_id, antiraid_enabled, raid_threshold, raid_window_seconds
            FROM guild_settings
            WHERE antiraid_enabled IS NOT NULL OR raid_threshold IS NOT NULL OR raid_window_seconds IS NOT NULL
        """)
        return [dict(row) for row in await cursor.fetchall()]
    except Exception as e:
        log.error("Failed to fetch anti-raid settings", exc_info=e)
        return []

async def delete_guild_data(guild_id: int):
    """Removes every stored row for a guild (bot was removed from it)."""
    if not db.connection:
        return

    try:
        for table in ("guild_settings", "audit_logs", "daily_metrics", "config_backups"):
            await db.connection.execute(f"DELETE FROM {table} WHERE guild_id = ?", (guild_id,))
        await db.connection.commit()
        log.database(f"Removed stored data for guild {guild_id}")
    except Exception as e:
        log.error(f"Failed to delete data for guild {guild_id}", exc_info=e)

async def save_audit_log(guild_id: int, report: dict) -> bool:
    if not db.connection:
        return False

    try:
        await db.connection.execute(
            "INSERT INTO audit_logs (guild_id, score, issue_count, report) VALUES (?, ?, ?, ?)",
            (guild_id, report["score"], len(report.get("security_issues", [])), json.dumps(report, default=str))
        )
        await db.connection.commit()
        return True
    except Exception as e:
        log.error(f"Failed to save audit log for guild {guild_id}", exc_info=e)
        return False

async def get_audit_history(guild_id: int, limit: int = 10) -> List[dict]:
    if not db.connection:
        return []

    try:
        cursor = await db.connection.execute(
            "SELECT id, score, issue_count, created_at FROM audit_logs WHERE guild_id = ? ORDER BY id DESC LIMIT ?",
            (guild_id, limit)
        )
        return [dict(row) for row in await cursor.fetchall()]
    except Exception as e:
        log.error(f"Failed to fetch audit history for guild {guild_id}", exc_info=e)
        return []

async def increment_metric(guild_id: int, column: str, member_count: Optional[int] = None):
    if column not in METRIC_COLUMNS:
        raise ValueError(f"Unknown metric column: {column}")
    if not db.connection:
        return

    try:
        await db.connection.execute(f"""
            INSERT INTO daily_metrics (guild_id, day, {column}, member_count)
            VALUES (?, date('now'), 1, ?)
            ON CONFLICT(guild_id, day) DO UPDATE SET
                {column} = {column} + 1,
                member_count = COALESCE(excluded.member_count, member_count)
        """, (guild_id, member_count))
        await db.connection.commit()
    except Exception as e:
        log.error(f"Failed to bump {column} for guild {guild_id}", exc_info=e)

async def get_daily_metrics(guild_id: int, days: int = 30) -> List[dict]:
    if not db.connection:
        return []

    try:
        cursor = await db.connection.execute(
            "SELECT * FROM daily_metrics WHERE guild_id = ? AND day >= date('now', ?) ORDER BY day ASC",
            (guild_id, f"-{days} days")
        )
        return [dict(row) for row in await cursor.fetchall()]
    except Exception as e:
        log.error(f"Failed to fetch metrics for guild {guild_id}", exc_info=e)
        return []

async def save_config_backup(guild_id: int, snapshot: dict) -> bool:
    """Stores a snapshot and keeps only the newest MAX_BACKUPS_PER_GUILD."""
    if not db.connection:
        return False

    try:
        await db.connection.execute(
            "INSERT INTO config_backups (guild_id, snapshot) VALUES (?, ?)",
            (guild_id, json.dumps(snapshot))
        )
        await db.connection.execute("""
            DELETE FROM config_backups
            WHERE guild_id = ?
            AND id NOT IN (
                SELECT id FROM config_backups
                WHERE guild_id = ?
                ORDER BY id DESC
                LIMIT ?
            )
        """, (guild_id, guild_id, MAX_BACKUPS_PER_GUILD))
        await db.connection.commit()
        return True
    except Exception as e:
        log.error(f"Failed to save config backup for guild {guild_id}", exc_info=e)
        return False

async def get_config_backups(guild_id: int, limit: int = MAX_BACKUPS_PER_GUILD) -> List[dict]:
    if not db.connection:
        return []

    try:
        cursor = await db.connection.execute(
            "SELECT id, snapshot, created_at FROM config_backups WHERE guild_id = ? ORDER BY id DESC LIMIT ?",
            (guild_id, limit)
        )
        rows = await cursor.fetchall()
        return [{"id": r["id"], "created_at": r["created_at"], "snapshot": json.loads(r["snapshot"])} for r in rows]
    except Exception as e:
        log.error(f"Failed to fetch config backups for guild {guild_id}", exc_info=e)
        return []

async def purge_expired_rows() -> int:
    """Drops audit logs and metrics past retention. Returns rows removed."""
    if not db.connection:
        return 0

    try:
        removed = 0
        cursor = await db.connection.execute(
            "DELETE FROM audit_logs WHERE created_at < datetime('now', ?)",
            (f"-{AUDIT_RETENTION_DAYS} days",)
        )
        removed += cursor.rowcount
        cursor = await db.connection.execute(
            "DELETE FROM daily_metrics WHERE day < date('now', ?)",
            (f"-{METRICS_RETENTION_DAYS} days",)
        )
        removed += cursor.rowcount
        await db.connection.commit()
        return removed
    except Exception as e:
        log.error("Failed to purge expired rows", exc_info=e)
        return 0
