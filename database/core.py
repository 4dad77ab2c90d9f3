import aiosqlite
from utils.logger import get_logger

# Initialize logger
log = get_logger()

DB_PATH = "friday_database.sqlite"

class DatabaseManager:
    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        self.connection = None

    async def connect(self):
        try:
            self.connection = await aiosqlite.connect(self.db_path)
            self.connection.row_factory = aiosqlite.Row
            await self.connection.execute("PRAGMA foreign_keys = ON")
            log.database(f"Connected to SQLite database at {self.db_path}")
            await self.init_schema()
        except Exception as e:
            log.error("Failed to connect to database", exc_info=e)
            raise

    async def init_schema(self):
        if not self.connection:
            return

        queries = [
            """
            CREATE TABLE IF NOT EXISTS guild_settings (
                guild_id INTEGER PRIMARY KEY,
                log_channel_id INTEGER, -- Joins/leaves
                alert_channel_id INTEGER, -- Raid alerts, falls back to log_channel_id
                antiraid_enabled INTEGER, -- NULL = use process default
                raid_threshold INTEGER,
                raid_window_seconds INTEGER,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS audit_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                score INTEGER NOT NULL,
                issue_count INTEGER NOT NULL DEFAULT 0,
                report TEXT, -- JSON payload
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """,
            """
            CREATE INDEX IF NOT EXISTS idx_audit_logs_guild ON audit_logs(guild_id, created_at);
            """,
            """
            CREATE TABLE IF NOT EXISTS daily_metrics (
                guild_id INTEGER NOT NULL,
                day DATE NOT NULL,
                join_count INTEGER NOT NULL DEFAULT 0,
                leave_count INTEGER NOT NULL DEFAULT 0,
                message_count INTEGER NOT NULL DEFAULT 0,
                member_count INTEGER,
                PRIMARY KEY (guild_id, day)
            );
            """,
            """
            CREATE TABLE IF NOT EXISTS config_backups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                snapshot TEXT NOT NULL, -- JSON roles/channels
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """
        ]

        try:
            for q in queries:
                await self.connection.execute(q)
            await self.connection.commit()
            log.database("Database schema initialization complete.")
        except Exception as e:
            log.error("Failed to initialize database schema", exc_info=e)
            raise

    async def close(self):
        if self.connection:
            await self.connection.close()
            self.connection = None
            log.database("Database connection closed.")

# Global DB instance
db = DatabaseManager()
