import os
from enum import Enum

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"

class Config:
    def __init__(self):
        self.DISCORD_TOKEN = self._get_required("DISCORD_TOKEN")
        self.ENVIRONMENT = Environment(os.getenv("ENVIRONMENT", "development"))
        self.DATABASE_PATH = os.getenv("DATABASE_PATH", "friday_database.sqlite")

        # Sharding defaults
        self.SHARD_COUNT = self._get_int("SHARD_COUNT", 1)

        # Anti-raid defaults, per-guild values can be changed with /antiraid configure
        self.RAID_JOIN_THRESHOLD = self._get_int("RAID_JOIN_THRESHOLD", 10)
        self.RAID_WINDOW_SECONDS = self._get_int("RAID_WINDOW_SECONDS", 30)
        self.RAID_COOLDOWN_SECONDS = self._get_int("RAID_COOLDOWN_SECONDS", 300)
        self.RAID_DEFAULT_ENABLED = os.getenv("RAID_DEFAULT_ENABLED", "true").lower() == "true"

        # Audit cache / cooldown housekeeping
        self.AUDIT_CACHE_TTL_HOURS = self._get_int("AUDIT_CACHE_TTL_HOURS", 6)
        self.RATE_LIMIT_RETENTION_MINUTES = self._get_int("RATE_LIMIT_RETENTION_MINUTES", 60)

    def _get_required(self, key: str) -> str:
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Missing required environment variable: {key}")
        return value

    def _get_int(self, key: str, default: int) -> int:
        value = os.getenv(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Environment variable {key} must be an integer, got {value!r}") from None

# Singleton instance
shared_config = Config()
