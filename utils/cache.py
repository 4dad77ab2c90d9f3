from dataclasses import dataclass
from typing import Any, Dict, Optional
from utils.clock import Clock
from utils.logger import get_logger

log = get_logger()

AUDIT_CACHE_TTL_MS = 6 * 60 * 60 * 1000

@dataclass
class CacheEntry:
    payload: Any
    timestamp: int

class AuditCache:
    """
    Per-guild cache of generated audit reports.
    Entries older than the TTL are treated as missing and dropped when read or swept.
    """
    def __init__(self, clock: Clock, ttl_ms: int = AUDIT_CACHE_TTL_MS):
        self.clock = clock
        self.ttl_ms = ttl_ms
        self._entries: Dict[int, CacheEntry] = {}

    def _expired(self, entry: CacheEntry, now: int) -> bool:
        return now - entry.timestamp >= self.ttl_ms

    def get(self, guild_id: int) -> Optional[Any]:
        entry = self._entries.get(guild_id)
        if entry is None:
            return None

        if self._expired(entry, self.clock.now()):
            del self._entries[guild_id]
            log.trace(f"[Cache] Evicted stale audit report for guild {guild_id}")
            return None

        return entry.payload

    def set(self, guild_id: int, payload: Any):
        self._entries[guild_id] = CacheEntry(payload, self.clock.now())

    def invalidate(self, guild_id: int) -> bool:
        return self._entries.pop(guild_id, None) is not None

    def age_ms(self, guild_id: int) -> Optional[int]:
        """Age of a live entry, None when absent or expired."""
        if self.get(guild_id) is None:
            return None
        return self.clock.now() - self._entries[guild_id].timestamp

    def sweep(self) -> int:
        now = self.clock.now()
        stale = [guild_id for guild_id, entry in self._entries.items() if self._expired(entry, now)]
        for guild_id in stale:
            del self._entries[guild_id]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
