from typing import Dict, Optional
from utils.cache import AuditCache
from utils.clock import Clock, SystemClock
from utils.raid_detector import RaidDetector
from utils.rate_limiter import CommandRateLimiter
from utils.logger import get_logger

log = get_logger()

class GuardState:
    """
    In-memory guard state for the whole process: anti-raid windows, the audit report
    cache and command cooldowns. Built once at startup and reachable as bot.guard.
    Nothing here survives a restart.
    """
    def __init__(
        self,
        clock: Optional[Clock] = None,
        raid: Optional[RaidDetector] = None,
        cache: Optional[AuditCache] = None,
        rate_limiter: Optional[CommandRateLimiter] = None
    ):
        self.clock = clock if clock is not None else SystemClock()
        self.raid = raid if raid is not None else RaidDetector(self.clock)
        self.cache = cache if cache is not None else AuditCache(self.clock)
        self.rate_limiter = rate_limiter if rate_limiter is not None else CommandRateLimiter(self.clock)

    @classmethod
    def from_config(cls, config, clock: Optional[Clock] = None) -> "GuardState":
        clock = clock if clock is not None else SystemClock()
        return cls(
            clock=clock,
            raid=RaidDetector(
                clock,
                threshold=config.RAID_JOIN_THRESHOLD,
                window_ms=config.RAID_WINDOW_SECONDS * 1000,
                cooldown_ms=config.RAID_COOLDOWN_SECONDS * 1000,
                enabled=config.RAID_DEFAULT_ENABLED
            ),
            cache=AuditCache(clock, ttl_ms=config.AUDIT_CACHE_TTL_HOURS * 60 * 60 * 1000),
            rate_limiter=CommandRateLimiter(clock, retention_ms=config.RATE_LIMIT_RETENTION_MINUTES * 60 * 1000)
        )

    def stats(self) -> Dict[str, int]:
        return {
            "cache_size": len(self.cache),
            "rate_limit_entries": len(self.rate_limiter),
            "tracked_guilds": self.raid.tracked_guilds,
            "open_alerts": self.raid.open_alerts,
        }

    def sweep(self) -> Dict[str, int]:
        result = {
            "cache_evicted": self.cache.sweep(),
            "rate_limits_evicted": self.rate_limiter.sweep(),
        }
        if any(result.values()):
            log.info(f"[Guard] Sweep evicted {result['cache_evicted']} report(s), {result['rate_limits_evicted']} cooldown(s)")
        return result

    def forget_guild(self, guild_id: int):
        self.raid.forget(guild_id)
        self.cache.invalidate(guild_id)
        self.rate_limiter.reset(guild_id)
