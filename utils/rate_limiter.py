# Per-guild command cooldowns and backoff for Discord API sends
# Cooldowns keep expensive report commands from being re-run back to back;
# send_with_backoff keeps raid alerts from being lost to 429s.

import asyncio
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
import discord
from utils.clock import Clock
from utils.logger import get_logger

log = get_logger()

DEFAULT_COOLDOWN_MS = 60 * 1000
RETENTION_MS = 60 * 60 * 1000

# Command name -> cooldown in milliseconds
COMMAND_COOLDOWNS: Dict[str, int] = {
    "audit": 10 * 60 * 1000,
    "mee6": 5 * 60 * 1000,
    "security": 5 * 60 * 1000,
    "schema": 5 * 60 * 1000,
    "scalecheck": 5 * 60 * 1000,
    "testi": 10 * 60 * 1000,
}

@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining_seconds: int = 0

class CommandRateLimiter:
    """
    One admission slot per (guild, command) per cooldown.
    check() spends the slot on admission, peek() only reports what check() would say.
    """
    def __init__(
        self,
        clock: Clock,
        cooldowns: Optional[Dict[str, int]] = None,
        default_ms: int = DEFAULT_COOLDOWN_MS,
        retention_ms: int = RETENTION_MS
    ):
        self.clock = clock
        self.cooldowns = dict(COMMAND_COOLDOWNS if cooldowns is None else cooldowns)
        self.default_ms = default_ms
        self.retention_ms = retention_ms
        self._last_invoked: Dict[Tuple[int, str], int] = {}

    def cooldown_for(self, command: str) -> int:
        return self.cooldowns.get(command, self.default_ms)

    def _decide(self, key: Tuple[int, str], now: int) -> RateLimitDecision:
        last = self._last_invoked.get(key)
        if last is None:
            return RateLimitDecision(True)

        cooldown = self.cooldown_for(key[1])
        elapsed = now - last
        if elapsed >= cooldown:
            return RateLimitDecision(True)

        return RateLimitDecision(False, math.ceil((cooldown - elapsed) / 1000))

    def peek(self, guild_id: int, command: str) -> RateLimitDecision:
        return self._decide((guild_id, command), self.clock.now())

    def check(self, guild_id: int, command: str) -> RateLimitDecision:
        key = (guild_id, command)
        now = self.clock.now()
        decision = self._decide(key, now)
        if decision.allowed:
            self._last_invoked[key] = now
        else:
            log.trace(f"[RateLimit] {command} denied for guild {guild_id}, {decision.remaining_seconds}s left")
        return decision

    def reset(self, guild_id: int, command: Optional[str] = None) -> int:
        keys = [k for k in self._last_invoked if k[0] == guild_id and (command is None or k[1] == command)]
        for key in keys:
            del self._last_invoked[key]
        return len(keys)

    def sweep(self) -> int:
        now = self.clock.now()
        stale = [key for key, last in self._last_invoked.items() if now - last > self.retention_ms]
        for key in stale:
            del self._last_invoked[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._last_invoked)


class ExponentialBackoff:
    """Delay doubling from base_delay up to max_delay, for at most max_attempts tries."""
    def __init__(self, base_delay: float = 1.0, max_delay: float = 32.0, max_attempts: int = 5):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self._attempt = 0

    def get_delay(self) -> float:
        delay = min(self.base_delay * (2 ** self._attempt), self.max_delay)
        self._attempt += 1
        return delay

    @property
    def attempts_exhausted(self) -> bool:
        return self._attempt >= self.max_attempts


RETRIABLE_STATUSES = (408, 429, 500, 502, 503, 504)
FATAL_STATUSES = (401, 403, 404, 410)

async def send_with_backoff(
    coro_factory: Callable[[], Any],
    max_attempts: int = 5,
    base_delay: float = 1.0
) -> Tuple[bool, Optional[Exception]]:
    """
    Run a Discord send, retrying on rate limits and transient server errors.

    Args:
        coro_factory: Callable returning a fresh coroutine per attempt (lambda: channel.send(...))
        max_attempts: Attempts before giving up on retriable errors
        base_delay: First backoff delay in seconds

    Returns:
        (success, last_exception)
    """
    backoff = ExponentialBackoff(base_delay=base_delay, max_attempts=max_attempts)
    last_error = None

    while not backoff.attempts_exhausted:
        try:
            await coro_factory()
            return True, None

        except discord.RateLimited as e:
            last_error = e
            # retry_after is authoritative, but still counts as an attempt
            backoff.get_delay()
            delay = e.retry_after + 0.1
            log.warning(f"[Backoff] Rate limited, waiting {delay:.2f}s")
            await asyncio.sleep(delay)

        except discord.HTTPException as e:
            last_error = e
            if e.status in FATAL_STATUSES:
                log.warning(f"[Backoff] Fatal HTTP {e.status}, giving up")
                return False, e
            if e.status not in RETRIABLE_STATUSES:
                return False, e

            delay = backoff.get_delay()
            log.warning(f"[Backoff] HTTP {e.status}, waiting {delay:.1f}s")
            await asyncio.sleep(delay)

        except Exception as e:
            log.error("[Backoff] Send failed", exc_info=e)
            return False, e

    log.error(f"[Backoff] Exhausted {max_attempts} attempts")
    return False, last_error
