# Anti-raid join-rate detection
# Sliding window of recent joins per guild feeding a one-shot alert with a fixed cooldown.

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, Optional
from utils.clock import Clock
from utils.logger import get_logger

log = get_logger()

DEFAULT_THRESHOLD = 10
DEFAULT_WINDOW_MS = 30_000
DEFAULT_COOLDOWN_MS = 5 * 60 * 1000


class RaidDecisionKind(str, Enum):
    NONE = "none"
    TRIGGERED = "triggered"
    ALREADY_TRIGGERED = "already_triggered"


@dataclass(frozen=True)
class RaidDecision:
    kind: RaidDecisionKind
    count: Optional[int] = None

    @property
    def should_alert(self) -> bool:
        return self.kind is RaidDecisionKind.TRIGGERED


@dataclass
class JoinWindow:
    guild_id: int
    timestamps: Deque[int] = field(default_factory=deque)


@dataclass
class RaidAlertState:
    enabled: bool = True
    triggered: bool = False
    triggered_at: Optional[int] = None
    join_count_at_trigger: Optional[int] = None
    updated_at: Optional[int] = None
    # Bumped on every trigger; a cooldown timer only closes the alert it was armed for
    generation: int = 0


@dataclass
class RaidSettings:
    threshold: int = DEFAULT_THRESHOLD
    window_ms: int = DEFAULT_WINDOW_MS


@dataclass
class GuildRaidRecord:
    window: JoinWindow
    alert: RaidAlertState
    settings: RaidSettings


class RaidDetector:
    """
    Tracks member joins per guild and decides when the join velocity looks like a raid.

    A crossing of the threshold opens an alert exactly once; the alert stays open for
    cooldown_ms after the trigger regardless of further joins, then closes on a timer.
    """
    def __init__(
        self,
        clock: Clock,
        threshold: int = DEFAULT_THRESHOLD,
        window_ms: int = DEFAULT_WINDOW_MS,
        cooldown_ms: int = DEFAULT_COOLDOWN_MS,
        enabled: bool = True
    ):
        self.clock = clock
        self.default_threshold = threshold
        self.default_window_ms = window_ms
        self.cooldown_ms = cooldown_ms
        self.default_enabled = enabled
        self._guilds: Dict[int, GuildRaidRecord] = {}

    def _get_or_create(self, guild_id: int) -> GuildRaidRecord:
        record = self._guilds.get(guild_id)
        if record is None:
            record = GuildRaidRecord(
                window=JoinWindow(guild_id),
                alert=RaidAlertState(enabled=self.default_enabled, updated_at=self.clock.now()),
                settings=RaidSettings(self.default_threshold, self.default_window_ms)
            )
            self._guilds[guild_id] = record
        return record

    def record_join(self, guild_id: int, at: Optional[int] = None) -> int:
        """Append a join and return how many joins fall inside the trailing window."""
        record = self._get_or_create(guild_id)
        now = self.clock.now() if at is None else at
        timestamps = record.window.timestamps
        timestamps.append(now)

        window_ms = record.settings.window_ms
        # Chronological order, so stale entries are always a prefix
        while timestamps and now - timestamps[0] >= window_ms:
            timestamps.popleft()

        return len(timestamps)

    def evaluate_raid(self, guild_id: int, count: int) -> RaidDecision:
        record = self._get_or_create(guild_id)
        alert = record.alert

        if not alert.enabled or count < record.settings.threshold:
            return RaidDecision(RaidDecisionKind.NONE)

        if alert.triggered:
            return RaidDecision(RaidDecisionKind.ALREADY_TRIGGERED)

        now = self.clock.now()
        alert.triggered = True
        alert.generation += 1
        alert.triggered_at = now
        alert.join_count_at_trigger = count
        alert.updated_at = now

        self.clock.call_later(self.cooldown_ms, lambda generation=alert.generation: self._expire_alert(guild_id, generation))
        log.raid(f"[AntiRaid] Guild {guild_id}: {count} joins within {record.settings.window_ms}ms, alert opened")
        return RaidDecision(RaidDecisionKind.TRIGGERED, count)

    def observe_join(self, guild_id: int, at: Optional[int] = None) -> RaidDecision:
        return self.evaluate_raid(guild_id, self.record_join(guild_id, at))

    def _expire_alert(self, guild_id: int, generation: int):
        record = self._guilds.get(guild_id)
        # A timer from an earlier trigger must not close a newer alert
        if record is None or not record.alert.triggered or record.alert.generation != generation:
            return
        record.alert.triggered = False
        record.alert.updated_at = self.clock.now()
        log.info(f"[AntiRaid] Guild {guild_id}: alert cooldown elapsed")

    def reset_alert(self, guild_id: int) -> bool:
        """Close an open alert early. Returns False when nothing was open."""
        record = self._guilds.get(guild_id)
        if record is None or not record.alert.triggered:
            return False
        record.alert.triggered = False
        record.alert.updated_at = self.clock.now()
        return True

    def configure(
        self,
        guild_id: int,
        threshold: Optional[int] = None,
        window_ms: Optional[int] = None,
        enabled: Optional[bool] = None
    ) -> RaidSettings:
        """Update per-guild settings in place; recorded joins are kept."""
        record = self._get_or_create(guild_id)
        if threshold is not None:
            record.settings.threshold = threshold
        if window_ms is not None:
            record.settings.window_ms = window_ms
        if enabled is not None:
            record.alert.enabled = enabled
        record.alert.updated_at = self.clock.now()
        return record.settings

    def status(self, guild_id: int) -> dict:
        record = self._guilds.get(guild_id)
        if record is None:
            return {
                "enabled": self.default_enabled,
                "triggered": False,
                "triggered_at": None,
                "join_count_at_trigger": None,
                "updated_at": None,
                "window_count": 0,
                "threshold": self.default_threshold,
                "window_ms": self.default_window_ms,
            }

        alert = record.alert
        return {
            "enabled": alert.enabled,
            "triggered": alert.triggered,
            "triggered_at": alert.triggered_at,
            "join_count_at_trigger": alert.join_count_at_trigger,
            "updated_at": alert.updated_at,
            "window_count": self._live_count(record),
            "threshold": record.settings.threshold,
            "window_ms": record.settings.window_ms,
        }

    def _live_count(self, record: GuildRaidRecord) -> int:
        now = self.clock.now()
        window_ms = record.settings.window_ms
        return sum(1 for ts in record.window.timestamps if now - ts < window_ms)

    def forget(self, guild_id: int):
        self._guilds.pop(guild_id, None)

    @property
    def tracked_guilds(self) -> int:
        return len(self._guilds)

    @property
    def open_alerts(self) -> int:
        return sum(1 for record in self._guilds.values() if record.alert.triggered)
