import pytest
from utils.clock import ManualClock
from utils.raid_detector import RaidDetector, RaidDecisionKind

GUILD = "G1"

@pytest.fixture
def detector(clock):
    return RaidDetector(clock, threshold=10, window_ms=30_000, cooldown_ms=5 * 60 * 1000)

def test_window_counts_only_recent_joins(detector, clock):
    times = [0, 5_000, 10_000, 29_999, 30_000, 45_000, 61_000]
    counts = []
    for t in times:
        clock.set(t)
        counts.append(detector.record_join(GUILD))

    expected = [sum(1 for prior in times[:i + 1] if prior > t - 30_000) for i, t in enumerate(times)]
    assert counts == expected
    assert counts == [1, 2, 3, 4, 4, 3, 2]

def test_record_join_accepts_explicit_time(detector):
    assert detector.record_join(GUILD, at=1_000) == 1
    assert detector.record_join(GUILD, at=2_000) == 2
    assert detector.record_join(GUILD, at=40_000) == 1

def test_burst_triggers_exactly_once(detector, clock):
    """12 joins spread over t=0..2000ms: the 10th triggers, the rest are suppressed."""
    decisions = []
    for i in range(12):
        clock.set(i * 2000 // 11)
        decisions.append(detector.observe_join(GUILD))

    assert all(d.kind is RaidDecisionKind.NONE for d in decisions[:9])
    assert decisions[9].kind is RaidDecisionKind.TRIGGERED
    assert decisions[9].count == 10
    assert decisions[9].should_alert
    assert [d.kind for d in decisions[10:]] == [RaidDecisionKind.ALREADY_TRIGGERED] * 2

    status = detector.status(GUILD)
    assert status["triggered"] is True
    assert status["join_count_at_trigger"] == 10
    assert status["triggered_at"] == 9 * 2000 // 11

def test_suppression_lasts_full_cooldown_even_without_joins(detector, clock):
    for _ in range(10):
        detector.observe_join(GUILD)
    assert detector.status(GUILD)["triggered"] is True

    clock.advance(5 * 60 * 1000 - 1)
    assert detector.status(GUILD)["triggered"] is True

    clock.advance(1)
    assert detector.status(GUILD)["triggered"] is False

def test_new_burst_after_cooldown_triggers_again(detector, clock):
    for _ in range(10):
        detector.observe_join(GUILD)

    # Still inside the cooldown: another full burst stays suppressed
    clock.advance(60_000)
    burst = [detector.observe_join(GUILD) for _ in range(10)]
    assert burst[-1].kind is RaidDecisionKind.ALREADY_TRIGGERED

    clock.advance(5 * 60 * 1000)
    burst = [detector.observe_join(GUILD) for _ in range(10)]
    assert [d.kind for d in burst].count(RaidDecisionKind.TRIGGERED) == 1
    assert burst[-1].kind is RaidDecisionKind.TRIGGERED

def test_below_threshold_is_noop(detector):
    assert detector.evaluate_raid(GUILD, 9).kind is RaidDecisionKind.NONE
    assert detector.status(GUILD)["triggered"] is False

def test_guilds_are_isolated(detector):
    for _ in range(10):
        detector.observe_join("A")
    assert detector.observe_join("B").kind is RaidDecisionKind.NONE
    assert detector.status("B")["triggered"] is False

def test_disabled_guild_records_but_never_triggers(detector):
    detector.configure(GUILD, enabled=False)
    decisions = [detector.observe_join(GUILD) for _ in range(15)]
    assert all(d.kind is RaidDecisionKind.NONE for d in decisions)
    assert detector.status(GUILD)["window_count"] == 15

    detector.configure(GUILD, enabled=True)
    assert detector.observe_join(GUILD).kind is RaidDecisionKind.TRIGGERED

def test_reconfigure_keeps_recorded_joins(detector, clock):
    for _ in range(5):
        detector.record_join(GUILD)

    detector.configure(GUILD, threshold=6, window_ms=60_000)
    clock.advance(40_000)

    # Old joins are 40s old: outside the previous 30s window, inside the new 60s one
    decision = detector.observe_join(GUILD)
    assert decision.kind is RaidDecisionKind.TRIGGERED
    assert decision.count == 6

def test_non_positive_threshold_always_triggers(detector):
    detector.configure(GUILD, threshold=0)
    assert detector.evaluate_raid(GUILD, 0).kind is RaidDecisionKind.TRIGGERED

def test_zero_width_window_counts_nothing(detector):
    detector.configure(GUILD, window_ms=0)
    assert detector.record_join(GUILD) == 0
    assert detector.record_join(GUILD) == 0
    detector.configure(GUILD, window_ms=-5)
    assert detector.record_join(GUILD) == 0

def test_reset_alert_and_stale_timer(detector, clock):
    for _ in range(10):
        detector.observe_join(GUILD)
    clock.advance(60_000)

    assert detector.reset_alert(GUILD) is True
    assert detector.reset_alert(GUILD) is False

    # New incident before the first timer fires
    for _ in range(10):
        detector.observe_join(GUILD)
    first_trigger_at = detector.status(GUILD)["triggered_at"]
    assert first_trigger_at == 60_000

    # The first trigger's timer fires here and must leave the new alert open
    clock.advance(4 * 60 * 1000)
    assert detector.status(GUILD)["triggered"] is True

    clock.advance(60_000)
    assert detector.status(GUILD)["triggered"] is False

def test_status_does_not_create_state(detector):
    status = detector.status("unknown")
    assert status["enabled"] is True
    assert status["triggered"] is False
    assert status["threshold"] == 10
    assert detector.tracked_guilds == 0

def test_forget_drops_guild_and_pending_timer_is_harmless(detector, clock):
    for _ in range(10):
        detector.observe_join(GUILD)
    assert detector.open_alerts == 1

    detector.forget(GUILD)
    assert detector.tracked_guilds == 0
    clock.advance(10 * 60 * 1000)
    assert detector.tracked_guilds == 0

def test_defaults_from_constructor():
    detector = RaidDetector(ManualClock(), threshold=3, window_ms=1_000, enabled=False)
    status = detector.status(GUILD)
    assert (status["threshold"], status["window_ms"], status["enabled"]) == (3, 1_000, False)

def test_status_counts_only_joins_inside_window(detector, clock):
    for _ in range(5):
        detector.record_join(GUILD)
    assert detector.status(GUILD)["window_count"] == 5

    clock.advance(10 * 60 * 1000)
    assert detector.status(GUILD)["window_count"] == 0

def test_stale_timer_ignored_when_retriggered_same_millisecond(detector, clock):
    for _ in range(10):
        detector.observe_join(GUILD)
    first_generation = detector._guilds[GUILD].alert.generation
    assert detector.reset_alert(GUILD) is True

    # Same clock reading as the first trigger, so triggered_at cannot tell them apart
    assert detector.evaluate_raid(GUILD, 10).kind is RaidDecisionKind.TRIGGERED
    assert detector.status(GUILD)["triggered_at"] == 0

    detector._expire_alert(GUILD, first_generation)
    assert detector.status(GUILD)["triggered"] is True

    clock.advance(5 * 60 * 1000)
    assert detector.status(GUILD)["triggered"] is False
