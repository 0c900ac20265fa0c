import pytest

from repguard.security.ledger import ThreatLedger
from repguard.security.models import RiskLevel, Severity
from repguard.security.scoring import RiskScorer

from conftest import FakeClock, make_event

DAY = 86400.0


def _scorer():
    clock = FakeClock(1_000_000.0)
    ledger = ThreatLedger(clock=clock)
    return clock, ledger, RiskScorer(ledger, window_seconds=DAY)


def test_empty_ledger_scores_zero():
    _, _, scorer = _scorer()
    assert scorer.score() == 0
    assert scorer.risk_level() is RiskLevel.LOW


@pytest.mark.parametrize("severity,expected", [
    (Severity.LOW, 2),
    (Severity.MEDIUM, 6),
    (Severity.HIGH, 14),
    (Severity.CRITICAL, 30),
])
def test_severity_weights(severity, expected):
    clock, ledger, scorer = _scorer()
    ledger.append(make_event(ts=clock(), severity=severity))
    assert scorer.score() == expected


def test_score_saturates_at_100():
    clock, ledger, scorer = _scorer()
    for _ in range(10):
        ledger.append(make_event(ts=clock(), severity=Severity.CRITICAL))
    assert scorer.score() == 100
    assert scorer.risk_level() is RiskLevel.CRITICAL


def test_score_is_monotonic_and_ignores_old_events():
    clock, ledger, scorer = _scorer()
    ledger.append(make_event(ts=clock() - 2 * DAY, severity=Severity.CRITICAL))
    assert scorer.score() == 0

    last = 0
    for _ in range(8):
        ledger.append(make_event(ts=clock(), severity=Severity.MEDIUM))
        s = scorer.score()
        assert s >= last
        last = s
    assert last == 48
    # explicit window overrides the default
    assert scorer.score(window=3 * DAY) == min(100, 48 + 30)


@pytest.mark.parametrize("score,level", [
    (0, RiskLevel.LOW),
    (25, RiskLevel.LOW),
    (26, RiskLevel.MEDIUM),
    (50, RiskLevel.MEDIUM),
    (51, RiskLevel.HIGH),
    (70, RiskLevel.HIGH),
    (71, RiskLevel.CRITICAL),
    (100, RiskLevel.CRITICAL),
])
def test_level_thresholds(score, level):
    assert RiskScorer.level_for(score) is level
