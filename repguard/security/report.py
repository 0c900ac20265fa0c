from __future__ import annotations
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from repguard.security.ledger import ThreatLedger
from repguard.security.models import Report, SecurityStatus, ThreatType
from repguard.security.reputation import ReputationTracker
from repguard.security.scoring import RiskScorer

TOP_THREAT_TYPES = 5

RECOMMENDATIONS: Tuple[str, ...] = (
    "Enable multi-factor authentication for all users",
    "Implement zero-trust security architecture",
    "Regular security audits and penetration testing",
    "Keep all dependencies updated",
    "Implement content security policy (CSP)",
    "Use HTTPS everywhere with HSTS",
    "Regular backup and disaster recovery testing",
    "Employee security training programs",
)


def top_threat_types(events, limit: int = TOP_THREAT_TYPES) -> List[ThreatType]:
    """Frekansa göre azalan; eşitlikte en son görülen önce."""
    counts: Dict[ThreatType, int] = {}
    last_seen: Dict[ThreatType, int] = {}
    for i, e in enumerate(events):
        counts[e.type] = counts.get(e.type, 0) + 1
        last_seen[e.type] = i
    ranked = sorted(counts, key=lambda t: (-counts[t], -last_seen[t]))
    return ranked[:limit]


class ReportGenerator:
    """Ledger + Scorer üzerinden salt-okur özet üretir; yan etkisi yoktur."""

    def __init__(self, ledger: ThreatLedger, reputation: ReputationTracker, scorer: RiskScorer):
        self.ledger = ledger
        self.reputation = reputation
        self.scorer = scorer

    def generate(self) -> Report:
        events = self.ledger.all()
        score = self.scorer.score()
        return Report(
            total_threats=len(events),
            blocked_threats=sum(1 for e in events if e.blocked),
            top_threat_types=top_threat_types(events),
            risk_score=score,
            risk_level=self.scorer.level_for(score),
            recommendations=list(RECOMMENDATIONS),
            generated_at=self.ledger.now(),
        )

    def status(self) -> SecurityStatus:
        now = self.ledger.now()
        midnight = datetime.fromtimestamp(now, tz=timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        since_midnight = now - midnight.timestamp()
        return SecurityStatus(
            threats_today=len(self.ledger.all(since_midnight)),
            blocked_sources=len(self.reputation.blocked_sources()),
            risk_level=self.scorer.risk_level(),
        )
