from __future__ import annotations
from typing import Dict, Optional

from repguard.security.config import DEFAULT_SCORING_WINDOW
from repguard.security.ledger import ThreatLedger
from repguard.security.models import RiskLevel, Severity

SEVERITY_WEIGHTS: Dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 3,
    Severity.HIGH: 7,
    Severity.CRITICAL: 15,
}

MAX_SCORE = 100


class RiskScorer:
    """
    Pencere içindeki olayların severity ağırlıklarını toplar ve
    min(100, toplam * 2) ile normalize eder.

    Basit, doğrusal-doyan bir ölçek; kalibre edilmiş istatistiksel bir model değildir.
    """

    def __init__(self, ledger: ThreatLedger, window_seconds: float = DEFAULT_SCORING_WINDOW):
        self.ledger = ledger
        self.window_seconds = float(window_seconds)

    def score(self, window: Optional[float] = None) -> int:
        w = self.window_seconds if window is None else float(window)
        total = sum(SEVERITY_WEIGHTS[e.severity] for e in self.ledger.all(w))
        return min(MAX_SCORE, total * 2)

    @staticmethod
    def level_for(score: float) -> RiskLevel:
        if score > 70:
            return RiskLevel.CRITICAL
        if score > 50:
            return RiskLevel.HIGH
        if score > 25:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def risk_level(self, window: Optional[float] = None) -> RiskLevel:
        return self.level_for(self.score(window))
