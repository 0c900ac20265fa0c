# repguard/security/engine.py
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from repguard.security.config import DetectionConfig
from repguard.security.gateway import DetectionGateway
from repguard.security.ledger import Clock, ThreatLedger
from repguard.security.patterns import PatternMatcher
from repguard.security.ratelimit import RateLimiter
from repguard.security.report import ReportGenerator
from repguard.security.reputation import ReputationTracker
from repguard.security.scoring import RiskScorer

logger = logging.getLogger(__name__)


@dataclass
class ThreatEngine:
    """
    Process başına tek instance; startup'ta kurulur ve app.state.engine
    üzerinden HTTP katmanına verilir. Testler her seferinde yenisini kurar.
    """
    config: DetectionConfig
    ledger: ThreatLedger
    matcher: PatternMatcher
    reputation: ReputationTracker
    scorer: RiskScorer
    gateway: DetectionGateway
    reports: ReportGenerator
    limiter: Optional[RateLimiter] = None

    @classmethod
    def build(
        cls,
        config: Optional[DetectionConfig] = None,
        *,
        allowlist: Iterable[str] = (),
        clock: Clock = time.time,
    ) -> "ThreatEngine":
        config = config or DetectionConfig()
        ledger = ThreatLedger(clock=clock)
        matcher = PatternMatcher(max_payload_bytes=config.max_payload_bytes)
        reputation = ReputationTracker(
            ledger,
            window_seconds=config.escalation_window,
            threshold=config.escalation_threshold,
            allowlist=allowlist,
        )
        scorer = RiskScorer(ledger, window_seconds=config.scoring_window)
        limiter = RateLimiter(config.rate_limits, clock=ledger.now) if config.rate_limits else None
        gateway = DetectionGateway(ledger, matcher, reputation, limiter)
        reports = ReportGenerator(ledger, reputation, scorer)
        logger.info(
            "threat engine ready: escalation=%d/%.0fs scoring=%.0fs retention=%s rate_limits=%d",
            config.escalation_threshold, config.escalation_window,
            config.scoring_window, config.retention or "process", len(config.rate_limits),
        )
        return cls(config, ledger, matcher, reputation, scorer, gateway, reports, limiter)

    def evaluate(self, request):
        return self.gateway.evaluate(request)

    def run_retention(self) -> int:
        """
        Periyodik bakım: süresi dolmuş blok kayıtlarını ve kapanmış rate-limit
        pencerelerini her zaman atar; retention ayarlıysa eski olayları da.
        Silinen ledger olayı sayısını döndürür.
        """
        expired = self.reputation.prune()
        if self.limiter is not None:
            expired += self.limiter.prune()
        if expired:
            logger.debug("housekeeping: dropped %d expired entries", expired)
        if self.config.retention is None:
            return 0
        deleted = self.ledger.prune(self.config.retention)
        if deleted:
            logger.info("ledger retention: dropped %d events", deleted)
        return deleted
