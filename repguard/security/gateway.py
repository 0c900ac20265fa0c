# repguard/security/gateway.py
from __future__ import annotations
import logging
from typing import Any, FrozenSet, Mapping, Optional

from repguard.core.errors import MalformedRequestDescriptor
from repguard.security.ledger import ThreatLedger
from repguard.security.models import (
    DEFAULT_SEVERITY,
    UNKNOWN_SOURCE,
    Decision,
    RequestDescriptor,
    ThreatEvent,
    ThreatType,
    normalize_source,
)
from repguard.security.patterns import PatternMatcher, serialize_descriptor
from repguard.security.ratelimit import RateLimiter
from repguard.security.reputation import ReputationTracker

logger = logging.getLogger(__name__)

STATUS_ALLOW = 200
STATUS_SIGNATURE_DENY = 400
STATUS_REPUTATION_DENY = 403
STATUS_RATE_LIMIT_DENY = 429

_TYPE_ORDER = {t: i for i, t in enumerate(ThreatType)}


def _highest_severity(types: FrozenSet[ThreatType]) -> ThreatType:
    # en yüksek severity; eşitlikte ThreatType tanım sırası
    return max(types, key=lambda t: (DEFAULT_SEVERITY[t], -_TYPE_ORDER[t]))


class DetectionGateway:
    """
    İstek başına giriş noktası. Her istek tek bir döngüde sonlanır:

        RECEIVED -> REPUTATION_CHECK -> [BLOCKED_EARLY | CONTINUE]
                 -> RATE_LIMIT -> [RATE_LIMITED (deny 429) | CONTINUE]
                 -> PATTERN_SCAN -> [THREAT_DETECTED (deny) | CLEAN (allow)]

    Reputation kontrolü pattern taramasından önce gelir; bloklu bir kaynak
    taranmaz ve ledger'a yeni olay yazılmaz. Pattern tarama hataları
    "eşleşme yok" sayılır (fail open); reputation yolu fail closed kalır.
    """

    def __init__(
        self,
        ledger: ThreatLedger,
        matcher: PatternMatcher,
        reputation: ReputationTracker,
        limiter: Optional[RateLimiter] = None,
    ):
        self.ledger = ledger
        self.matcher = matcher
        self.reputation = reputation
        self.limiter = limiter

    def _descriptor(self, request: Any) -> RequestDescriptor:
        if isinstance(request, RequestDescriptor):
            return request
        try:
            return RequestDescriptor.from_mapping(request)
        except MalformedRequestDescriptor as e:
            logger.warning("malformed request descriptor, evaluating as %r: %s", UNKNOWN_SOURCE, e)
            return RequestDescriptor(source=UNKNOWN_SOURCE, body=request)

    def _rate_check(self, descriptor: RequestDescriptor, source: str) -> Optional[ThreatType]:
        if self.limiter is None or self.reputation.is_allowlisted(source):
            return None
        params = descriptor.params if isinstance(descriptor.params, Mapping) else {}
        path = params.get("path")
        try:
            return self.limiter.hit(source, path if isinstance(path, str) else "")
        except Exception:
            logger.exception("rate limit check failed, failing open")
            return None

    def _classify(self, descriptor: RequestDescriptor) -> FrozenSet[ThreatType]:
        try:
            return self.matcher.classify(serialize_descriptor(descriptor))
        except Exception:
            logger.exception("pattern scan failed, failing open")
            return frozenset()

    def _record(self, threat: ThreatType, source: str, status: int) -> Decision:
        event = ThreatEvent(
            type=threat,
            severity=DEFAULT_SEVERITY[threat],
            source=source,
            timestamp=self.ledger.now(),
            blocked=True,
        )
        self.ledger.append(event)
        newly_blocked = self.reputation.evaluate_and_maybe_block(source)
        logger.warning(
            "threat detected: %s (%s) from %s",
            threat.value, event.severity.name, source,
        )
        return Decision(
            allow=False,
            http_status=status,
            reason=threat,
            source=source,
            newly_blocked=newly_blocked,
        )

    def evaluate(self, request: Any) -> Decision:
        descriptor = self._descriptor(request)
        source = normalize_source(descriptor.source)

        # 1) reputation (fail closed)
        if self.reputation.is_blocked(source):
            logger.info("denied by reputation: %s", source)
            return Decision(allow=False, http_status=STATUS_REPUTATION_DENY, source=source)

        # 2) rate limit (fail open)
        flooded = self._rate_check(descriptor, source)
        if flooded is not None:
            return self._record(flooded, source, STATUS_RATE_LIMIT_DENY)

        # 3) pattern scan (fail open)
        types = self._classify(descriptor)
        if not types:
            return Decision(allow=True, http_status=STATUS_ALLOW, source=source)
        return self._record(_highest_severity(types), source, STATUS_SIGNATURE_DENY)
