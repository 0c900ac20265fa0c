# repguard/security/reputation.py
from __future__ import annotations
import logging
import threading
from collections import Counter
from typing import Dict, Iterable, List, Optional, Set

from repguard.security.config import DEFAULT_ESCALATION_THRESHOLD, DEFAULT_ESCALATION_WINDOW
from repguard.security.ledger import ThreatLedger
from repguard.security.models import ReputationState

logger = logging.getLogger(__name__)


class ReputationTracker:
    """
    Kaynak (IP) itibarını ledger'dan türetir.

      - allowlisted: operatör override'ı, her zaman kazanır
      - blocked: escalation_window içindeki olay sayısı >= escalation_threshold
      - neutral: diğer her şey

    Blok durumu latch'lenmez; pencere kaydıkça eşiğin altına düşen kaynak
    otomatik olarak blocked'dan çıkar. Tutulan tek ek durum, "yeni bloklandı"
    geçişini yakalamak için kaynak başına son hesaplanan blok bitiş zamanıdır.
    """

    def __init__(
        self,
        ledger: ThreatLedger,
        window_seconds: float = DEFAULT_ESCALATION_WINDOW,
        threshold: int = DEFAULT_ESCALATION_THRESHOLD,
        allowlist: Iterable[str] = (),
    ):
        self.ledger = ledger
        self.window_seconds = float(window_seconds)
        self.threshold = int(threshold)
        self._lock = threading.Lock()
        self._allow: Set[str] = {s for s in allowlist if s}
        self._block_until: Dict[str, float] = {}

    # --- allowlist (operator control surface) --------------------------------

    def allowlist(self, source: str) -> None:
        with self._lock:
            if source in self._allow:
                return
            self._allow.add(source)
            self._block_until.pop(source, None)
        logger.info("source allowlisted: %s", source)

    def remove_from_allowlist(self, source: str) -> bool:
        with self._lock:
            if source not in self._allow:
                return False
            self._allow.discard(source)
        logger.info("source removed from allowlist: %s", source)
        return True

    def is_allowlisted(self, source: str) -> bool:
        with self._lock:
            return source in self._allow

    def allowlisted_sources(self) -> List[str]:
        with self._lock:
            return sorted(self._allow)

    # --- derived state --------------------------------------------------------

    def recent_count(self, source: str) -> int:
        return len(self.ledger.query(source, self.window_seconds))

    def is_blocked(self, source: str) -> bool:
        if self.is_allowlisted(source):
            return False
        return self.recent_count(source) >= self.threshold

    def state(self, source: str) -> ReputationState:
        if self.is_allowlisted(source):
            return ReputationState.ALLOWLISTED
        if self.recent_count(source) >= self.threshold:
            return ReputationState.BLOCKED
        return ReputationState.NEUTRAL

    def _block_expiry(self, source: str) -> Optional[float]:
        # eşik'inci en yeni olay pencereden çıktığı an blok düşer
        events = self.ledger.query(source, self.window_seconds)
        if len(events) < self.threshold:
            return None
        return events[-self.threshold].timestamp + self.window_seconds

    def evaluate_and_maybe_block(self, source: str) -> bool:
        """
        Olay eklendikten sonra çağrılır. Yalnızca bu çağrı kaynağı
        blocked durumuna *yeni* geçirdiyse True döner; zaten bloklu
        kaynak için False. Pencere kayıp blok düştükten sonra eşik
        tekrar aşılırsa bu yeni bir geçiştir.
        """
        if self.is_allowlisted(source):
            return False
        now = self.ledger.now()
        expiry = self._block_expiry(source)
        with self._lock:
            prev = self._block_until.get(source)
            was_blocked = prev is not None and now <= prev
            if expiry is None:
                self._block_until.pop(source, None)
            else:
                self._block_until[source] = expiry
        if expiry is not None and not was_blocked:
            logger.warning(
                "source blocked: %s (>=%d events in %.0fs)",
                source, self.threshold, self.window_seconds,
            )
            return True
        return False

    def prune(self) -> int:
        """Süresi dolmuş blok bitiş kayıtlarını atar; atılan sayıyı döndürür."""
        now = self.ledger.now()
        with self._lock:
            dead = [s for s, until in self._block_until.items() if until < now]
            for s in dead:
                del self._block_until[s]
        return len(dead)

    def blocked_sources(self) -> List[str]:
        counts = Counter(e.source for e in self.ledger.all(self.window_seconds))
        with self._lock:
            allow = set(self._allow)
        return sorted(s for s, c in counts.items() if c >= self.threshold and s not in allow)
