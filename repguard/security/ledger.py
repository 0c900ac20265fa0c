# repguard/security/ledger.py
from __future__ import annotations
import bisect
import threading
import time
from typing import Callable, List, Optional

from repguard.security.models import ThreatEvent

Clock = Callable[[], float]


class ThreatLedger:
    """
    Append-only, zamana göre sıralı ThreatEvent kaydı.

    - append O(1) amortized; kilit altında yapılır, eşzamanlı yazarlar olay kaybetmez.
    - query/all kilit altında yalnızca ilgili dilimi kopyalar, filtreleme kilit dışında yapılır.
    - Sonuçlar her zaman en eskiden en yeniye sıralıdır.
    - Türetilmiş tüm durum (reputation, risk) bu kayıt + config'ten yeniden hesaplanabilir.
    """

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._events: List[ThreatEvent] = []
        self._stamps: List[float] = []

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def append(self, event: ThreatEvent) -> None:
        with self._lock:
            if not self._stamps or event.timestamp >= self._stamps[-1]:
                self._events.append(event)
                self._stamps.append(event.timestamp)
                return
            # saat geri gittiyse sırayı koru
            idx = bisect.bisect_right(self._stamps, event.timestamp)
            self._events.insert(idx, event)
            self._stamps.insert(idx, event.timestamp)

    def _snapshot(self, since: Optional[float]) -> List[ThreatEvent]:
        if since is None:
            with self._lock:
                return list(self._events)
        cutoff = self.now() - since
        with self._lock:
            idx = bisect.bisect_left(self._stamps, cutoff)
            return self._events[idx:]

    def query(self, source: str, since: Optional[float] = None) -> List[ThreatEvent]:
        """`source` kaynağına ait, son `since` saniyedeki olaylar."""
        return [e for e in self._snapshot(since) if e.source == source]

    def all(self, since: Optional[float] = None) -> List[ThreatEvent]:
        return self._snapshot(since)

    def prune(self, older_than: float) -> int:
        """
        Yalnızca retention job'u çağırır: `older_than` saniyeden eski olayları atar.
        Silinen olay sayısını döndürür.
        """
        cutoff = self.now() - older_than
        with self._lock:
            idx = bisect.bisect_left(self._stamps, cutoff)
            if idx:
                del self._events[:idx]
                del self._stamps[:idx]
            return idx
