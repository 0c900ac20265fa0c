# repguard/security/ratelimit.py
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from repguard.core.errors import ConfigurationError
from repguard.security.models import DEFAULT_SEVERITY, ThreatType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    """
    Kaynak başına sabit pencereli istek limiti.
    prefixes boşsa her path'e uygulanır; limiti aşan istek threat_type
    türünde bir tehdit olayı olarak kaydedilir.
    """
    name: str
    max_requests: int
    window_seconds: float
    threat_type: ThreatType = ThreatType.FLOOD
    prefixes: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ConfigurationError(f"rate limit {self.name!r}: max_requests must be >= 1")
        if self.window_seconds <= 0:
            raise ConfigurationError(f"rate limit {self.name!r}: window_seconds must be > 0")

    def applies_to(self, path: str) -> bool:
        if not self.prefixes:
            return True
        for p in self.prefixes:
            base = p.rstrip("/")
            if path == base or path.startswith(base + "/"):
                return True
        return False


class RateLimiter:
    """
    Pencere sayacı: (limit, kaynak) -> [pencere başlangıcı, sayaç].
    Pencere dolunca sayaç sıfırdan başlar. Aşan her istek için aşılan
    limitlerin en ağır tehdit türü döner.
    """

    def __init__(self, limits: Iterable[RateLimit], clock: Callable[[], float]):
        self.limits = tuple(limits)
        names = [lim.name for lim in self.limits]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"rate limit names must be unique: {names}")
        self._windows = {lim.name: lim.window_seconds for lim in self.limits}
        self._clock = clock
        self._lock = threading.Lock()
        self._state: Dict[Tuple[str, str], List[float]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._state)

    def hit(self, source: str, path: str = "") -> Optional[ThreatType]:
        now = self._clock()
        exceeded: List[ThreatType] = []
        with self._lock:
            for limit in self.limits:
                if not limit.applies_to(path):
                    continue
                key = (limit.name, source)
                rec = self._state.get(key)
                if rec is None or now - rec[0] > limit.window_seconds:
                    rec = [now, 0]
                    self._state[key] = rec
                rec[1] += 1
                if rec[1] > limit.max_requests:
                    exceeded.append(limit.threat_type)
        if not exceeded:
            return None
        threat = max(exceeded, key=lambda t: DEFAULT_SEVERITY[t])
        logger.info("rate limit exceeded: %s on %r (%s)", source, path, threat.value)
        return threat

    def prune(self) -> int:
        """Penceresi kapanmış sayaçları atar; atılan sayıyı döndürür."""
        now = self._clock()
        with self._lock:
            dead = [k for k, rec in self._state.items() if now - rec[0] > self._windows[k[0]]]
            for k in dead:
                del self._state[k]
        return len(dead)
