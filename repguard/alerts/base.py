from __future__ import annotations
from dataclasses import dataclass, asdict, field
from collections import deque
from typing import Dict, Any, List, Protocol, Optional, Tuple
import asyncio
import logging
import socket
import threading
import time

logger = logging.getLogger(__name__)


@dataclass
class AlertPayload:
    ts: float
    kind: str          # signature_match | rate_limited | source_blocked
    ip_hash: str
    path: str
    reason: str        # ThreatType değeri
    meta: Dict[str, Any] = field(default_factory=dict)
    host: str = field(default_factory=socket.gethostname)


class AlertSink(Protocol):
    async def send(self, payload: AlertPayload) -> None: ...


class AlertManager:
    """
    Basit in-memory dedup/cooldown:
      key = (kind, ip_hash, reason)
      now - last_sent < cooldown ise bastırılır.
    Sink hataları loglanır, istek yoluna asla yansımaz.
    """
    def __init__(self, cooldown_seconds: int = 60, keep_recent: int = 0):
        self.cooldown = max(0, int(cooldown_seconds))
        self.sinks: List[AlertSink] = []
        self._last: Dict[Tuple[str, str, str], float] = {}
        self._lock = threading.Lock()
        self._recent = deque(maxlen=int(keep_recent)) if keep_recent > 0 else None
        self.suppressed = 0

    def register(self, sink: AlertSink) -> None:
        self.sinks.append(sink)

    def _should_send(self, payload: AlertPayload) -> bool:
        key = (payload.kind, payload.ip_hash, payload.reason)
        with self._lock:
            last = self._last.get(key)
            if self.cooldown and last is not None and (payload.ts - last) < self.cooldown:
                self.suppressed += 1
                return False
            self._last[key] = payload.ts
            return True

    async def emit(self, payload: AlertPayload) -> bool:
        if not self._should_send(payload):
            return False
        if self._recent is not None:
            self._recent.append(asdict(payload))
        await asyncio.gather(*(self._send_one(s, payload) for s in self.sinks))
        return True

    async def _send_one(self, sink: AlertSink, payload: AlertPayload) -> None:
        try:
            await sink.send(payload)
        except Exception:
            logger.warning("alert sink %s failed for %s", sink.__class__.__name__, payload.kind, exc_info=True)

    def recent(self, limit: int | None = None) -> List[Dict[str, Any]]:
        if self._recent is None:
            return []
        if not limit or limit <= 0:
            return list(self._recent)
        return list(self._recent)[-int(limit):]


def make_payload(kind: str, ip_hash: str, path: str, reason: str, meta: Optional[Dict[str, Any]] = None) -> AlertPayload:
    return AlertPayload(ts=time.time(), kind=kind, ip_hash=ip_hash, path=path, reason=reason, meta=meta or {})
