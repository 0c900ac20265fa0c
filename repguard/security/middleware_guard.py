# repguard/security/middleware_guard.py
import asyncio
import json
import logging
from typing import Any, Optional, Set
from urllib.parse import parse_qs

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from repguard.alerts import AlertManager, make_payload
from repguard.core.settings import Settings
from repguard.metrics import GuardMetrics
from repguard.security.engine import ThreatEngine
from repguard.security.gateway import STATUS_RATE_LIMIT_DENY, STATUS_REPUTATION_DENY
from repguard.security.ip_utils import get_client_info, parse_cidrs
from repguard.security.models import Decision, RequestDescriptor

logger = logging.getLogger(__name__)

# Son kullanıcıya hangi imzanın eşleştiği söylenmez.
DENY_BODY = {
    400: "Request rejected",
    403: "Access denied",
    413: "Request too large",
    429: "Too many requests",
}

# status -> denied_requests{reason}
DENY_REASON = {
    400: "signature",
    403: "reputation",
    429: "rate_limit",
}


def decode_body(raw: bytes, content_type: str) -> Any:
    """
    Gövdeyi uygulamanın göreceği şekle çevirir: urlencoded form -> {k: [v]},
    JSON -> parse edilmiş değer. Parse edilemezse ham metin döner.
    """
    text = raw.decode("utf-8", "replace")
    if not text:
        return ""
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype == "application/x-www-form-urlencoded":
        form = parse_qs(text, keep_blank_values=True)
        return form if form else text
    if ctype == "application/json" or ctype.endswith("+json"):
        try:
            return json.loads(text)
        except (ValueError, RecursionError):
            return text
    return text


class GuardMiddleware(BaseHTTPMiddleware):
    """
    Her isteği ThreatEngine'e sorar:
      - GUARD_EXCLUDE_PATHS altındaki path'ler tamamen bypass edilir (örn. /metrics).
      - MAX_REQUEST_BYTES'ı aşan gövde 413 alır.
      - Reputation ile bloklu kaynak 403, rate limit aşımı 429, imza eşleşmesi 400 alır.
      - Gövde content-type'a göre (form/JSON) çözülüp taranır.
    Metrik ve alert'ler DI ile verilir; alert gönderimi fire-and-forget.
    """
    def __init__(
        self,
        app,
        *,
        engine: ThreatEngine,
        settings: Settings,
        metrics: Optional[GuardMetrics] = None,
        alerts: Optional[AlertManager] = None,
    ):
        super().__init__(app)
        self.engine = engine
        self.enabled = settings.GUARD_ENABLED
        self.excluded_paths = settings.exclude_paths()
        self.max_request_bytes = settings.MAX_REQUEST_BYTES
        self.trusted = parse_cidrs(settings.TRUSTED_PROXY_CIDRS)
        self.salt = settings.IP_SALT
        self.metrics = metrics
        self.alerts = alerts
        self._tasks: Set[asyncio.Task] = set()

    def _is_excluded(self, path: str) -> bool:
        for p in self.excluded_paths:
            if path == p or path.startswith(p + "/"):
                return True
        return False

    def _deny(self, status: int, reason: str) -> PlainTextResponse:
        if self.metrics is not None:
            self.metrics.denied_requests.labels(reason=reason).inc()
        resp = PlainTextResponse(DENY_BODY[status], status_code=status)
        resp.headers["X-RepGuard"] = "deny"
        return resp

    def _fire_alert(self, kind: str, ip_hash: str, path: str, reason: str, meta: Optional[dict] = None) -> None:
        if self.alerts is None:
            return
        task = asyncio.create_task(self.alerts.emit(make_payload(kind, ip_hash, path, reason, meta)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _content_length(self, request: Request) -> int:
        try:
            return int(request.headers.get("content-length", "0"))
        except ValueError:
            return 0

    def _descriptor(self, request: Request, ip: str, raw: bytes) -> RequestDescriptor:
        qp = request.query_params
        return RequestDescriptor(
            source=ip,
            body=decode_body(raw, request.headers.get("content-type", "")),
            query={k: qp.getlist(k) for k in qp.keys()},
            params={"path": request.url.path},
        )

    def _record(self, decision: Decision, ip_hash: str, path: str) -> None:
        if decision.http_status == STATUS_REPUTATION_DENY:
            return
        if self.metrics is not None:
            self.metrics.threat_events.labels(type=decision.reason.value).inc()
            if decision.newly_blocked:
                self.metrics.sources_blocked.inc()
        kind = "rate_limited" if decision.http_status == STATUS_RATE_LIMIT_DENY else "signature_match"
        self._fire_alert(kind, ip_hash, path, decision.reason.value)
        if decision.newly_blocked:
            self._fire_alert(
                "source_blocked", ip_hash, path, decision.reason.value,
                {"threshold": self.engine.config.escalation_threshold,
                 "window_seconds": self.engine.config.escalation_window},
            )

    async def dispatch(self, request: Request, call_next):
        path = request.url.path

        # 1) Exclude path'ler ve global kapatma
        if not self.enabled or self._is_excluded(path):
            return await call_next(request)

        ip, ip_hash = get_client_info(request, self.trusted, self.salt)
        request.state.client_ip = ip
        request.state.ip_hash = ip_hash

        # 2) Boyut limiti (header'a güvenmeden gövdeyi de kontrol et)
        if self._content_length(request) > self.max_request_bytes:
            logger.info("oversize request from %s on %s", ip, path)
            return self._deny(413, "oversize")
        raw = await request.body()
        if len(raw) > self.max_request_bytes:
            logger.info("oversize request from %s on %s", ip, path)
            return self._deny(413, "oversize")
        descriptor = self._descriptor(request, ip, raw)

        # 3) Karar
        decision = self.engine.evaluate(descriptor)
        if decision.allow:
            return await call_next(request)

        self._record(decision, ip_hash, path)
        return self._deny(decision.http_status, DENY_REASON[decision.http_status])
