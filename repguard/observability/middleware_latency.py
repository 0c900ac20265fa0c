import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from repguard.metrics import GuardMetrics

EXCLUDE_PREFIXES = ("/metrics",)


class LatencyMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, metrics: GuardMetrics):
        super().__init__(app)
        self.histogram = metrics.request_latency

    async def dispatch(self, request: Request, call_next):
        path = request.url.path or "/"
        if any(path.startswith(p) for p in EXCLUDE_PREFIXES):
            # /metrics gibi uçları ölçmeyelim
            return await call_next(request)

        start = time.perf_counter()
        status = "500"
        try:
            response: Response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            duration = time.perf_counter() - start
            # route şablonu varsa onu kullan; guard reddinde route yoktur, ham path label'a girmesin
            r = request.scope.get("route")
            route_tpl = getattr(r, "path", None) or "unmatched"
            self.histogram.labels(route=route_tpl, method=request.method, status=status).observe(duration)
