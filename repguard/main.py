from dotenv import load_dotenv
load_dotenv()  # .env'yi import zincirinden önce yükle

# repguard/main.py
import logging
import time
from typing import Optional

from fastapi import FastAPI
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from repguard.alerts import AlertManager, LogSink, FileSink, WebhookSink
from repguard.api.routes_debug import router as debug_router
from repguard.api.routes_metrics import router as metrics_router
from repguard.api.routes_security import router as security_router
from repguard.core.logs import setup_logging
from repguard.core.settings import Settings, get_settings
from repguard.metrics import build_metrics
from repguard.observability.middleware_latency import LatencyMiddleware
from repguard.security.engine import ThreatEngine
from repguard.security.ledger import Clock
from repguard.security.middleware_guard import GuardMiddleware
from repguard.security.middleware_headers import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)


def _build_alerts(settings: Settings) -> AlertManager:
    alerts = AlertManager(
        cooldown_seconds=settings.ALERT_COOLDOWN_SECONDS,
        keep_recent=settings.ALERT_KEEP_RECENT,
    )
    alerts.register(LogSink())
    if settings.ALERT_FILE_PATH:
        alerts.register(FileSink(settings.ALERT_FILE_PATH))
    if settings.ALERT_WEBHOOK_URL:
        alerts.register(WebhookSink(settings.ALERT_WEBHOOK_URL))
    return alerts


def create_app(settings: Optional[Settings] = None, *, clock: Clock = time.time) -> FastAPI:
    """
    Uygulamayı kurar. Geçersiz engine ayarlarında ConfigurationError fırlatır
    ve app hiç oluşmaz.
    """
    settings = settings or get_settings()
    engine = ThreatEngine.build(
        settings.detection_config(),
        allowlist=settings.allowlist_ips(),
        clock=clock,
    )
    metrics = build_metrics()
    alerts = _build_alerts(settings)

    app = FastAPI(title="RepGuard", version="0.1.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.metrics = metrics
    app.state.alerts = alerts

    app.include_router(metrics_router)
    app.include_router(debug_router)
    app.include_router(security_router)

    @app.on_event("startup")
    async def _startup():
        # Periyodik bakım: blok/rate-limit kayıtları ve (ayarlıysa) ledger retention
        app.state.scheduler = AsyncIOScheduler()
        app.state.scheduler.add_job(
            engine.run_retention,
            IntervalTrigger(seconds=settings.RETENTION_SWEEP_SEC),
        )
        app.state.scheduler.start()

    @app.on_event("shutdown")
    async def _shutdown():
        sch = getattr(app.state, "scheduler", None)
        if sch:
            sch.shutdown(wait=False)

    # MIDDLEWARE SIRASI: en son eklenen en dışta çalışır.
    # Latency en dışta; header'lar guard'ın 400/403 yanıtlarını da kapsar.
    app.add_middleware(
        GuardMiddleware,
        engine=engine,
        settings=settings,
        metrics=metrics,
        alerts=alerts,
    )
    if settings.SECURITY_HEADERS_ENABLED:
        app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LatencyMiddleware, metrics=metrics)

    logger.info("RepGuard started (env=%s, guard=%s)", settings.APP_ENV, settings.GUARD_ENABLED)
    return app


_settings = get_settings()
setup_logging(_settings.LOG_LEVEL)
app = create_app(_settings)
