# repguard/tests/conftest.py
import sys, pathlib

# Proje kökünü sys.path'e ekle (repguard/tests -> repguard -> KÖK: parents[2])
ROOT = pathlib.Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

import pytest
import httpx

from repguard.core.settings import Settings
from repguard.security.config import DetectionConfig
from repguard.security.engine import ThreatEngine
from repguard.security.models import Severity, ThreatEvent, ThreatType

ADMIN_TOKEN = "test-admin-token"


class FakeClock:
    """Elle ilerletilen saat; zaman pencereleri deterministik test edilir."""
    def __init__(self, start: float = 1_700_000_000.0):
        self.t = float(start)

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return ThreatEngine.build(DetectionConfig(), clock=clock)


def make_event(source="1.2.3.4", ts=0.0, type_=ThreatType.SCRIPT_INJECTION,
               severity=Severity.HIGH, blocked=True) -> ThreatEvent:
    return ThreatEvent(type=type_, severity=severity, source=source, timestamp=ts, blocked=blocked)


def make_settings(**overrides) -> Settings:
    base = dict(
        ADMIN_TOKEN=ADMIN_TOKEN,
        ALERT_COOLDOWN_SECONDS=0,
        ALERT_KEEP_RECENT=50,
        TRUSTED_PROXY_CIDRS="127.0.0.1/32",
        GUARD_EXCLUDE_PATHS="/metrics,/health,/_admin",
    )
    base.update(overrides)
    # .env'den bağımsız olsun
    return Settings(_env_file=None, **base)


@pytest.fixture
def app_factory(clock):
    from repguard.main import create_app

    def _make(**overrides):
        return create_app(make_settings(**overrides), clock=clock)
    return _make


def client_for(app, ip: str | None = None) -> httpx.AsyncClient:
    headers = {"X-Forwarded-For": ip} if ip else {}
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test", headers=headers)
