import asyncio
import re

import pytest
from prometheus_client.parser import text_string_to_metric_families

from conftest import ADMIN_TOKEN, client_for

pytestmark = pytest.mark.asyncio

ATTACKER = "1.2.3.4"
ADMIN = {"X-Admin-Token": ADMIN_TOKEN}


def _sum_metric(txt: str, name: str, **labels) -> float:
    """
    Prometheus text formatında `name` örneklerini (label filtresiyle) toplar.
    """
    patt = rf'^{re.escape(name)}(?:\{{([^}}]*)\}})?\s+([0-9.eE+-]+)$'
    total = 0.0
    for m in re.finditer(patt, txt, re.MULTILINE):
        got = dict(re.findall(r'(\w+)="([^"]*)"', m.group(1) or ""))
        if all(got.get(k) == v for k, v in labels.items()):
            total += float(m.group(2))
    return total


def _gauge(txt: str, name: str) -> float:
    for fam in text_string_to_metric_families(txt):
        if fam.name == name:
            return sum(float(s.value) for s in fam.samples)
    return 0.0


@pytest.mark.asyncio
async def test_script_body_denied_with_generic_400(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        r = await c.post("/version", content="<script>alert(1)</script>")
        assert r.status_code == 400
        assert r.text == "Request rejected"
        assert "script" not in r.text.lower()
        assert r.headers["X-RepGuard"] == "deny"
        assert r.headers["X-Frame-Options"] == "DENY"

    events = app.state.engine.ledger.all()
    assert [(e.type.value, e.severity.name, e.source, e.blocked) for e in events] == [
        ("script-injection", "HIGH", ATTACKER, True),
    ]


@pytest.mark.asyncio
async def test_clean_request_passes_through(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        r = await c.get("/version", params={"page": "2"})
        assert r.status_code == 200
        assert r.json()["app"] == "RepGuard"
        assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert len(app.state.engine.ledger) == 0


@pytest.mark.asyncio
async def test_query_string_attack_denied(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        r = await c.get("/version", params={"id": "1' OR '1'='1"})
        assert r.status_code == 400
    assert app.state.engine.ledger.all()[0].type.value == "sql-injection"


@pytest.mark.asyncio
async def test_repeat_offender_blocked_then_allowlisted(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        for _ in range(5):
            r = await c.post("/version", content="x' OR 1=1 --")
            assert r.status_code == 400

        # temiz istek bile artık 403
        r = await c.get("/version")
        assert r.status_code == 403
        assert r.text == "Access denied"

    async with client_for(app) as admin:
        blocked = await admin.get("/_admin/security/blocked", headers=ADMIN)
        assert blocked.json() == [ATTACKER]

        r = await admin.put(f"/_admin/security/allowlist/{ATTACKER}", headers=ADMIN)
        assert r.status_code == 200
        assert r.json() == {"source": ATTACKER, "state": "allowlisted"}

    async with client_for(app, ATTACKER) as c:
        assert (await c.get("/version")).status_code == 200

    async with client_for(app) as admin:
        r = await admin.delete(f"/_admin/security/allowlist/{ATTACKER}", headers=ADMIN)
        assert r.json() == {"source": ATTACKER, "state": "blocked"}
        r = await admin.delete(f"/_admin/security/allowlist/{ATTACKER}", headers=ADMIN)
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_other_sources_unaffected_by_block(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        for _ in range(5):
            await c.post("/version", content="<script>")
    async with client_for(app, "5.6.7.8") as c:
        assert (await c.get("/version")).status_code == 200


@pytest.mark.asyncio
async def test_oversize_body_rejected(app_factory):
    app = app_factory(MAX_REQUEST_BYTES=100)
    async with client_for(app, ATTACKER) as c:
        r = await c.post("/version", content="a" * 500)
        assert r.status_code == 413
    assert len(app.state.engine.ledger) == 0


@pytest.mark.asyncio
async def test_guard_disabled_passes_everything(app_factory):
    app = app_factory(GUARD_ENABLED=False)
    async with client_for(app, ATTACKER) as c:
        r = await c.get("/version", params={"q": "<script>"})
        assert r.status_code == 200


@pytest.mark.asyncio
async def test_admin_endpoints_require_token(app_factory):
    app = app_factory()
    async with client_for(app) as c:
        assert (await c.get("/_admin/security/report")).status_code == 403
        assert (await c.get("/_admin/security/report", headers={"X-Admin-Token": "nope"})).status_code == 403
        assert (await c.get("/_debug/alerts")).status_code == 403


@pytest.mark.asyncio
async def test_admin_endpoints_closed_without_configured_token(app_factory):
    app = app_factory(ADMIN_TOKEN="")
    async with client_for(app) as c:
        r = await c.get("/_admin/security/report", headers={"X-Admin-Token": ""})
        assert r.status_code == 403


@pytest.mark.asyncio
async def test_report_status_and_events(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        await c.post("/version", content="<script>alert(1)</script>")
        await c.post("/version", content="DROP TABLE users")
        await c.post("/version", content="DROP TABLE users")

    async with client_for(app) as admin:
        report = (await admin.get("/_admin/security/report", headers=ADMIN)).json()
        assert report["total_threats"] == 3
        assert report["blocked_threats"] == 3
        assert report["top_threat_types"] == ["sql-injection", "script-injection"]
        assert report["risk_score"] == 42
        assert report["risk_level"] == "MEDIUM"
        assert len(report["recommendations"]) > 0

        status = (await admin.get("/_admin/security/status", headers=ADMIN)).json()
        assert status == {"threats_today": 3, "blocked_sources": 0, "risk_level": "MEDIUM"}

        page = (await admin.get("/_admin/security/events", params={"source": ATTACKER, "limit": 2}, headers=ADMIN)).json()
        assert page["total"] == 3
        assert [i["type"] for i in page["items"]] == ["sql-injection", "sql-injection"]
        assert all(i["source"] == ATTACKER for i in page["items"])


@pytest.mark.asyncio
async def test_metrics_reflect_detections(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        for _ in range(5):
            await c.post("/version", content="<script>")
        await c.get("/version")

    async with client_for(app) as c:
        m = await c.get("/metrics")
        assert m.status_code == 200
        txt = m.text

    assert _sum_metric(txt, "threat_events_total", type="script-injection") == 5
    assert _sum_metric(txt, "denied_requests_total", reason="signature") == 5
    assert _sum_metric(txt, "denied_requests_total", reason="reputation") == 1
    assert _sum_metric(txt, "sources_blocked_total") == 1
    assert _gauge(txt, "blocked_sources") == 1
    assert _gauge(txt, "risk_score") == 70
    assert _sum_metric(txt, "request_latency_seconds_count") >= 6


@pytest.mark.asyncio
async def test_alerts_emitted_on_block(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        for _ in range(5):
            await c.post("/version", content="<script>")

    kinds = set()
    async with client_for(app) as admin:
        # emit'in event loop'ta işlenmesi için kısa polling
        for _ in range(10):
            await asyncio.sleep(0.05)
            r = await admin.get("/_debug/alerts", params={"limit": 50}, headers=ADMIN)
            kinds = {a.get("kind") for a in r.json()}
            if "source_blocked" in kinds:
                break
    assert {"signature_match", "source_blocked"} <= kinds


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs, expected", [
    (dict(data={"comment": "<script>alert(1)</script>"}), "script-injection"),
    (dict(content="comment=%3Cscript%3Ealert(1)%3C%2Fscript%3E",
          headers={"Content-Type": "application/x-www-form-urlencoded"}), "script-injection"),
    (dict(content="q=1+UNION+SELECT+password+FROM+users",
          headers={"Content-Type": "application/x-www-form-urlencoded; charset=utf-8"}), "sql-injection"),
    (dict(content='{"comment": "\\u003cscript\\u003ealert(1)"}',
          headers={"Content-Type": "application/json"}), "script-injection"),
    (dict(json={"user": {"bio": "x'; DROP\tTABLE users"}}), "sql-injection"),
])
async def test_encoded_body_attacks_denied(app_factory, kwargs, expected):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        r = await c.post("/health2", **kwargs)
        assert r.status_code == 400
    assert app.state.engine.ledger.all()[-1].type.value == expected


@pytest.mark.asyncio
async def test_unparseable_json_body_scanned_as_text(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        r = await c.post("/version", content="{not json <script>", headers={"Content-Type": "application/json"})
        assert r.status_code == 400


@pytest.mark.asyncio
async def test_clean_form_and_json_pass(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        r = await c.post("/health2", data={"name": "alice", "note": "select a plan"})
        assert r.status_code == 404
        r = await c.post("/health2", json={"name": "bob", "tags": ["a", "b"]})
        assert r.status_code == 404
    assert len(app.state.engine.ledger) == 0


@pytest.mark.asyncio
async def test_request_flood_gets_429_and_is_reported(app_factory):
    app = app_factory(RATE_GENERAL_MAX=3)
    async with client_for(app, ATTACKER) as c:
        statuses = [(await c.get("/version")).status_code for _ in range(4)]
        assert statuses == [200, 200, 200, 429]
        r = await c.get("/version")
        assert r.text == "Too many requests"
        assert r.headers["X-RepGuard"] == "deny"

    async with client_for(app) as admin:
        report = (await admin.get("/_admin/security/report", headers=ADMIN)).json()
        assert report["top_threat_types"] == ["flood"]
        assert report["total_threats"] == 2
        txt = (await admin.get("/metrics")).text
    assert _sum_metric(txt, "denied_requests_total", reason="rate_limit") == 2
    assert _sum_metric(txt, "threat_events_total", type="flood") == 2


@pytest.mark.asyncio
async def test_login_brute_force_escalates_to_block(app_factory):
    app = app_factory()
    async with client_for(app, ATTACKER) as c:
        statuses = [(await c.post("/login", data={"user": "a", "pw": "b"})).status_code for _ in range(10)]
        # 5 deneme serbest, sonra 429; 5 brute-force olayıyla kaynak bloklanır
        assert statuses == [404] * 5 + [429] * 5
        assert (await c.get("/version")).status_code == 403
    types = {e.type.value for e in app.state.engine.ledger.all()}
    assert types == {"brute-force"}
    assert app.state.engine.reputation.blocked_sources() == [ATTACKER]


@pytest.mark.asyncio
async def test_rate_limit_disabled(app_factory):
    app = app_factory(RATE_LIMIT_ENABLED=False, RATE_GENERAL_MAX=1)
    async with client_for(app, ATTACKER) as c:
        for _ in range(5):
            assert (await c.get("/version")).status_code == 200
