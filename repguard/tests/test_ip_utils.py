import pytest

from conftest import client_for

pytestmark = pytest.mark.asyncio


@pytest.mark.asyncio
async def test_xff_respected_when_remote_trusted(app_factory):
    app = app_factory(TRUSTED_PROXY_CIDRS="127.0.0.1/32", IP_SALT="test_salt")
    async with client_for(app, "198.51.100.23") as c:
        r = await c.get("/_debug/whoami")
        assert r.status_code == 200
        body = r.json()
        assert body["ip"] == "198.51.100.23"
        assert len(body["hash"]) == 16


@pytest.mark.asyncio
async def test_xff_ignored_when_remote_untrusted(app_factory):
    app = app_factory(TRUSTED_PROXY_CIDRS="")
    async with client_for(app, "203.0.113.9") as c:
        r = await c.get("/_debug/whoami")
        # ASGITransport tipik olarak 127.0.0.1
        assert r.json()["ip"] in ("127.0.0.1", "::1")


@pytest.mark.asyncio
async def test_unparseable_xff_falls_back_to_socket(app_factory):
    app = app_factory()
    async with client_for(app, "not-an-ip") as c:
        r = await c.get("/_debug/whoami")
        assert r.json()["ip"] == "127.0.0.1"
