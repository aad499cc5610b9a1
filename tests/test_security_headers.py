import httpx
import pytest

from library_catalog.app import app


@pytest.mark.anyio
async def test_security_headers_present():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        resp = await client.get("/api/health")
    headers = resp.headers
    assert headers["Strict-Transport-Security"].startswith("max-age")
    assert headers["X-Content-Type-Options"] == "nosniff"
    assert headers["X-Frame-Options"] == "DENY"
    assert headers["Referrer-Policy"] == "no-referrer"
    assert "Permissions-Policy" in headers
    assert headers["Content-Security-Policy"].startswith("default-src 'self'")
    assert headers["Cross-Origin-Resource-Policy"] == "same-origin"


@pytest.mark.anyio
async def test_https_required_when_configured(monkeypatch):
    from library_catalog import app as app_module

    monkeypatch.setattr(app_module.settings, "require_https", True)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        plain = await client.get("/api/health")
        forwarded = await client.get("/api/health", headers={"X-Forwarded-Proto": "https"})
    assert plain.status_code == 400
    assert plain.json() == {"success": False, "message": "HTTPS required"}
    assert forwarded.status_code == 200
