"""
Tests for the FastAPI adapter: run-checks, verdict, history, API key and status mapping.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from backend_vetting.api_server.server import create_app
from backend_vetting.config import VettingSettings
from backend_vetting.core.exceptions import DataUnavailable, Timeout

from conftest import MINT, TOKEN_KEY


def test_health(api_client):
    r = api_client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_run_checks_then_cached(api_client, fake_client):
    r1 = api_client.post(f"/api/tokens/{MINT}/run-checks")
    assert r1.status_code == 200
    body = r1.json()
    assert body["success"] is True
    assert body["ranChecks"] is True
    assert body["tokenId"] == TOKEN_KEY
    assert body["verdict"]["status"] == "pass"
    assert body["verdict"]["checks"][0]["name"] == "liquidity_threshold"
    assert "durationMs" in body["verdict"]["checks"][0]

    r2 = api_client.post(f"/api/tokens/{MINT}/run-checks")
    assert r2.json()["ranChecks"] is False

    r3 = api_client.post(f"/api/tokens/{MINT}/run-checks", params={"force": "true"})
    assert r3.json()["ranChecks"] is True
    assert len(fake_client.calls) == 2


def test_run_checks_error_statuses(api_client, fake_client):
    fake_client.error = Timeout("dexscreener timed out", provider="dexscreener")
    r = api_client.post(f"/api/tokens/{MINT}/run-checks")
    assert r.status_code == 504
    assert r.json()["success"] is False
    assert r.json()["error"]["kind"] == "Timeout"
    assert r.json()["ranChecks"] is False

    fake_client.error = DataUnavailable("No trading pairs found")
    r = api_client.post(f"/api/tokens/{MINT}/run-checks")
    assert r.status_code == 404

    r = api_client.post("/api/tokens/solana:not-a-mint/run-checks")
    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "InvalidTokenId"


def test_verdict_and_history(api_client):
    assert api_client.get(f"/api/tokens/{MINT}/verdict").status_code == 404

    api_client.post(f"/api/tokens/{MINT}/run-checks")
    api_client.post(f"/api/tokens/{MINT}/run-checks", params={"force": "true"})

    verdict = api_client.get(f"/api/tokens/{MINT}/verdict")
    assert verdict.status_code == 200
    assert verdict.json()["fresh"] is True
    assert verdict.json()["greenFlags"]
    assert verdict.json()["riskLevel"] == "LOW"
    assert verdict.json()["providers"] == ["dexscreener", "goplus", "rugcheck", "jupiter"]
    assert verdict.json()["providerErrors"] == []

    history = api_client.get(f"/api/tokens/{MINT}/history", params={"limit": 1})
    assert history.status_code == 200
    assert len(history.json()["verdicts"]) == 1


def test_api_key_required_when_configured(service):
    app = create_app(service, settings=VettingSettings(database_url="memory://", api_key="s3cret"))
    with TestClient(app) as client:
        assert client.post(f"/api/tokens/{MINT}/run-checks").status_code == 401
        assert client.post(f"/api/tokens/{MINT}/run-checks", headers={"X-API-Key": "wrong"}).status_code == 401
        ok = client.post(f"/api/tokens/{MINT}/run-checks", headers={"X-API-Key": "s3cret"})
        assert ok.status_code == 200
        # health stays open
        assert client.get("/health").status_code == 200
