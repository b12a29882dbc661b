from __future__ import annotations

from fastapi.testclient import TestClient

from folio_identity.main import app


def test_cors_preflight_allows_any_origin_without_credentials():
    client = TestClient(app)

    resp = client.options(
        "/v1/auth/reset-password",
        headers={
            "Origin": "https://tenant.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in resp.headers
