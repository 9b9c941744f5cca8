async def test_health_ok(client):
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["app"] == "Waydown"


async def test_responses_carry_request_id_and_security_headers(client):
    r = await client.get("/health")
    assert r.headers["X-Request-ID"]
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"


async def test_metrics_requires_token_outside_debug(client):
    r = await client.get("/metrics")
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "forbidden"


async def test_metrics_with_token(client, monkeypatch):
    from waydown.config import settings

    monkeypatch.setattr(settings, "metrics_token", "scrape-me")
    await client.get("/health")
    r = await client.get("/metrics", headers={"X-Metrics-Token": "scrape-me"})
    assert r.status_code == 200
    assert "http_requests_total" in r.text


async def test_unknown_route_uses_error_envelope(client):
    r = await client.get("/api/nowhere")
    assert r.status_code == 404
    body = r.json()
    assert body["error"]["code"] == "not_found"
    assert body["request_id"] == r.headers["X-Request-ID"]
