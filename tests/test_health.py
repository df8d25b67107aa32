"""Health check."""


def test_health(api):
    """GET /health answers 200 without a token."""
    client, _ = api
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
