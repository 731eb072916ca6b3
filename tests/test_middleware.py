from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware import BodySizeLimitMiddleware, RateLimitMiddleware


def _app(**limits) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, **limits)

    @app.post("/audit")
    def audit():
        return {"ok": True}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


# --- rate limit ---

def test_posts_beyond_limit_are_refused():
    client = TestClient(_app(max_requests=2, window_seconds=60))

    assert client.post("/audit").status_code == 200
    assert client.post("/audit").status_code == 200
    response = client.post("/audit")

    assert response.status_code == 429
    assert response.json()["code"] == "rate_limit_exceeded"
    assert 1 <= int(response.headers["Retry-After"]) <= 61


def test_reads_are_not_limited():
    client = TestClient(_app(max_requests=1, window_seconds=60))
    client.post("/audit")
    for _ in range(3):
        assert client.get("/health").status_code == 200


def test_clients_are_limited_separately():
    client = TestClient(_app(max_requests=1, window_seconds=60))
    assert client.post("/audit", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200
    assert client.post("/audit", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200
    assert client.post("/audit", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429


# --- body size ---

def test_oversized_body_is_refused():
    app = FastAPI()
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=10)

    @app.post("/audit")
    def audit():
        return {"ok": True}

    response = TestClient(app).post("/audit", content=b"x" * 50)

    assert response.status_code == 413
    assert response.json()["code"] == "payload_too_large"
