from conftest import API, login
from main import app
from routes.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_blocks_over_limit_and_recovers():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=3, window=60, clock=clock)

    assert [limiter.is_rate_limited("1.2.3.4") for _ in range(3)] == [False, False, False]
    assert limiter.is_rate_limited("1.2.3.4") is True
    assert limiter.is_rate_limited("5.6.7.8") is False

    clock.now += 30
    assert limiter.retry_after("1.2.3.4") == 30

    clock.now += 31
    assert limiter.is_rate_limited("1.2.3.4") is False


def test_rejected_hits_are_not_recorded():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window=10, clock=clock)

    limiter.is_rate_limited("a")
    clock.now += 5
    assert limiter.is_rate_limited("a") is True

    clock.now += 6
    assert limiter.is_rate_limited("a") is False


def test_reset_forgets_everyone():
    limiter = RateLimiter(max_requests=1, window=60)
    limiter.is_rate_limited("a")
    limiter.reset()
    assert limiter.is_rate_limited("a") is False
    assert limiter.retry_after("b") == 0


def test_login_is_rate_limited(client):
    for _ in range(10):
        assert login(client, email="nobody@example.com").status_code == 401

    response = login(client, email="nobody@example.com")

    assert response.status_code == 429
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Too many login attempts, please try again later."
    assert body["retry_after"] > 0
    assert int(response.headers["retry-after"]) == body["retry_after"]


def test_general_api_limit(client):
    original = app.state.api_limiter
    app.state.api_limiter = RateLimiter(max_requests=2, window=60)
    try:
        assert client.get(f"{API}/auth/me").status_code == 401
        assert client.get(f"{API}/auth/me").status_code == 401

        response = client.get(f"{API}/auth/me")
        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests from this IP, please try again later."

        # index routes sit outside the limiter
        assert client.get(f"{API}/health").status_code == 200
    finally:
        app.state.api_limiter = original


def test_clients_that_never_return_are_swept():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=5, window=60, clock=clock)
    for n in range(1000):
        limiter.is_rate_limited(f"10.0.{n // 256}.{n % 256}")
    assert limiter.tracked_clients() == 1000

    clock.now += 61
    limiter.is_rate_limited("192.168.0.1")

    assert limiter.tracked_clients() == 1


def test_sweep_keeps_clients_still_in_window():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window=60, clock=clock)
    limiter.is_rate_limited("old")
    clock.now += 30
    limiter.is_rate_limited("recent")

    clock.now += 40
    assert limiter.is_rate_limited("new") is False

    assert limiter.tracked_clients() == 2
    assert limiter.is_rate_limited("recent") is True
