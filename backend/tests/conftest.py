"""Shared test fixtures for the Screen Advisor backend tests."""

import base64

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.api.dependencies import get_gemini_client, get_rate_limiter
from app.core.rate_limit import InMemoryRateLimitStore, RateLimiter, RateLimitPolicy
from app.main import app


class FakeClock:
    """Manually advanced clock (seconds since epoch)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeModelClient:
    """Records every generate() call and returns a canned reply or raises."""

    def __init__(self, reply: str = "## 状況要約\nテスト応答", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    async def generate(self, instruction, image=None, *, use_search_grounding=False):
        self.calls.append({
            "instruction": instruction,
            "image": image,
            "use_search_grounding": use_search_grounding,
        })
        if self.error is not None:
            raise self.error
        return self.reply


def make_data_uri(size: int = 2000, mime_type: str = "image/png") -> str:
    """Build a data URI wrapping *size* bytes of dummy image data."""
    payload = base64.b64encode(b"\x89" * size).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> RateLimitPolicy:
    return RateLimitPolicy(daily_limit=50, per_minute_limit=5)


@pytest.fixture
def memory_store(policy: RateLimitPolicy) -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore(grace_seconds=policy.min_interval)


@pytest.fixture
def rate_limiter(memory_store, policy, clock) -> RateLimiter:
    return RateLimiter(memory_store, policy, clock=clock)


@pytest.fixture
def model_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def image_uri() -> str:
    return make_data_uri()


@pytest_asyncio.fixture
async def client(rate_limiter, model_client):
    """HTTP client with the rate limiter and Gemini client swapped for fakes."""
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_gemini_client] = lambda: model_client
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
