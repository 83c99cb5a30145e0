import asyncio
import selectors
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

OVERPASS_URL = "https://overpass.test/api/interpreter"
NOMINATIM_URL = "https://nominatim.test"
WIKIDATA_URL = "https://wikidata.test/sparql"

# Keeps resolver tests fast; spacing itself is asserted on a fake clock
LIMITER_PERIOD = 0.05


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class VirtualTimeSelector:
    """Selector that jumps ``clock`` forward instead of blocking on a timeout."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self._inner = selectors.DefaultSelector()

    def select(self, timeout=None):
        if timeout is not None and timeout > 0:
            self.clock.advance(timeout)
            timeout = 0
        return self._inner.select(timeout)

    def __getattr__(self, name):
        return getattr(self._inner, name)


def run_on_fake_clock(main, clock: FakeClock):
    """Run ``main()`` on an event loop whose time is ``clock``.

    Timers fire as soon as nothing else is runnable, so limiter waits cost
    no wall time and the spacing they impose can be asserted exactly.
    """
    loop = asyncio.SelectorEventLoop(VirtualTimeSelector(clock))
    loop.time = clock
    try:
        return loop.run_until_complete(main())
    finally:
        loop.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    from geotag_enrich.config import Settings
    return Settings(
        overpass_urls=[OVERPASS_URL],
        nominatim_url=NOMINATIM_URL,
        wikidata_url=WIKIDATA_URL,
        backoff_step_s=0.0,
        user_agent="geotag-enrich-tests/1.0",
    )


@pytest.fixture
def cache(clock):
    from geotag_enrich.core.cache import GeoCache
    return GeoCache(clock=clock)


@pytest.fixture
def limiter():
    from geotag_enrich.core.fetch import min_interval_limiter
    return min_interval_limiter(LIMITER_PERIOD)


def make_response(data=None, status_code: int = 200):
    # raise_for_status() and json() are sync in httpx
    resp = MagicMock()
    resp.status_code = status_code
    resp.json = MagicMock(return_value=data)
    return resp


@pytest.fixture
def respond():
    return make_response


@pytest.fixture
def http():
    """Patch httpx.AsyncClient; set ``http.client.request`` per test."""
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)
        mock_client_cls.return_value = mock_client
        yield SimpleNamespace(cls=mock_client_cls, client=mock_client)
