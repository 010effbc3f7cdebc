"""Shared fixtures and fakes for SubScout tests."""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional, Set

import pytest

from subscout.core.config import Config
from subscout.sources.base import BaseSource

TEST_CONFIG = """
rate_limit:
  max_requests: 10
  time_window_ms: 180000
cache:
  backend: memory
  freshness_ms: 86400000
http:
  timeout_ms: 15000
  user_agent: SubScout-Test/1.0
logging:
  level: WARNING
  file: null
"""


class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    """UTC wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StaticSource(BaseSource):
    """In-process source returning fixed names, or failing on demand."""

    def __init__(
        self,
        config: Config,
        name: str = "static",
        names: Iterable[str] = (),
        error: Optional[Exception] = None,
        delay: float = 0.0,
        before_fetch=None,
    ):
        self.name = name
        super().__init__(config)
        self.names = list(names)
        self.error = error
        self.delay = delay
        self.before_fetch = before_fetch
        self.calls = 0

    def fetch(self, domain: str) -> Any:
        self.calls += 1
        if self.before_fetch:
            self.before_fetch()
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.names)

    def normalize(self, record: Any, domain: str) -> Set[str]:
        # Loose suffix match, case preserved; the aggregator lowercases
        return {name for name in record if name.lower().endswith(domain)}


@pytest.fixture
def config_file(tmp_path):
    """Write the test configuration to a temporary YAML file."""
    path = tmp_path / "config.yaml"
    path.write_text(TEST_CONFIG, encoding="utf-8")
    return path


@pytest.fixture
def config(config_file):
    return Config(config_path=str(config_file))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def date_clock():
    return FakeDateClock()
