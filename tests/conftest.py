"""
Shared test configuration, fixtures, and markers for arraymeta tests.
"""

import threading
import time

import pytest

from arraymeta.errors import BackendError
from arraymeta.md.decoder import MetadataRecord


def pytest_configure(config):
    """Configure test markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (>1s)")
    config.addinivalue_line("markers", "net: marks tests requiring network")
    config.addinivalue_line("markers", "property: marks property-based tests")
    config.addinivalue_line("markers", "unit: marks unit tests (fast, pure logic)")


LANDSAT_RECORD = MetadataRecord(
    name="landsat",
    dimensions=(
        "[x;;;0;;;1000;;;256;;;0;;;0;;;999]"
        "[y;;;0;;;500;;;256;;;0;;;0;;;499]"
        "[t;;;0;;;365;;;1;;;0;;;0;;;9]"
    ),
    attributes="<band1;;;int16;;;true><band2;;;double>",
    srs="x;;;y;;;EPSG;;;32632;;;x0=400000 y0=5600000 a11=200 a22=-400 a12=0 a21=0;;;;;;",
    trs="t;;;2001-01-01T00:00:00;;;P1D",
    extent="400000;;;600000;;;5400000;;;5600000;;;2001-01-01T00:00:00;;;2001-01-10T00:00:00",
)

PLAIN_RECORD = MetadataRecord(
    name="plain",
    dimensions="[i;;;0;;;10;;;10;;;0;;;0;;;9]",
    attributes="<v;;;double>",
)

# dimension group with six instead of seven fields
BROKEN_RECORD = MetadataRecord(
    name="broken",
    dimensions="[x;;;0;;;10;;;10;;;0;;;0]",
    attributes="<v;;;double>",
)


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """In-memory metadata source recording every fetch."""

    def __init__(self, records, delay: float = 0.0):
        self.records = {record.name: record for record in records}
        self.delay = delay
        self.fail = False
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, names=None):
        with self._lock:
            self.calls.append(list(names or []))
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise BackendError("backend down")
        if not names:
            return list(self.records.values())
        return [self.records[name] for name in names if name in self.records]


@pytest.fixture
def landsat_record():
    return LANDSAT_RECORD


@pytest.fixture
def plain_record():
    return PLAIN_RECORD


@pytest.fixture
def broken_record():
    return BROKEN_RECORD


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_transport():
    return FakeTransport([LANDSAT_RECORD, PLAIN_RECORD, BROKEN_RECORD])


@pytest.fixture
def make_transport():
    """Factory for transports serving the two decodable sample arrays."""

    def factory(delay: float = 0.0) -> FakeTransport:
        return FakeTransport([LANDSAT_RECORD, PLAIN_RECORD], delay=delay)

    return factory
