"""Shared pytest fixtures for navkeep."""

from datetime import date, datetime, timezone

import pytest

from navkeep.core.config import NavkeepConfig, StorageConfig
from navkeep.core.models import (
    Instrument,
    InstrumentResult,
    Observation,
    Source,
    StorageBackend,
)
from navkeep.store.memory import MemoryStore

ISIN_A = "LU0996182563"
ISIN_B = "IE00B03HCZ61"
ISIN_C = "ES0165151004"


class FakeClock:
    """Settable clock for deterministic timestamps."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeAdapter:
    """SourceAdapter returning canned observations or raising canned errors."""

    def __init__(self, source: Source, responses: dict) -> None:
        self.source = source
        self.responses = responses
        self.calls: list[str] = []

    def supports(self, instrument: Instrument) -> bool:
        return instrument.isin in self.responses

    async def fetch(self, instrument: Instrument) -> list[Observation]:
        self.calls.append(instrument.isin)
        response = self.responses[instrument.isin]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        pass


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 15, 18, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def instrument_a() -> Instrument:
    return Instrument(
        isin=ISIN_A,
        name="Global Equity Fund",
        fundsquare_id="123456",
        ft_symbol="LU0996182563:EUR",
    )


@pytest.fixture
def instrument_b() -> Instrument:
    return Instrument(isin=ISIN_B, name="Index Fund", ft_symbol="IE00B03HCZ61:EUR")


@pytest.fixture
def instruments(instrument_a, instrument_b) -> list[Instrument]:
    return [instrument_a, instrument_b]


@pytest.fixture
def make_observation():
    """Factory for Observation with overridable defaults."""

    def _make(**overrides) -> Observation:
        defaults = dict(date=date(2024, 3, 14), close=10.0, source=Source.FT)
        defaults.update(overrides)
        return Observation(**defaults)

    return _make


@pytest.fixture
def sample_result() -> InstrumentResult:
    return InstrumentResult(
        isin=ISIN_A,
        success=True,
        observed=1,
        updated=1,
        inserted=1,
        latest_date=date(2024, 3, 14),
        latest_close=10.0,
    )


@pytest.fixture
def memory_config(instruments) -> NavkeepConfig:
    return NavkeepConfig(
        instruments=instruments,
        storage=StorageConfig(backend=StorageBackend.MEMORY),
    )


@pytest.fixture
def fake_adapter():
    """Factory: ``fake_adapter(source, {isin: observations_or_exception})``."""
    return FakeAdapter
