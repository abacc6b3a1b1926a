"""Tests for navkeep.core.models."""

import math
from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from navkeep.core.models import (
    HealthStatus,
    Instrument,
    InstrumentResult,
    Observation,
    PriceRecord,
    Source,
    SourceRunSnapshot,
)

NOW = datetime(2024, 3, 15, 18, 0, tzinfo=timezone.utc)


class TestInstrument:
    def test_isin_normalized_to_upper(self):
        inst = Instrument(isin=" lu0996182563 ")
        assert inst.isin == "LU0996182563"

    @pytest.mark.parametrize("bad", ["", "LU099618256", "1U0996182563", "LU099618256X"])
    def test_invalid_isin_rejected(self, bad):
        with pytest.raises(ValidationError):
            Instrument(isin=bad)

    def test_label(self):
        assert Instrument(isin="LU0996182563").label == "LU0996182563"
        assert Instrument(isin="LU0996182563", name="Fund").label == "LU0996182563 (Fund)"

    def test_frozen(self):
        inst = Instrument(isin="LU0996182563")
        with pytest.raises(ValidationError):
            inst.name = "x"


class TestSource:
    def test_values(self):
        assert Source("ft") is Source.FT
        assert str(Source.FUNDSQUARE) == "fundsquare"


class TestObservation:
    def test_accepts_invalid_close(self):
        # Rejection happens in the resolver, not at construction.
        obs = Observation(date=date(2024, 1, 2), close=math.nan, source=Source.FT)
        assert math.isnan(obs.close)


class TestPriceRecord:
    def _make(self, **overrides):
        defaults = dict(
            date=date(2024, 1, 2),
            close=10.0,
            source="ft",
            created_at=NOW,
            updated_at=NOW,
        )
        defaults.update(overrides)
        return PriceRecord(**defaults)

    def test_valid(self):
        rec = self._make()
        assert rec.previous_source is None
        assert rec.previous_close is None

    @pytest.mark.parametrize("close", [0.0, -1.0, math.inf, math.nan])
    def test_invalid_close_rejected(self, close):
        with pytest.raises(ValidationError):
            self._make(close=close)

    def test_unknown_source_tag_allowed(self):
        assert self._make(source="legacy").source == "legacy"

    def test_json_roundtrip(self):
        rec = self._make(previous_source="fundsquare", previous_close=9.5)
        assert PriceRecord.model_validate(rec.model_dump(mode="json")) == rec


class TestSnapshot:
    def test_failed_results(self):
        snap = SourceRunSnapshot(
            timestamp=NOW,
            success_count=1,
            total_attempted=2,
            results=[
                InstrumentResult(isin="LU0996182563", success=True),
                InstrumentResult(isin="IE00B03HCZ61", success=False, error="HTTP 500"),
            ],
        )
        assert [r.isin for r in snap.failed] == ["IE00B03HCZ61"]

    def test_health_defaults(self):
        status = HealthStatus()
        assert status.last_ok is None
        assert status.sources == {}
