"""End-to-end: both live sources, staleness, and export over a real store."""

from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path

import httpx
import pytest
import respx

from navkeep.core.config import FTConfig, FundsquareConfig
from navkeep.core.exceptions import TotalOutageError
from navkeep.core.models import FreshnessState, Instrument
from navkeep.export import write_exports
from navkeep.health import StalenessEvaluator
from navkeep.ingestion import IngestionOrchestrator
from navkeep.sources import FTAdapter, FundsquareAdapter

pytestmark = pytest.mark.integration

ISIN_A = "LU0996182563"
ISIN_B = "IE00B03HCZ61"
FS_BASE = "https://fs.test"
FT_URL = "https://ft.test/data/funds/tearsheet/historical"

# 2024-03-14T16:00:00Z
MS_0314 = 1710432000000


def _ft_page(rows: list[tuple[str, str, str]]) -> str:
    body = "".join(
        f"<tr><td><span>{long}</span><span>{short}</span></td>"
        f"<td>{close}</td><td>{close}</td><td>{close}</td><td>{close}</td><td>0</td></tr>"
        for long, short, close in rows
    )
    return (
        '<table class="mod-tearsheet-historical-prices__results">'
        f"<tbody>{body}</tbody></table>"
    )


FT_PAGE_A = _ft_page(
    [
        ("Thursday, March 14, 2024", "Thu, Mar 14, 2024", "10.40"),
        ("Wednesday, March 13, 2024", "Wed, Mar 13, 2024", "10.30"),
        ("Tuesday, March 12, 2024", "Tue, Mar 12, 2024", "10.20"),
    ]
)


@pytest.fixture
def instruments() -> list[Instrument]:
    return [
        Instrument(isin=ISIN_A, fundsquare_id="111", ft_symbol=f"{ISIN_A}:EUR"),
        Instrument(isin=ISIN_B, fundsquare_id="222", ft_symbol=f"{ISIN_B}:EUR"),
    ]


@pytest.fixture
def fs_config() -> FundsquareConfig:
    return FundsquareConfig(base_url=FS_BASE)


@pytest.fixture
def ft_config() -> FTConfig:
    return FTConfig(base_url="https://ft.test", request_delay=0)


class TestPipeline:
    @respx.mock
    async def test_two_sources_then_export(
        self, integration_store, instruments, fs_config, ft_config, clock, tmp_path: Path
    ):
        respx.get(f"{FS_BASE}/Fundsquare/application/vni/111").mock(
            return_value=httpx.Response(
                200, json={"EUR": [{"dtHrCalcVni": MS_0314, "pxVniPart": 10.35}]}
            )
        )
        respx.get(f"{FS_BASE}/Fundsquare/application/vni/222").mock(
            return_value=httpx.Response(500)
        )
        respx.get(FT_URL, params={"s": f"{ISIN_A}:EUR"}).mock(
            return_value=httpx.Response(200, text=FT_PAGE_A)
        )
        respx.get(FT_URL, params={"s": f"{ISIN_B}:EUR"}).mock(
            return_value=httpx.Response(200, text="<html>consent wall</html>")
        )

        orchestrator = IngestionOrchestrator(integration_store, retention_window=2, clock=clock)

        async with FundsquareAdapter(fs_config) as fs:
            fs_outcome = await orchestrator.run(fs, instruments)
        assert fs_outcome.success_count == 1
        assert (await integration_store.get_record(ISIN_A, date(2024, 3, 14))).close == 10.35

        async with FTAdapter(ft_config) as ft:
            ft_outcome = await orchestrator.run(ft, instruments)
        assert ft_outcome.success_count == 1

        # FT outranks Fundsquare on the shared date.
        record = await integration_store.get_record(ISIN_A, date(2024, 3, 14))
        assert record.close == 10.40
        assert record.source == "ft"
        assert record.previous_source == "fundsquare"
        assert record.previous_close == 10.35

        # Window of 2 drops 2024-03-12.
        assert await integration_store.get_index(ISIN_A) == [date(2024, 3, 13), date(2024, 3, 14)]
        assert await integration_store.get_record(ISIN_A, date(2024, 3, 12)) is None

        health = await integration_store.load_health()
        assert set(health.sources) == {"fundsquare", "ft"}
        assert health.last_ok.source == "ft"

        report = await StalenessEvaluator(integration_store, 20).evaluate(
            now=clock.now + timedelta(hours=1)
        )
        assert report.state == FreshnessState.FRESH

        out = tmp_path / "json"
        counts = await write_exports(integration_store, instruments, out, 10)
        assert counts == {ISIN_A: 2, ISIN_B: 0}
        assert json.loads((out / f"{ISIN_A}.json").read_text()) == [
            {"date": "2024-03-13", "close": 10.3},
            {"date": "2024-03-14", "close": 10.4},
        ]

    @respx.mock
    async def test_outage_then_stale(
        self, integration_store, instruments, fs_config, clock
    ):
        respx.get(url__startswith=f"{FS_BASE}/Fundsquare/").mock(
            side_effect=httpx.ConnectError("unreachable")
        )
        orchestrator = IngestionOrchestrator(integration_store, clock=clock)

        async with FundsquareAdapter(fs_config) as fs:
            with pytest.raises(TotalOutageError):
                await orchestrator.run(fs, instruments)

        health = await integration_store.load_health()
        assert health.last_ok is None
        assert health.sources["fundsquare"].success_count == 0
        assert len(health.sources["fundsquare"].failed) == 2

        evaluator = StalenessEvaluator(integration_store, 20)
        assert (await evaluator.evaluate(now=clock.now)).state == FreshnessState.UNKNOWN
        assert await integration_store.get_alert() is None
