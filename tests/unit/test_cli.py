"""Tests for the CLI module."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from navkeep import cli as cli_module
from navkeep.cli import cli
from navkeep.core.exceptions import NetworkError
from navkeep.core.models import (
    HealthStatus,
    LastOk,
    Observation,
    Source,
)
from navkeep.history import ConflictResolver
from navkeep.store.json_files import JsonFileStore

ISIN_A = "LU0996182563"
ISIN_B = "IE00B03HCZ61"

CONFIG_TEMPLATE = """
instruments:
  - isin: {isin_a}
    name: Global Equity Fund
    fundsquare_id: "123456"
    ft_symbol: "{isin_a}:EUR"
  - isin: {isin_b}
    name: Index Fund
    ft_symbol: "{isin_b}:EUR"
storage:
  backend: json
  data_dir: "{data_dir}"
sources:
  ft:
    request_delay: 0
export:
  output_dir: "{export_dir}"
retention:
  window: 10
"""


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    import os

    for key in list(os.environ):
        if key.startswith("NAVKEEP_"):
            monkeypatch.delenv(key)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def config_path(tmp_path: Path, data_dir: Path) -> str:
    path = tmp_path / "navkeep.yml"
    path.write_text(
        CONFIG_TEMPLATE.format(
            isin_a=ISIN_A,
            isin_b=ISIN_B,
            data_dir=data_dir,
            export_dir=tmp_path / "json",
        )
    )
    return str(path)


def _patch_adapter(monkeypatch, fake_adapter, source: Source, responses: dict):
    adapter = fake_adapter(source, responses)
    monkeypatch.setattr(cli_module, "_build_adapter", lambda src, config: adapter)
    return adapter


def _read_json(path: Path):
    return json.loads(path.read_text())


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("update", "health-check", "export", "import-csv", "status", "serve"):
            assert command in result.output

    def test_missing_config_errors(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["status"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


class TestUpdate:
    def test_success(self, runner, config_path, data_dir, monkeypatch, fake_adapter):
        adapter = _patch_adapter(
            monkeypatch,
            fake_adapter,
            Source.FT,
            {
                ISIN_A: [Observation(date=date(2024, 3, 14), close=10.5, source=Source.FT)],
                ISIN_B: NetworkError("HTTP 500"),
            },
        )
        result = runner.invoke(cli, ["-c", config_path, "update", "ft"])

        assert result.exit_code == 0, result.output
        assert adapter.calls == [ISIN_A, ISIN_B]
        record = _read_json(data_dir / ISIN_A / "2024-03-14.json")
        assert record["close"] == 10.5
        assert record["source"] == "ft"
        health = _read_json(data_dir / "health.json")
        assert health["last_ok"]["source"] == "ft"
        assert health["sources"]["ft"]["success_count"] == 1

    def test_only_mapped_instruments(self, runner, config_path, monkeypatch, fake_adapter):
        adapter = _patch_adapter(
            monkeypatch,
            fake_adapter,
            Source.FUNDSQUARE,
            {
                ISIN_A: [
                    Observation(date=date(2024, 3, 14), close=10.5, source=Source.FUNDSQUARE)
                ]
            },
        )
        result = runner.invoke(cli, ["-c", config_path, "update", "fundsquare"])
        assert result.exit_code == 0, result.output
        assert adapter.calls == [ISIN_A]

    def test_total_outage_exits_1(self, runner, config_path, data_dir, monkeypatch, fake_adapter):
        _patch_adapter(
            monkeypatch,
            fake_adapter,
            Source.FT,
            {ISIN_A: NetworkError("HTTP 503"), ISIN_B: NetworkError("HTTP 503")},
        )
        result = runner.invoke(cli, ["-c", config_path, "update", "ft"])

        assert result.exit_code == 1
        health = _read_json(data_dir / "health.json")
        assert health["last_ok"] is None
        assert health["sources"]["ft"]["success_count"] == 0

    def test_disabled_source_skipped(self, runner, config_path, monkeypatch, fake_adapter):
        monkeypatch.setenv("NAVKEEP_SOURCES__FT__ENABLED", "false")
        adapter = _patch_adapter(monkeypatch, fake_adapter, Source.FT, {})
        result = runner.invoke(cli, ["-c", config_path, "update", "ft"])
        assert result.exit_code == 0
        assert adapter.calls == []

    def test_invalid_source(self, runner, config_path):
        result = runner.invoke(cli, ["-c", config_path, "update", "bloomberg"])
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# health-check
# ---------------------------------------------------------------------------


def _seed_health(data_dir: Path, hours_ago: float) -> None:
    data_dir.mkdir(parents=True, exist_ok=True)
    status = HealthStatus(
        last_ok=LastOk(
            timestamp=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
            source="fundsquare",
        )
    )
    (data_dir / "health.json").write_text(status.model_dump_json())


class TestHealthCheck:
    def test_stale_writes_flag(self, runner, config_path, data_dir):
        _seed_health(data_dir, 30)
        result = runner.invoke(cli, ["-c", config_path, "health-check"])
        assert result.exit_code == 0
        assert (data_dir / "health_alert_needed.flag").exists()

    def test_fail_on_stale(self, runner, config_path, data_dir):
        _seed_health(data_dir, 30)
        result = runner.invoke(cli, ["-c", config_path, "health-check", "--fail-on-stale"])
        assert result.exit_code == 1

    def test_fresh_clears_flag(self, runner, config_path, data_dir):
        _seed_health(data_dir, 30)
        runner.invoke(cli, ["-c", config_path, "health-check"])
        _seed_health(data_dir, 1)
        result = runner.invoke(cli, ["-c", config_path, "health-check", "--fail-on-stale"])
        assert result.exit_code == 0
        assert not (data_dir / "health_alert_needed.flag").exists()

    def test_unknown(self, runner, config_path, data_dir):
        result = runner.invoke(cli, ["-c", config_path, "health-check", "--fail-on-stale"])
        assert result.exit_code == 0
        assert not (data_dir / "health_alert_needed.flag").exists()


# ---------------------------------------------------------------------------
# import-csv / export / status
# ---------------------------------------------------------------------------


@pytest.fixture
def csv_file(tmp_path: Path) -> str:
    path = tmp_path / "history.csv"
    path.write_text("Date,Close\n01/03/2024,9.5\n04/03/2024,9.7\n05/03/2024,9.8\n")
    return str(path)


class TestImportCsv:
    def test_backfill(self, runner, config_path, data_dir, csv_file):
        result = runner.invoke(
            cli, ["-c", config_path, "import-csv", "--isin", ISIN_A, "--file", csv_file]
        )
        assert result.exit_code == 0, result.output
        assert _read_json(data_dir / f"idx_{ISIN_A}.json") == {
            "dates": ["2024-03-01", "2024-03-04", "2024-03-05"]
        }
        assert _read_json(data_dir / ISIN_A / "2024-03-04.json")["source"] == "csv"
        assert not (data_dir / "health.json").exists()

    def test_does_not_override_live_source(self, runner, config_path, data_dir, csv_file):
        async def seed():
            store = JsonFileStore(str(data_dir))
            await store.initialize()
            await ConflictResolver(store).upsert(
                ISIN_A, Observation(date=date(2024, 3, 4), close=9.9, source=Source.FT)
            )

        cli_module._run_async(seed())
        runner.invoke(cli, ["-c", config_path, "import-csv", "--isin", ISIN_A, "--file", csv_file])
        record = _read_json(data_dir / ISIN_A / "2024-03-04.json")
        assert record["source"] == "ft"
        assert record["close"] == 9.9

    def test_unknown_isin(self, runner, config_path, csv_file):
        result = runner.invoke(
            cli, ["-c", config_path, "import-csv", "--isin", "ES0165151004", "--file", csv_file]
        )
        assert result.exit_code == 2

    def test_unparseable_file_exits_1(self, runner, config_path, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("Date,Close\nnope,nope\n")
        result = runner.invoke(
            cli, ["-c", config_path, "import-csv", "--isin", ISIN_A, "--file", str(path)]
        )
        assert result.exit_code == 1

    def test_non_utf8_file_exits_1(self, runner, config_path, tmp_path):
        path = tmp_path / "latin1.csv"
        path.write_bytes("Date,Close\n2024-03-14,10.5\n# caf\xe9\n".encode("latin-1"))
        result = runner.invoke(
            cli, ["-c", config_path, "import-csv", "--isin", ISIN_A, "--file", str(path)]
        )
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)


class TestExportAndStatus:
    def test_export(self, runner, config_path, tmp_path, csv_file):
        runner.invoke(cli, ["-c", config_path, "import-csv", "--isin", ISIN_A, "--file", csv_file])
        out = tmp_path / "out"
        result = runner.invoke(
            cli, ["-c", config_path, "export", "--output-dir", str(out), "--window", "2"]
        )
        assert result.exit_code == 0, result.output
        assert _read_json(out / f"{ISIN_A}.json") == [
            {"date": "2024-03-04", "close": 9.7},
            {"date": "2024-03-05", "close": 9.8},
        ]
        assert set(_read_json(out / "all-funds.json")) == {ISIN_A, ISIN_B}

    def test_export_default_dir(self, runner, config_path, tmp_path):
        result = runner.invoke(cli, ["-c", config_path, "export"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "json" / "all-funds.json").exists()

    def test_status(self, runner, config_path, csv_file):
        runner.invoke(cli, ["-c", config_path, "import-csv", "--isin", ISIN_A, "--file", csv_file])
        result = runner.invoke(cli, ["-c", config_path, "status"])
        assert result.exit_code == 0, result.output
