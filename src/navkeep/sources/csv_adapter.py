"""CSV backfill adapter: imports historical closes from a CSV file.

Tagged with the lowest-trust source, so a backfill fills gaps but never
overrides prices already scraped from a live source.
"""

from __future__ import annotations

import csv
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

from navkeep.core.exceptions import ParsingError
from navkeep.core.models import Instrument, Observation, Source

logger = logging.getLogger(__name__)

# Common column name mappings for auto-detection
_DATE_ALIASES = {"date", "Date", "DATE", "timestamp", "Timestamp"}
_CLOSE_ALIASES = {"close", "Close", "CLOSE", "nav", "NAV", "price", "Price"}


def _find_column(headers: list[str], aliases: set[str]) -> str | None:
    """Find the first header that matches any alias."""
    for h in headers:
        if h in aliases:
            return h
    return None


class CsvPriceAdapter:
    """Turns rows of a CSV file into observations for a single instrument.

    Parameters
    ----------
    path : str
        CSV file to read. Must have a header row.
    date_col : str | None
        Name of the date column. Auto-detected if None.
    close_col : str | None
        Name of the close column. Auto-detected if None.
    date_format : str
        strptime format used when a date is not ISO-8601.
    """

    source = Source.CSV

    def __init__(
        self,
        path: str,
        date_col: str | None = None,
        close_col: str | None = None,
        date_format: str = "%d/%m/%Y",
    ) -> None:
        self._path = Path(path)
        self._date_col = date_col
        self._close_col = close_col
        self._date_format = date_format

    def supports(self, instrument: Instrument) -> bool:
        return True

    async def fetch(self, instrument: Instrument) -> list[Observation]:
        if not self._path.exists():
            raise ParsingError(
                f"CSV file not found: {self._path}",
                context={"isin": instrument.isin, "source": str(self.source), "reason": "missing"},
            )
        try:
            with open(self._path, newline="", encoding="utf-8-sig") as f:
                rows = list(csv.DictReader(f))
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise ParsingError(
                f"Cannot read CSV file {self._path}: {e}",
                context={"isin": instrument.isin, "source": str(self.source), "reason": "read"},
            ) from e

        observations = self.adapt(rows)
        if not observations:
            raise ParsingError(
                "No data extracted",
                context={"isin": instrument.isin, "source": str(self.source), "reason": "empty"},
            )
        return observations

    def adapt(self, raw_data: list[dict[str, Any]]) -> list[Observation]:
        """Parse CSV rows (list of dicts) into observations sorted by date."""
        if not raw_data:
            return []

        headers = list(raw_data[0].keys())
        date_col = self._date_col or _find_column(headers, _DATE_ALIASES)
        close_col = self._close_col or _find_column(headers, _CLOSE_ALIASES)

        if date_col is None:
            raise ParsingError(f"Cannot find date column in headers: {headers}")
        if close_col is None:
            raise ParsingError(f"Cannot find close column in headers: {headers}")

        observations: list[Observation] = []
        for row in raw_data:
            day = self._parse_date(row.get(date_col))
            if day is None:
                logger.warning("Skipping row with unparseable date: %s", row.get(date_col))
                continue
            try:
                close = float(str(row.get(close_col, "")).replace(",", ""))
            except ValueError:
                logger.warning("Skipping row with unparseable close: %s", row.get(close_col))
                continue
            observations.append(Observation(date=day, close=close, source=self.source))

        return sorted(observations, key=lambda o: o.date)

    def _parse_date(self, value: Any) -> date | None:
        if not value:
            return None
        text = str(value).strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.strptime(text, self._date_format).date()
        except ValueError:
            return None
