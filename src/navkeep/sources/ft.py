"""Financial Times historical-prices adapter.

Scrapes the visible window of the fund tearsheet's historical table. Every
row becomes an observation, so one run can fill or correct several past
dates at once.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime

import httpx
from bs4 import BeautifulSoup

from navkeep.core.config import FTConfig
from navkeep.core.exceptions import ParsingError
from navkeep.core.models import Instrument, Observation, Source
from navkeep.sources.base import BROWSER_USER_AGENT, get_checked

logger = logging.getLogger(__name__)

_HISTORICAL_PATH = "/data/funds/tearsheet/historical"
_TABLE_CLASS = "mod-tearsheet-historical-prices__results"
_CLOSE_COLUMN = 4

# Cells carry both a long and a short rendering; the short one is tried first.
_DATE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"([A-Za-z]{3},\s+[A-Za-z]{3}\s+\d{2},\s+\d{4})"), "%a, %b %d, %Y"),
    (re.compile(r"([A-Za-z]+,\s+[A-Za-z]+\s+\d{2},\s+\d{4})"), "%A, %B %d, %Y"),
]


def parse_ft_date(text: str) -> date | None:
    for pattern, fmt in _DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        normalized = re.sub(r"\s+", " ", match.group(1))
        try:
            return datetime.strptime(normalized, fmt).date()
        except ValueError:
            continue
    return None


def parse_ft_number(text: str) -> float:
    cleaned = re.sub(r"\s", "", text or "").replace(",", "")
    try:
        return float(cleaned)
    except ValueError:
        return math.nan


def extract_historical_rows(html: str) -> list[tuple[date, float]]:
    """Parse (date, close) pairs from a tearsheet page, ascending by date.

    Rows with fewer than five cells, an unparseable date, or a non-positive
    close are skipped. If a date repeats, the later row wins.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table", class_=_TABLE_CLASS)
    if table is None:
        return []
    tbody = table.find("tbody")
    if tbody is None:
        return []

    by_date: dict[date, float] = {}
    for tr in tbody.find_all("tr"):
        cells = tr.find_all("td")
        if len(cells) <= _CLOSE_COLUMN:
            continue
        day = parse_ft_date(cells[0].get_text(" ", strip=True))
        close = parse_ft_number(cells[_CLOSE_COLUMN].get_text(" ", strip=True))
        if day is None:
            continue
        if not math.isfinite(close) or close <= 0:
            continue
        by_date[day] = close

    return sorted(by_date.items())


class FTAdapter:
    """Fetches the visible historical window for an instrument from FT.

    Parameters
    ----------
    config : FTConfig
        Endpoint and timeout.
    client : httpx.AsyncClient | None
        Shared client. One is created (and owned) if omitted.
    """

    source = Source.FT

    def __init__(
        self,
        config: FTConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or FTConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> FTAdapter:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def supports(self, instrument: Instrument) -> bool:
        return bool(instrument.ft_symbol)

    async def fetch(self, instrument: Instrument) -> list[Observation]:
        isin = instrument.isin
        if not instrument.ft_symbol:
            raise ParsingError(
                f"No FT symbol configured for {isin}",
                context={"isin": isin, "source": str(self.source), "reason": "unmapped"},
            )

        url = self._config.base_url.rstrip("/") + _HISTORICAL_PATH
        logger.info("[FT] Fetching %s...", isin)
        response = await get_checked(
            self._client,
            url,
            isin=isin,
            source=self.source,
            params={"s": instrument.ft_symbol},
            headers={"accept": "text/html", "user-agent": BROWSER_USER_AGENT},
        )

        rows = extract_historical_rows(response.text)
        if not rows:
            raise ParsingError(
                "No data extracted",
                context={"isin": isin, "source": str(self.source), "reason": "empty"},
            )

        return [Observation(date=day, close=close, source=self.source) for day, close in rows]
