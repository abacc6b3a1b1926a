"""Fundsquare NAV adapter.

Uses the JSON endpoint behind the public NAV page. The response maps a
currency code to a list of NAV points; only the most recent point (largest
``dtHrCalcVni``, epoch milliseconds) is taken per run.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from navkeep.core.config import FundsquareConfig
from navkeep.core.exceptions import ParsingError
from navkeep.core.models import Instrument, Observation, Source
from navkeep.sources.base import BROWSER_USER_AGENT, get_checked

logger = logging.getLogger(__name__)

_NAV_PATH = "/Fundsquare/application/vni/{id_instr}"


def _to_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


class FundsquareAdapter:
    """Fetches the latest NAV for an instrument from Fundsquare.

    Parameters
    ----------
    config : FundsquareConfig
        Endpoint, currency, calendar time zone, and timeout.
    client : httpx.AsyncClient | None
        Shared client. One is created (and owned) if omitted.
    """

    source = Source.FUNDSQUARE

    def __init__(
        self,
        config: FundsquareConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or FundsquareConfig()
        self._tz = ZoneInfo(self._config.timezone)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> FundsquareAdapter:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def supports(self, instrument: Instrument) -> bool:
        return bool(instrument.fundsquare_id)

    async def fetch(self, instrument: Instrument) -> list[Observation]:
        isin = instrument.isin
        if not instrument.fundsquare_id:
            raise ParsingError(
                f"No Fundsquare id configured for {isin}",
                context={"isin": isin, "source": str(self.source), "reason": "unmapped"},
            )

        url = self._config.base_url.rstrip("/") + _NAV_PATH.format(
            id_instr=instrument.fundsquare_id
        )
        logger.info("[Fundsquare] Fetching %s...", isin)
        response = await get_checked(
            self._client,
            url,
            isin=isin,
            source=self.source,
            headers={
                "accept": "application/json,text/plain,*/*",
                "user-agent": BROWSER_USER_AGENT,
                "referer": self._config.base_url.rstrip("/") + "/",
            },
        )

        try:
            data = response.json()
        except ValueError as e:
            raise ParsingError(
                "Response is not JSON",
                context={"isin": isin, "source": str(self.source), "reason": "json"},
            ) from e

        return [self.adapt(data, isin)]

    def adapt(self, raw_data: Any, isin: str) -> Observation:
        """Pick the latest NAV point for the configured currency."""
        currency = self._config.currency
        points = raw_data.get(currency) if isinstance(raw_data, dict) else None
        if not isinstance(points, list) or not points:
            raise ParsingError(
                f"No {currency} data",
                context={"isin": isin, "source": str(self.source), "reason": "empty"},
            )

        latest = max(
            (p for p in points if isinstance(p, dict)),
            key=lambda p: _to_number(p.get("dtHrCalcVni")),
            default=None,
        )
        ms = _to_number(latest.get("dtHrCalcVni")) if latest else math.nan
        close = _to_number(latest.get("pxVniPart")) if latest else math.nan

        if not math.isfinite(ms) or not math.isfinite(close) or close <= 0:
            raise ParsingError(
                "Invalid data",
                context={"isin": isin, "source": str(self.source), "reason": "invalid"},
            )

        try:
            instant = datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)
            local_date = instant.astimezone(self._tz).date()
        except (OverflowError, OSError, ValueError) as e:
            raise ParsingError(
                "Invalid data",
                context={"isin": isin, "source": str(self.source), "reason": "timestamp"},
            ) from e
        return Observation(
            date=local_date,
            close=close,
            source=self.source,
            observed_at=instant,
        )
