"""Source adapter protocol — the boundary between scraping and the store.

Architecture
------------
Every price source is wrapped in an adapter that turns whatever the source
serves (JSON, HTML, CSV) into canonical ``Observation`` records:

    Source → SourceAdapter.fetch(instrument) → list[Observation] → orchestrator

Adapters never touch the store. They either return observations tagged with
their ``Source`` or raise an ``IngestionError`` subclass, which the
orchestrator records as a per-instrument failure.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from navkeep.core.exceptions import NetworkError
from navkeep.core.models import Instrument, Observation, Source

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
)


@runtime_checkable
class SourceAdapter(Protocol):
    """Fetches candidate observations for one instrument from one source."""

    source: Source

    def supports(self, instrument: Instrument) -> bool:
        """Whether the instrument has an identifier at this source."""
        ...

    async def fetch(self, instrument: Instrument) -> list[Observation]:
        """Return observations, or raise NetworkError / ParsingError."""
        ...


async def get_checked(
    client: httpx.AsyncClient,
    url: str,
    *,
    isin: str,
    source: Source,
    params: dict[str, str] | None = None,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """GET ``url`` and translate transport failures and non-2xx into NetworkError."""
    try:
        response = await client.get(url, params=params, headers=headers)
    except httpx.TimeoutException as e:
        raise NetworkError(
            f"Timeout fetching {isin}",
            context={"isin": isin, "source": str(source), "url": url},
        ) from e
    except httpx.RequestError as e:
        raise NetworkError(
            f"Request failed for {isin}: {e}",
            context={"isin": isin, "source": str(source), "url": url},
        ) from e

    if not response.is_success:
        raise NetworkError(
            f"HTTP {response.status_code}",
            context={
                "isin": isin,
                "source": str(source),
                "url": url,
                "status_code": response.status_code,
            },
        )
    return response
