"""Price source adapters.

Built-in implementations:

- ``FTAdapter``: historical table on the FT fund tearsheet (highest trust).
- ``FundsquareAdapter``: latest NAV from the Fundsquare JSON endpoint.
- ``CsvPriceAdapter``: one-off backfill from a CSV file (lowest trust).

Adding a new source:
1. Add a member to ``Source`` and a rank to ``SOURCE_PRIORITY``.
2. Write an adapter with ``source``, ``supports()`` and ``fetch()``.
"""

from navkeep.sources.base import SourceAdapter
from navkeep.sources.csv_adapter import CsvPriceAdapter
from navkeep.sources.ft import FTAdapter, extract_historical_rows
from navkeep.sources.fundsquare import FundsquareAdapter

__all__ = [
    "SourceAdapter",
    "FTAdapter",
    "FundsquareAdapter",
    "CsvPriceAdapter",
    "extract_historical_rows",
]
