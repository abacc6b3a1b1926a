"""Source trust ranking used to arbitrate same-date observations."""

from __future__ import annotations

from navkeep.core.exceptions import UnknownSourceError
from navkeep.core.models import Source

# Higher wins. Must stay a total order: no two sources share a rank.
SOURCE_PRIORITY: dict[Source, int] = {
    Source.FT: 20,
    Source.FUNDSQUARE: 10,
    Source.CSV: 5,
}

UNKNOWN_PRIORITY = 0


def source_priority(tag: str, strict: bool = False) -> int:
    """Return the rank of a source tag.

    Tags outside the table rank below every known source, unless ``strict``
    is set, in which case they raise ``UnknownSourceError``.
    """
    try:
        return SOURCE_PRIORITY[Source(tag)]
    except (ValueError, KeyError):
        if strict:
            raise UnknownSourceError(tag) from None
        return UNKNOWN_PRIORITY
