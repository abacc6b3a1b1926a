"""JSON export of retained price series."""

from navkeep.export.writer import build_series, write_exports

__all__ = ["build_series", "write_exports"]
