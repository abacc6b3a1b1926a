"""navkeep: bounded daily NAV history for funds, merged from ranked sources."""

__version__ = "0.1.0"
