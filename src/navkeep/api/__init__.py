"""Read-only REST API over the price history store."""

from navkeep.api.app import create_app

__all__ = ["create_app"]
