"""Request-scoped access to the config and store opened in lifespan."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from navkeep.core.config import NavkeepConfig
from navkeep.store.protocol import PriceHistoryStore

# Liveness probes must work without a key.
EXEMPT_PATHS = {"/api/health"}


@dataclass
class AppState:
    """Config and open store, set on ``app.state.app_state`` by lifespan."""

    config: NavkeepConfig
    store: PriceHistoryStore


def get_config(request: Request) -> NavkeepConfig:
    return request.app.state.app_state.config


def get_store(request: Request) -> PriceHistoryStore:
    return request.app.state.app_state.store


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests without the configured ``X-API-Key``.

    Open when ``api.api_key`` is unset. The key is read from the loaded
    config on every request, so a key from the YAML file or environment
    applies even when the app was built without a config.
    """
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    expected = get_config(request).api.api_key
    if expected and request.headers.get("X-API-Key") != expected:
        return JSONResponse(
            status_code=401,
            content={"error": "Unauthorized", "detail": "Invalid or missing API key"},
        )
    return await call_next(request)
