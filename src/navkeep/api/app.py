"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from navkeep.api.deps import AppState, api_key_middleware
from navkeep.api.routes import router
from navkeep.core.config import NavkeepConfig, load_config
from navkeep.core.exceptions import ConfigError, NavkeepError, StorageError
from navkeep.store import create_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    store = await create_store(config.storage)

    app.state.app_state = AppState(config=config, store=store)

    yield

    await store.close()


def create_app(config: NavkeepConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import navkeep

    app = FastAPI(
        title="navkeep API",
        description="Read-only access to retained fund closing prices",
        version=navkeep.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # The key is checked per request against the config loaded in lifespan
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    @app.exception_handler(NavkeepError)
    async def navkeep_exception_handler(request: Request, exc: NavkeepError):
        status_map = {
            ConfigError: 400,
            StorageError: 500,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return app
