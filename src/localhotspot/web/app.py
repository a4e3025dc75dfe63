"""
FastAPI application for the localhotspot control API.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from localhotspot import __version__
from localhotspot.config import DEFAULT_CONFIG_PATH, ControllerSettings, load_config
from localhotspot.web.routes import reset_controller, router


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    # Release the radio when the server stops
    reset_controller()


app = FastAPI(
    title="localhotspot API",
    description="Control interface for a local-only WiFi access point",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def _load_server_settings() -> ControllerSettings:
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return ControllerSettings()


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
) -> None:
    """Run the web server.

    Args:
        host: Host to bind to (default: from config or 127.0.0.1)
        port: Port to listen on (default: from config or 8080)
        reload: Enable auto-reload for development
    """
    import uvicorn

    from localhotspot.log import setup_logging

    settings = _load_server_settings()
    setup_logging(settings.log_level, settings.log_json)
    effective_host = host if host is not None else settings.web_host
    effective_port = port if port is not None else settings.web_port

    print(f"Starting localhotspot API on http://{effective_host}:{effective_port}")
    uvicorn.run(
        "localhotspot.web.app:app",
        host=effective_host,
        port=effective_port,
        reload=reload,
    )


if __name__ == "__main__":
    run_server()
