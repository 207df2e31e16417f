"""FastAPI application entry point."""

import os

import uvicorn
from fastapi import FastAPI

from .api.errors import ApiError, api_error_handler
from .config import AppConfig, load_config
from .dependencies import include_routers
from .logging import configure_logging


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()
    app = FastAPI(title="Archive Upload Server")
    app.add_exception_handler(ApiError, api_error_handler)  # type: ignore[arg-type]
    include_routers(app, cfg)
    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(
        "archive_upload.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 3000)),
    )
