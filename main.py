"""Main entrypoint and application factory for the Savings Jars API.

This module configures logging, builds the FastAPI application around a JarService, starts the
background refresh watcher, and exposes the Scalar API reference endpoint for interactive OpenAPI
documentation. It also includes the main entrypoint for running the app with Uvicorn.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from scalar_fastapi import get_scalar_api_reference

from savings_jars import __version__
from savings_jars.api import register_error_handlers, router, widget_router
from savings_jars.core.errors import PersistenceError
from savings_jars.core.settings import Settings, get_settings
from savings_jars.core.utils import LOG_FORMAT, ensure_dir, get_logger
from savings_jars.services.jar_service import JarService
from savings_jars.services.snapshot_sync import SnapshotReader
from savings_jars.services.widget_provider import WidgetProvider
from savings_jars.workers.refresh_watcher import RefreshWatcher

LOGGER_NAME = "savings-jars"


# --- Logging Setup ---
def setup_logging(settings: Settings) -> None:
    """Set the project log level and, when configured, add a plain-text file handler to every project logger."""
    logger = get_logger(LOGGER_NAME)
    logger.setLevel(settings.log_level.upper())
    if settings.log_file is None:
        return
    ensure_dir(settings.log_file.parent)
    names = [LOGGER_NAME, *(n for n in logging.root.manager.loggerDict if n.startswith(f"{LOGGER_NAME}."))]
    for name in names:
        project_logger = logging.getLogger(name)
        if any(isinstance(h, logging.FileHandler) for h in project_logger.handlers):
            continue
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        project_logger.addHandler(file_handler)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the data directories, load the jars, publish the first snapshot and run the refresh watcher."""
    settings: Settings = app.state.settings
    logger = get_logger(LOGGER_NAME)
    ensure_dir(settings.data_dir)
    ensure_dir(settings.shared_dir)
    service = JarService.from_settings(settings)
    reader = SnapshotReader.from_settings(settings)
    watcher = RefreshWatcher(service, service.publisher, settings.refresh_poll_interval)
    app.state.jar_service = service
    app.state.snapshot_reader = reader
    app.state.widget_provider = WidgetProvider.from_settings(settings, reader)
    watcher.start()
    logger.info(f"Loaded {len(service.jars)} jars using the {service.store.name} store")
    try:
        yield
    finally:
        watcher.stop(timeout=settings.refresh_poll_interval + 1)
        try:
            service.enter_background()
        except PersistenceError:
            logger.exception("Final save on shutdown failed")
        if service.defaults is not None:
            service.defaults.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application for ``settings`` (environment settings when omitted)."""
    settings = settings or get_settings()
    setup_logging(settings)
    app = FastAPI(
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        title="Savings Jars API",
        description="""
    The Savings Jars API tracks savings goals ("jars") with a deposit and withdrawal history, and publishes
    a read-only snapshot of them for a home-screen widget.

    **Owner endpoints:**
    - `GET /jars`, `POST /jars`, `GET/PATCH/DELETE /jars/{jar_id}`: Manage jars.
    - `POST /jars/{jar_id}/deposit`, `POST /jars/{jar_id}/withdraw`: Move money.
    - `PUT /featured-jar`: Choose the jar shown in the widget.
    - `GET /export`, `POST /import`: Exchange the collection as JSON or CSV.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.

    **Widget endpoints (read-only):**
    - `GET /widget/snapshot`, `GET /widget/jars`, `GET /widget/entry`, `POST /widget/refresh`.
    """,
        version=__version__,
    )
    app.state.settings = settings
    register_error_handlers(app)
    app.include_router(router)
    app.include_router(widget_router)

    @app.get("/scalar", include_in_schema=False)
    async def scalar_docs() -> HTMLResponse:
        """Return Scalar API reference."""
        return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)
