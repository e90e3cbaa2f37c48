"""API package: provides FastAPI dependencies, error handlers and route definitions for the application."""

from .dependencies import get_reader, get_service, get_widget_provider  # noqa: F401
from .errors import register_error_handlers  # noqa: F401
from .routes import router  # noqa: F401
from .widget_routes import router as widget_router  # noqa: F401
