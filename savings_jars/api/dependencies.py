"""FastAPI dependencies for DI (jar service, snapshot reader, widget provider).

The application factory puts one instance of each service on ``app.state`` during startup; these
helpers hand them to the route functions.
"""

from fastapi import Request

from savings_jars.services.jar_service import JarService
from savings_jars.services.snapshot_sync import SnapshotReader
from savings_jars.services.widget_provider import WidgetProvider


def get_service(request: Request) -> JarService:
    """Provide the owning JarService."""
    return request.app.state.jar_service


def get_reader(request: Request) -> SnapshotReader:
    """Provide the read-only snapshot reader."""
    return request.app.state.snapshot_reader


def get_widget_provider(request: Request) -> WidgetProvider:
    """Provide the widget entry provider."""
    return request.app.state.widget_provider
