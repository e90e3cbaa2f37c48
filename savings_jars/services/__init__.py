"""Services package: the jar service, snapshot sync, import/export and the widget provider."""

from .jar_service import JarService  # noqa: F401
from .snapshot_sync import SnapshotPublisher, SnapshotReader  # noqa: F401
from .widget_provider import WidgetProvider  # noqa: F401
