"""Workers package: background threads run alongside the API."""

from .refresh_watcher import RefreshWatcher  # noqa: F401
