"""Read-only endpoints used by the widget.

Everything here is served from the shared snapshot file through SnapshotReader and WidgetProvider;
no route touches the owner's jar storage. The only write is the refresh request marker.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from savings_jars.api.dependencies import get_reader, get_widget_provider
from savings_jars.core.models import WidgetJar, WidgetSnapshot
from savings_jars.services.snapshot_sync import SnapshotReader
from savings_jars.services.widget_provider import WidgetEntry, WidgetProvider

router = APIRouter(prefix="/widget", tags=["widget"])


@router.get(
    "/snapshot",
    response_model=WidgetSnapshot,
    summary="Current widget snapshot",
    responses={
        404: {
            "description": "No snapshot has been published yet.",
            "content": {"application/json": {"example": {"detail": "No widget snapshot available"}}},
        },
    },
)
async def get_snapshot(reader: SnapshotReader = Depends(get_reader)) -> WidgetSnapshot:
    """Return the last published snapshot with its selection resolved."""
    snapshot = reader.read_snapshot()
    if snapshot is None:
        raise HTTPException(404, "No widget snapshot available")
    return snapshot


@router.get("/jars", response_model=list[WidgetJar], summary="All jars in the snapshot")
async def list_widget_jars(reader: SnapshotReader = Depends(get_reader)) -> list[WidgetJar]:
    """Return every jar in the snapshot, or an empty list when none was published."""
    return reader.all_jars()


@router.get("/jars/{jar_id}", response_model=WidgetJar, summary="One jar from the snapshot")
async def get_widget_jar(jar_id: UUID, reader: SnapshotReader = Depends(get_reader)) -> WidgetJar:
    """Return a single jar from the snapshot."""
    return reader.jar_by_id(jar_id)


@router.get(
    "/entry",
    response_model=WidgetEntry,
    summary="Widget display entry",
    description=(
        "Featured jar, totals and formatted amounts ready for display. "
        "Falls back to sample data with `isPlaceholder: true` when no snapshot exists."
    ),
)
async def get_entry(provider: WidgetProvider = Depends(get_widget_provider)) -> WidgetEntry:
    """Build the display entry from the current snapshot."""
    return provider.entry()


@router.post("/refresh", status_code=202, summary="Ask the owning process to republish")
async def request_refresh(reader: SnapshotReader = Depends(get_reader)) -> dict:
    """Leave a refresh request for the owning process."""
    reader.request_refresh()
    return {"status": "requested"}
