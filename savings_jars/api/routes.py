"""FastAPI endpoints for the owning side of the Savings Jars API.

These routes create, edit and delete jars, move money in and out of them, pick the jar featured in
the widget, and exchange the collection as JSON or CSV files. Every mutating route goes through the
JarService, which saves the collection and republishes the widget snapshot.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from savings_jars.api.dependencies import get_service
from savings_jars.core.models import Jar
from savings_jars.core.utils import get_logger
from savings_jars.services.jar_service import JarService
from savings_jars.services.transfer import ExportFormat, ImportStrategy, ImportSummary

router = APIRouter()
logger = get_logger("savings-jars.api")


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JarCreate(_Body):
    """Fields for a new jar; anything left out comes from the configured defaults."""

    name: str
    target_amount: float | None = None
    color: str | None = None
    icon: str | None = None


class JarUpdate(_Body):
    """Display fields to change on an existing jar."""

    name: str | None = None
    target_amount: float | None = None
    color: str | None = None
    icon: str | None = None


class AmountRequest(_Body):
    """A deposit or withdrawal."""

    amount: float = Field(allow_inf_nan=False)
    note: str = ""


class FeaturedJarRequest(_Body):
    """The jar to feature in the widget; null clears the selection."""

    jar_id: UUID | None = None


class FeaturedJarResponse(_Body):
    """Current featured-jar selection."""

    featured_jar_id: UUID | None = None


class Totals(_Body):
    """Aggregates over the whole collection."""

    jar_count: int
    total_saved: float
    total_target: float
    total_progress: float


async def _read_upload(file: UploadFile) -> bytes:
    data = await file.read()
    logger.info(f"Received upload: filename={file.filename}, bytes={len(data)}")
    return data


@router.get("/jars", response_model=list[Jar], summary="List jars")
async def list_jars(service: JarService = Depends(get_service)) -> list[Jar]:
    """Return all jars in stored order."""
    return service.jars


@router.post(
    "/jars",
    response_model=Jar,
    status_code=201,
    summary="Create a jar",
    description=(
        "Create an empty jar. `targetAmount`, `color` and `icon` fall back to the configured defaults.\n\n"
        "**Response:**\n"
        "- 201 Created: The new jar.\n"
        "- 422 Unprocessable Entity: Blank name, non-positive target, or unknown color."
    ),
    responses={
        422: {
            "description": "Invalid jar fields.",
            "content": {"application/json": {"example": {"detail": "targetAmount must be greater than zero"}}},
        },
    },
)
async def create_jar(body: JarCreate, service: JarService = Depends(get_service)) -> Jar:
    """Create a jar."""
    return service.create_jar(body.name, body.target_amount, body.color, body.icon)


@router.post(
    "/jars/import-transactions",
    response_model=Jar,
    status_code=201,
    summary="Create a jar from a transaction CSV",
    description=(
        "Upload a `Date,Amount,Note,Type` CSV. A new jar named \"Imported Jar\" is created holding the "
        "parsed transactions; rows that cannot be parsed are skipped."
    ),
)
async def import_transactions_as_jar(file: UploadFile, service: JarService = Depends(get_service)) -> Jar:
    """Create a jar from a transaction CSV upload."""
    return service.import_jar_transactions(None, await _read_upload(file))


@router.get(
    "/jars/{jar_id}",
    response_model=Jar,
    summary="Get a jar",
    responses={
        404: {
            "description": "Jar not found.",
            "content": {
                "application/json": {"example": {"detail": "Jar 123e4567-e89b-12d3-a456-426614174000 not found"}}
            },
        },
    },
)
async def get_jar(jar_id: UUID, service: JarService = Depends(get_service)) -> Jar:
    """Return one jar with its full history."""
    return service.get_jar(jar_id)


@router.patch("/jars/{jar_id}", response_model=Jar, summary="Edit a jar's name, target, color or icon")
async def update_jar(jar_id: UUID, body: JarUpdate, service: JarService = Depends(get_service)) -> Jar:
    """Change display fields; balance and history are untouched."""
    return service.update_jar_metadata(jar_id, body.name, body.target_amount, body.color, body.icon)


@router.delete("/jars/{jar_id}", status_code=204, summary="Delete a jar")
async def delete_jar(jar_id: UUID, service: JarService = Depends(get_service)) -> Response:
    """Delete a jar and its history."""
    service.delete_jar(jar_id)
    return Response(status_code=204)


@router.post("/jars/{jar_id}/deposit", response_model=Jar, summary="Deposit into a jar")
async def deposit(jar_id: UUID, body: AmountRequest, service: JarService = Depends(get_service)) -> Jar:
    """Add money to a jar."""
    return service.deposit(jar_id, body.amount, body.note)


@router.post(
    "/jars/{jar_id}/withdraw",
    response_model=Jar,
    summary="Withdraw from a jar",
    description=(
        "Take money out of a jar.\n\n"
        "**Response:**\n"
        "- 200 OK: The updated jar.\n"
        "- 409 Conflict: The amount exceeds the jar's balance; nothing is changed."
    ),
)
async def withdraw(jar_id: UUID, body: AmountRequest, service: JarService = Depends(get_service)) -> Jar:
    """Take money out of a jar."""
    return service.withdraw(jar_id, body.amount, body.note)


@router.get(
    "/jars/{jar_id}/transactions.csv",
    response_class=Response,
    summary="Download a jar's transactions as CSV",
    responses={200: {"description": "CSV file download.", "content": {"text/csv": {}}}},
)
async def download_transactions(jar_id: UUID, service: JarService = Depends(get_service)) -> Response:
    """Download one jar's history as `Date,Amount,Note,Type` rows."""
    data = service.export_jar_transactions(jar_id)
    return Response(
        content=data,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=transactions_{jar_id}.csv"},
    )


@router.put("/jars/{jar_id}/transactions.csv", response_model=Jar, summary="Replace a jar's transactions from CSV")
async def upload_transactions(jar_id: UUID, file: UploadFile, service: JarService = Depends(get_service)) -> Jar:
    """Replace a jar's history with an uploaded transaction CSV and recompute its balance."""
    return service.import_jar_transactions(jar_id, await _read_upload(file))


@router.put("/featured-jar", response_model=FeaturedJarResponse, summary="Choose the jar shown in the widget")
async def select_featured_jar(
    body: FeaturedJarRequest,
    service: JarService = Depends(get_service),
) -> FeaturedJarResponse:
    """Feature a jar in the widget, or clear the selection with a null id."""
    service.select_featured_jar(body.jar_id)
    return FeaturedJarResponse(featured_jar_id=service.featured_jar_id)


@router.get("/featured-jar", response_model=FeaturedJarResponse, summary="Get the jar shown in the widget")
async def get_featured_jar(service: JarService = Depends(get_service)) -> FeaturedJarResponse:
    """Return the current featured-jar id."""
    return FeaturedJarResponse(featured_jar_id=service.featured_jar_id)


@router.get("/totals", response_model=Totals, summary="Collection totals")
async def totals(service: JarService = Depends(get_service)) -> Totals:
    """Return total saved, total target and overall progress."""
    jars = service.jars
    return Totals(
        jar_count=len(jars),
        total_saved=service.total_saved(),
        total_target=service.total_target(),
        total_progress=service.total_progress(),
    )


@router.get(
    "/export",
    response_class=Response,
    summary="Export all jars",
    description=(
        "Download the whole collection.\n\n"
        "**Query parameter:**\n"
        "- `format`: `json` (default, lossless) or `csv` (legacy layout, no transaction ids or notes)."
    ),
    responses={200: {"description": "Export file download.", "content": {"application/json": {}, "text/csv": {}}}},
)
async def export_jars(
    fmt: ExportFormat = Query(ExportFormat.JSON, alias="format"),
    service: JarService = Depends(get_service),
) -> Response:
    """Export all jars as JSON or CSV."""
    data = service.export_all(fmt)
    return Response(
        content=data,
        media_type=fmt.media_type,
        headers={"Content-Disposition": f"attachment; filename=savingsJars.{fmt.value}"},
    )


@router.post(
    "/import",
    response_model=ImportSummary,
    summary="Import jars from a JSON or CSV file",
    description=(
        "Upload a file produced by `/export`. The format is taken from the `.json` or `.csv` extension.\n\n"
        "**Query parameter:**\n"
        "- `strategy`: `append` (default) adds the imported jars after the existing ones; "
        "`replace` discards the existing collection.\n\n"
        "**Response:**\n"
        "- 200 OK: Counts of imported and skipped jars.\n"
        "- 400 Bad Request: Unsupported extension, wrong shape, or no valid jar in a non-empty file."
    ),
    responses={
        200: {
            "description": "Import finished.",
            "content": {
                "application/json": {
                    "example": {"strategy": "append", "format": "json", "imported": 2, "skipped": 1, "errors": []}
                }
            },
        },
        400: {
            "description": "Import rejected.",
            "content": {"application/json": {"example": {"detail": "Unsupported import file 'jars.txt'"}}},
        },
    },
)
async def import_jars(
    file: UploadFile,
    strategy: ImportStrategy = Query(ImportStrategy.APPEND),
    service: JarService = Depends(get_service),
) -> ImportSummary:
    """Import jars and merge them into the collection."""
    if not file.filename:
        raise HTTPException(400, "Upload is missing a filename")
    fmt = ExportFormat.from_filename(file.filename)
    return service.import_all(await _read_upload(file), strategy, fmt)


@router.get(
    "/health",
    summary="Health check",
    description="Simple health check endpoint. Returns status ok.",
    response_description="Status ok.",
    responses={200: {"description": "API is healthy.", "content": {"application/json": {"example": {"status": "ok"}}}}},
)
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}
