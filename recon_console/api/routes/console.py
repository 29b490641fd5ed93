"""Console endpoints: batch list, batch detail, records and record actions.

Each request works on the caller's session controller (``X-Console-Session``
header).  The path is the route the controller synchronises with: the list
route clears any selection, a detail route selects the batch or redirects
back to the list when the batch does not exist.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse, Response

from recon_console.api.dependencies import (
    backend_http_error,
    get_client,
    get_controller,
    get_registry,
    get_session_id,
)
from recon_console.clients.backend import ReconciliationApiClient
from recon_console.core.errors import BackendError, ValidationError
from recon_console.core.logging import get_logger
from recon_console.schemas.batch import BatchSummary
from recon_console.schemas.console import (
    ActionResponse,
    BatchDetailResponse,
    BatchListResponse,
    CommentRequest,
    FilterUpdate,
    Notification,
    RecordDetailResponse,
    RecordListResponse,
    ViewStateResponse,
)
from recon_console.schemas.statistics import BatchStatistics
from recon_console.services.mapping.batch_mapper import parse_batch_id
from recon_console.services.statistics.report import build_batch_statistics
from recon_console.services.view_state.controller import ReconciliationViewController
from recon_console.services.view_state.registry import SessionRegistry

logger = get_logger(__name__)

router = APIRouter()


async def _enter_batch(
    controller: ReconciliationViewController, batch_id: str
) -> Optional[RedirectResponse]:
    """Sync the controller with a detail route; redirect or raise on failure."""
    decision = await controller.sync_with_route(batch_id)
    if decision.redirect_to:
        return RedirectResponse(decision.redirect_to, status_code=307)
    if controller.batches_query.error and not controller.batches:
        raise HTTPException(
            status_code=502,
            detail={"message": "Failed to load batches", "retry": True},
        )
    if controller.batch_query.error or controller.batch_detail is None:
        raise HTTPException(
            status_code=502,
            detail={"message": f"Failed to load batch {batch_id}", "retry": True},
        )
    return None


@router.get("/batches", response_model=BatchListResponse)
async def list_batches(
    search: Optional[str] = Query(None, description="Match on id or file names"),
    status: Optional[str] = Query(None, description="ALL or a batch status"),
    refresh: bool = Query(False, description="Bypass the cached batch list"),
    controller: ReconciliationViewController = Depends(get_controller),
) -> BatchListResponse:
    """List batches after applying the session's search, filter and sort."""
    try:
        if search is not None:
            controller.set_search(search)
        if status is not None:
            controller.set_status_filter(status)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    await controller.sync_with_route(None)
    # Served from the client cache unless a mutation invalidated it
    await controller.load_batches(force=refresh)
    if controller.batches_query.error and not controller.batches:
        raise HTTPException(
            status_code=502,
            detail={"message": "Failed to load batches", "retry": True},
        )

    batches = controller.filtered_batches()
    return BatchListResponse(
        batches=[BatchSummary.from_batch(b) for b in batches],
        total=len(batches),
        notifications=controller.drain_notifications(),
    )


@router.get("/state", response_model=ViewStateResponse)
def view_state(
    controller: ReconciliationViewController = Depends(get_controller),
) -> ViewStateResponse:
    return controller.snapshot()


@router.patch("/filters", response_model=ViewStateResponse)
def update_filters(
    body: FilterUpdate,
    controller: ReconciliationViewController = Depends(get_controller),
) -> ViewStateResponse:
    try:
        if body.search is not None:
            controller.set_search(body.search)
        if body.status is not None:
            controller.set_status_filter(body.status)
        if body.record_status is not None:
            controller.set_record_status_filter(body.record_status)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return controller.snapshot()


@router.post("/sort/{field}", response_model=ViewStateResponse)
def sort_batches(
    field: str,
    controller: ReconciliationViewController = Depends(get_controller),
) -> ViewStateResponse:
    """Sort by ``field``; repeating the same field flips the direction."""
    try:
        controller.sort_by(field)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return controller.snapshot()


@router.get("/batches/{batch_id}", response_model=BatchDetailResponse)
async def batch_detail(
    batch_id: str,
    controller: ReconciliationViewController = Depends(get_controller),
):
    """Open a batch; unknown ids redirect to the batch list."""
    redirect = await _enter_batch(controller, batch_id)
    if redirect is not None:
        return redirect

    detail = controller.selected_batch_with_records
    return BatchDetailResponse(
        batch=BatchSummary.from_batch(detail),
        records_loaded=controller.detail_records is not None,
        records_error=controller.records_query.error,
        state=controller.snapshot(),
    )


@router.get("/batches/{batch_id}/records", response_model=RecordListResponse)
async def batch_records(
    batch_id: str,
    record_status: Optional[str] = Query(None, description="ALL or a record status"),
    controller: ReconciliationViewController = Depends(get_controller),
):
    """Records of a batch, filtered by the session's record status filter."""
    if record_status is not None:
        try:
            controller.set_record_status_filter(record_status)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    redirect = await _enter_batch(controller, batch_id)
    if redirect is not None:
        return redirect

    if controller.records_query.error:
        controller.notify("error", "Failed to load records.")

    records = controller.filtered_records()
    return RecordListResponse(
        batch_id=batch_id,
        records=records,
        total=len(records),
        notifications=controller.drain_notifications(),
    )


@router.get("/batches/{batch_id}/statistics", response_model=BatchStatistics)
async def batch_statistics(
    batch_id: str,
    controller: ReconciliationViewController = Depends(get_controller),
):
    redirect = await _enter_batch(controller, batch_id)
    if redirect is not None:
        return redirect
    return build_batch_statistics(controller.selected_batch_with_records)


@router.get("/batches/{batch_id}/status-counts")
async def batch_status_counts(
    batch_id: str,
    client: ReconciliationApiClient = Depends(get_client),
) -> dict[str, int]:
    """Backend-side counts per match status (MATCH, PARTIAL_MATCH, ...)."""
    raw_id = parse_batch_id(batch_id)
    if raw_id is None:
        raise HTTPException(status_code=400, detail=f"Invalid batch ID: {batch_id!r}")
    try:
        return await client.get_status_counts(raw_id)
    except BackendError as exc:
        raise backend_http_error(exc)


@router.post("/batches/{batch_id}/retry", response_model=ActionResponse)
async def retry_batch(
    batch_id: str,
    controller: ReconciliationViewController = Depends(get_controller),
):
    redirect = await _enter_batch(controller, batch_id)
    if redirect is not None:
        return redirect
    success = await controller.retry_batch()
    return ActionResponse(success=success, state=controller.snapshot())


@router.get("/batches/{batch_id}/export")
async def export_issues(
    batch_id: str,
    controller: ReconciliationViewController = Depends(get_controller),
):
    """Download the batch's non-matched records as CSV."""
    redirect = await _enter_batch(controller, batch_id)
    if redirect is not None:
        return redirect

    export = controller.export_issues()
    if export is None:
        messages = [n.message for n in controller.drain_notifications()]
        raise HTTPException(status_code=404, detail="; ".join(messages))
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@router.get("/batches/{batch_id}/report")
async def download_summary_report(
    batch_id: str,
    client: ReconciliationApiClient = Depends(get_client),
) -> Response:
    """Pass through the backend's summary workbook."""
    raw_id = parse_batch_id(batch_id)
    if raw_id is None:
        raise HTTPException(status_code=400, detail=f"Invalid batch ID: {batch_id!r}")
    try:
        content = await client.download_report(raw_id)
    except BackendError as exc:
        logger.error("Download failed for %s: %s", batch_id, exc)
        raise backend_http_error(exc)
    filename = f"Reconciliation-Summary-{batch_id}-{date.today().isoformat()}.xlsx"
    return Response(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/batches/{batch_id}/records/{record_id}/open",
    response_model=RecordDetailResponse,
)
async def open_record(
    batch_id: str,
    record_id: str,
    controller: ReconciliationViewController = Depends(get_controller),
):
    """Row click: open the record modal (repeated clicks are coalesced)."""
    redirect = await _enter_batch(controller, batch_id)
    if redirect is not None:
        return redirect
    opened = controller.handle_row_click(record_id)
    return RecordDetailResponse(
        opened=opened,
        record=controller.render_record_detail(),
        state=controller.snapshot(),
    )


@router.get("/modal", response_model=RecordDetailResponse)
def current_record(
    controller: ReconciliationViewController = Depends(get_controller),
) -> RecordDetailResponse:
    return RecordDetailResponse(
        opened=controller.state.is_modal_open,
        record=controller.render_record_detail(),
        state=controller.snapshot(),
    )


@router.delete("/modal", response_model=ViewStateResponse)
def close_record(
    controller: ReconciliationViewController = Depends(get_controller),
) -> ViewStateResponse:
    controller.close_record()
    return controller.snapshot()


@router.post("/records/{record_id}/resolve", response_model=ActionResponse)
async def resolve_record(
    record_id: str,
    body: CommentRequest,
    controller: ReconciliationViewController = Depends(get_controller),
) -> ActionResponse:
    success = await controller.resolve_record(record_id, body.comment)
    return ActionResponse(success=success, state=controller.snapshot())


@router.post("/records/{record_id}/comments", response_model=ActionResponse)
async def add_comment(
    record_id: str,
    body: CommentRequest,
    controller: ReconciliationViewController = Depends(get_controller),
) -> ActionResponse:
    success = await controller.add_comment(record_id, body.comment)
    return ActionResponse(success=success, state=controller.snapshot())


@router.post("/back", response_model=ViewStateResponse)
def back_to_list(
    controller: ReconciliationViewController = Depends(get_controller),
) -> ViewStateResponse:
    controller.back_to_list()
    return controller.snapshot()


@router.get("/notifications", response_model=list[Notification])
def notifications(
    controller: ReconciliationViewController = Depends(get_controller),
) -> list[Notification]:
    return controller.drain_notifications()


@router.delete("/session", status_code=204)
def end_session(
    session_id: str = Depends(get_session_id),
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    if not registry.drop(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id!r} not found")
    return Response(status_code=204)
