"""Per-session view state of the reconciliation console.

``ReconciliationViewController`` owns what one user is looking at: list or
detail view, the selected batch and record, filters, sort order and the
record modal.  It keeps that state in line with two outside sources:

* the route the caller asked for (source of truth for list vs. detail,
  unless the route names a batch that does not exist), and
* the backend, through ``ReconciliationApiClient`` and its cache.

Every remote completion is checked against a generation counter before it
is applied, so results for a batch the user already left, or for a
disposed session, are dropped.  No action lets an exception escape;
failures become notifications.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from recon_console.clients.backend import ReconciliationApiClient
from recon_console.core.config import Settings, settings
from recon_console.core.errors import ValidationError, comment_required
from recon_console.core.logging import get_logger
from recon_console.schemas.batch import BatchStatus, ReconciliationBatch
from recon_console.schemas.console import Notification, ViewStateResponse
from recon_console.schemas.record import BatchRecord, RecordStatus
from recon_console.services.export.csv_export import (
    NO_PROBLEMS_MESSAGE,
    ExportFile,
    export_problematic_records,
)
from recon_console.services.mapping.batch_mapper import map_batch, map_batches
from recon_console.services.mapping.record_mapper import map_records
from recon_console.services.statistics.batch_stats import (
    calculate_batch_stats,
    field_has_flag,
)
from recon_console.services.view_state.batch_list import (
    ALL,
    SORTABLE_FIELDS,
    filter_batches,
    sort_batches,
)
from recon_console.services.view_state.debounce import Debouncer

logger = get_logger(__name__)

NO_RECORDS_MESSAGE = "No records available to export."
RECORD_DETAIL_FALLBACK = {"error": "Unable to display record details."}
DETAIL_FIELDS = ("transaction_id", "description", "amount", "date", "direction", "status")


class ViewMode(str, Enum):
    LIST = "list"
    DETAILS = "details"


@dataclass
class RouteDecision:
    """Outcome of reconciling state with a route.

    ``redirect_to`` is set when the route must be replaced, e.g. a deep
    link to a batch that no longer exists.
    """

    view: ViewMode
    redirect_to: Optional[str] = None


@dataclass
class QueryState:
    loading: bool = False
    error: Optional[str] = None


@dataclass
class ViewState:
    view: ViewMode = ViewMode.LIST
    selected_batch: Optional[ReconciliationBatch] = None
    search: str = ""
    status_filter: str = ALL
    record_status_filter: str = ALL
    selected_record: Optional[BatchRecord] = None
    is_modal_open: bool = False
    last_selected_batch_id: Optional[str] = None
    sort_field: Optional[str] = None
    sort_direction: str = "asc"
    optimistic_fields: set[str] = field(default_factory=set)


class ReconciliationViewController:
    """Coordinates route, remote cache and local selection for one session."""

    def __init__(
        self,
        client: ReconciliationApiClient,
        config: Settings = settings,
        debouncer: Optional[Debouncer] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.state = ViewState()
        self.batches: list[ReconciliationBatch] = []
        self.batch_detail: Optional[ReconciliationBatch] = None
        self.detail_records: Optional[list[BatchRecord]] = None
        self.batches_query = QueryState()
        self.batch_query = QueryState()
        self.records_query = QueryState()
        self.notifications: list[Notification] = []
        self._debouncer = debouncer or Debouncer(config.row_click_debounce_ms / 1000)
        self._generation = 0
        self._alive = True
        self._background: set[asyncio.Task] = set()

    # ── Lifecycle ─────────────────────────────────────────────────────

    @property
    def alive(self) -> bool:
        return self._alive

    def dispose(self) -> None:
        """Stop applying results; cancel background refetches."""
        self._alive = False
        self._generation += 1
        for task in list(self._background):
            task.cancel()
        self._background.clear()

    async def drain(self) -> None:
        """Wait for background refetches started by actions."""
        while True:
            pending = [t for t in self._background if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ── Notifications ─────────────────────────────────────────────────

    def notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level=level, message=message))

    def drain_notifications(self) -> list[Notification]:
        pending, self.notifications = self.notifications, []
        return pending

    # ── Remote loading ────────────────────────────────────────────────

    async def load_batches(self, force: bool = False) -> list[ReconciliationBatch]:
        """Fetch and map the batch list.  A failure here is blocking."""
        self.batches_query.loading = True
        try:
            raw = await self.client.list_batches(force=force)
        except Exception as exc:
            logger.error("Failed to load batches: %s", exc)
            if self._alive:
                self.batches_query.error = str(exc)
            return self.batches
        finally:
            self.batches_query.loading = False

        if not self._alive:
            return self.batches
        self.batches = map_batches(raw)
        self.batches_query.error = None
        logger.debug("Loaded %d batches", len(self.batches))
        return self.batches

    async def refresh_batches(self) -> None:
        await self.load_batches(force=True)
        if self.batches_query.error:
            self.notify("error", "Failed to refresh batches.")

    async def load_batch_detail(self, force: bool = False) -> None:
        """Fetch the selected batch and its records concurrently.

        The two requests may finish in either order; each result is
        applied on its own as soon as it arrives.
        """
        batch = self.state.selected_batch
        if batch is None:
            return
        generation = self._generation
        await asyncio.gather(
            self._fetch_batch(batch.raw_id, generation, force),
            self._fetch_records(batch.raw_id, generation, force),
        )

    def _is_current(self, generation: int) -> bool:
        return self._alive and generation == self._generation

    async def _fetch_batch(self, raw_id: int, generation: int, force: bool) -> None:
        self.batch_query.loading = True
        try:
            raw = await self.client.get_batch(raw_id, force=force)
        except Exception as exc:
            logger.error("Failed to load batch %s: %s", raw_id, exc)
            if self._is_current(generation):
                self.batch_query.error = str(exc)
                self.batch_query.loading = False
            return

        if not self._is_current(generation):
            logger.debug("Discarding stale batch %s result", raw_id)
            return
        self.batch_query.loading = False
        self.batch_query.error = None
        self.batch_detail = map_batch(raw)

    async def _fetch_records(self, raw_id: int, generation: int, force: bool) -> None:
        self.records_query.loading = True
        try:
            raw = await self.client.list_records(raw_id, force=force)
        except Exception as exc:
            logger.error("Failed to load records for batch %s: %s", raw_id, exc)
            if self._is_current(generation):
                self.records_query.error = str(exc)
                self.records_query.loading = False
            return

        if not self._is_current(generation):
            logger.debug("Discarding stale records for batch %s", raw_id)
            return
        self.records_query.loading = False
        self.records_query.error = None
        self._apply_records(map_records(raw))

    def _apply_records(self, records: list[BatchRecord]) -> None:
        """Install authoritative records; the server's copy wins."""
        self.detail_records = records
        selected = self.state.selected_record
        if selected is None:
            return
        fresh = next((r for r in records if r.id == selected.id), None)
        if fresh is not None:
            if self.state.optimistic_fields:
                logger.debug(
                    "Replacing optimistic %s of record %s with server data",
                    sorted(self.state.optimistic_fields),
                    selected.id,
                )
            self.state.selected_record = fresh
            self.state.optimistic_fields.clear()

    def _refetch_records_in_background(self) -> None:
        batch = self.state.selected_batch
        if batch is None:
            return
        task = asyncio.create_task(
            self._fetch_records(batch.raw_id, self._generation, True)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ── Route synchronisation ─────────────────────────────────────────

    async def sync_with_route(self, batch_id: Optional[str]) -> RouteDecision:
        """Make the view agree with the route's batch id (or its absence)."""
        if not batch_id:
            if self.state.view is not ViewMode.LIST or self.state.selected_batch:
                self._enter_list()
            return RouteDecision(ViewMode.LIST)

        batch = self._find_batch(batch_id)
        if batch is None:
            # The local list may predate an upload; ask the cache once more
            await self.load_batches()
            batch = self._find_batch(batch_id)
        if batch is None and self.batches_query.error and not self.batches:
            # Nothing to check the route against; the list view shows the error
            self._enter_list()
            return RouteDecision(ViewMode.LIST)

        if batch is None:
            logger.info("Batch %s from route not found, redirecting to list", batch_id)
            self._enter_list()
            return RouteDecision(ViewMode.LIST, redirect_to=self.config.list_route)

        current = self.state.selected_batch
        if current is None or current.id != batch.id or self.state.view is not ViewMode.DETAILS:
            self._enter_details(batch)
        await self.load_batch_detail()
        return RouteDecision(ViewMode.DETAILS)

    async def view_batch(self, batch_id: str) -> RouteDecision:
        """The user picked "View Details" on a batch row."""
        return await self.sync_with_route(batch_id)

    def back_to_list(self) -> RouteDecision:
        """The user clicked "Back to Batches"."""
        self._enter_list()
        return RouteDecision(ViewMode.LIST, redirect_to=self.config.list_route)

    def _find_batch(self, batch_id: str) -> Optional[ReconciliationBatch]:
        return next((b for b in self.batches if b.id == batch_id), None)

    def _enter_details(self, batch: ReconciliationBatch) -> None:
        self._generation += 1
        self.state.view = ViewMode.DETAILS
        self.state.selected_batch = batch
        self.state.last_selected_batch_id = batch.id
        self.state.selected_record = None
        self.state.is_modal_open = False
        self.state.optimistic_fields.clear()
        self.batch_detail = None
        self.detail_records = None
        self.batch_query = QueryState()
        self.records_query = QueryState()

    def _enter_list(self) -> None:
        self._generation += 1
        self.state.view = ViewMode.LIST
        self.state.selected_batch = None
        self.state.selected_record = None
        self.state.is_modal_open = False
        self.state.optimistic_fields.clear()
        self.batch_detail = None
        self.detail_records = None

    # ── Projections ───────────────────────────────────────────────────

    @property
    def selected_batch_with_records(self) -> Optional[ReconciliationBatch]:
        """The detail batch with its records attached and counted."""
        if self.batch_detail is None:
            return None
        if self.detail_records is None:
            return self.batch_detail
        return calculate_batch_stats(self.batch_detail, self.detail_records)

    def filtered_batches(self) -> list[ReconciliationBatch]:
        detail = self.selected_batch_with_records
        merged = [
            detail if detail is not None and detail.id == b.id else b
            for b in self.batches
        ]
        filtered = filter_batches(merged, self.state.search, self.state.status_filter)
        return sort_batches(filtered, self.state.sort_field, self.state.sort_direction)

    def filtered_records(self) -> list[BatchRecord]:
        detail = self.selected_batch_with_records
        if detail is None:
            return []
        wanted = self.state.record_status_filter
        return [r for r in detail.records if wanted == ALL or r.status.value == wanted]

    # ── Filters and sorting ───────────────────────────────────────────

    def set_search(self, term: str) -> None:
        self.state.search = term or ""

    def set_status_filter(self, status: str) -> None:
        status = (status or ALL).upper()
        if status != ALL and status not in BatchStatus.__members__:
            raise ValidationError(f"Unknown batch status filter: {status!r}")
        self.state.status_filter = status

    def set_record_status_filter(self, status: str) -> None:
        status = (status or ALL).upper()
        if status != ALL and status not in RecordStatus.__members__:
            raise ValidationError(f"Unknown record status filter: {status!r}")
        self.state.record_status_filter = status

    def sort_by(self, sort_field: str) -> None:
        """Same field toggles direction; a new field starts ascending."""
        if sort_field not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort batches by {sort_field!r}")
        if self.state.sort_field == sort_field:
            self.state.sort_direction = "desc" if self.state.sort_direction == "asc" else "asc"
        else:
            self.state.sort_field = sort_field
            self.state.sort_direction = "asc"

    # ── Actions ───────────────────────────────────────────────────────

    async def retry_batch(self) -> bool:
        """Ask the backend to rerun the selected batch, then refetch it."""
        batch = self.state.selected_batch
        if batch is None:
            self.notify("warning", "Select a batch before retrying.")
            return False
        try:
            await self.client.retry_batch(batch.raw_id)
        except Exception:
            logger.exception("Failed to retry batch %s", batch.id)
            self.notify("error", "Failed to retry batch.")
            return False
        await self.load_batch_detail(force=True)
        return True

    async def resolve_record(self, record_id: str, comment: str) -> bool:
        return await self._submit_comment(record_id, comment, resolve=True)

    async def add_comment(self, record_id: str, comment: str) -> bool:
        return await self._submit_comment(record_id, comment, resolve=False)

    async def _submit_comment(self, record_id: str, comment: str, resolve: bool) -> bool:
        if not (comment or "").strip():
            self.notify("warning", comment_required(resolve))
            return False

        record_key = str(record_id)
        if not record_key.isdigit():
            self.notify("error", f"Invalid record ID: {record_id!r}")
            return False

        selected = self.state.selected_record
        is_selected = selected is not None and selected.id == record_key
        if resolve and is_selected and selected.resolved:
            self.notify("info", "Record is already resolved.")
            return False

        action = "resolve record" if resolve else "add comment"
        try:
            await self.client.resolve_record(int(record_key), comment, resolve)
        except Exception:
            logger.exception("Failed to %s %s", action, record_key)
            self.notify("error", f"Failed to {action}. Please try again.")
            return False

        # Optimistic merge into the open record only; the refetch overwrites it
        current = self.state.selected_record
        if current is not None and current.id == record_key:
            update: dict[str, Any] = {
                "resolution_comment": [*current.resolution_comment, comment]
            }
            if resolve:
                update["resolved"] = True
            self.state.selected_record = current.model_copy(update=update)
            self.state.optimistic_fields.update(update)

        if resolve:
            logger.info("Record %s resolved with comment: %s", record_key, comment)
            self.notify("info", f"Record {record_key} resolved.")
        else:
            logger.info("Comment added to record %s: %s", record_key, comment)
            self.notify("info", f"Comment added to record {record_key}.")

        self._refetch_records_in_background()
        return True

    def handle_row_click(self, record_id: str) -> bool:
        """Entry point for row clicks; repeated clicks are coalesced."""
        if not self._debouncer.should_fire(("row", str(record_id))):
            logger.debug("Ignoring repeated click on record %s", record_id)
            return False
        return self.open_record(record_id)

    def open_record(self, record_id: str) -> bool:
        """Select a record and open its modal, both at once.  Idempotent."""
        record = self._find_record(str(record_id))
        if record is None:
            self.notify("warning", f"Record {record_id} is not loaded.")
            return False
        if self.state.is_modal_open and self.state.selected_record is not None:
            if self.state.selected_record.id == record.id:
                return True
        self.state.selected_record = record
        self.state.is_modal_open = True
        self.state.optimistic_fields.clear()
        return True

    def close_record(self) -> None:
        self.state.selected_record = None
        self.state.is_modal_open = False
        self.state.optimistic_fields.clear()

    def _find_record(self, record_id: str) -> Optional[BatchRecord]:
        for record in self.detail_records or []:
            if record.id == record_id:
                return record
        return None

    def export_issues(self) -> Optional[ExportFile]:
        """CSV of the non-matched records of the selected batch, if any."""
        detail = self.selected_batch_with_records
        if detail is None or not detail.records:
            self.notify("warning", NO_RECORDS_MESSAGE)
            return None
        export = export_problematic_records(detail.records, detail.id)
        if export is None:
            self.notify("info", NO_PROBLEMS_MESSAGE)
        return export

    # ── Presentation helpers ──────────────────────────────────────────

    def render_record_detail(self, record: Optional[BatchRecord] = None) -> dict[str, Any]:
        """Record payload for the detail modal, isolated from failures."""
        record = record or self.state.selected_record
        if record is None:
            return {}
        try:
            payload = record.model_dump(mode="json")
            payload["flagged_fields"] = [
                name for name in DETAIL_FIELDS if field_has_flag(name, record)
            ]
            payload["can_resolve"] = not record.resolved
            return payload
        except Exception:
            logger.exception("Failed to render record %s", record.id)
            return dict(RECORD_DETAIL_FALLBACK)

    def snapshot(self) -> ViewStateResponse:
        state = self.state
        return ViewStateResponse(
            view=state.view.value,
            selected_batch_id=state.selected_batch.id if state.selected_batch else None,
            last_selected_batch_id=state.last_selected_batch_id,
            search=state.search,
            status_filter=state.status_filter,
            record_status_filter=state.record_status_filter,
            sort_field=state.sort_field,
            sort_direction=state.sort_direction,
            selected_record_id=state.selected_record.id if state.selected_record else None,
            is_modal_open=state.is_modal_open,
            notifications=self.drain_notifications(),
        )
