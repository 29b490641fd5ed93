"""Tests for ReconciliationViewController.

The controller talks to the fake backend through a real
ReconciliationApiClient; async flows are driven with ``asyncio.run``.
A hand-written gated client is used where the order of completions
matters.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import pytest

from recon_console.core.config import settings
from recon_console.core.errors import ValidationError
from recon_console.schemas.record import BatchRecord, RecordStatus
from recon_console.services.export.csv_export import NO_PROBLEMS_MESSAGE
from recon_console.services.view_state.controller import (
    NO_RECORDS_MESSAGE,
    RECORD_DETAIL_FALLBACK,
    ReconciliationViewController,
    ViewMode,
)
from recon_console.services.view_state.debounce import Debouncer


@pytest.fixture
def seeded(backend, raw_record):
    """Two batches; RB-1 has one matched and one mismatched record."""
    backend.add_batch(
        1,
        records=[
            raw_record(1, "MATCH"),
            raw_record(2, "MISMATCH", discrepancies=["Amount mismatch: 100 vs 90"]),
        ],
    )
    backend.add_batch(2, created_at="2024-04-01T00:00:00Z", updated_at="2024-04-01T00:01:00Z")
    return backend


@pytest.fixture
def controller(api_client):
    return ReconciliationViewController(api_client)


def _open_batch(controller: ReconciliationViewController, batch_id: str = "RB-1"):
    return asyncio.run(controller.sync_with_route(batch_id))


def _levels(controller: ReconciliationViewController) -> list[str]:
    return [n.level for n in controller.drain_notifications()]


# ── Route synchronisation ────────────────────────────────────────────


class TestRouteSync:
    def test_no_batch_id_is_list(self, seeded, controller):
        decision = asyncio.run(controller.sync_with_route(None))
        assert decision.view is ViewMode.LIST
        assert decision.redirect_to is None
        assert controller.state.selected_batch is None

    def test_known_batch_enters_details(self, seeded, controller):
        decision = _open_batch(controller)
        assert decision.view is ViewMode.DETAILS
        assert controller.state.view is ViewMode.DETAILS
        assert controller.state.selected_batch.id == "RB-1"
        assert controller.state.last_selected_batch_id == "RB-1"
        assert controller.batch_detail.id == "RB-1"
        assert [r.id for r in controller.detail_records] == ["1", "2"]

    def test_unknown_batch_redirects_from_list(self, seeded, controller):
        decision = _open_batch(controller, "RB-99")
        assert decision.view is ViewMode.LIST
        assert decision.redirect_to == settings.list_route

    def test_batch_missing_from_local_list_is_reloaded(self, seeded, controller, api_client):
        """A batch created after the list was loaded is found, not redirected."""
        asyncio.run(controller.load_batches())
        seeded.add_batch(3)
        api_client.invalidate("Batches")

        decision = _open_batch(controller, "RB-3")

        assert decision.redirect_to is None
        assert controller.state.selected_batch.id == "RB-3"
        assert seeded.calls("GET", "/api/recon/batches") == 2

    def test_unknown_batch_checked_through_cache(self, seeded, controller):
        asyncio.run(controller.load_batches())
        _open_batch(controller, "RB-99")
        assert seeded.calls("GET", "/api/recon/batches") == 1

    def test_unknown_batch_redirects_from_details(self, seeded, controller):
        """A stale deep link wins over an open batch and its modal."""
        _open_batch(controller)
        controller.open_record("2")

        decision = _open_batch(controller, "RB-99")

        assert decision.redirect_to == settings.list_route
        assert controller.state.view is ViewMode.LIST
        assert controller.state.selected_batch is None
        assert controller.state.selected_record is None
        assert controller.state.is_modal_open is False

    def test_back_to_list(self, seeded, controller):
        _open_batch(controller)
        decision = controller.back_to_list()
        assert decision.redirect_to == settings.list_route
        assert controller.state.view is ViewMode.LIST
        assert controller.state.last_selected_batch_id == "RB-1"

    def test_batch_list_failure_stays_on_list(self, seeded, controller):
        seeded.fail("GET", "/api/recon/batches")
        decision = _open_batch(controller)
        assert decision.view is ViewMode.LIST
        assert decision.redirect_to is None
        assert controller.batches_query.error

    def test_batch_detail_failure_recorded(self, seeded, controller):
        seeded.fail("GET", "/api/recon/batches/1")
        _open_batch(controller)
        assert controller.batch_query.error
        assert controller.batch_detail is None
        assert controller.detail_records is not None

    def test_records_failure_recorded(self, seeded, controller):
        seeded.fail("GET", "/api/recon/batches/1/records")
        _open_batch(controller)
        assert controller.records_query.error
        assert controller.selected_batch_with_records.records == []

    def test_reopening_same_batch_keeps_modal(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("1")
        _open_batch(controller)
        assert controller.state.is_modal_open is True


# ── Projections, filters and sorting ─────────────────────────────────


class TestProjections:
    def test_selected_batch_statistics_substituted(self, seeded, controller):
        _open_batch(controller)
        rows = {b.id: b for b in controller.filtered_batches()}
        assert rows["RB-1"].total_records == 2
        assert rows["RB-1"].match_rate == 50
        assert rows["RB-2"].total_records == 0

    def test_default_order_newest_first(self, seeded, controller):
        asyncio.run(controller.load_batches())
        assert [b.id for b in controller.filtered_batches()] == ["RB-2", "RB-1"]

    def test_record_status_filter(self, seeded, controller):
        _open_batch(controller)
        controller.set_record_status_filter("unmatched")
        assert [r.id for r in controller.filtered_records()] == ["2"]
        controller.set_record_status_filter("ALL")
        assert len(controller.filtered_records()) == 2

    def test_search_and_status_filter(self, seeded, controller):
        asyncio.run(controller.load_batches())
        controller.set_search("rb-2")
        assert [b.id for b in controller.filtered_batches()] == ["RB-2"]
        controller.set_search("")
        controller.set_status_filter("failed")
        assert controller.filtered_batches() == []

    def test_unknown_filters_rejected(self, controller):
        with pytest.raises(ValidationError):
            controller.set_status_filter("ARCHIVED")
        with pytest.raises(ValidationError):
            controller.set_record_status_filter("matched-ish")

    def test_sort_toggle_and_reset(self, controller):
        controller.sort_by("match_rate")
        assert (controller.state.sort_field, controller.state.sort_direction) == ("match_rate", "asc")
        controller.sort_by("match_rate")
        assert controller.state.sort_direction == "desc"
        controller.sort_by("date")
        assert (controller.state.sort_field, controller.state.sort_direction) == ("date", "asc")

    def test_sort_unknown_field_rejected(self, controller):
        with pytest.raises(ValidationError):
            controller.sort_by("records")


# ── Resolve and comment ──────────────────────────────────────────────


class TestResolveRecord:
    def test_blank_comment_makes_no_call(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("2")
        before = len(seeded.requests)

        ok = asyncio.run(controller.resolve_record("2", "   "))

        assert ok is False
        assert len(seeded.requests) == before
        assert controller.state.selected_record.resolved is False
        assert controller.drain_notifications()[0].message == "Please provide a resolution comment."

    def test_success_merges_then_server_wins(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("2")

        async def run():
            ok = await controller.resolve_record("2", "Bank fee")
            optimistic = controller.state.selected_record
            tagged = set(controller.state.optimistic_fields)
            await controller.drain()
            return ok, optimistic, tagged

        ok, optimistic, tagged = asyncio.run(run())

        assert ok is True
        assert optimistic.resolved is True
        assert optimistic.resolution_comment == ["Bank fee"]
        assert tagged == {"resolved", "resolution_comment"}
        # authoritative refetch replaced the optimistic copy
        assert controller.state.optimistic_fields == set()
        assert controller.state.selected_record.resolution_comment == ["Bank fee"]
        assert controller.state.selected_record.resolved is True
        assert "info" in _levels(controller)

    def test_merge_only_touches_selected_record(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("1")

        async def run():
            await controller.resolve_record("2", "done")
            await controller.drain()
            return controller.state.selected_record

        selected = asyncio.run(run())
        assert selected.id == "1"
        assert selected.resolved is False
        assert controller.state.optimistic_fields == set()

    def test_failure_leaves_state(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("2")
        seeded.fail("POST", "/api/recon/records/2/resolve", 500)

        ok = asyncio.run(controller.resolve_record("2", "Bank fee"))

        assert ok is False
        assert controller.state.selected_record.resolved is False
        assert controller.state.selected_record.resolution_comment == []
        notes = controller.drain_notifications()
        assert notes[-1].message == "Failed to resolve record. Please try again."

    def test_already_resolved_rejected(self, seeded, controller):
        seeded.records[1][1]["resolved"] = True
        _open_batch(controller)
        controller.open_record("2")

        ok = asyncio.run(controller.resolve_record("2", "again"))

        assert ok is False
        assert _levels(controller) == ["info"]

    def test_invalid_record_id(self, seeded, controller):
        ok = asyncio.run(controller.resolve_record("abc", "text"))
        assert ok is False
        assert _levels(controller) == ["error"]

    def test_add_comment_keeps_unresolved(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("2")

        async def run():
            await controller.add_comment("2", "Looking into it")
            record = controller.state.selected_record
            await controller.drain()
            return record

        record = asyncio.run(run())
        assert record.resolved is False
        assert record.resolution_comment == ["Looking into it"]
        assert controller.state.selected_record.resolved is False

    def test_blank_add_comment_message(self, controller):
        asyncio.run(controller.add_comment("2", ""))
        assert controller.drain_notifications()[0].message == "Please provide a comment."


# ── Retry ────────────────────────────────────────────────────────────


class TestRetryBatch:
    def test_retry_refetches(self, seeded, controller):
        _open_batch(controller)
        assert asyncio.run(controller.retry_batch()) is True
        assert seeded.calls("POST", "/api/recon/batches/1/retry") == 1
        assert seeded.calls("GET", "/api/recon/batches/1") == 2
        assert controller.batch_detail.status.value == "RUNNING"

    def test_retry_failure_is_advisory(self, seeded, controller):
        _open_batch(controller)
        seeded.fail("POST", "/api/recon/batches/1/retry")
        assert asyncio.run(controller.retry_batch()) is False
        assert controller.state.view is ViewMode.DETAILS
        assert controller.drain_notifications()[-1].message == "Failed to retry batch."

    def test_retry_without_selection(self, controller):
        assert asyncio.run(controller.retry_batch()) is False
        assert _levels(controller) == ["warning"]


# ── Record modal ─────────────────────────────────────────────────────


class TestRecordModal:
    def test_open_sets_record_and_flag_together(self, seeded, controller):
        _open_batch(controller)
        assert controller.open_record("2") is True
        assert controller.state.selected_record.id == "2"
        assert controller.state.is_modal_open is True

    def test_open_is_idempotent(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("2")
        first = controller.state.selected_record
        controller.open_record("2")
        assert controller.state.selected_record is first

    def test_unknown_record_leaves_modal_closed(self, seeded, controller):
        _open_batch(controller)
        assert controller.open_record("404") is False
        assert controller.state.selected_record is None
        assert controller.state.is_modal_open is False

    def test_close_clears_both(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("2")
        controller.close_record()
        assert controller.state.selected_record is None
        assert controller.state.is_modal_open is False

    def test_row_clicks_debounced(self, seeded, api_client):
        now = [0.0]
        controller = ReconciliationViewController(
            api_client, debouncer=Debouncer(0.3, lambda: now[0])
        )
        _open_batch(controller)

        assert controller.handle_row_click("2") is True
        controller.close_record()
        now[0] = 0.1
        assert controller.handle_row_click("2") is False
        assert controller.state.is_modal_open is False
        now[0] = 0.5
        assert controller.handle_row_click("2") is True

    def test_render_record_detail(self, seeded, controller):
        _open_batch(controller)
        controller.open_record("2")
        detail = controller.render_record_detail()
        assert detail["id"] == "2"
        assert detail["can_resolve"] is True
        assert "flagged_fields" in detail

    def test_render_failure_isolated(self, seeded, controller, monkeypatch):
        _open_batch(controller)
        controller.open_record("2")

        def boom(self, *args, **kwargs):
            raise RuntimeError("cannot serialize")

        monkeypatch.setattr(BatchRecord, "model_dump", boom)
        assert controller.render_record_detail() == RECORD_DETAIL_FALLBACK


# ── Export ───────────────────────────────────────────────────────────


class TestExportIssues:
    def test_no_records(self, controller):
        assert controller.export_issues() is None
        assert controller.drain_notifications()[0].message == NO_RECORDS_MESSAGE

    def test_no_problem_records(self, backend, raw_record, controller):
        backend.add_batch(1, records=[raw_record(1, "MATCH")])
        _open_batch(controller)
        assert controller.export_issues() is None
        assert controller.drain_notifications()[0].message == NO_PROBLEMS_MESSAGE

    def test_exports_problem_records(self, seeded, controller):
        _open_batch(controller)
        export = controller.export_issues()
        assert export.record_count == 1
        assert export.filename.startswith("problematic_records_RB-1_")
        assert export.content.split("\n")[1].startswith("V-2,")


# ── Liveness and ordering ────────────────────────────────────────────


class GatedClient:
    """Client whose batch and record fetches wait for explicit release."""

    def __init__(self, raw_batches: list[dict[str, Any]], raw_records: list[dict[str, Any]]):
        self.raw_batches = raw_batches
        self.raw_records = raw_records
        self.batch_gate: Optional[asyncio.Event] = None
        self.records_gate: Optional[asyncio.Event] = None

    def arm(self) -> None:
        self.batch_gate = asyncio.Event()
        self.records_gate = asyncio.Event()

    async def list_batches(self, force: bool = False):
        return self.raw_batches

    async def get_batch(self, batch_id: int, force: bool = False):
        await self.batch_gate.wait()
        return next(b for b in self.raw_batches if b["id"] == batch_id)

    async def list_records(self, batch_id: int, status=None, resolved=None, force: bool = False):
        await self.records_gate.wait()
        return self.raw_records


class TestLiveness:
    def _gated(self, raw_batch, raw_record) -> GatedClient:
        return GatedClient([raw_batch(1), raw_batch(2)], [raw_record(1), raw_record(2, "MISMATCH")])

    def test_results_for_left_batch_discarded(self, raw_batch, raw_record):
        client = self._gated(raw_batch, raw_record)
        controller = ReconciliationViewController(client)

        async def run():
            client.arm()
            await controller.load_batches()
            task = asyncio.create_task(controller.sync_with_route("RB-1"))
            await asyncio.sleep(0)
            controller.back_to_list()
            client.batch_gate.set()
            client.records_gate.set()
            await task

        asyncio.run(run())
        assert controller.state.view is ViewMode.LIST
        assert controller.batch_detail is None
        assert controller.detail_records is None

    def test_results_after_dispose_ignored(self, raw_batch, raw_record):
        client = self._gated(raw_batch, raw_record)
        controller = ReconciliationViewController(client)

        async def run():
            client.arm()
            await controller.load_batches()
            task = asyncio.create_task(controller.sync_with_route("RB-1"))
            await asyncio.sleep(0)
            controller.dispose()
            client.batch_gate.set()
            client.records_gate.set()
            await task

        asyncio.run(run())
        assert controller.alive is False
        assert controller.batch_detail is None
        assert controller.detail_records is None

    @pytest.mark.parametrize("records_first", [True, False])
    def test_either_completion_order(self, raw_batch, raw_record, records_first):
        client = self._gated(raw_batch, raw_record)
        controller = ReconciliationViewController(client)

        async def run():
            client.arm()
            await controller.load_batches()
            task = asyncio.create_task(controller.sync_with_route("RB-1"))
            await asyncio.sleep(0)
            first, second = (
                (client.records_gate, client.batch_gate)
                if records_first
                else (client.batch_gate, client.records_gate)
            )
            first.set()
            for _ in range(3):
                await asyncio.sleep(0)
            second.set()
            await task

        asyncio.run(run())
        detail = controller.selected_batch_with_records
        assert detail.id == "RB-1"
        assert [r.status for r in detail.records] == [RecordStatus.MATCHED, RecordStatus.UNMATCHED]
        assert detail.match_rate == 50
