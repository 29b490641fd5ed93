"""Tests for batch list filtering and sorting."""

from __future__ import annotations

import pytest

from recon_console.schemas.batch import BatchStatus, ReconciliationBatch
from recon_console.services.view_state.batch_list import (
    ALL,
    SORTABLE_FIELDS,
    filter_batches,
    sort_batches,
)


def _batch(raw_id: int, status=BatchStatus.DONE, date="2024-03-01T00:00:00Z", **kw) -> ReconciliationBatch:
    return ReconciliationBatch(
        id=f"RB-{raw_id}",
        raw_id=raw_id,
        date=date,
        status=status,
        bank_file_name=kw.pop("bank", f"bank_{raw_id}.csv"),
        vendor_file_name=kw.pop("vendor", f"vendor_{raw_id}.csv"),
        **kw,
    )


class TestFilterBatches:
    def test_search_by_exact_id(self):
        """Searching 'RB-7' finds only RB-7 with the ALL filter."""
        batches = [_batch(7), _batch(8), _batch(9, status=BatchStatus.FAILED)]
        result = filter_batches(batches, "RB-7", ALL)
        assert [b.id for b in result] == ["RB-7"]

    def test_search_is_case_insensitive_over_file_names(self):
        batches = [_batch(1, bank="ACME_March.csv"), _batch(2)]
        assert [b.id for b in filter_batches(batches, "acme", ALL)] == ["RB-1"]
        assert [b.id for b in filter_batches(batches, "VENDOR_2", ALL)] == ["RB-2"]

    def test_status_filter(self):
        batches = [_batch(1), _batch(2, status=BatchStatus.FAILED)]
        assert [b.id for b in filter_batches(batches, "", "FAILED")] == ["RB-2"]

    def test_search_and_status_combined(self):
        batches = [_batch(1), _batch(11, status=BatchStatus.FAILED)]
        assert [b.id for b in filter_batches(batches, "RB-1", "DONE")] == ["RB-1"]

    def test_empty_search_keeps_all(self):
        batches = [_batch(1), _batch(2)]
        assert len(filter_batches(batches, "", ALL)) == 2


class TestSortBatches:
    def test_default_is_newest_first(self):
        batches = [
            _batch(1, date="2024-01-01T00:00:00Z"),
            _batch(2, date="2024-03-01T00:00:00Z"),
            _batch(3, date="2024-02-01T00:00:00Z"),
        ]
        assert [b.id for b in sort_batches(batches, None)] == ["RB-2", "RB-3", "RB-1"]

    def test_numeric_field(self):
        batches = [_batch(1, match_rate=80), _batch(2, match_rate=5), _batch(3, match_rate=40)]
        asc = sort_batches(batches, "match_rate", "asc")
        desc = sort_batches(batches, "match_rate", "desc")
        assert [b.match_rate for b in asc] == [5, 40, 80]
        assert [b.match_rate for b in desc] == [80, 40, 5]

    def test_date_field_by_timestamp(self):
        batches = [
            _batch(1, date="2024-01-02T00:00:00+05:00"),
            _batch(2, date="2024-01-01T23:00:00Z"),
        ]
        assert [b.id for b in sort_batches(batches, "date", "asc")] == ["RB-1", "RB-2"]

    def test_string_field(self):
        batches = [_batch(1, bank="charlie.csv"), _batch(2, bank="alpha.csv"), _batch(3, bank="bravo.csv")]
        result = sort_batches(batches, "bank_file_name", "asc")
        assert [b.bank_file_name for b in result] == ["alpha.csv", "bravo.csv", "charlie.csv"]

    def test_missing_values_last(self):
        batches = [_batch(1), _batch(2, processing_time="1m 0s"), _batch(3, processing_time="0m 5s")]
        for direction in ("asc", "desc"):
            assert sort_batches(batches, "processing_time", direction)[-1].id == "RB-1"

    @pytest.mark.parametrize("field", ["records", "raw_id"])
    def test_internal_fields_not_sortable(self, field):
        assert field not in SORTABLE_FIELDS
