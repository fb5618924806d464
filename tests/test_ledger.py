from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from atelier_ops.domain import StageEntry, StageName
from atelier_ops.ledger import (
    LedgerError,
    NoOpenEntryError,
    close_open_entry,
    current_open_entry,
    dwell_days,
    open_entry,
    validate_ledger,
)

from conftest import T0, make_order


def test_current_open_entry_matches_status():
    order = make_order(StageName.SEWING)
    entry = current_open_entry(order)
    assert entry is not None
    assert entry.stage == StageName.SEWING
    assert entry.entered_at == T0


def test_close_open_entry_stamps_exit_without_touching_order():
    order = make_order(StageName.SEWING)
    closed_at = T0 + timedelta(days=1)

    entries = close_open_entry(order, closed_at)

    assert entries[-1].exited_at == closed_at
    assert order.pipeline_stages[-1].exited_at is None


def test_close_open_entry_raises_when_history_is_corrupt():
    order = make_order(StageName.SEWING)
    order.pipeline_stages[-1] = replace(order.pipeline_stages[-1], exited_at=T0)

    with pytest.raises(NoOpenEntryError):
        close_open_entry(order, T0 + timedelta(days=1))


def test_open_entry_refuses_second_open_entry():
    order = make_order(StageName.CUTTING)
    with pytest.raises(LedgerError):
        open_entry(order.pipeline_stages, StageName.SEWING, T0)


def test_open_entry_appends_open_record():
    order = make_order(StageName.CUTTING)
    at = T0 + timedelta(hours=5)
    entries = open_entry(
        close_open_entry(order, at), StageName.SEWING, at, artisan="M. Reyes", notes="rush"
    )
    assert entries[-1] == StageEntry(
        stage=StageName.SEWING, entered_at=at, artisan="M. Reyes", notes="rush"
    )
    assert len(entries) == len(order.pipeline_stages) + 1


def test_dwell_days_floors_partial_days():
    entry = StageEntry(stage=StageName.CUTTING, entered_at=T0)
    assert dwell_days(entry, T0 + timedelta(days=2, hours=23)) == 2
    assert dwell_days(entry, T0 + timedelta(hours=3)) == 0


def test_dwell_days_uses_exit_for_closed_entries():
    entry = StageEntry(
        stage=StageName.CUTTING, entered_at=T0, exited_at=T0 + timedelta(days=4)
    )
    assert dwell_days(entry, T0 + timedelta(days=30)) == 4


def test_validate_ledger_accepts_generated_history():
    validate_ledger(make_order(StageName.QC))
    validate_ledger(make_order(StageName.SHIPPED))


def test_validate_ledger_detects_out_of_order_stages():
    order = make_order(StageName.SEWING)
    order.pipeline_stages.insert(1, StageEntry(stage=StageName.QC, entered_at=T0, exited_at=T0))
    with pytest.raises(LedgerError):
        validate_ledger(order)


def test_validate_ledger_detects_multiple_open_entries():
    order = make_order(StageName.SEWING)
    order.pipeline_stages[0] = replace(order.pipeline_stages[0], exited_at=None)
    with pytest.raises(LedgerError):
        validate_ledger(order)


def test_validate_ledger_detects_status_mismatch():
    order = replace(make_order(StageName.SEWING), status=StageName.FINISHING)
    with pytest.raises(NoOpenEntryError):
        validate_ledger(order)
