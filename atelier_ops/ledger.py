"""Append-only stage history kept on each order.

The helpers here never mutate the order they are given; they return a new
list of entries which the caller commits together with the status change.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional

from .domain import Order, StageEntry, StageName, index_of


class LedgerError(RuntimeError):
    """Raised when an order's stage history breaks its invariants."""


class NoOpenEntryError(LedgerError):
    """Raised when there is no open entry to close for the order's status."""


def current_open_entry(order: Order) -> Optional[StageEntry]:
    for entry in order.pipeline_stages:
        if entry.is_open:
            return entry
    return None


def close_open_entry(order: Order, at: datetime) -> List[StageEntry]:
    """Return the history with the entry for ``order.status`` closed at ``at``."""

    entries = list(order.pipeline_stages)
    for position, entry in enumerate(entries):
        if entry.stage == order.status and entry.is_open:
            entries[position] = replace(entry, exited_at=at)
            return entries
    raise NoOpenEntryError(
        f"Order {order.id!r} has no open {order.status.value!r} stage entry"
    )


def open_entry(
    entries: List[StageEntry],
    stage: StageName,
    at: datetime,
    *,
    artisan: Optional[str] = None,
    notes: Optional[str] = None,
) -> List[StageEntry]:
    """Return ``entries`` with a new open entry for ``stage`` appended."""

    if any(entry.is_open for entry in entries):
        raise LedgerError("Cannot open a stage entry while another one is open")
    return [
        *entries,
        StageEntry(stage=stage, entered_at=at, artisan=artisan, notes=notes),
    ]


def dwell_days(entry: StageEntry, reference_time: datetime) -> int:
    """Whole days spent in ``entry``; open entries are measured to ``reference_time``."""

    end = entry.exited_at if entry.exited_at is not None else reference_time
    return (end - entry.entered_at) // timedelta(days=1)


def validate_ledger(order: Order) -> None:
    """Raise :class:`LedgerError` describing the first broken invariant."""

    entries = order.pipeline_stages
    if not entries:
        raise NoOpenEntryError(f"Order {order.id!r} has no stage history")
    open_entries = [entry for entry in entries if entry.is_open]
    if len(open_entries) > 1:
        raise LedgerError(f"Order {order.id!r} has {len(open_entries)} open stage entries")
    for previous, current in zip(entries, entries[1:]):
        if index_of(current.stage) <= index_of(previous.stage):
            raise LedgerError(
                f"Order {order.id!r} moved from {previous.stage.value!r} "
                f"to {current.stage.value!r}"
            )
    if order.status == StageName.SHIPPED and not open_entries:
        # a shipped order's last entry may be closed on hand-off
        if entries[-1].stage != StageName.SHIPPED:
            raise LedgerError(f"Shipped order {order.id!r} has no Shipped entry")
        return
    if not open_entries or open_entries[0].stage != order.status:
        raise NoOpenEntryError(
            f"Order {order.id!r} has no open {order.status.value!r} stage entry"
        )


__all__ = [
    "LedgerError",
    "NoOpenEntryError",
    "current_open_entry",
    "close_open_entry",
    "open_entry",
    "dwell_days",
    "validate_ledger",
]
