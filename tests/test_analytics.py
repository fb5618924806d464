from __future__ import annotations

from datetime import timedelta

from atelier_ops.analytics import (
    artisan_workload,
    orders_by_stage,
    pipeline_metrics,
    stage_durations,
)
from atelier_ops.domain import PIPELINE_ORDER, StageName

from conftest import T0, make_order

NOW = T0 + timedelta(days=5, hours=6)


def test_orders_by_stage_covers_every_stage_in_order():
    groups = orders_by_stage([], NOW)
    assert [group.stage for group in groups] == list(PIPELINE_ORDER)
    assert all(group.count == 0 and group.avg_days_in_stage == 0 for group in groups)


def test_orders_by_stage_averages_open_entry_dwell():
    orders = [
        make_order(StageName.SEWING, order_id="a", entered_at=T0),
        make_order(StageName.SEWING, order_id="b", entered_at=T0 + timedelta(days=2)),
        make_order(StageName.QC, order_id="c", entered_at=T0),
    ]

    groups = {group.stage: group for group in orders_by_stage(orders, NOW)}

    sewing = groups[StageName.SEWING]
    assert sewing.count == 2
    assert [order.id for order in sewing.orders] == ["a", "b"]
    # 5 and 3 whole days
    assert sewing.avg_days_in_stage == 4.0
    assert groups[StageName.QC].avg_days_in_stage == 5.0
    assert groups[StageName.CUTTING].count == 0


def test_artisan_workload_counts_only_active_orders():
    orders = [
        make_order(StageName.SEWING, order_id="1", artisan="Lena"),
        make_order(StageName.CUTTING, order_id="2", artisan="Marco"),
        make_order(StageName.QC, order_id="3", artisan="Marco"),
        make_order(StageName.SHIPPED, order_id="4", artisan="Lena"),
        make_order(StageName.ORDER_RECEIVED, order_id="5", artisan="Lena"),
        make_order(StageName.FINISHING, order_id="6"),
    ]

    workload = artisan_workload(orders)

    assert [(item.artisan, item.active_orders) for item in workload] == [
        ("Marco", 2),
        ("Lena", 1),
    ]


def test_artisan_workload_ties_keep_first_seen_order():
    orders = [
        make_order(StageName.SEWING, order_id="1", artisan="Lena"),
        make_order(StageName.SEWING, order_id="2", artisan="Marco"),
    ]
    assert [item.artisan for item in artisan_workload(orders)] == ["Lena", "Marco"]


def test_pipeline_metrics():
    today = NOW.date()
    orders = [
        make_order(
            StageName.SEWING,
            order_id="due-today",
            artisan="Lena",
            order_date=today - timedelta(days=10),
            promised_date=today,
        ),
        make_order(
            StageName.QC,
            order_id="due-in-week",
            artisan="Marco",
            order_date=today - timedelta(days=5),
            promised_date=today + timedelta(days=7),
        ),
        make_order(
            StageName.CUTTING,
            order_id="due-later",
            artisan="Lena",
            order_date=today - timedelta(days=2),
            promised_date=today + timedelta(days=8),
        ),
        make_order(
            StageName.ORDER_RECEIVED,
            order_id="overdue",
            order_date=today - timedelta(days=21),
            promised_date=today - timedelta(days=1),
        ),
        make_order(
            StageName.SHIPPED,
            order_id="done",
            artisan="Ada",
            order_date=today - timedelta(days=40),
            promised_date=today + timedelta(days=1),
        ),
    ]

    metrics = pipeline_metrics(orders, NOW)

    assert metrics.total_active == 4
    assert metrics.artisans_working == 2
    assert metrics.avg_days_in_pipeline == 9.5
    assert metrics.orders_due_this_week == 2


def test_pipeline_metrics_empty_book():
    metrics = pipeline_metrics([], NOW)
    assert metrics.total_active == 0
    assert metrics.avg_days_in_pipeline == 0.0


def test_stage_durations_reports_each_visit():
    order = make_order(StageName.CUTTING, entered_at=T0)
    durations = stage_durations(order, T0 + timedelta(days=1))
    assert durations == [
        (StageName.ORDER_RECEIVED, 2),
        (StageName.PATTERN_DRAFTING, 2),
        (StageName.CUTTING, 1),
    ]
