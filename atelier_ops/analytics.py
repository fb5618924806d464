"""Read-only dashboard projections over the current order book."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple

from .domain import PIPELINE_ORDER, Order, StageName, is_active
from .ledger import dwell_days


@dataclass(slots=True)
class StageGroup:
    stage: StageName
    orders: List[Order] = field(default_factory=list)
    count: int = 0
    avg_days_in_stage: float = 0.0


@dataclass(slots=True)
class ArtisanWorkload:
    artisan: str
    active_orders: int


@dataclass(slots=True)
class PipelineMetrics:
    total_active: int
    artisans_working: int
    avg_days_in_pipeline: float
    orders_due_this_week: int


def _mean(total: float, count: int) -> float:
    return round(total / count, 1) if count else 0.0


def orders_by_stage(orders: Iterable[Order], now: datetime) -> List[StageGroup]:
    """Group orders by current stage, in pipeline order, with average dwell."""

    groups = {stage: StageGroup(stage=stage) for stage in PIPELINE_ORDER}
    totals: Dict[StageName, int] = {stage: 0 for stage in PIPELINE_ORDER}
    for order in orders:
        group = groups[order.status]
        group.orders.append(order)
        group.count += 1
        for entry in order.pipeline_stages:
            if entry.stage == order.status and entry.is_open:
                totals[order.status] += dwell_days(entry, now)
                break
    for stage, group in groups.items():
        group.avg_days_in_stage = _mean(totals[stage], group.count)
    return list(groups.values())


def artisan_workload(orders: Iterable[Order]) -> List[ArtisanWorkload]:
    """Active order count per artisan, busiest first."""

    counts: Dict[str, int] = {}
    for order in orders:
        if is_active(order.status) and order.assigned_artisan:
            counts[order.assigned_artisan] = counts.get(order.assigned_artisan, 0) + 1
    workload = [
        ArtisanWorkload(artisan=artisan, active_orders=count)
        for artisan, count in counts.items()
    ]
    workload.sort(key=lambda item: item.active_orders, reverse=True)
    return workload


def pipeline_metrics(
    orders: Iterable[Order], now: datetime, *, due_window_days: int = 7
) -> PipelineMetrics:
    active = [order for order in orders if order.status != StageName.SHIPPED]
    artisans = {order.assigned_artisan for order in active if order.assigned_artisan}
    today = now.date()
    total_days = sum((today - order.order_date).days for order in active)
    window_end = today + timedelta(days=due_window_days)
    due = [order for order in active if today <= order.promised_date <= window_end]
    return PipelineMetrics(
        total_active=len(active),
        artisans_working=len(artisans),
        avg_days_in_pipeline=_mean(total_days, len(active)),
        orders_due_this_week=len(due),
    )


def stage_durations(order: Order, now: datetime) -> Sequence[Tuple[StageName, int]]:
    """Days spent in each stage the order has visited so far."""

    return [(entry.stage, dwell_days(entry, now)) for entry in order.pipeline_stages]


__all__ = [
    "StageGroup",
    "ArtisanWorkload",
    "PipelineMetrics",
    "orders_by_stage",
    "artisan_workload",
    "pipeline_metrics",
    "stage_durations",
]
