from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from atelier_ops.domain import FabricRoll, Order, RollStatus, StageEntry, StageName
from atelier_ops.services import PipelineService

T0 = datetime(2026, 3, 2, 9, 0)


class FakeClock:
    """Manually advanced clock so stage timestamps are predictable."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def tick(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    return PipelineService(clock=clock)


def make_order(
    status: StageName = StageName.ORDER_RECEIVED,
    *,
    entered_at: datetime = T0,
    order_id: str = "ord-1",
    artisan: str | None = None,
    fabric_roll_id: str | None = None,
    order_date: date | None = None,
    promised_date: date | None = None,
) -> Order:
    """Build an order whose history walks every stage up to ``status``."""

    stages = list(StageName)[: list(StageName).index(status) + 1]
    offset = len(stages) - 1
    entries = []
    for position, stage in enumerate(stages):
        start = entered_at - timedelta(days=2 * (offset - position))
        end = None if position == offset else start + timedelta(days=2)
        entries.append(
            StageEntry(
                stage=stage,
                entered_at=start,
                exited_at=end,
                artisan=artisan if position else None,
            )
        )
    return Order(
        id=order_id,
        customer_id="cust-1",
        product_id="prod-1",
        order_date=order_date or entries[0].entered_at.date(),
        promised_date=promised_date or (entered_at + timedelta(days=21)).date(),
        status=status,
        pipeline_stages=entries,
        fabric_roll_id=fabric_roll_id,
        assigned_artisan=artisan,
    )


def make_roll(
    current_yards: float = 40.0,
    *,
    roll_id: str = "roll-1",
    initial_yards: float = 60.0,
    reorder_point_yards: float = 20.0,
    status: RollStatus = RollStatus.ACTIVE,
) -> FabricRoll:
    return FabricRoll(
        id=roll_id,
        initial_yards=initial_yards,
        current_yards=current_yards,
        reorder_point_yards=reorder_point_yards,
        status=status,
        color="Indigo",
        fabric_family="Raw Denim",
    )
