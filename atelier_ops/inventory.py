"""Fabric roll stock keeping: deductions, status tiers and alerts."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from .domain import FabricRoll, Order, Product, ProductCategory, RollStatus

DEPLETED_THRESHOLD_YARDS = 3.0
CRITICAL_STOCK_RATIO = 0.25

DEFAULT_YARDS_PER_UNIT: Dict[ProductCategory, float] = {
    ProductCategory.PANTS: 1.6,
    ProductCategory.JACKET: 2.4,
    ProductCategory.BELT: 0.7,
}


class InventoryError(ValueError):
    """Base exception for stock keeping errors."""


class InsufficientStockError(InventoryError):
    """Raised when a deduction asks for more yardage than the roll holds."""

    def __init__(self, roll_id: str, requested: float, available: float) -> None:
        super().__init__(
            f"Roll {roll_id!r} holds {available} yd, cannot deduct {requested} yd"
        )
        self.roll_id = roll_id
        self.requested = requested
        self.available = available


@dataclass(slots=True)
class InventoryAlert:
    roll_id: str
    name: str
    current_yards: float
    reorder_point_yards: float
    severity: str
    unit: str = "yards"


def roll_status_for(
    current_yards: float,
    reorder_point_yards: float,
    *,
    depleted_threshold: float = DEPLETED_THRESHOLD_YARDS,
) -> RollStatus:
    if current_yards <= depleted_threshold:
        return RollStatus.DEPLETED
    if current_yards <= reorder_point_yards:
        return RollStatus.LOW
    return RollStatus.ACTIVE


def recompute_status(
    roll: FabricRoll, *, depleted_threshold: float = DEPLETED_THRESHOLD_YARDS
) -> RollStatus:
    """Status tier for ``roll``; a quarantine hold always wins."""

    if roll.status == RollStatus.QUARANTINE:
        return RollStatus.QUARANTINE
    return roll_status_for(
        roll.current_yards,
        roll.reorder_point_yards,
        depleted_threshold=depleted_threshold,
    )


def deduct(
    roll: FabricRoll,
    yards: float,
    *,
    depleted_threshold: float = DEPLETED_THRESHOLD_YARDS,
) -> FabricRoll:
    """Return a copy of ``roll`` with ``yards`` removed.

    The roll passed in is never modified, so a failed deduction leaves stock
    exactly as it was.
    """

    if yards < 0:
        raise ValueError("Deducted yardage cannot be negative")
    if yards > roll.current_yards:
        raise InsufficientStockError(roll.id, yards, roll.current_yards)
    remaining = max(round(roll.current_yards - yards, 1), 0.0)
    updated = replace(roll, current_yards=remaining)
    updated.status = recompute_status(updated, depleted_threshold=depleted_threshold)
    return updated


def quarantine(roll: FabricRoll, reason: Optional[str] = None) -> FabricRoll:
    notes = reason if reason is not None else roll.notes
    return replace(roll, status=RollStatus.QUARANTINE, notes=notes)


def release(
    roll: FabricRoll, *, depleted_threshold: float = DEPLETED_THRESHOLD_YARDS
) -> FabricRoll:
    """Lift a quarantine hold and put the roll back on its yardage tier."""

    status = roll_status_for(
        roll.current_yards,
        roll.reorder_point_yards,
        depleted_threshold=depleted_threshold,
    )
    return replace(roll, status=status)


def expected_yardage(order: Order, product: Optional[Product]) -> Optional[float]:
    """Yardage an order is expected to consume, or ``None`` if unknown."""

    if order.yardage_used is not None:
        return order.yardage_used
    if product is None:
        return None
    per_unit = product.yards_per_unit
    if per_unit is None:
        per_unit = DEFAULT_YARDS_PER_UNIT.get(product.category)
    if per_unit is None:
        return None
    return round(per_unit * max(order.quantity, 1), 1)


def low_stock_rolls(rolls: Iterable[FabricRoll]) -> List[FabricRoll]:
    return [
        roll for roll in rolls if roll.status in {RollStatus.LOW, RollStatus.DEPLETED}
    ]


def inventory_alerts(
    rolls: Iterable[FabricRoll], *, critical_ratio: float = CRITICAL_STOCK_RATIO
) -> List[InventoryAlert]:
    alerts: List[InventoryAlert] = []
    for roll in low_stock_rolls(rolls):
        ratio = roll.current_yards / roll.initial_yards if roll.initial_yards else 0.0
        name = " ".join(part for part in (roll.color, roll.fabric_family) if part)
        alerts.append(
            InventoryAlert(
                roll_id=roll.id,
                name=name or roll.material_name or roll.id,
                current_yards=roll.current_yards,
                reorder_point_yards=roll.reorder_point_yards,
                severity="critical" if ratio < critical_ratio else "warning",
            )
        )
    alerts.sort(key=lambda alert: alert.severity != "critical")
    return alerts


__all__ = [
    "DEPLETED_THRESHOLD_YARDS",
    "CRITICAL_STOCK_RATIO",
    "DEFAULT_YARDS_PER_UNIT",
    "InventoryError",
    "InsufficientStockError",
    "InventoryAlert",
    "roll_status_for",
    "recompute_status",
    "deduct",
    "quarantine",
    "release",
    "expected_yardage",
    "low_stock_rolls",
    "inventory_alerts",
]
