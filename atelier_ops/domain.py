"""Core data structures for the made-to-order atelier pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Tuple


class StageName(str, Enum):
    """Manufacturing stages an order moves through, in pipeline order."""

    ORDER_RECEIVED = "Order Received"
    PATTERN_DRAFTING = "Pattern Drafting"
    CUTTING = "Cutting"
    SEWING = "Sewing"
    FINISHING = "Finishing"
    QC = "QC"
    SHIPPED = "Shipped"


PIPELINE_ORDER: Tuple[StageName, ...] = tuple(StageName)


def index_of(stage: StageName) -> int:
    """Return the position of ``stage`` in the pipeline."""

    return PIPELINE_ORDER.index(StageName(stage))


def is_forward_transition(current: StageName, target: StageName) -> bool:
    return index_of(target) > index_of(current)


def next_stage(stage: StageName) -> Optional[StageName]:
    position = index_of(stage) + 1
    if position >= len(PIPELINE_ORDER):
        return None
    return PIPELINE_ORDER[position]


def is_active(stage: StageName) -> bool:
    """Orders past intake but not yet shipped count as active workload."""

    return stage not in (StageName.ORDER_RECEIVED, StageName.SHIPPED)


class RollStatus(str, Enum):
    """Stock tiers for a fabric roll."""

    ACTIVE = "Active"
    LOW = "Low"
    DEPLETED = "Depleted"
    QUARANTINE = "Quarantine"


class ProductCategory(str, Enum):
    PANTS = "Pants"
    JACKET = "Jacket"
    BELT = "Belt"
    ACCESSORY = "Accessory"


@dataclass(slots=True)
class StageEntry:
    """One occupancy of an order in a pipeline stage."""

    stage: StageName
    entered_at: datetime
    exited_at: Optional[datetime] = None
    artisan: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.exited_at is None


@dataclass(slots=True)
class Product:
    """Catalogue entry; only what yardage planning needs."""

    id: str
    name: str
    category: ProductCategory
    yards_per_unit: Optional[float] = None


@dataclass(slots=True)
class FabricRoll:
    """A physical bolt of material tracked by remaining yardage."""

    id: str
    initial_yards: float
    current_yards: float
    reorder_point_yards: float
    status: RollStatus = RollStatus.ACTIVE
    material_name: str = ""
    fabric_family: str = ""
    color: str = ""
    supplier: str = ""
    location: str = ""
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.initial_yards < 0:
            raise ValueError("Initial yardage cannot be negative")
        if not 0 <= self.current_yards <= self.initial_yards:
            raise ValueError("Current yardage must lie between 0 and the initial yardage")


@dataclass(slots=True)
class Order:
    """A made-to-order garment moving through the production pipeline."""

    id: str
    customer_id: str
    product_id: str
    order_date: date
    promised_date: date
    status: StageName = StageName.ORDER_RECEIVED
    pipeline_stages: List[StageEntry] = field(default_factory=list)
    fabric_roll_id: Optional[str] = None
    assigned_artisan: Optional[str] = None
    yardage_used: Optional[float] = None
    completed_date: Optional[date] = None
    quantity: int = 1
    partner_id: Optional[str] = None
    order_note: Optional[str] = None


__all__ = [
    "StageName",
    "PIPELINE_ORDER",
    "index_of",
    "is_forward_transition",
    "next_stage",
    "is_active",
    "RollStatus",
    "ProductCategory",
    "StageEntry",
    "Product",
    "FabricRoll",
    "Order",
]
