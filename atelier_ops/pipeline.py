"""Forward-only state machine for orders in the production pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional

from .domain import (
    FabricRoll,
    Order,
    StageName,
    is_forward_transition,
    next_stage,
)
from .inventory import DEPLETED_THRESHOLD_YARDS, InsufficientStockError, deduct
from .ledger import close_open_entry, open_entry

BACKWARD_MESSAGE = "cannot move orders backward in the pipeline"


class TransitionError(ValueError):
    """Base exception for rejected stage transitions."""


class BackwardTransitionError(TransitionError):
    """Raised when the target stage is not strictly after the current one."""

    def __init__(self, order_id: str, current: StageName, target: StageName) -> None:
        super().__init__(BACKWARD_MESSAGE)
        self.order_id = order_id
        self.current = current
        self.target = target


class TerminalStageError(BackwardTransitionError):
    """Raised when advancing an order that has already shipped."""


@dataclass(slots=True)
class Actor:
    """Who performs a transition and when."""

    timestamp: datetime
    artisan: Optional[str] = None
    notes: Optional[str] = None


@dataclass(slots=True)
class InventoryWarning:
    """Non-fatal stock problem raised while committing a transition."""

    order_id: str
    roll_id: str
    requested_yards: float
    available_yards: float
    message: str


@dataclass(slots=True)
class AdvanceResult:
    order: Order
    roll: Optional[FabricRoll] = None
    warnings: List[InventoryWarning] = field(default_factory=list)


class PipelineStateMachine:
    """Validates and applies stage transitions for a single order."""

    def __init__(
        self,
        *,
        consumption_stage: StageName = StageName.CUTTING,
        depleted_threshold: float = DEPLETED_THRESHOLD_YARDS,
    ) -> None:
        self.consumption_stage = consumption_stage
        self.depleted_threshold = depleted_threshold

    def consumes_fabric(self, order: Order, target: StageName) -> bool:
        return target == self.consumption_stage and order.fabric_roll_id is not None

    def advance(
        self,
        order: Order,
        target: StageName,
        actor: Actor,
        *,
        roll: Optional[FabricRoll] = None,
        yards: Optional[float] = None,
    ) -> AdvanceResult:
        """Move ``order`` to ``target`` and return the updated snapshot.

        ``order`` and ``roll`` are left untouched; the result carries fresh
        copies. When the target is the consumption stage, ``roll`` and
        ``yards`` describe the fabric to deduct. A shortfall is reported as
        an :class:`InventoryWarning` and does not stop the transition.
        """

        target = StageName(target)
        if not is_forward_transition(order.status, target):
            raise BackwardTransitionError(order.id, order.status, target)

        entries = close_open_entry(order, actor.timestamp)
        entries = open_entry(
            entries,
            target,
            actor.timestamp,
            artisan=(
                actor.artisan if actor.artisan is not None else order.assigned_artisan
            ),
            notes=actor.notes,
        )
        updated = replace(order, status=target, pipeline_stages=entries)
        if target == StageName.SHIPPED:
            updated.completed_date = actor.timestamp.date()

        result = AdvanceResult(order=updated)
        if self.consumes_fabric(order, target) and roll is not None and yards is not None:
            self.consume(result, roll, yards)
        return result

    def advance_to_next(
        self,
        order: Order,
        actor: Actor,
        *,
        roll: Optional[FabricRoll] = None,
        yards: Optional[float] = None,
    ) -> AdvanceResult:
        target = next_stage(order.status)
        if target is None:
            raise TerminalStageError(order.id, order.status, order.status)
        return self.advance(order, target, actor, roll=roll, yards=yards)

    def consume(self, result: AdvanceResult, roll: FabricRoll, yards: float) -> None:
        """Deduct ``yards`` from ``roll`` on behalf of ``result.order``."""

        order = result.order
        try:
            result.roll = deduct(roll, yards, depleted_threshold=self.depleted_threshold)
        except InsufficientStockError as exc:
            result.warnings.append(
                InventoryWarning(
                    order_id=order.id,
                    roll_id=roll.id,
                    requested_yards=exc.requested,
                    available_yards=exc.available,
                    message=str(exc),
                )
            )
            return
        order.yardage_used = yards


__all__ = [
    "BACKWARD_MESSAGE",
    "TransitionError",
    "BackwardTransitionError",
    "TerminalStageError",
    "Actor",
    "InventoryWarning",
    "AdvanceResult",
    "PipelineStateMachine",
]
