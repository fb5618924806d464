"""Service layer exposing the pipeline use-cases to the surrounding application."""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, ContextManager, List, Optional, Sequence, Tuple
from uuid import uuid4

from . import analytics, inventory
from .domain import (
    FabricRoll,
    Order,
    Product,
    ProductCategory,
    RollStatus,
    StageEntry,
    StageName,
    index_of,
    is_forward_transition,
    next_stage,
)
from .ledger import LedgerError, validate_ledger
from .pipeline import (
    Actor,
    AdvanceResult,
    PipelineStateMachine,
    TerminalStageError,
    TransitionError,
)
from .repository import InMemoryRepository, RecordNotFoundError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass(slots=True)
class PipelineOptions:
    """Tuning values for the pipeline core."""

    consumption_stage: StageName = StageName.CUTTING
    depleted_threshold_yards: float = inventory.DEPLETED_THRESHOLD_YARDS
    due_window_days: int = 7
    critical_stock_ratio: float = inventory.CRITICAL_STOCK_RATIO


class PipelineService:
    """Facade that serializes mutations and persists every committed change."""

    def __init__(
        self,
        order_repo: Optional[InMemoryRepository[Order]] = None,
        fabric_roll_repo: Optional[InMemoryRepository[FabricRoll]] = None,
        product_repo: Optional[InMemoryRepository[Product]] = None,
        *,
        clock: Clock = datetime.now,
        options: Optional[PipelineOptions] = None,
        transaction: Optional[Callable[[], ContextManager[object]]] = None,
    ) -> None:
        # an empty SQLite repository is falsy, so compare against None
        if order_repo is None:
            order_repo = InMemoryRepository("order")
        if fabric_roll_repo is None:
            fabric_roll_repo = InMemoryRepository("fabric roll")
        if product_repo is None:
            product_repo = InMemoryRepository("product")
        self.orders = order_repo
        self.fabric_rolls = fabric_roll_repo
        self.products = product_repo
        self.transaction = transaction or nullcontext
        self.clock = clock
        self.options = options or PipelineOptions()
        self._lock = threading.RLock()

    @property
    def state_machine(self) -> PipelineStateMachine:
        return PipelineStateMachine(
            consumption_stage=self.options.consumption_stage,
            depleted_threshold=self.options.depleted_threshold_yards,
        )

    def update_options(
        self,
        *,
        consumption_stage: StageName,
        depleted_threshold_yards: float,
        due_window_days: int,
        critical_stock_ratio: float,
    ) -> PipelineOptions:
        self.options = PipelineOptions(
            consumption_stage=StageName(consumption_stage),
            depleted_threshold_yards=max(depleted_threshold_yards, 0.0),
            due_window_days=max(due_window_days, 0),
            critical_stock_ratio=min(max(critical_stock_ratio, 0.0), 1.0),
        )
        return self.options

    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------
    def register_product(
        self,
        name: str,
        category: ProductCategory,
        *,
        yards_per_unit: Optional[float] = None,
    ) -> Product:
        product = Product(
            id=str(uuid4()),
            name=name,
            category=ProductCategory(category),
            yards_per_unit=yards_per_unit,
        )
        self.products.add(product.id, product)
        return product

    def register_fabric_roll(
        self,
        initial_yards: float,
        reorder_point_yards: float,
        *,
        current_yards: Optional[float] = None,
        material_name: str = "",
        fabric_family: str = "",
        color: str = "",
        supplier: str = "",
        location: str = "",
    ) -> FabricRoll:
        current = initial_yards if current_yards is None else current_yards
        roll = FabricRoll(
            id=str(uuid4()),
            initial_yards=initial_yards,
            current_yards=current,
            reorder_point_yards=reorder_point_yards,
            status=inventory.roll_status_for(
                current,
                reorder_point_yards,
                depleted_threshold=self.options.depleted_threshold_yards,
            ),
            material_name=material_name,
            fabric_family=fabric_family,
            color=color,
            supplier=supplier,
            location=location,
        )
        self.fabric_rolls.add(roll.id, roll)
        return roll

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def create_order(
        self,
        customer_id: str,
        product_id: str,
        promised_date: date,
        *,
        quantity: int = 1,
        fabric_roll_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        order_note: Optional[str] = None,
    ) -> Order:
        if product_id not in self.products:
            raise RecordNotFoundError("product", product_id)
        if fabric_roll_id is not None and fabric_roll_id not in self.fabric_rolls:
            raise RecordNotFoundError("fabric roll", fabric_roll_id)
        if quantity < 1:
            raise ValueError("Orders must be for at least one unit")
        now = self.clock()
        order = Order(
            id=str(uuid4()),
            customer_id=customer_id,
            product_id=product_id,
            order_date=now.date(),
            promised_date=promised_date,
            pipeline_stages=[StageEntry(stage=StageName.ORDER_RECEIVED, entered_at=now)],
            fabric_roll_id=fabric_roll_id,
            quantity=quantity,
            partner_id=partner_id,
            order_note=order_note,
        )
        self.orders.add(order.id, order)
        logger.info("pipeline.order.created: %s", order.id)
        return order

    def assign_artisan(self, order_id: str, artisan: Optional[str]) -> Order:
        with self._lock:
            order = replace(self.orders.get(order_id), assigned_artisan=artisan)
            self.orders.upsert(order.id, order)
            return order

    def assign_fabric_roll(self, order_id: str, roll_id: str) -> AdvanceResult:
        """Attach a roll to an order, consuming fabric if cutting already began."""

        with self._lock:
            order = self.orders.get(order_id)
            roll = self.fabric_rolls.get(roll_id)
            updated = replace(order, fabric_roll_id=roll.id)
            result = AdvanceResult(order=updated)
            already_cut = index_of(order.status) >= index_of(self.options.consumption_stage)
            if already_cut and order.yardage_used is None:
                yards = self._expected_yardage(updated)
                if yards is not None:
                    self.state_machine.consume(result, roll, yards)
            self._commit(result)
            return result

    def _expected_yardage(self, order: Order) -> Optional[float]:
        try:
            product = self.products.get(order.product_id)
        except RecordNotFoundError:
            logger.warning("pipeline.yardage.unknown_product: %s", order.product_id)
            product = None
        return inventory.expected_yardage(order, product)

    # ------------------------------------------------------------------
    # Stage transitions
    # ------------------------------------------------------------------
    def advance_stage(
        self,
        order_id: str,
        target_stage: StageName,
        acting_artisan: Optional[str] = None,
        *,
        notes: Optional[str] = None,
    ) -> AdvanceResult:
        """Validate and commit a transition of ``order_id`` to ``target_stage``.

        Raises :class:`TransitionError` for backward or same-stage moves and
        :class:`LedgerError` if the stored history is corrupt. A fabric
        shortfall while entering the consumption stage is returned in
        ``AdvanceResult.warnings`` and does not block the transition.
        """

        with self._lock:
            order = self.orders.get(order_id)
            return self._advance(order, StageName(target_stage), acting_artisan, notes)

    def advance_to_next_stage(
        self,
        order_id: str,
        acting_artisan: Optional[str] = None,
        *,
        notes: Optional[str] = None,
    ) -> AdvanceResult:
        with self._lock:
            order = self.orders.get(order_id)
            target = next_stage(order.status)
            if target is None:
                logger.warning("pipeline.advance.rejected: %s is already shipped", order.id)
                raise TerminalStageError(order.id, order.status, order.status)
            return self._advance(order, target, acting_artisan, notes)

    def _advance(
        self,
        order: Order,
        target: StageName,
        acting_artisan: Optional[str],
        notes: Optional[str],
    ) -> AdvanceResult:
        machine = self.state_machine
        actor = Actor(timestamp=self.clock(), artisan=acting_artisan, notes=notes)
        roll: Optional[FabricRoll] = None
        yards: Optional[float] = None
        if is_forward_transition(order.status, target) and machine.consumes_fabric(
            order, target
        ):
            roll = self.fabric_rolls.get(order.fabric_roll_id)
            yards = self._expected_yardage(order)
            if yards is None:
                logger.warning("pipeline.yardage.unknown: %s", order.id)
        try:
            validate_ledger(order)
            result = machine.advance(order, target, actor, roll=roll, yards=yards)
        except TransitionError:
            logger.warning(
                "pipeline.advance.rejected: %s %s -> %s",
                order.id,
                order.status.value,
                target.value,
            )
            raise
        except LedgerError:
            logger.error("pipeline.ledger.corrupt: %s", order.id, exc_info=True)
            raise
        self._commit(result)
        logger.info(
            "pipeline.advance.committed: %s %s -> %s",
            order.id,
            order.status.value,
            target.value,
        )
        return result

    def _commit(self, result: AdvanceResult) -> None:
        with self.transaction():
            self.orders.upsert(result.order.id, result.order)
            if result.roll is not None:
                self.fabric_rolls.upsert(result.roll.id, result.roll)
        if result.roll is not None:
            logger.info(
                "inventory.deducted: %s %.1f yd left (%s)",
                result.roll.id,
                result.roll.current_yards,
                result.roll.status.value,
            )
        for warning in result.warnings:
            logger.warning("inventory.shortfall: %s", warning.message)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    def deduct_yardage(self, roll_id: str, yards: float) -> FabricRoll:
        """Manual stock correction; a shortfall rejects the whole deduction."""

        with self._lock:
            roll = self.fabric_rolls.get(roll_id)
            updated = inventory.deduct(
                roll, yards, depleted_threshold=self.options.depleted_threshold_yards
            )
            self.fabric_rolls.upsert(updated.id, updated)
            logger.info("inventory.deducted: %s %.1f yd", updated.id, yards)
            return updated

    def quarantine_roll(self, roll_id: str, reason: Optional[str] = None) -> FabricRoll:
        with self._lock:
            roll = inventory.quarantine(self.fabric_rolls.get(roll_id), reason)
            self.fabric_rolls.upsert(roll.id, roll)
            logger.info("inventory.quarantined: %s", roll.id)
            return roll

    def release_roll(self, roll_id: str) -> FabricRoll:
        with self._lock:
            roll = self.fabric_rolls.get(roll_id)
            if roll.status != RollStatus.QUARANTINE:
                return roll
            roll = inventory.release(
                roll, depleted_threshold=self.options.depleted_threshold_yards
            )
            self.fabric_rolls.upsert(roll.id, roll)
            logger.info("inventory.released: %s (%s)", roll.id, roll.status.value)
            return roll

    def low_stock_rolls(self) -> List[FabricRoll]:
        return inventory.low_stock_rolls(self.fabric_rolls.list())

    def inventory_alerts(self) -> List[inventory.InventoryAlert]:
        return inventory.inventory_alerts(
            self.fabric_rolls.list(), critical_ratio=self.options.critical_stock_ratio
        )

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------
    def orders_by_stage(self) -> List[analytics.StageGroup]:
        return analytics.orders_by_stage(self.orders.list(), self.clock())

    def artisan_workload(self) -> List[analytics.ArtisanWorkload]:
        return analytics.artisan_workload(self.orders.list())

    def pipeline_metrics(self) -> analytics.PipelineMetrics:
        return analytics.pipeline_metrics(
            self.orders.list(),
            self.clock(),
            due_window_days=self.options.due_window_days,
        )

    def stage_history(self, order_id: str) -> Sequence[Tuple[StageName, int]]:
        return analytics.stage_durations(self.orders.get(order_id), self.clock())


__all__ = ["PipelineService", "PipelineOptions", "Clock"]
