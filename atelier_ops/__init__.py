"""Production pipeline core for a made-to-order apparel atelier.

This package provides the stage sequence, the per-order stage ledger, the
forward-only pipeline state machine, fabric roll stock keeping and the
read-only dashboard analytics, plus in-memory and SQLite persistence.
"""

from .domain import (
    FabricRoll,
    Order,
    Product,
    ProductCategory,
    RollStatus,
    StageEntry,
    StageName,
)
from .inventory import InsufficientStockError
from .ledger import LedgerError, NoOpenEntryError
from .pipeline import (
    Actor,
    AdvanceResult,
    BackwardTransitionError,
    PipelineStateMachine,
    TerminalStageError,
    TransitionError,
)
from .repository import RecordNotFoundError
from .services import PipelineOptions, PipelineService

__all__ = [
    "FabricRoll",
    "Order",
    "Product",
    "ProductCategory",
    "RollStatus",
    "StageEntry",
    "StageName",
    "InsufficientStockError",
    "LedgerError",
    "NoOpenEntryError",
    "Actor",
    "AdvanceResult",
    "BackwardTransitionError",
    "PipelineStateMachine",
    "TerminalStageError",
    "TransitionError",
    "RecordNotFoundError",
    "PipelineOptions",
    "PipelineService",
]
