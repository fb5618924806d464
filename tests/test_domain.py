from __future__ import annotations

import pytest

from atelier_ops.domain import (
    PIPELINE_ORDER,
    FabricRoll,
    StageName,
    index_of,
    is_active,
    is_forward_transition,
    next_stage,
)


def test_pipeline_order_has_seven_stages_in_manufacturing_order():
    assert [stage.value for stage in PIPELINE_ORDER] == [
        "Order Received",
        "Pattern Drafting",
        "Cutting",
        "Sewing",
        "Finishing",
        "QC",
        "Shipped",
    ]
    assert index_of(StageName.ORDER_RECEIVED) == 0
    assert index_of(StageName.SHIPPED) == 6


def test_forward_transition_requires_strictly_later_stage():
    assert is_forward_transition(StageName.SEWING, StageName.FINISHING)
    assert is_forward_transition(StageName.ORDER_RECEIVED, StageName.SHIPPED)
    assert not is_forward_transition(StageName.SEWING, StageName.SEWING)
    assert not is_forward_transition(StageName.QC, StageName.CUTTING)


def test_index_of_accepts_stage_labels():
    assert index_of("Cutting") == 2


def test_next_stage_stops_at_shipped():
    assert next_stage(StageName.QC) == StageName.SHIPPED
    assert next_stage(StageName.SHIPPED) is None


def test_active_excludes_intake_and_shipped():
    assert not is_active(StageName.ORDER_RECEIVED)
    assert not is_active(StageName.SHIPPED)
    assert all(is_active(stage) for stage in PIPELINE_ORDER[1:-1])


def test_fabric_roll_rejects_yardage_outside_bounds():
    with pytest.raises(ValueError):
        FabricRoll(id="r", initial_yards=10, current_yards=12, reorder_point_yards=2)
    with pytest.raises(ValueError):
        FabricRoll(id="r", initial_yards=10, current_yards=-1, reorder_point_yards=2)
