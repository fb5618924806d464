"""FastAPI JSON adapter over the pipeline service."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder

from ..domain import ProductCategory, StageName
from ..inventory import InsufficientStockError
from ..ledger import LedgerError
from ..pipeline import AdvanceResult, TransitionError
from ..repository import RecordNotFoundError
from ..services import PipelineOptions, PipelineService
from ..storage import AtelierDatabase

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_PATH = "atelier.sqlite3"


def create_app(
    database_path: Optional[str] = None,
    options: Optional[PipelineOptions] = None,
) -> FastAPI:
    path = database_path or os.environ.get("ATELIER_DB_PATH", DEFAULT_DATABASE_PATH)
    database = AtelierDatabase(path)
    service = PipelineService(
        order_repo=database.orders,
        fabric_roll_repo=database.fabric_rolls,
        product_repo=database.products,
        options=options,
        transaction=database.transaction,
    )

    app = FastAPI(title="Atelier Production Pipeline")
    app.state.pipeline_service = service
    app.state.database = database

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - framework hook
        database.close()

    @app.post("/products", status_code=201)
    def register_product(
        request: Request,
        name: str = Body(..., embed=True),
        category: ProductCategory = Body(..., embed=True),
        yards_per_unit: Optional[float] = Body(None, embed=True, gt=0),
    ):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            return jsonable_encoder(
                service.register_product(name, category, yards_per_unit=yards_per_unit)
            )

    @app.post("/fabric-rolls", status_code=201)
    def register_fabric_roll(
        request: Request,
        initial_yards: float = Body(..., embed=True, ge=0),
        reorder_point_yards: float = Body(..., embed=True, ge=0),
        current_yards: Optional[float] = Body(None, embed=True, ge=0),
        material_name: str = Body("", embed=True),
        fabric_family: str = Body("", embed=True),
        color: str = Body("", embed=True),
        supplier: str = Body("", embed=True),
        location: str = Body("", embed=True),
    ):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            roll = service.register_fabric_roll(
                initial_yards,
                reorder_point_yards,
                current_yards=current_yards,
                material_name=material_name,
                fabric_family=fabric_family,
                color=color,
                supplier=supplier,
                location=location,
            )
        return jsonable_encoder(roll)

    @app.post("/orders", status_code=201)
    def create_order(
        request: Request,
        customer_id: str = Body(..., embed=True),
        product_id: str = Body(..., embed=True),
        promised_date: date = Body(..., embed=True),
        quantity: int = Body(1, embed=True),
        fabric_roll_id: Optional[str] = Body(None, embed=True),
        partner_id: Optional[str] = Body(None, embed=True),
        order_note: Optional[str] = Body(None, embed=True),
    ):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            order = service.create_order(
                customer_id,
                product_id,
                promised_date,
                quantity=quantity,
                fabric_roll_id=fabric_roll_id,
                partner_id=partner_id,
                order_note=order_note,
            )
        return jsonable_encoder(order)

    @app.get("/orders/{order_id}")
    def get_order(order_id: str, request: Request):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            return jsonable_encoder(service.orders.get(order_id))

    @app.post("/orders/{order_id}/advance")
    def advance_order(
        order_id: str,
        request: Request,
        target_stage: StageName = Body(..., embed=True),
        artisan: Optional[str] = Body(None, embed=True),
        notes: Optional[str] = Body(None, embed=True),
    ):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            result = service.advance_stage(order_id, target_stage, artisan, notes=notes)
        return _advance_payload(result)

    @app.post("/orders/{order_id}/advance-next")
    def advance_order_to_next(
        order_id: str,
        request: Request,
        artisan: Optional[str] = Body(None, embed=True),
        notes: Optional[str] = Body(None, embed=True),
    ):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            result = service.advance_to_next_stage(order_id, artisan, notes=notes)
        return _advance_payload(result)

    @app.post("/fabric-rolls/{roll_id}/deduct")
    def deduct_roll(
        roll_id: str,
        request: Request,
        yards: float = Body(..., embed=True, ge=0),
    ):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            return jsonable_encoder(service.deduct_yardage(roll_id, yards))

    @app.post("/fabric-rolls/{roll_id}/quarantine")
    def quarantine_roll(
        roll_id: str,
        request: Request,
        reason: Optional[str] = Body(None, embed=True),
    ):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            return jsonable_encoder(service.quarantine_roll(roll_id, reason))

    @app.post("/fabric-rolls/{roll_id}/release")
    def release_roll(roll_id: str, request: Request):
        service: PipelineService = request.app.state.pipeline_service
        with _translate_errors():
            return jsonable_encoder(service.release_roll(roll_id))

    @app.get("/pipeline/stages")
    def pipeline_stages(request: Request):
        service: PipelineService = request.app.state.pipeline_service
        return [
            {
                "stage": group.stage,
                "count": group.count,
                "avg_days_in_stage": group.avg_days_in_stage,
                "order_ids": [order.id for order in group.orders],
            }
            for group in service.orders_by_stage()
        ]

    @app.get("/pipeline/workload")
    def pipeline_workload(request: Request):
        service: PipelineService = request.app.state.pipeline_service
        return jsonable_encoder(service.artisan_workload())

    @app.get("/pipeline/metrics")
    def pipeline_metrics(request: Request):
        service: PipelineService = request.app.state.pipeline_service
        return jsonable_encoder(service.pipeline_metrics())

    @app.get("/inventory/alerts")
    def inventory_alerts(request: Request):
        service: PipelineService = request.app.state.pipeline_service
        return jsonable_encoder(service.inventory_alerts())

    return app


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map domain exceptions raised inside a handler onto HTTP errors."""

    try:
        yield
    except RecordNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    except TransitionError as exc:
        raise HTTPException(422, str(exc)) from exc
    except InsufficientStockError as exc:
        raise HTTPException(409, str(exc)) from exc
    except LedgerError as exc:
        logger.error("web.ledger_error: %s", exc)
        raise HTTPException(500, str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc


def _advance_payload(result: AdvanceResult) -> dict:
    return {
        "order": jsonable_encoder(result.order),
        "roll": jsonable_encoder(result.roll) if result.roll is not None else None,
        "warnings": [warning.message for warning in result.warnings],
    }


__all__ = ["create_app"]
