from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.api.errors import error_response, unknown_symbol_response
from backend.api.routes_calculator import get_risk_desk
from backend.core.logging import get_logger
from backend.risk.errors import UnknownSymbolError
from backend.trading.risk_desk import PositionNotFoundError, RiskDesk
from backend.trading.schemas import (
    ClearPositionsResponse,
    ErrorResponse,
    PositionCreateRequest,
    PositionResponse,
    PositionUpdateRequest,
    StackingAnalysisResponse,
)

router = APIRouter(prefix="/api", tags=["positions"])
logger = get_logger(__name__)


def _not_found(exc: PositionNotFoundError):
    return error_response(
        status_code=404,
        code="position_not_found",
        detail=str(exc),
        context={"position_id": exc.position_id},
    )


@router.get("/positions", response_model=list[PositionResponse])
def list_positions(desk: RiskDesk = Depends(get_risk_desk)) -> list[dict]:
    """Return the positions the user has declared as open."""
    return [asdict(position) for position in desk.list_positions()]


@router.post(
    "/positions",
    response_model=PositionResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def add_position(request: PositionCreateRequest, desk: RiskDesk = Depends(get_risk_desk)):
    """Track a new position; its margin is priced now and stored with it."""
    try:
        position = desk.add_position(
            symbol_id=request.symbol,
            lot_size=request.lot_size,
            stop_loss_points=request.stop_loss_points,
            entry_price=request.entry_price,
        )
        return PositionResponse(**asdict(position))
    except UnknownSymbolError as exc:
        return unknown_symbol_response(exc)
    except ValueError as exc:
        return error_response(status_code=400, code="validation_error", detail=str(exc))
    except Exception as exc:
        logger.exception(
            "add_position_failed",
            extra={"event": "add_position_failed", "symbol": request.symbol, "error": str(exc)},
        )
        return error_response(status_code=500, code="unexpected_error", detail="Unable to add position")


@router.patch(
    "/positions/{position_id}",
    response_model=PositionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def update_position(
    position_id: str, request: PositionUpdateRequest, desk: RiskDesk = Depends(get_risk_desk)
):
    try:
        position = desk.update_position(
            position_id,
            symbol_id=request.symbol.strip() if request.symbol is not None else None,
            lot_size=request.lot_size,
            stop_loss_points=request.stop_loss_points,
            entry_price=request.entry_price,
        )
        return PositionResponse(**asdict(position))
    except PositionNotFoundError as exc:
        return _not_found(exc)
    except UnknownSymbolError as exc:
        return unknown_symbol_response(exc)
    except ValueError as exc:
        return error_response(status_code=400, code="validation_error", detail=str(exc))
    except Exception as exc:
        logger.exception(
            "update_position_failed",
            extra={"event": "update_position_failed", "position_id": position_id, "error": str(exc)},
        )
        return error_response(status_code=500, code="unexpected_error", detail="Unable to update position")


@router.delete(
    "/positions/{position_id}",
    response_model=PositionResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def remove_position(position_id: str, desk: RiskDesk = Depends(get_risk_desk)):
    try:
        return PositionResponse(**asdict(desk.remove_position(position_id)))
    except PositionNotFoundError as exc:
        return _not_found(exc)
    except Exception as exc:
        logger.exception(
            "remove_position_failed",
            extra={"event": "remove_position_failed", "position_id": position_id, "error": str(exc)},
        )
        return error_response(status_code=500, code="unexpected_error", detail="Unable to remove position")


@router.delete("/positions", response_model=ClearPositionsResponse, responses={500: {"model": ErrorResponse}})
def clear_positions(desk: RiskDesk = Depends(get_risk_desk)):
    try:
        return ClearPositionsResponse(removed=desk.clear_positions())
    except Exception as exc:
        logger.exception("clear_positions_failed", extra={"event": "clear_positions_failed", "error": str(exc)})
        return error_response(status_code=500, code="unexpected_error", detail="Unable to clear positions")


@router.get("/stacking", response_model=StackingAnalysisResponse)
def stacking(
    pending_margin: Optional[float] = Query(None, ge=0),
    balance: Optional[float] = Query(None, gt=0),
    desk: RiskDesk = Depends(get_risk_desk),
):
    """Cumulative margin picture for tracked positions, optionally including a trade being previewed."""
    analysis = desk.analyze(pending_margin=pending_margin, balance=balance)
    return StackingAnalysisResponse.model_validate(asdict(analysis))
