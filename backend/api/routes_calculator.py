from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from backend.api.errors import error_response, unknown_symbol_response, validation_error_response
from backend.core.logging import get_logger
from backend.risk.errors import UnknownSymbolError
from backend.risk.instruments import InstrumentSpec
from backend.risk.validation import validate_calculation_inputs
from backend.trading.risk_desk import RiskDesk
from backend.trading.schemas import (
    CalculationInputsRequest,
    CalculationRequest,
    CalculationResponse,
    ErrorResponse,
    InstrumentResponse,
    ValidationResponse,
)

router = APIRouter(prefix="/api", tags=["calculator"])

_desk: RiskDesk | None = None
logger = get_logger(__name__)


def configure_risk_desk(desk: RiskDesk) -> None:
    global _desk
    _desk = desk


def get_risk_desk() -> RiskDesk:
    if _desk is None:
        raise HTTPException(status_code=500, detail="Risk desk not configured")
    return _desk


def instrument_payload(spec: InstrumentSpec) -> InstrumentResponse:
    return InstrumentResponse(margin_model=spec.margin_model, **asdict(spec))


@router.get("/symbols", response_model=list[InstrumentResponse], responses={500: {"model": ErrorResponse}})
def list_symbols(desk: RiskDesk = Depends(get_risk_desk)):
    """Return the instrument catalogue for symbol pickers."""
    return [instrument_payload(spec) for spec in desk.list_instruments()]


@router.get(
    "/symbols/{symbol_id}",
    response_model=InstrumentResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_symbol(symbol_id: str, desk: RiskDesk = Depends(get_risk_desk)):
    try:
        return instrument_payload(desk.get_instrument(symbol_id))
    except UnknownSymbolError as exc:
        return unknown_symbol_response(exc)


@router.post(
    "/calculate",
    response_model=CalculationResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def calculate(request: CalculationRequest, desk: RiskDesk = Depends(get_risk_desk)):
    """Size a trade for the saved account (or the balance supplied with the request)."""
    try:
        balance = request.balance if request.balance is not None else desk.get_account().balance
        check = validate_calculation_inputs(request.stop_loss_points, balance)
        if not check.valid:
            logger.info(
                "calculation_rejected",
                extra={"event": "calculation_rejected", "symbol": request.symbol, "errors": check.errors},
            )
            return validation_error_response(check.errors)
        result = desk.calculate(
            symbol_id=request.symbol,
            stop_loss_points=request.stop_loss_points,
            entry_price=request.entry_price,
            balance=request.balance,
            target_margin_percent=request.target_margin_percent,
        )
        return CalculationResponse.model_validate(asdict(result))
    except UnknownSymbolError as exc:
        logger.warning(
            "calculation_unknown_symbol",
            extra={"event": "calculation_unknown_symbol", "symbol": request.symbol},
        )
        return unknown_symbol_response(exc)
    except Exception:
        logger.exception(
            "calculation_failed",
            extra={"event": "calculation_failed", "symbol": request.symbol},
        )
        return error_response(status_code=500, code="unexpected_error", detail="Unexpected error. Check server logs.")


@router.post("/validate/calculation", response_model=ValidationResponse)
async def validate_calculation(request: CalculationInputsRequest):
    check = validate_calculation_inputs(request.stop_loss_points, request.balance)
    return ValidationResponse(valid=check.valid, errors=check.errors)
