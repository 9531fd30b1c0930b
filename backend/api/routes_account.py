from dataclasses import asdict

from fastapi import APIRouter, Depends

from backend.api.errors import error_response, validation_error_response
from backend.api.routes_calculator import get_risk_desk
from backend.core.logging import get_logger
from backend.risk.validation import validate_account_settings
from backend.trading.risk_desk import AccountSettingsError, RiskDesk
from backend.trading.schemas import AccountResponse, AccountSettingsRequest, ErrorResponse, ValidationResponse

router = APIRouter(prefix="/api", tags=["account"])
logger = get_logger(__name__)


@router.get("/account", response_model=AccountResponse)
def get_account(desk: RiskDesk = Depends(get_risk_desk)):
    return AccountResponse(**asdict(desk.get_account()))


@router.put(
    "/account",
    response_model=AccountResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def update_account(request: AccountSettingsRequest, desk: RiskDesk = Depends(get_risk_desk)):
    """Save balance and/or stacking target; omitted fields keep their saved value."""
    try:
        account = desk.update_account(
            balance=request.balance,
            target_margin_percent=request.target_margin_percent,
        )
        return AccountResponse(**asdict(account))
    except AccountSettingsError as exc:
        return validation_error_response(exc.errors)
    except Exception as exc:
        logger.exception("account_update_failed", extra={"event": "account_update_failed", "error": str(exc)})
        return error_response(status_code=500, code="unexpected_error", detail="Unable to save account settings")


@router.post("/account/reset", response_model=AccountResponse, responses={500: {"model": ErrorResponse}})
def reset_account(desk: RiskDesk = Depends(get_risk_desk)):
    try:
        return AccountResponse(**asdict(desk.reset_account()))
    except Exception as exc:
        logger.exception("account_reset_failed", extra={"event": "account_reset_failed", "error": str(exc)})
        return error_response(status_code=500, code="unexpected_error", detail="Unable to reset account settings")


@router.post("/validate/account", response_model=ValidationResponse)
async def validate_account(request: AccountSettingsRequest):
    check = validate_account_settings(request.balance, request.target_margin_percent)
    return ValidationResponse(valid=check.valid, errors=check.errors)
