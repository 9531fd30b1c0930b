from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from backend.risk.risk_engine import WarningTier


class CalculationRequest(BaseModel):
    symbol: str
    stop_loss_points: float
    entry_price: Optional[float] = None
    balance: Optional[float] = None
    target_margin_percent: Optional[float] = None

    @field_validator("symbol")
    def strip_symbol(cls, value: str) -> str:
        return value.strip()


class CalculationInputsRequest(BaseModel):
    stop_loss_points: Optional[float] = None
    balance: Optional[float] = None


class StackingPlanResponse(BaseModel):
    min_lot_size: float
    margin_per_min_lot: float
    position_count: int
    total_stacked_lots: float
    total_margin: float
    target_margin_percent: float


class CalculationResponse(BaseModel):
    symbol_id: str
    stop_loss_points: float
    reference_price: float
    recommended_lot_size: float
    margin_required: float
    risk_amount: float
    risk_percentage: float
    drawdown_buffer: float
    drawdown_buffer_percentage: float
    warning_tier: WarningTier
    warning_message: Optional[str] = None
    stacking_plan: StackingPlanResponse


class InstrumentResponse(BaseModel):
    symbol_id: str
    category: str
    description: str
    point_value: float
    min_lot: float
    max_lot: float
    lot_step: float
    contract_size: float
    typical_price: float
    margin_model: str
    leverage: Optional[float] = None
    margin_percent: Optional[float] = None


class AccountSettingsRequest(BaseModel):
    balance: Optional[float] = None
    target_margin_percent: Optional[float] = None


class AccountResponse(BaseModel):
    balance: float
    target_margin_percent: float


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[str] = []


class PositionCreateRequest(BaseModel):
    symbol: str
    lot_size: float = Field(..., gt=0)
    stop_loss_points: float = Field(..., gt=0, le=1000)
    entry_price: Optional[float] = Field(None, gt=0)

    @field_validator("symbol")
    def strip_symbol(cls, value: str) -> str:
        return value.strip()


class PositionUpdateRequest(BaseModel):
    symbol: Optional[str] = None
    lot_size: Optional[float] = Field(None, gt=0)
    stop_loss_points: Optional[float] = Field(None, gt=0, le=1000)
    entry_price: Optional[float] = Field(None, gt=0)

    @model_validator(mode="after")
    def ensure_at_least_one(self) -> "PositionUpdateRequest":
        if (
            self.symbol is None
            and self.lot_size is None
            and self.stop_loss_points is None
            and self.entry_price is None
        ):
            raise ValueError("At least one of symbol, lot_size, stop_loss_points, or entry_price must be provided")
        return self


class PositionResponse(BaseModel):
    id: str
    symbol_id: str
    lot_size: float
    stop_loss_points: float
    margin_used: float
    entry_price: Optional[float] = None


class ClearPositionsResponse(BaseModel):
    removed: int


class StackingAnalysisResponse(BaseModel):
    total_margin_used: float
    total_margin_percentage: float
    remaining_buffer: float
    remaining_buffer_percentage: float
    warning_tier: WarningTier
    warning_message: str
    can_add_position: bool
    position_count: int
    available_margin: Optional[float] = None


class ErrorResponse(BaseModel):
    error: str
    detail: str
    context: Optional[dict] = None
