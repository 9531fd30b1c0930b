from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api.routes_account import router as account_router
from backend.api.routes_calculator import configure_risk_desk, router as calculator_router
from backend.api.routes_positions import router as positions_router
from backend.core.config import Settings, get_settings
from backend.core.logging import get_logger, init_logging
from backend.trading.risk_desk import RiskDesk
from backend.trading.state_store import build_state_store

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    init_logging(settings.log_level, fmt=settings.log_format, app_env=settings.app_env)

    store = build_state_store(settings)
    desk = RiskDesk(store)
    configure_risk_desk(desk)

    app = FastAPI(
        title="Synthetic Index Risk Desk",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(calculator_router)
    app.include_router(account_router)
    app.include_router(positions_router)
    logger.info(
        "app_created",
        extra={"event": "app_created", "state_backend": settings.state_backend, "instruments": len(desk.catalog)},
    )
    return app


app = create_app()
