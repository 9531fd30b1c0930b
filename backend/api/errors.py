from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse

from backend.risk.errors import UnknownSymbolError


def error_response(
    *,
    status_code: int,
    code: str,
    detail: str,
    context: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Return a consistent error payload for API responses."""
    payload: Dict[str, Any] = {"error": code, "detail": detail}
    if context:
        payload["context"] = context
    return JSONResponse(status_code=status_code, content=payload)


def validation_error_response(errors: List[str]) -> JSONResponse:
    """400 carrying every validation message so the UI can show them together."""
    return error_response(
        status_code=400,
        code="validation_error",
        detail="; ".join(errors) or "Invalid input",
        context={"errors": list(errors)},
    )


def unknown_symbol_response(exc: UnknownSymbolError) -> JSONResponse:
    return error_response(
        status_code=404,
        code="unknown_symbol",
        detail=str(exc),
        context={"symbol": exc.symbol_id},
    )
