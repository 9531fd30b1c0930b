class PositionSizingError(Exception):
    """Raised when sizing cannot be computed safely."""


class UnknownSymbolError(PositionSizingError, LookupError):
    """Raised when a symbol id has no instrument specification."""

    def __init__(self, symbol_id: str) -> None:
        self.symbol_id = symbol_id
        super().__init__(f"Unknown symbol '{symbol_id}'; no instrument specification is available.")
