# app/utils/errors.py
"""Error taxonomy for the auction service.

Services raise these; routers translate them into HTTPException.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, http_status: int = 500) -> None:
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Validation ---

class BidValidationError(AppError):
    def __init__(self, reason: str) -> None:
        super().__init__(reason, 400)


# --- Store ---

class StoreError(AppError):
    """Any failure reported by an external store."""


class StorePermissionError(StoreError):
    def __init__(self, message: str = "Missing or insufficient permissions") -> None:
        super().__init__(message, 403)


class StoreUnavailableError(StoreError):
    def __init__(self, message: str = "Store unavailable") -> None:
        super().__init__(message, 503)


# --- Lookups / cancellation ---

class BidNotFoundError(AppError):
    def __init__(self) -> None:
        super().__init__("Bid not found", 404)


class CancellationRejectedError(AppError):
    def __init__(self, reason: str, http_status: int = 400) -> None:
        super().__init__(reason, http_status)


class AuctionNotFoundError(AppError):
    def __init__(self, symbol: str) -> None:
        super().__init__(f"No auction found for {symbol}", 404)


# --- Configuration ---

class ConfigurationError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 500)
