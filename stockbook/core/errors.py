from decimal import Decimal


class StockError(Exception):
    """Base class for caller-visible stock ledger failures."""

    code = "stock_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> list[dict] | None:
        return None


class ValidationError(StockError):
    code = "bad_request"


class NotFoundError(StockError):
    code = "not_found"


class AuthorizationError(StockError):
    code = "forbidden"


class InsufficientStockError(StockError):
    code = "insufficient_stock"

    def __init__(self, *, available: Decimal, required: Decimal):
        super().__init__(
            f"Insufficient stock. Available: {available.normalize():f}, Required: {required.normalize():f}"
        )
        self.available = available
        self.required = required

    def details(self) -> list[dict] | None:
        return [
            {
                "field": "quantity",
                "message": self.message,
                "type": "insufficient_stock",
                "available": float(self.available),
                "required": float(self.required),
            }
        ]
