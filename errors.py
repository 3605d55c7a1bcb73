"""
Error kinds raised by the stores and workflows.

None of them is tied to HTTP; `status_code` is only a hint the API boundary
uses when translating them (see `main.py`).
"""


class DanusError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class NotFoundError(DanusError):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(DanusError):
    status_code = 400
    default_message = "Validation failed"


class InsufficientStockError(DanusError):
    status_code = 400
    default_message = "Insufficient stock"


class ConflictError(DanusError):
    status_code = 409
    default_message = "Conflicting data"
