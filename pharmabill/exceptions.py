"""Custom exceptions for the pharmacy billing core."""


class PharmaBillError(Exception):
    """Base exception for all billing errors."""
    def __init__(self, message="A billing error occurred", payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class InvalidInputError(PharmaBillError):
    """Raised for negative amounts, empty item identity and similar input problems."""

class NotFoundError(PharmaBillError):
    """Raised when an invoice or stock batch cannot be found."""
    def __init__(self, message="Record not found", payload=None):
        super().__init__(message, payload)

class InsufficientStockError(PharmaBillError):
    """Raised when a batch has nothing left to pick."""
    def __init__(self, item_code, batch, available):
        message = f"No stock left for {item_code} [{batch}]: available {int(available)}"
        super().__init__(message, {'item_code': item_code, 'batch': batch, 'available': int(available)})

class InventoryError(PharmaBillError):
    """Raised when the inventory store cannot be read."""

class PersistenceError(PharmaBillError):
    """Raised when an invoice cannot be saved; no stock has been touched."""
