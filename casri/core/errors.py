# casri/core/errors.py
#
# Ledger error taxonomy. Services raise these; the handlers registered in
# casri.main render them as {"success": false, "error": ...}.


class LedgerError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    status_code = 400


class InvalidAmounts(ValidationError):
    pass


class NotFound(LedgerError):
    status_code = 404

    def __init__(self, entity: str, entity_id=None):
        if entity_id is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} not found for ID: {entity_id}"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStock(LedgerError):
    status_code = 400

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}"
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class AlreadySettled(LedgerError):
    status_code = 400


class OverpaymentError(LedgerError):
    status_code = 400

    def __init__(self, amount, remaining):
        super().__init__(
            f"Payment amount {amount} exceeds remaining balance ({remaining})"
        )
        self.amount = amount
        self.remaining = remaining


class Conflict(LedgerError):
    status_code = 409


class TransactionFailure(LedgerError):
    status_code = 500

    def __init__(self, message: str = "Unable to complete the operation, please retry"):
        super().__init__(message)
