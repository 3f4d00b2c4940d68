class LedgerServiceError(Exception):
    kind = "LEDGER_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, **{k: _plain(v) for k, v in self.details.items()}}


def _plain(value):
    if value is None or isinstance(value, (str, int)):
        return value
    return str(value)


class LedgerValidationError(LedgerServiceError):
    kind = "VALIDATION_ERROR"


class InvalidAmountError(LedgerValidationError):
    kind = "INVALID_AMOUNT"


class MissingPaymentMethodError(LedgerValidationError):
    kind = "MISSING_PAYMENT_METHOD"


class InvalidStatusError(LedgerValidationError):
    kind = "INVALID_STATUS"


class MissingGatewayReferenceError(LedgerValidationError):
    kind = "MISSING_GATEWAY_REFERENCE"


class NotFoundError(LedgerServiceError):
    kind = "NOT_FOUND"


class EnrollmentNotFoundError(NotFoundError):
    kind = "ENROLLMENT_NOT_FOUND"


class TransactionNotFoundError(NotFoundError):
    kind = "TRANSACTION_NOT_FOUND"


class ConflictError(LedgerServiceError):
    kind = "CONFLICT"


class AlreadyFinalizedError(ConflictError):
    kind = "ALREADY_FINALIZED"


class ReferenceAlreadySetError(ConflictError):
    kind = "REFERENCE_ALREADY_SET"


class DuplicateTransactionIdError(ConflictError):
    kind = "DUPLICATE_TRANSACTION_ID"


class StoreUnavailableError(LedgerServiceError):
    """Transient store failure (unreachable, locked, timed out). Not retried by the ledger."""
    kind = "STORE_UNAVAILABLE"
