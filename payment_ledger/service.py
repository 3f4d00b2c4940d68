import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import uuid4

from .errors import (
    AlreadyFinalizedError,
    DuplicateTransactionIdError,
    EnrollmentNotFoundError,
    InvalidAmountError,
    InvalidStatusError,
    MissingGatewayReferenceError,
    MissingPaymentMethodError,
    ReferenceAlreadySetError,
    TransactionNotFoundError,
)
from .gateway import PlaceholderGateway
from .models import (
    BalanceSnapshot,
    FeeAssessment,
    GatewayCallbackResponse,
    InitiatePaymentResponse,
    PaymentStatus,
    PaymentTransaction,
)
from .storage import AssessmentStore, InMemoryStorage, StoreResult, TransactionStore

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5

# matches the Numeric(12, 2) amount column
CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("9999999999.99")


def parse_amount(value) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidAmountError("Amount is required and must be a number", amount=value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(f"Amount {value!r} is not a number", amount=value)
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(f"Amount must be a positive finite number, got {value!r}", amount=value)
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount {value!r} exceeds the maximum of {MAX_AMOUNT}", amount=value)
    if amount != amount.quantize(CENT):
        raise InvalidAmountError(f"Amount {value!r} has more than two decimal places", amount=value)
    return amount.quantize(CENT)


def new_transaction_id() -> str:
    return f"TXN-{uuid4().hex[:12].upper()}"


def payment_status_text(total_assessed: Decimal, total_paid: Decimal, remaining: Decimal) -> str:
    # paid-check first: a zero assessment with zero payments is not "Paid"
    if remaining <= 0 and total_assessed > 0:
        return "Paid"
    if 0 < total_paid < total_assessed:
        return "Partial"
    return "Unpaid"


class LedgerService:
    def __init__(
        self,
        assessments: Optional[AssessmentStore] = None,
        transactions: Optional[TransactionStore] = None,
        gateway: Optional[PlaceholderGateway] = None,
        default_currency: str = "PHP",
    ):
        if assessments is None and transactions is None:
            assessments = transactions = InMemoryStorage()
        self.assessments = assessments
        self.transactions = transactions
        self.gateway = gateway or PlaceholderGateway()
        self.default_currency = default_currency

    def initiate_payment(
        self,
        enrollment_id: int,
        amount,
        payment_method,
        description: Optional[str] = None,
    ) -> InitiatePaymentResponse:
        parsed_amount = parse_amount(amount)
        if not isinstance(payment_method, str) or not payment_method.strip():
            raise MissingPaymentMethodError("Payment method is required", enrollment_id=enrollment_id)

        # one currency per enrollment: the assessment's, or the service default
        assessment = self.assessments.get_assessment(enrollment_id)
        currency = assessment.currency if assessment else self.default_currency

        now = datetime.now(timezone.utc)
        for _ in range(MAX_ID_ATTEMPTS):
            transaction = PaymentTransaction(
                transaction_id=new_transaction_id(),
                enrollment_id=enrollment_id,
                amount=parsed_amount,
                currency=currency,
                payment_method=payment_method.strip(),
                transaction_ref=None,
                status=PaymentStatus.PENDING,
                timestamp=now,
                description=description,
            )
            if self.transactions.create(transaction) == StoreResult.OK:
                break
            logger.warning("Transaction id collision on %s, regenerating", transaction.transaction_id)
        else:
            raise DuplicateTransactionIdError(
                "Could not allocate a unique transaction id", enrollment_id=enrollment_id
            )

        logger.info(
            "Created transaction id=%s enrollment=%s amount=%s status=PENDING",
            transaction.transaction_id, enrollment_id, parsed_amount,
        )
        return InitiatePaymentResponse(
            transaction_id=transaction.transaction_id,
            enrollment_id=enrollment_id,
            status=transaction.status,
            amount_due=transaction.amount,
            currency=transaction.currency,
            payment_gateway_url=self.gateway.checkout_url_for(transaction),
            timestamp=transaction.timestamp,
        )

    def apply_gateway_status(
        self, transaction_id: str, gateway_reference, status_code
    ) -> GatewayCallbackResponse:
        new_status = PaymentStatus.from_code(status_code)
        if not new_status.is_terminal():
            raise InvalidStatusError(
                f"Callback status must be terminal, got {new_status.value}",
                transaction_id=transaction_id, status_code=status_code,
            )
        if not isinstance(gateway_reference, str) or not gateway_reference.strip():
            raise MissingGatewayReferenceError("Gateway reference is required", transaction_id=transaction_id)

        outcome = self.transactions.update_status_if_pending(transaction_id, new_status, gateway_reference.strip())
        if outcome == StoreResult.NOT_FOUND:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found", transaction_id=transaction_id)
        if outcome == StoreResult.NOT_PENDING:
            self._raise_conflict(transaction_id, new_status)

        transaction = self.get_transaction(transaction_id)
        logger.info(
            "Transaction id=%s moved PENDING -> %s ref=%s",
            transaction_id, new_status.value, transaction.transaction_ref,
        )
        balance = self._balance_or_none(transaction.enrollment_id)
        return GatewayCallbackResponse(
            transaction_id=transaction_id,
            status=transaction.status,
            updated_balance=balance.remaining_balance if balance else None,
            balance=balance,
            message=(
                "Payment successfully recorded."
                if new_status == PaymentStatus.COMPLETED
                else "Payment failure recorded."
            ),
        )

    def _raise_conflict(self, transaction_id: str, requested: PaymentStatus):
        current = self.transactions.get(transaction_id)
        if current is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found", transaction_id=transaction_id)
        logger.warning(
            "Rejected callback for transaction id=%s: status=%s ref=%s requested=%s",
            transaction_id, current.status.value, current.transaction_ref, requested.value,
        )
        if current.status.is_terminal():
            raise AlreadyFinalizedError(
                f"Transaction {transaction_id} is already {current.status.value}",
                transaction_id=transaction_id,
                current_status=current.status.value,
                requested_status=requested.value,
            )
        raise ReferenceAlreadySetError(
            f"Transaction {transaction_id} already has gateway reference {current.transaction_ref}",
            transaction_id=transaction_id,
            transaction_ref=current.transaction_ref,
        )

    def get_transaction(self, transaction_id: str) -> PaymentTransaction:
        transaction = self.transactions.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found", transaction_id=transaction_id)
        return transaction

    def get_assessment(self, enrollment_id: int) -> FeeAssessment:
        assessment = self.assessments.get_assessment(enrollment_id)
        if assessment is None:
            raise EnrollmentNotFoundError(f"Enrollment {enrollment_id} not found", enrollment_id=enrollment_id)
        return assessment

    def total_paid(self, enrollment_id: int) -> Decimal:
        return self.sum_completed(self.transactions.list_by_enrollment(enrollment_id))

    @staticmethod
    def sum_completed(transactions: list[PaymentTransaction]) -> Decimal:
        return sum(
            (t.amount for t in transactions if t.status == PaymentStatus.COMPLETED),
            Decimal("0.00"),
        )

    def compute_balance(self, enrollment_id: int) -> BalanceSnapshot:
        assessment = self.get_assessment(enrollment_id)
        total_paid = self.total_paid(enrollment_id)
        remaining = assessment.total_assessed - total_paid

        return BalanceSnapshot(
            enrollment_id=enrollment_id,
            total_assessed=assessment.total_assessed,
            total_amount_paid=total_paid,
            remaining_balance=remaining,
            payment_status_text=payment_status_text(assessment.total_assessed, total_paid, remaining),
        )

    def _balance_or_none(self, enrollment_id: int) -> Optional[BalanceSnapshot]:
        try:
            return self.compute_balance(enrollment_id)
        except EnrollmentNotFoundError:
            logger.warning("Balance undefined for enrollment %s: no fee assessment", enrollment_id)
            return None
