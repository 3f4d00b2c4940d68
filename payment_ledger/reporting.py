from datetime import date
from decimal import Decimal
from typing import Optional

from .models import (
    MISCELLANEOUS_FEES,
    FeeAssessment,
    FeeDetails,
    FeeSummary,
    FeesInformationResponse,
    PaymentTransaction,
    TransactionDetailsResponse,
    TransactionHistoryItem,
    TransactionHistoryResponse,
    describe,
)
from .service import LedgerService

FINAL_INSTALLMENT = "Final Installment"
PARTIAL_PAYMENT = "Downpayment/Partial Payment"


def fee_details(assessment: FeeAssessment) -> FeeDetails:
    # component sum, not total_assessed minus the headline fees: the two can disagree
    miscellaneous = sum((getattr(assessment, name) for name in MISCELLANEOUS_FEES), Decimal("0.00"))
    return FeeDetails(
        tuition_fee=assessment.tuition_fee,
        computer_lab_fee=assessment.computer_lab_fee,
        athletic_fee=assessment.athletic_fee,
        library_fee=assessment.library_fee,
        miscellaneous_fees=miscellaneous,
    )


def classify(transaction: PaymentTransaction) -> str:
    return FINAL_INSTALLMENT if transaction.is_final_installment() else PARTIAL_PAYMENT


def transaction_day(transaction: PaymentTransaction) -> Optional[date]:
    return transaction.timestamp.date() if transaction.timestamp else None


def history_order(transactions: list[PaymentTransaction]) -> list[PaymentTransaction]:
    """Newest day first; same-day ties keep store insertion order, undated records go last."""
    return sorted(transactions, key=lambda t: transaction_day(t) or date.min, reverse=True)


class ReportingService:
    def __init__(self, ledger: LedgerService):
        self.ledger = ledger

    def get_fees_information(self, enrollment_id: int) -> FeesInformationResponse:
        assessment = self.ledger.get_assessment(enrollment_id)
        balance = self.ledger.compute_balance(enrollment_id)

        return FeesInformationResponse(
            enrollment_id=enrollment_id,
            student_id=assessment.student_id,
            term=assessment.term,
            currency=assessment.currency,
            summary=FeeSummary(
                total_assessed_fees=balance.total_assessed,
                total_amount_paid=balance.total_amount_paid,
                remaining_balance=balance.remaining_balance,
                payment_status=balance.payment_status_text,
            ),
            fees_details=fee_details(assessment),
        )

    def get_transaction_history(self, enrollment_id: int) -> TransactionHistoryResponse:
        transactions = self.ledger.transactions.list_by_enrollment(enrollment_id)
        items = [
            TransactionHistoryItem(
                transaction_id=t.transaction_id,
                date=transaction_day(t),
                amount=t.amount,
                status=describe(t.status),
                type=classify(t),
            )
            for t in history_order(transactions)
        ]
        return TransactionHistoryResponse(
            enrollment_id=enrollment_id,
            total_paid=LedgerService.sum_completed(transactions),
            transactions=items,
        )

    def get_transaction_details(self, transaction_id: str) -> TransactionDetailsResponse:
        transaction = self.ledger.get_transaction(transaction_id)
        assessment = self.ledger.assessments.get_assessment(transaction.enrollment_id)

        return TransactionDetailsResponse(
            transaction_id=transaction.transaction_id,
            date=transaction.timestamp,
            student_id=assessment.student_id if assessment else None,
            amount_paid=transaction.amount,
            payment_method=transaction.payment_method,
            reference_number=transaction.transaction_ref,
            status=describe(transaction.status),
        )
