import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from .models import FeeAssessment, PaymentStatus, PaymentTransaction


class StoreResult(str, Enum):
    OK = "ok"
    DUPLICATE_ID = "duplicate_id"
    NOT_PENDING = "not_pending"
    NOT_FOUND = "not_found"


class AssessmentStore(ABC):
    @abstractmethod
    def get_assessment(self, enrollment_id: int) -> Optional[FeeAssessment]:
        ...


class TransactionStore(ABC):
    """
    Transaction records keyed by transaction id with a secondary index by
    enrollment id. Every write is atomic per record.
    """

    @abstractmethod
    def create(self, transaction: PaymentTransaction) -> StoreResult:
        ...

    @abstractmethod
    def get(self, transaction_id: str) -> Optional[PaymentTransaction]:
        ...

    @abstractmethod
    def update_status_if_pending(
        self, transaction_id: str, new_status: PaymentStatus, gateway_reference: str
    ) -> StoreResult:
        """Compare-and-set: applies only while the record is PENDING with no reference."""
        ...

    @abstractmethod
    def list_by_enrollment(self, enrollment_id: int) -> list[PaymentTransaction]:
        """Transactions of one enrollment in insertion order."""
        ...

    def ping(self) -> None:
        pass


def demo_assessment() -> FeeAssessment:
    return FeeAssessment(
        enrollment_id=1001, student_id="S-2023-005", term="Fall 2024", currency="PHP",
        tuition_fee=Decimal("10000.00"), computer_lab_fee=Decimal("500.00"),
        athletic_fee=Decimal("200.00"), cultural_fee=Decimal("500.00"),
        internet_fee=Decimal("500.00"), library_fee=Decimal("300.00"),
        medical_dental_fee=Decimal("1000.00"), registration_fee=Decimal("1000.00"),
        school_pub_fee=Decimal("500.00"), id_validation_fee=Decimal("500.00"),
        total_assessed=Decimal("15000.00"),
    )


def demo_transaction() -> PaymentTransaction:
    return PaymentTransaction(
        transaction_id="TXN-112233", enrollment_id=1001, amount=Decimal("10000.00"),
        currency="PHP", payment_method="Over Counter", transaction_ref="REF-OLD-1",
        status=PaymentStatus.COMPLETED,
        timestamp=datetime(2024, 8, 15, 9, 0, tzinfo=timezone.utc),
        description="Downpayment",
    )


class InMemoryStorage(AssessmentStore, TransactionStore):
    """Lock-guarded dictionaries; for tests and local demos only."""

    def __init__(self, seed: bool = True):
        self._lock = threading.Lock()
        self.assessments: dict[int, dict] = {}
        self.transactions: dict[str, dict] = {}
        self.enrollment_index: dict[int, list[str]] = {}
        if seed:
            self._seed_data()

    def _seed_data(self):
        self.add_assessment(demo_assessment())
        self.create(demo_transaction())

    def add_assessment(self, assessment: FeeAssessment) -> None:
        with self._lock:
            self.assessments[assessment.enrollment_id] = assessment.model_dump()

    def get_assessment(self, enrollment_id: int) -> Optional[FeeAssessment]:
        with self._lock:
            data = self.assessments.get(enrollment_id)
        return FeeAssessment(**data) if data else None

    def create(self, transaction: PaymentTransaction) -> StoreResult:
        with self._lock:
            if transaction.transaction_id in self.transactions:
                return StoreResult.DUPLICATE_ID
            self.transactions[transaction.transaction_id] = transaction.model_dump()
            self.enrollment_index.setdefault(transaction.enrollment_id, []).append(transaction.transaction_id)
        return StoreResult.OK

    def get(self, transaction_id: str) -> Optional[PaymentTransaction]:
        with self._lock:
            data = self.transactions.get(transaction_id)
            data = dict(data) if data else None
        return PaymentTransaction(**data) if data else None

    def update_status_if_pending(
        self, transaction_id: str, new_status: PaymentStatus, gateway_reference: str
    ) -> StoreResult:
        with self._lock:
            data = self.transactions.get(transaction_id)
            if data is None:
                return StoreResult.NOT_FOUND
            if data["status"] != PaymentStatus.PENDING or data["transaction_ref"] is not None:
                return StoreResult.NOT_PENDING
            # replace the whole record so readers never see a half-applied update
            self.transactions[transaction_id] = {
                **data, "status": new_status, "transaction_ref": gateway_reference,
            }
        return StoreResult.OK

    def list_by_enrollment(self, enrollment_id: int) -> list[PaymentTransaction]:
        with self._lock:
            rows = [dict(self.transactions[tid]) for tid in self.enrollment_index.get(enrollment_id, [])]
        return [PaymentTransaction(**row) for row in rows]
