import logging
from datetime import timezone
from typing import Optional

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import FeeAssessmentRecord, PaymentTransactionRecord
from .errors import StoreUnavailableError
from .models import FeeAssessment, PaymentStatus, PaymentTransaction
from .storage import AssessmentStore, StoreResult, TransactionStore, demo_assessment, demo_transaction

logger = logging.getLogger(__name__)


def _to_transaction(row: PaymentTransactionRecord) -> PaymentTransaction:
    ts = row.transaction_timestamp
    # sqlite drops tzinfo; timestamps are always written in UTC
    if ts is not None and ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return PaymentTransaction(
        transaction_id=row.transaction_id,
        enrollment_id=row.enrollment_id,
        amount=row.amount,
        currency=row.currency,
        payment_method=row.payment_method,
        transaction_ref=row.transaction_ref,
        status=PaymentStatus(row.status),
        timestamp=ts,
        description=row.description,
    )


class SqlStorage(AssessmentStore, TransactionStore):
    """Durable store over SQLAlchemy. Status changes are single conditional UPDATEs."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _unavailable(self, operation: str, exc: SQLAlchemyError, **ids) -> StoreUnavailableError:
        logger.error("Store failure during %s %s: %s", operation, ids, exc)
        return StoreUnavailableError(f"Store unavailable during {operation}", operation=operation, **ids)

    def ping(self) -> None:
        try:
            with self.session_factory() as db:
                db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise self._unavailable("ping", e) from e

    def add_assessment(self, assessment: FeeAssessment) -> None:
        try:
            with self.session_factory() as db:
                db.add(FeeAssessmentRecord(**assessment.model_dump()))
                db.commit()
        except SQLAlchemyError as e:
            raise self._unavailable("add_assessment", e, enrollment_id=assessment.enrollment_id) from e

    def get_assessment(self, enrollment_id: int) -> Optional[FeeAssessment]:
        try:
            with self.session_factory() as db:
                row = db.execute(
                    select(FeeAssessmentRecord).where(FeeAssessmentRecord.enrollment_id == enrollment_id)
                ).scalar_one_or_none()
                return FeeAssessment.model_validate(row) if row else None
        except SQLAlchemyError as e:
            raise self._unavailable("get_assessment", e, enrollment_id=enrollment_id) from e

    def create(self, transaction: PaymentTransaction) -> StoreResult:
        record = PaymentTransactionRecord(
            transaction_id=transaction.transaction_id,
            enrollment_id=transaction.enrollment_id,
            amount=transaction.amount,
            currency=transaction.currency,
            payment_method=transaction.payment_method,
            transaction_ref=transaction.transaction_ref,
            status=transaction.status.value,
            transaction_timestamp=transaction.timestamp,
            description=transaction.description,
        )
        try:
            with self.session_factory() as db:
                db.add(record)
                db.commit()
        except IntegrityError:
            return StoreResult.DUPLICATE_ID
        except SQLAlchemyError as e:
            raise self._unavailable("create", e, transaction_id=transaction.transaction_id) from e
        return StoreResult.OK

    def get(self, transaction_id: str) -> Optional[PaymentTransaction]:
        try:
            with self.session_factory() as db:
                row = db.execute(
                    select(PaymentTransactionRecord).where(PaymentTransactionRecord.transaction_id == transaction_id)
                ).scalar_one_or_none()
                return _to_transaction(row) if row else None
        except SQLAlchemyError as e:
            raise self._unavailable("get", e, transaction_id=transaction_id) from e

    def update_status_if_pending(
        self, transaction_id: str, new_status: PaymentStatus, gateway_reference: str
    ) -> StoreResult:
        stmt = (
            update(PaymentTransactionRecord)
            .where(
                PaymentTransactionRecord.transaction_id == transaction_id,
                PaymentTransactionRecord.status == PaymentStatus.PENDING.value,
                PaymentTransactionRecord.transaction_ref.is_(None),
            )
            .values(status=new_status.value, transaction_ref=gateway_reference)
        )
        try:
            with self.session_factory() as db:
                result = db.execute(stmt)
                db.commit()
                if result.rowcount == 1:
                    return StoreResult.OK
                exists = db.execute(
                    select(PaymentTransactionRecord.seq).where(PaymentTransactionRecord.transaction_id == transaction_id)
                ).first()
        except SQLAlchemyError as e:
            raise self._unavailable("update_status_if_pending", e, transaction_id=transaction_id) from e
        return StoreResult.NOT_PENDING if exists else StoreResult.NOT_FOUND

    def list_by_enrollment(self, enrollment_id: int) -> list[PaymentTransaction]:
        try:
            with self.session_factory() as db:
                rows = db.execute(
                    select(PaymentTransactionRecord)
                    .where(PaymentTransactionRecord.enrollment_id == enrollment_id)
                    .order_by(PaymentTransactionRecord.seq)
                ).scalars().all()
                return [_to_transaction(row) for row in rows]
        except SQLAlchemyError as e:
            raise self._unavailable("list_by_enrollment", e, enrollment_id=enrollment_id) from e

    def seed_demo_data(self) -> None:
        assessment = demo_assessment()
        if self.get_assessment(assessment.enrollment_id) is not None:
            return
        logger.info("Seeding enrollment %s demo data", assessment.enrollment_id)
        self.add_assessment(assessment)
        self.create(demo_transaction())
