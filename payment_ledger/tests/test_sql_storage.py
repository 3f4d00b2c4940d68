"""
Tests for the SQLAlchemy-backed store against a temporary sqlite database.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from payment_ledger.database import init_db, make_engine
from payment_ledger.errors import AlreadyFinalizedError, InvalidAmountError, StoreUnavailableError
from payment_ledger.models import PaymentStatus, PaymentTransaction
from payment_ledger.reporting import ReportingService
from payment_ledger.service import LedgerService
from payment_ledger.sql_storage import SqlStorage
from payment_ledger.storage import StoreResult


@pytest.fixture
def storage(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'payments.db'}", timeout_seconds=5)
    store = SqlStorage(init_db(engine))
    store.seed_demo_data()
    yield store
    engine.dispose()


def pending(txn_id, enrollment_id=1001, amount="2500.00"):
    return PaymentTransaction(
        transaction_id=txn_id,
        enrollment_id=enrollment_id,
        amount=Decimal(amount),
        payment_method="Card",
        timestamp=datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestSqlStorage:
    """Tests for the store contract."""

    def test_seed_is_idempotent(self, storage):
        storage.seed_demo_data()

        assert len(storage.list_by_enrollment(1001)) == 1
        assessment = storage.get_assessment(1001)
        assert assessment.total_assessed == Decimal("15000.00")
        assert assessment.student_id == "S-2023-005"

    def test_missing_assessment(self, storage):
        assert storage.get_assessment(9999) is None

    def test_create_and_get(self, storage):
        assert storage.create(pending("TXN-S1")) == StoreResult.OK

        stored = storage.get("TXN-S1")

        assert stored.status == PaymentStatus.PENDING
        assert stored.amount == Decimal("2500.00")
        assert stored.timestamp == datetime(2024, 9, 1, 12, 0, tzinfo=timezone.utc)
        assert stored.transaction_ref is None

    def test_duplicate_id(self, storage):
        storage.create(pending("TXN-S1"))

        assert storage.create(pending("TXN-S1")) == StoreResult.DUPLICATE_ID

    def test_conditional_update(self, storage):
        storage.create(pending("TXN-S1"))

        assert storage.update_status_if_pending("TXN-S1", PaymentStatus.COMPLETED, "GW-1") == StoreResult.OK
        assert storage.update_status_if_pending("TXN-S1", PaymentStatus.FAILED, "GW-2") == StoreResult.NOT_PENDING
        assert storage.update_status_if_pending("TXN-NOPE", PaymentStatus.FAILED, "GW-3") == StoreResult.NOT_FOUND

        stored = storage.get("TXN-S1")
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.transaction_ref == "GW-1"

    def test_list_by_enrollment_keeps_insertion_order(self, storage):
        for txn_id in ["TXN-C", "TXN-A", "TXN-B"]:
            storage.create(pending(txn_id, enrollment_id=3003))

        assert [t.transaction_id for t in storage.list_by_enrollment(3003)] == ["TXN-C", "TXN-A", "TXN-B"]
        assert storage.list_by_enrollment(4004) == []

    def test_store_failure_is_transient_error(self, storage, monkeypatch):
        def broken_factory():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        monkeypatch.setattr(storage, "session_factory", broken_factory)

        with pytest.raises(StoreUnavailableError) as exc_info:
            storage.get("TXN-112233")
        assert exc_info.value.details["transaction_id"] == "TXN-112233"


class TestLedgerOverSql:
    """End-to-end ledger flow against the durable store."""

    def test_payment_round_trip(self, storage):
        ledger = LedgerService(storage, storage)
        reporting = ReportingService(ledger)

        created = ledger.initiate_payment(1001, Decimal("5000.00"), "Card", description="Final installment")
        response = ledger.apply_gateway_status(created.transaction_id, "GW-9", "COMPLETED")

        assert response.updated_balance == Decimal("0.00")
        with pytest.raises(AlreadyFinalizedError):
            ledger.apply_gateway_status(created.transaction_id, "GW-9", "COMPLETED")

        info = reporting.get_fees_information(1001)
        assert info.summary.total_amount_paid == Decimal("15000.00")
        assert info.summary.payment_status == "Paid"

        history = reporting.get_transaction_history(1001)
        assert history.transactions[0].transaction_id == created.transaction_id
        assert history.transactions[0].type == "Final Installment"
        assert history.total_paid == Decimal("15000.00")

    @pytest.mark.parametrize("amount", ["0.001", "1.005", "10000000000.00", "99999999999"])
    def test_amount_the_column_cannot_hold_is_rejected(self, storage, amount):
        ledger = LedgerService(storage, storage)
        reporting = ReportingService(ledger)

        with pytest.raises(InvalidAmountError):
            ledger.initiate_payment(1001, amount, "Card")

        history = reporting.get_transaction_history(1001)
        assert [t.transaction_id for t in history.transactions] == ["TXN-112233"]
        assert ledger.compute_balance(1001).total_amount_paid == Decimal("10000.00")

    @pytest.mark.parametrize("amount", ["1234.50", "0.01", "9999999999.99"])
    def test_amount_read_back_unchanged(self, storage, amount):
        ledger = LedgerService(storage, storage)

        created = ledger.initiate_payment(1001, amount, "Card")

        assert created.amount_due == Decimal(amount)
        assert storage.get(created.transaction_id).amount == Decimal(amount)

    def test_currency_comes_from_assessment(self, storage):
        ledger = LedgerService(storage, storage, default_currency="USD")

        assert ledger.initiate_payment(1001, "100.00", "Card").currency == "PHP"
        assert ledger.initiate_payment(8888, "100.00", "Card").currency == "USD"


class TestConcurrentCallbacksOverSql:
    """Simultaneous gateway callbacks against one sqlite file."""

    def test_identical_callbacks_count_payment_once(self, storage, race_callbacks):
        ledger = LedgerService(storage, storage)
        txn_id = ledger.initiate_payment(1001, "2500.00", "Card").transaction_id

        results = race_callbacks(ledger, txn_id, [("GW-1", "COMPLETED"), ("GW-1", "COMPLETED")])

        assert len(results) == 2
        assert len([r for r in results if isinstance(r, AlreadyFinalizedError)]) == 1
        assert storage.get(txn_id).status == PaymentStatus.COMPLETED
        assert ledger.compute_balance(1001).total_amount_paid == Decimal("12500.00")

    def test_conflicting_callbacks_one_outcome_sticks(self, storage, race_callbacks):
        ledger = LedgerService(storage, storage)
        txn_id = ledger.initiate_payment(1001, "2500.00", "Card").transaction_id

        results = race_callbacks(ledger, txn_id, [("GW-A", "COMPLETED"), ("GW-B", "FAILED")])

        winners = [r for r in results if not isinstance(r, AlreadyFinalizedError)]
        assert len(results) == 2
        assert len(winners) == 1
        stored = storage.get(txn_id)
        assert stored.status == winners[0].status
        assert stored.transaction_ref == ("GW-A" if stored.status == PaymentStatus.COMPLETED else "GW-B")
