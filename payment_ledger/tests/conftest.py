"""
Shared fixtures for the ledger tests.
"""
import threading

import pytest

from payment_ledger.errors import AlreadyFinalizedError, ReferenceAlreadySetError


def _race(service, txn_id, callbacks):
    """Deliver callbacks from separate threads released at the same moment."""
    barrier = threading.Barrier(len(callbacks))
    results = []
    lock = threading.Lock()

    def deliver(reference, code):
        barrier.wait()
        try:
            outcome = service.apply_gateway_status(txn_id, reference, code)
        except (AlreadyFinalizedError, ReferenceAlreadySetError) as e:
            outcome = e
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=deliver, args=cb) for cb in callbacks]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    return results


@pytest.fixture
def race_callbacks():
    return _race
