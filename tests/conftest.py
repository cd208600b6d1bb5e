"""Pytest configuration.

Every test runs against an in-memory snapshot store. Environment defaults are
set before the backoffice package is imported so that no data directory is
created during collection.
"""

import os
import random
from datetime import datetime, timezone

os.environ.setdefault("PERSIST_DATA", "false")
os.environ.setdefault("SEED_DEMO", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest

from backoffice.db import MemorySlot, SnapshotStore
from backoffice.ids import new_id

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def store(rng):
    """Empty, memory-backed store."""
    return SnapshotStore(MemorySlot(), seed_demo=False, rng=rng)


@pytest.fixture
def demo_store(rng):
    """Memory-backed store that cold-starts with the demo dataset."""
    return SnapshotStore(MemorySlot(), seed_demo=True, rng=rng)


@pytest.fixture
def partner(store):
    p = {"id": new_id(), "name": "Hospital Teste", "status": "active", "kycStatus": "pending",
         "documents": [], "createdAt": "2024-01-01T00:00:00+00:00"}
    with store.transaction() as db:
        db["partners"].insert(0, p)
    return p


@pytest.fixture
def affiliate(store, partner):
    a = {"id": new_id(), "name": "Dr. Teste", "status": "active", "kycStatus": "pending",
         "associatedPartnerIds": [partner["id"]], "createdAt": "2024-01-01T00:00:00+00:00"}
    with store.transaction() as db:
        db["affiliates"].insert(0, a)
    return a


@pytest.fixture
def add_charge(store):
    """Insert a charge directly into the snapshot."""
    def _add(partner_id, reference_id, amount, status="pending"):
        charge = {"id": new_id(), "partnerId": partner_id, "referenceId": reference_id,
                  "amount": amount, "status": status, "createdAt": "2024-06-01T00:00:00+00:00"}
        with store.transaction() as db:
            db["charges"].insert(0, charge)
        return charge
    return _add
