"""
Tests for the snapshot store, load-time migration and demo data.

All stores are memory-backed except the file slot tests, which use tmp_path.
"""

import json
import random

import pytest

from backoffice.config import COLLECTIONS
from backoffice.db import MemorySlot, FileSlot, SnapshotStore, empty_db, parse_ts
from backoffice.migrate import normalize_shape, repair_invoice_affiliates, migrate
from backoffice.seed import seed_db, top_up_demo_floor
from backoffice.risk import risk_level


# =============================================================================
# Load / Save
# =============================================================================


class TestSnapshotLoad:

    def test_cold_load_is_empty_and_persisted(self, store):
        db = store.load()
        assert set(COLLECTIONS) <= set(db)
        assert all(db[name] == [] for name in COLLECTIONS)
        assert json.loads(store.slot.read()) == db

    @pytest.mark.parametrize("payload", ["not json{", "[1, 2, 3]", "null", "42"])
    def test_unreadable_payload_is_replaced(self, payload):
        store = SnapshotStore(MemorySlot(payload))
        db = store.load()
        assert db == empty_db()
        assert json.loads(store.slot.read()) == empty_db()

    def test_missing_and_malformed_collections_are_normalized(self):
        store = SnapshotStore(MemorySlot(json.dumps({"partners": "oops", "legacy": {"keep": 1}})))
        db = store.load()
        assert db["partners"] == []
        assert all(isinstance(db[name], list) for name in COLLECTIONS)
        assert db["legacy"] == {"keep": 1}

    def test_transaction_saves_on_success(self, store):
        with store.transaction() as db:
            db["services"].insert(0, {"id": "s1", "name": "Consulta"})
        assert store.read()["services"][0]["id"] == "s1"

    def test_transaction_discards_on_error(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction() as db:
                db["services"].insert(0, {"id": "s1"})
                raise RuntimeError("boom")
        assert store.read()["services"] == []

    def test_read_returns_independent_copies(self, store):
        first = store.read()
        first["partners"].append({"id": "ghost"})
        assert store.read()["partners"] == []

    def test_reset_replaces_content(self, store):
        with store.transaction() as db:
            db["services"].append({"id": "s1"})
        store.reset()
        assert store.read()["services"] == []


class TestFileSlot:

    def test_missing_file_reads_none(self, tmp_path):
        assert FileSlot(tmp_path / "db.json").read() is None

    def test_write_then_read(self, tmp_path):
        slot = FileSlot(tmp_path / "nested" / "db.json")
        slot.write('{"a": 1}')
        assert slot.read() == '{"a": 1}'
        assert not (tmp_path / "nested" / "db.tmp").exists()

    def test_snapshot_survives_new_store(self, tmp_path):
        path = tmp_path / "db.json"
        first = SnapshotStore(FileSlot(path))
        with first.transaction() as db:
            db["partners"].insert(0, {"id": "p1", "name": "Hospital"})
        second = SnapshotStore(FileSlot(path))
        assert second.read()["partners"][0]["name"] == "Hospital"


# =============================================================================
# Utilities
# =============================================================================


class TestParseTs:

    def test_z_suffix(self):
        assert parse_ts("2024-01-01T00:00:00Z").tzinfo is not None

    def test_naive_is_utc(self):
        assert parse_ts("2024-01-01T10:00:00").utcoffset().total_seconds() == 0

    def test_date_only(self):
        assert parse_ts("2024-01-01").day == 1

    def test_garbage(self):
        assert parse_ts("yesterday") is None
        assert parse_ts(None) is None


# =============================================================================
# Migration
# =============================================================================


def _orphan_db():
    db = empty_db()
    db["partners"] = [{"id": "p1"}, {"id": "p2"}]
    db["affiliates"] = [{"id": "a1", "associatedPartnerIds": ["p2", "p1"]}]
    db["invoices"] = [
        {"id": "i1", "partnerId": "p1"},
        {"id": "i2", "partnerId": "p1", "affiliateId": ""},
        {"id": "i3", "partnerId": "p1", "affiliateId": "a1"},
    ]
    return db


class TestMigration:

    def test_normalize_counts_fixes(self):
        db = {"partners": [], "affiliates": None}
        assert normalize_shape(db) == len(COLLECTIONS) - 1
        assert normalize_shape(db) == 0

    def test_repair_links_orphans_to_first_partner(self, rng):
        db = _orphan_db()
        assert repair_invoice_affiliates(db, rng) == 2
        for inv in db["invoices"]:
            assert inv["affiliateId"] == "a1"
        assert db["invoices"][0]["partnerId"] == "p2"
        assert db["invoices"][1]["partnerId"] == "p2"

    def test_repair_leaves_linked_invoices_alone(self, rng):
        db = _orphan_db()
        repair_invoice_affiliates(db, rng)
        assert db["invoices"][2]["partnerId"] == "p1"

    def test_repair_is_idempotent(self, rng):
        db = _orphan_db()
        repair_invoice_affiliates(db, rng)
        before = json.dumps(db, sort_keys=True)
        assert repair_invoice_affiliates(db, rng) == 0
        assert json.dumps(db, sort_keys=True) == before

    def test_repair_relinks_dangling_affiliate_ids(self, rng):
        db = _orphan_db()
        db["invoices"][2]["affiliateId"] = "deleted"
        assert repair_invoice_affiliates(db, rng) == 3
        assert db["invoices"][2]["affiliateId"] == "a1"
        assert db["invoices"][2]["partnerId"] == "p2"
        before = json.dumps(db, sort_keys=True)
        assert repair_invoice_affiliates(db, rng) == 0
        assert json.dumps(db, sort_keys=True) == before

    def test_repair_without_affiliates_changes_nothing(self, rng):
        db = _orphan_db()
        db["affiliates"] = []
        assert repair_invoice_affiliates(db, rng) == 0
        assert "affiliateId" not in db["invoices"][0]

    def test_load_repairs_and_persists(self):
        store = SnapshotStore(MemorySlot(json.dumps(_orphan_db())), rng=random.Random(1))
        store.load()
        persisted = json.loads(store.slot.read())
        assert all(inv["affiliateId"] for inv in persisted["invoices"])

    def test_migrate_reports_no_change_for_clean_snapshot(self, rng):
        db, changed = migrate(empty_db(), rng)
        assert changed is False


# =============================================================================
# Demo data
# =============================================================================


class TestDemoData:

    def test_cold_demo_load_meets_floors(self, demo_store):
        db = demo_store.load()
        assert len(db["affiliates"]) >= 25
        assert len(db["invoices"]) >= 150
        assert len(db["advances"]) >= 200
        assert len(db["charges"]) >= 400

    def test_demo_invoices_follow_affiliate_partner(self, demo_store):
        db = demo_store.load()
        affiliates = {a["id"]: a for a in db["affiliates"]}
        for inv in db["invoices"]:
            assert inv["partnerId"] == affiliates[inv["affiliateId"]]["associatedPartnerIds"][0]

    def test_demo_advance_rates_only_on_approved_or_settled(self, demo_store):
        for adv in demo_store.load()["advances"]:
            if adv["status"] in ("approved", "settled"):
                assert 2.0 <= adv["appliedRatePct"] <= 22.0
            else:
                assert adv["appliedRatePct"] is None

    def test_demo_risk_levels_match_scores(self, demo_store):
        for row in demo_store.load()["riskScores"]:
            assert row["level"] == risk_level(row["score"])

    def test_top_up_fills_thin_snapshot(self, rng):
        db = empty_db()
        db["partners"] = [{"id": "p1", "city": "São Paulo"}]
        added = top_up_demo_floor(db, rng)
        assert len(db["affiliates"]) == 25
        assert len(db["invoices"]) == 150
        assert len(db["advances"]) == 200
        assert len(db["charges"]) == 400
        assert added == 25 + 150 + 200 + 400
        assert top_up_demo_floor(db, rng) == 0

    def test_top_up_needs_partners(self, rng):
        db = empty_db()
        assert top_up_demo_floor(db, rng) == 0
        assert db["affiliates"] == []

    def test_top_up_keeps_existing_rows_above_threshold(self, rng):
        db = seed_db(rng)
        db["charges"] = db["charges"][:250]
        top_up_demo_floor(db, rng)
        assert len(db["charges"]) == 250

    def test_demo_mode_tops_up_persisted_snapshot(self):
        db = empty_db()
        db["partners"] = [{"id": "p1", "city": "Recife"}]
        store = SnapshotStore(MemorySlot(json.dumps(db)), seed_demo=True, rng=random.Random(3))
        loaded = store.load()
        assert len(loaded["affiliates"]) == 25
        assert all(inv.get("affiliateId") for inv in loaded["invoices"])
