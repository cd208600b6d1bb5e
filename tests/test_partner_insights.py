"""
Tests for volume reports, risk scores, notifications, contracts and
document validators.
"""

import pytest

from backoffice.db import MemorySlot, SnapshotStore
from backoffice.reports import generate_volume_report, list_volume_reports
from backoffice.risk import risk_level, update_risk_score, get_risk_score
from backoffice.notifications import (
    create_notification, list_notifications, mark_notification_read, mark_all_notifications_read,
)
from backoffice.contracts import create_contract, update_contract_status, active_contracts
from backoffice.validators import (
    validate_cnpj, validate_cpf, validate_tax_id, format_cnpj, format_cpf, format_phone,
)

from conftest import NOW


# =============================================================================
# Volume reports
# =============================================================================


class TestVolumeReport:

    @pytest.fixture
    def charges(self, partner, add_charge):
        add_charge(partner["id"], "R1", 100, "pending")
        add_charge(partner["id"], "R2", 300, "paid")
        add_charge(partner["id"], "R3", 50, "contested")
        add_charge(partner["id"], "R4", 50, "canceled")
        add_charge("someone-else", "R5", 9999, "paid")

    def test_aggregates_partner_charges(self, store, partner, charges):
        report = generate_volume_report(store, partner["id"], "2024-06")
        assert report["partnerName"] == partner["name"]
        assert report["totalVolume"] == 500
        assert report["pendingCharges"] == 100
        assert report["paidCharges"] == 300
        assert report["contestedCharges"] == 50
        assert report["transactionCount"] == 4
        assert report["averageTicket"] == 125
        assert report["lastUpdated"]

    def test_regenerating_replaces_report(self, store, partner, charges):
        generate_volume_report(store, partner["id"], "2024-06")
        generate_volume_report(store, partner["id"], "2024-06")
        assert len(list_volume_reports(store, partner["id"])) == 1

    def test_other_period_adds_report_at_head(self, store, partner, charges):
        generate_volume_report(store, partner["id"], "2024-05")
        generate_volume_report(store, partner["id"], "2024-06")
        assert [r["period"] for r in list_volume_reports(store)] == ["2024-06", "2024-05"]

    def test_unknown_partner(self, store):
        report = generate_volume_report(store, "missing", "2024-06")
        assert report["partnerName"] == "Unknown"
        assert report["transactionCount"] == 0
        assert report["averageTicket"] == 0


# =============================================================================
# Risk
# =============================================================================


class TestRisk:

    @pytest.mark.parametrize("score,level", [
        (1000, "low"), (800, "low"), (799.9, "medium"), (600, "medium"),
        (599, "high"), (400, "high"), (399, "critical"), (0, "critical"),
    ])
    def test_levels(self, score, level):
        assert risk_level(score) == level

    def test_one_row_per_partner(self, store):
        update_risk_score(store, "p1", 850, ["Pagamentos em dia"])
        row = update_risk_score(store, "p1", 450)
        assert row["level"] == "high"
        assert row["factors"] == []
        assert len(store.read()["riskScores"]) == 1
        assert get_risk_score(store, "p1")["score"] == 450

    @pytest.mark.parametrize("raw,clamped", [(1500, 1000), (-20, 0)])
    def test_scores_are_clamped(self, store, raw, clamped):
        row = update_risk_score(store, "p1", raw)
        assert row["score"] == clamped
        assert row["level"] == risk_level(clamped)

    def test_missing_score(self, store):
        assert get_risk_score(store, "nobody") is None


# =============================================================================
# Notifications
# =============================================================================


class _FailingSlot(MemorySlot):
    def write(self, payload):
        raise OSError("disk full")


class TestNotifications:

    def test_create_and_list(self, store):
        n = create_notification(store, {"type": "kyc", "title": "KYC", "message": "Pendente"})
        assert n["priority"] == "medium"
        assert n["read"] is False
        assert list_notifications(store)[0]["id"] == n["id"]

    def test_storage_failure_returns_unsaved_copy(self):
        broken = SnapshotStore(_FailingSlot())
        n = create_notification(broken, {"type": "advance", "title": "Adiantamento", "message": "x"})
        assert n["id"]
        assert n["title"] == "Adiantamento"
        assert n["read"] is False

    def test_invalid_type_does_not_raise(self, store):
        n = create_notification(store, {"type": "weather", "title": "Chuva"})
        assert n["title"] == "Chuva"
        assert list_notifications(store) == []

    def test_mark_read(self, store):
        a = create_notification(store, {"type": "kyc", "title": "A"})
        create_notification(store, {"type": "kyc", "title": "B"})
        assert mark_notification_read(store, a["id"])["read"] is True
        assert [n["title"] for n in list_notifications(store, unread_only=True)] == ["B"]
        assert mark_notification_read(store, "missing") is None

    def test_mark_all_read(self, store):
        create_notification(store, {"type": "kyc", "title": "A"})
        create_notification(store, {"type": "security", "title": "B", "priority": "critical"})
        assert mark_all_notifications_read(store) == 2
        assert mark_all_notifications_read(store) == 0
        assert list_notifications(store, unread_only=True) == []


# =============================================================================
# Contracts
# =============================================================================


class TestContracts:

    def test_create_defaults_to_draft(self, store):
        c = create_contract(store, {"partnerId": "p1", "type": "service", "terms": "Serviços"})
        assert c["status"] == "draft"
        assert c["effectiveDate"]

    def test_invalid_type(self, store):
        with pytest.raises(ValueError, match="contract type"):
            create_contract(store, {"partnerId": "p1", "type": "lease"})

    def test_status_update(self, store):
        c = create_contract(store, {"partnerId": "p1", "type": "penalty"})
        assert update_contract_status(store, c["id"], "active")["status"] == "active"
        assert update_contract_status(store, "missing", "active") is None
        with pytest.raises(ValueError):
            update_contract_status(store, c["id"], "expired")

    def test_active_contracts_respect_window(self, store):
        create_contract(store, {"partnerId": "p1", "type": "service", "status": "active",
                                "effectiveDate": "2024-01-01", "expirationDate": "2024-12-31"})
        create_contract(store, {"partnerId": "p1", "type": "exclusivity", "status": "active",
                                "effectiveDate": "2023-01-01", "expirationDate": "2023-12-31"})
        create_contract(store, {"partnerId": "p1", "type": "penalty", "status": "suspended",
                                "effectiveDate": "2024-01-01"})
        assert [c["type"] for c in active_contracts(store, "p1", now=NOW)] == ["service"]


# =============================================================================
# Validators
# =============================================================================


class TestValidators:

    def test_cnpj(self):
        assert validate_cnpj("11.222.333/0001-81") is True
        assert validate_cnpj("11222333000181") is True
        assert validate_cnpj("11.222.333/0001-82") is False
        assert validate_cnpj("11111111111111") is False
        assert validate_cnpj("123") is False

    def test_cpf(self):
        assert validate_cpf("529.982.247-25") is True
        assert validate_cpf("529.982.247-26") is False
        assert validate_cpf("000.000.000-00") is False
        assert validate_cpf("") is False

    def test_tax_id_picks_by_length(self):
        assert validate_tax_id("52998224725") is True
        assert validate_tax_id("11222333000181") is True

    def test_formatting(self):
        assert format_cnpj("11222333000181") == "11.222.333/0001-81"
        assert format_cpf("52998224725") == "529.982.247-25"
        assert format_phone("11999991111") == "(11) 99999-1111"
        assert format_phone("1133334444") == "(11) 3333-4444"
        assert format_phone("123") == "123"
