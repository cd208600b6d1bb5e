"""
HealthPartner Backoffice — Receivables Operations

Charges, cash-advance requests, settlements, settlement instructions,
bank integrations and invoices (notas fiscais).

Invoice invariant: every invoice carries an affiliateId, and its partnerId is
that affiliate's first associated partner. create_invoice enforces it on
write; migrate.repair_invoice_affiliates heals older snapshots on load.
"""
from backoffice.config import (
    ADVANCE_STATUSES, SETTLEMENT_STATUSES, INSTRUCTION_STATUSES,
    BANK_INTEGRATION_STATUSES, INVOICE_STATUSES,
)
from backoffice.db import now_iso, find_by_id, ensure_choice, _n
from backoffice.ids import new_id
from backoffice.migrate import repair_invoice_affiliates
from backoffice.repositories import Repositories, link_invoice_partner


# ============================================================
# CHARGES
# ============================================================
def upsert_charge(store, charge: dict):
    return Repositories(store).charges.upsert(charge)


# ============================================================
# ADVANCES
# ============================================================
def create_advance(store, partner_id: str, amount: float, affiliate_id: str = None) -> dict:
    advance = {
        "id": new_id(),
        "partnerId": partner_id,
        "affiliateId": affiliate_id,
        "amount": _n(amount),
        "requestedAt": now_iso(),
        "status": "requested",
        "appliedRatePct": None,
    }
    with store.transaction() as db:
        db["advances"].insert(0, advance)
    return advance


def set_advance_status(store, advance_id: str, status: str, rate_pct: float = None):
    """Move an advance through its lifecycle. appliedRatePct only lives on approved/settled."""
    ensure_choice(status, ADVANCE_STATUSES, "advance status")
    with store.transaction() as db:
        a = find_by_id(db["advances"], advance_id)
        if not a:
            return None
        a["status"] = status
        if status in ("approved", "settled"):
            if rate_pct is not None:
                a["appliedRatePct"] = float(rate_pct)
        else:
            a["appliedRatePct"] = None
        return a


# ============================================================
# SETTLEMENTS
# ============================================================
def set_settlement_status(store, settlement_id: str, status: str):
    ensure_choice(status, SETTLEMENT_STATUSES, "settlement status")
    with store.transaction() as db:
        s = find_by_id(db["settlements"], settlement_id)
        if s:
            s["status"] = status
        return s


def create_settlement_instruction(store, instruction: dict) -> dict:
    created = {"status": "pending", "executedDate": None, **instruction, "id": new_id()}
    ensure_choice(created["status"], INSTRUCTION_STATUSES, "instruction status")
    with store.transaction() as db:
        db["settlementInstructions"].insert(0, created)
    return created


def update_settlement_instruction_status(store, instruction_id: str, status: str):
    """confirmed/failed are terminal and stamp executedDate."""
    ensure_choice(status, INSTRUCTION_STATUSES, "instruction status")
    with store.transaction() as db:
        ins = find_by_id(db["settlementInstructions"], instruction_id)
        if not ins:
            return None
        ins["status"] = status
        if status in ("confirmed", "failed"):
            ins["executedDate"] = now_iso()
        return ins


# ============================================================
# BANK INTEGRATIONS
# ============================================================
def create_bank_integration(store, integration: dict) -> dict:
    return Repositories(store).bank_integrations.upsert({k: v for k, v in integration.items() if k != "id"})


def update_bank_integration_status(store, integration_id: str, status: str):
    ensure_choice(status, BANK_INTEGRATION_STATUSES, "integration status")
    with store.transaction() as db:
        bi = find_by_id(db["bankIntegrations"], integration_id)
        if bi:
            bi["status"] = status
            bi["lastSync"] = now_iso()
        return bi


# ============================================================
# INVOICES
# ============================================================
def list_invoices(store, status: str = None) -> list:
    invoices = store.read()["invoices"]
    return [i for i in invoices if i.get("status") == status] if status else invoices


def create_invoice(store, data: dict):
    """Create an invoice for an existing affiliate. Unknown affiliate → None, nothing stored."""
    invoice = {k: v for k, v in data.items() if k not in ("id", "createdAt")}
    invoice.setdefault("status", "pending")
    ensure_choice(invoice["status"], INVOICE_STATUSES, "invoice status")
    invoice["id"] = new_id()
    invoice["createdAt"] = now_iso()
    with store.transaction() as db:
        if not link_invoice_partner(db, invoice):
            return None
        db["invoices"].insert(0, invoice)
        return invoice


def set_invoice_status(store, invoice_id: str, status: str):
    ensure_choice(status, INVOICE_STATUSES, "invoice status")
    with store.transaction() as db:
        inv = find_by_id(db["invoices"], invoice_id)
        if inv:
            inv["status"] = status
        return inv


def ensure_invoice_affiliates(store) -> int:
    """On-demand repair pass. Returns how many invoices were linked."""
    with store.transaction() as db:
        return repair_invoice_affiliates(db, store.rng)
