"""
HealthPartner Backoffice — Reconciliation Matcher

Matches bank-reported transactions against internal charges by exact
referenceId. An amount difference under RECONCILIATION_TOLERANCE counts as
a match.

Item status:
  matched      : charge found, amounts agree
  discrepancy  : charge found, amounts differ
  pending      : no charge with that reference (yet)
  resolved     : closed manually, never re-evaluated

auto_match_reconciliation() re-runs pending/discrepancy items so charges that
arrive after the bank file still get picked up.
"""
from backoffice.config import RECONCILIATION_TOLERANCE, RECONCILIATION_STATUSES
from backoffice.db import now_iso, find_by_id, ensure_choice, _n
from backoffice.ids import new_id


def _charge_for(db: dict, reference_id: str):
    if not reference_id:
        return None
    return next((c for c in db["charges"] if c.get("referenceId") == reference_id), None)


def settle_match(item: dict) -> dict:
    """Derive matched, and status unless resolved, from the two amounts."""
    system = item.get("amountSystem")
    matched = system is not None and abs(_n(system) - _n(item.get("amountFile"))) < RECONCILIATION_TOLERANCE
    item["matched"] = matched
    if item.get("status") != "resolved":
        if system is None:
            item["status"] = "pending"
        else:
            item["status"] = "matched" if matched else "discrepancy"
    return item


def _evaluate(item: dict, charge) -> dict:
    """Fill system-side fields of an item from the charge it points to."""
    if charge is None:
        item["amountSystem"] = None
    else:
        item["amountSystem"] = _n(charge.get("amount"))
        item["partnerId"] = charge.get("partnerId")
    return settle_match(item)


def process_reconciliation_file(store, entries: list) -> list:
    """Reconcile one bank file. entries: [{referenceId, amount, transactionDate, bankCode}]."""
    created = []
    with store.transaction() as db:
        for entry in entries:
            item = {
                "id": new_id(),
                "referenceId": entry.get("referenceId"),
                "amountFile": _n(entry.get("amount")),
                "partnerId": None,
                "transactionDate": entry.get("transactionDate") or now_iso(),
                "bankCode": entry.get("bankCode"),
            }
            _evaluate(item, _charge_for(db, item["referenceId"]))
            db["reconciliation"].insert(0, item)
            created.append(item)
    return created


def auto_match_reconciliation(store) -> int:
    """Re-evaluate open items against current charges. Returns how many became matched."""
    newly_matched = 0
    with store.transaction() as db:
        for item in db["reconciliation"]:
            if item.get("matched") or item.get("status") == "resolved":
                continue
            charge = _charge_for(db, item.get("referenceId"))
            if charge is None:
                continue
            _evaluate(item, charge)
            if item["matched"]:
                newly_matched += 1
    return newly_matched


def add_reconciliation_items(store, items: list) -> list:
    """Store pre-built items. matched and status are derived from the amounts."""
    created = []
    with store.transaction() as db:
        for raw in items:
            item = {"matched": False, "status": "pending", "transactionDate": now_iso(),
                    **raw, "id": raw.get("id") or new_id()}
            ensure_choice(item["status"], RECONCILIATION_STATUSES, "reconciliation status")
            item["amountFile"] = _n(item.get("amountFile"))
            if item.get("amountSystem") is not None:
                item["amountSystem"] = _n(item["amountSystem"])
            settle_match(item)
            created.append(item)
        db["reconciliation"][0:0] = created
    return created


def update_reconciliation_item_status(store, item_id: str, status: str, note: str = None):
    ensure_choice(status, RECONCILIATION_STATUSES, "reconciliation status")
    with store.transaction() as db:
        item = find_by_id(db["reconciliation"], item_id)
        if not item:
            return None
        item["status"] = status
        if note is not None:
            item["note"] = note
        return item


def parse_reconciliation_text(text: str) -> list:
    """Parse bank export lines into file entries.

    Columns: referenceId, amount[, transactionDate[, bankCode]]. Lines are
    comma-separated, or semicolon-separated with either a decimal comma
    ("REF001;1.234,56") or a decimal point ("REF001;100.50"). Blank lines are
    skipped; an unparseable amount is 0.
    """
    entries = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        if ";" in line:
            cols = [c.strip() for c in line.split(";")]
            # "1.234,56": dots group thousands only when a decimal comma is present
            if len(cols) > 1 and "," in cols[1]:
                cols[1] = cols[1].replace(".", "").replace(",", ".")
        else:
            cols = [c.strip() for c in line.split(",")]
        entries.append({
            "referenceId": cols[0],
            "amount": _n(cols[1]) if len(cols) > 1 else 0.0,
            "transactionDate": cols[2] if len(cols) > 2 and cols[2] else now_iso(),
            "bankCode": cols[3] if len(cols) > 3 and cols[3] else None,
        })
    return entries
