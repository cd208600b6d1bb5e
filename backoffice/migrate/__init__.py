"""
HealthPartner Backoffice — Schema Migration & Repair

Runs on every load of a previously persisted snapshot:
  1. normalize_shape: every collection present and list-shaped
  2. top_up_demo_floor: demo mode only, adds synthetic rows to thin collections
  3. repair_invoice_affiliates: always; links orphan invoices to an affiliate

There is no schema-version field. Forward compatibility comes entirely from
step 1 defaulting missing or malformed collections to empty lists.
"""
import random

from backoffice.config import COLLECTIONS


def normalize_shape(db: dict) -> int:
    """Replace missing or non-list collections with []. Returns how many were fixed."""
    fixed = 0
    for name in COLLECTIONS:
        if not isinstance(db.get(name), list):
            db[name] = []
            fixed += 1
    return fixed


def repair_invoice_affiliates(db: dict, rng: random.Random = None) -> int:
    """Link every invoice without a live affiliate to a random existing one.

    An invoice is orphaned when its affiliateId is empty or names an affiliate
    that no longer exists. The invoice partnerId is overwritten with the chosen
    affiliate's first partner. Invoices pointing at an existing affiliate are
    never touched, so a second pass is a no-op.
    """
    r = rng or random
    invoices = db.get("invoices") or []
    affiliates = db.get("affiliates") or []
    known = {a["id"] for a in affiliates if a.get("id")}
    orphans = [inv for inv in invoices if inv.get("affiliateId") not in known]
    if not orphans:
        return 0
    if not affiliates:
        print(f"[Migrate] {len(orphans)} invoices have no affiliate and none exist to link them to")
        return 0

    for inv in orphans:
        aff = r.choice(affiliates)
        inv["affiliateId"] = aff["id"]
        partner_ids = aff.get("associatedPartnerIds") or []
        if partner_ids:
            inv["partnerId"] = partner_ids[0]

    print(f"[Migrate] Linked {len(orphans)} invoices to affiliates")
    return len(orphans)


def migrate(db: dict, rng: random.Random = None, seed_demo: bool = False):
    """Bring a persisted snapshot to the current shape. Returns (db, changed)."""
    changed = normalize_shape(db) > 0
    if seed_demo:
        from backoffice.seed import top_up_demo_floor
        changed = top_up_demo_floor(db, rng) > 0 or changed
    changed = repair_invoice_affiliates(db, rng) > 0 or changed
    return db, changed
