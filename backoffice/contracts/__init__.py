"""
HealthPartner Backoffice — Contracts
Service, exclusivity and penalty agreements between the marketplace and a
partner (optionally a specific affiliate).
"""
from backoffice.config import CONTRACT_TYPES, CONTRACT_STATUSES
from backoffice.db import now_iso, find_by_id, ensure_choice, utcnow, parse_ts
from backoffice.ids import new_id


def create_contract(store, contract: dict) -> dict:
    created = {"status": "draft", "effectiveDate": now_iso(),
               **{k: v for k, v in contract.items() if k not in ("id", "createdAt")}}
    ensure_choice(created.get("type"), CONTRACT_TYPES, "contract type")
    ensure_choice(created["status"], CONTRACT_STATUSES, "contract status")
    created["id"] = new_id()
    created["createdAt"] = now_iso()
    with store.transaction() as db:
        db["contracts"].insert(0, created)
    return created


def update_contract_status(store, contract_id: str, status: str):
    ensure_choice(status, CONTRACT_STATUSES, "contract status")
    with store.transaction() as db:
        c = find_by_id(db["contracts"], contract_id)
        if c:
            c["status"] = status
        return c


def active_contracts(store, partner_id: str, now=None) -> list:
    """Active contracts of a partner that are in force at `now`."""
    now = parse_ts(now) if now else utcnow()
    out = []
    for c in store.read()["contracts"]:
        if c.get("partnerId") != partner_id or c.get("status") != "active":
            continue
        start, end = parse_ts(c.get("effectiveDate")), parse_ts(c.get("expirationDate"))
        if start and start > now:
            continue
        if end and end < now:
            continue
        out.append(c)
    return out
