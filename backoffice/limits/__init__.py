"""
HealthPartner Backoffice — Limit Enforcer

Per-partner ceilings on cumulative transacted amount. One row per
(partnerId, type, period); a new day or month starts a fresh row and the old
rows stay behind as history.

check_limit / use_limit are separate calls and a caller between them can
overspend. try_consume runs both inside one store transaction.
"""
from datetime import datetime

from backoffice.config import LIMIT_TYPES, DEFAULT_LIMIT_CEILINGS
from backoffice.db import utcnow, now_iso, ensure_choice, _n
from backoffice.ids import new_id


def period_key(limit_type: str, now: datetime = None) -> str:
    """daily/transaction → YYYY-MM-DD, monthly → YYYY-MM."""
    now = now or utcnow()
    if limit_type == "monthly":
        return now.strftime("%Y-%m")
    return now.date().isoformat()


def _find(db: dict, partner_id: str, limit_type: str, period: str):
    return next((l for l in db["limits"]
                 if l.get("partnerId") == partner_id and l.get("type") == limit_type
                 and l.get("period") == period), None)


def _fits(limit, amount: float) -> bool:
    if limit is None:
        return True  # no ceiling configured
    return _n(limit.get("used")) + amount <= _n(limit.get("amount"))


def _consume(db: dict, partner_id: str, amount: float, limit_type: str, period: str) -> dict:
    limit = _find(db, partner_id, limit_type, period)
    if limit is None:
        limit = {"id": new_id(), "partnerId": partner_id, "type": limit_type,
                 "amount": DEFAULT_LIMIT_CEILINGS[limit_type], "used": 0,
                 "period": period, "createdAt": now_iso()}
        db["limits"].insert(0, limit)
    limit["used"] = _n(limit.get("used")) + amount
    return limit


def check_limit(store, partner_id: str, amount: float, limit_type: str, now: datetime = None) -> bool:
    ensure_choice(limit_type, LIMIT_TYPES, "limit type")
    db = store.read()
    return _fits(_find(db, partner_id, limit_type, period_key(limit_type, now)), amount)


def use_limit(store, partner_id: str, amount: float, limit_type: str, now: datetime = None) -> dict:
    """Add amount to the current period's usage, opening the row with the default ceiling."""
    ensure_choice(limit_type, LIMIT_TYPES, "limit type")
    with store.transaction() as db:
        return _consume(db, partner_id, amount, limit_type, period_key(limit_type, now))


def try_consume(store, partner_id: str, amount: float, limit_type: str, now: datetime = None) -> bool:
    """check_limit + use_limit as one atomic step. Nothing is recorded when it does not fit."""
    ensure_choice(limit_type, LIMIT_TYPES, "limit type")
    period = period_key(limit_type, now)
    with store.transaction() as db:
        if not _fits(_find(db, partner_id, limit_type, period), amount):
            return False
        _consume(db, partner_id, amount, limit_type, period)
        return True


def set_limit(store, partner_id: str, limit_type: str, amount: float, now: datetime = None) -> dict:
    """Configure the ceiling for the current period, keeping any usage already recorded."""
    ensure_choice(limit_type, LIMIT_TYPES, "limit type")
    period = period_key(limit_type, now)
    with store.transaction() as db:
        limit = _find(db, partner_id, limit_type, period)
        if limit is None:
            limit = {"id": new_id(), "partnerId": partner_id, "type": limit_type, "used": 0,
                     "period": period, "createdAt": now_iso()}
            db["limits"].insert(0, limit)
        limit["amount"] = _n(amount)
        return limit
