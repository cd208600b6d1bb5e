"""
HealthPartner Backoffice — Rate Resolver

Fee schedules per (partner, service). A rate applies to an amount when it is
active, already effective, not yet expired, and the amount falls inside its
[minAmount, maxAmount] band (a missing bound is open).

Overlapping active rates for the same pair are allowed. Resolution takes the
first match in collection order, which puts the most recently created rate
first. find_overlapping_rates() reports such overlaps without rejecting them.
"""
from datetime import datetime

from backoffice.db import utcnow, parse_ts, _n
from backoffice.repositories import Repositories


def _in_band(rate: dict, amount: float) -> bool:
    lo, hi = rate.get("minAmount"), rate.get("maxAmount")
    if lo is not None and amount < lo:
        return False
    if hi is not None and amount > hi:
        return False
    return True


def rate_applies(rate: dict, partner_id: str, service_id: str, amount: float, now: datetime) -> bool:
    if rate.get("partnerId") != partner_id or rate.get("serviceId") != service_id:
        return False
    if not rate.get("isActive"):
        return False
    effective = parse_ts(rate.get("effectiveDate"))
    if effective is None or effective > now:
        return False
    expires = parse_ts(rate.get("expirationDate"))
    if rate.get("expirationDate") and (expires is None or expires < now):
        return False
    return _in_band(rate, amount)


def get_active_rate(store, partner_id: str, service_id: str, amount: float, now: datetime = None):
    """First applicable rate in collection order, or None."""
    now = parse_ts(now) if now else utcnow()
    for rate in store.read()["rates"]:
        if rate_applies(rate, partner_id, service_id, amount, now):
            return rate
    return None


def upsert_rate(store, config: dict, updated_by: str = "system"):
    return Repositories(store).rates.upsert({**config, "updatedBy": updated_by})


def quote_fee(rate: dict, amount: float) -> float:
    """Percentage plus flat fee for one amount, in cents precision."""
    return round(_n(amount) * _n(rate.get("baseRatePct")) / 100 + _n(rate.get("fixedFee")), 2)


def _window(rate):
    start = parse_ts(rate.get("effectiveDate"))
    end = parse_ts(rate.get("expirationDate"))
    return start, end


def _overlaps(a: dict, b: dict) -> bool:
    a_start, a_end = _window(a)
    b_start, b_end = _window(b)
    if a_end and b_start and a_end < b_start:
        return False
    if b_end and a_start and b_end < a_start:
        return False
    a_lo, a_hi = a.get("minAmount"), a.get("maxAmount")
    b_lo, b_hi = b.get("minAmount"), b.get("maxAmount")
    if a_hi is not None and b_lo is not None and a_hi < b_lo:
        return False
    if b_hi is not None and a_lo is not None and b_hi < a_lo:
        return False
    return True


def find_overlapping_rates(store, partner_id: str = None, service_id: str = None) -> list:
    """Pairs of active rates on the same (partner, service) whose windows and bands overlap."""
    active = [r for r in store.read()["rates"] if r.get("isActive")
              and (partner_id is None or r.get("partnerId") == partner_id)
              and (service_id is None or r.get("serviceId") == service_id)]
    pairs = []
    for i, a in enumerate(active):
        for b in active[i + 1:]:
            if (a.get("partnerId"), a.get("serviceId")) != (b.get("partnerId"), b.get("serviceId")):
                continue
            if _overlaps(a, b):
                pairs.append({"partnerId": a.get("partnerId"), "serviceId": a.get("serviceId"),
                              "rateIds": [a["id"], b["id"]], "winner": a["id"]})
    return pairs
