"""
HealthPartner Backoffice — Entity Repositories

One Repository per snapshot collection. Every call is a full
load → mutate → save through the store handle it was built with.

Upsert semantics (all collections):
  - no "id"            → create; collection defaults fill missing fields,
                         the new record goes to the head of the collection
  - "id" that exists   → shallow merge of the given fields
  - "id" that is unknown → silent no-op, returns None

Protected fields are dropped from upsert input on both paths. They are owned
by dedicated operations (partner documents, affiliate codes) or by the store
(createdAt).
"""
from backoffice.config import (
    PARTNER_STATUSES, KYC_STATUSES, CHARGE_STATUSES, ADVANCE_STATUSES, SETTLEMENT_STATUSES,
    INSTRUCTION_STATUSES, RECONCILIATION_STATUSES, BANK_INTEGRATION_STATUSES, INTEGRATION_TYPES,
    NOTIFICATION_TYPES, NOTIFICATION_PRIORITIES, CONTRACT_TYPES, CONTRACT_STATUSES, LIMIT_TYPES,
    INVOICE_STATUSES, DEFAULT_LIMIT_CEILINGS,
)
from backoffice.db import now_iso, find_by_id, ensure_choice
from backoffice.ids import new_id
from backoffice.limits import period_key
from backoffice.reconciliation import settle_match


def _filter_match(value, wanted) -> bool:
    """Query-string filters arrive as text; compare them against booleans and numbers too."""
    if not isinstance(wanted, str) or isinstance(value, str):
        return value == wanted
    if isinstance(value, bool):
        return wanted.lower() == str(value).lower()
    if isinstance(value, (int, float)):
        try:
            return float(wanted) == value
        except ValueError:
            return False
    return False


class Repository:
    def __init__(self, store, collection: str, defaults=None, protected=(),
                 stamp: str = None, prepare=None, read_only: bool = False):
        self.store = store
        self.collection = collection
        self.defaults = defaults
        self.protected = tuple(protected)
        self.stamp = stamp
        self.prepare = prepare
        self.read_only = read_only

    def list(self, **filters) -> list:
        items = self.store.read()[self.collection]
        if not filters:
            return items
        return [x for x in items if all(_filter_match(x.get(k), v) for k, v in filters.items())]

    def get(self, item_id: str):
        return find_by_id(self.store.read()[self.collection], item_id)

    def upsert(self, record: dict):
        if self.read_only:
            return None
        fields = {k: v for k, v in record.items() if k not in self.protected}
        item_id = fields.pop("id", None)

        with self.store.transaction() as db:
            items = db[self.collection]
            if item_id:
                existing = find_by_id(items, item_id)
                if existing is None:
                    return None
                merged = {**existing, **fields}
                if self.stamp:
                    merged[self.stamp] = now_iso()
                if self.prepare and not self.prepare(db, merged):
                    return None
                existing.clear()
                existing.update(merged)
                return existing

            created = {**(self.defaults() if self.defaults else {}), **fields, "id": new_id()}
            if self.stamp:
                created[self.stamp] = now_iso()
            if self.prepare and not self.prepare(db, created):
                return None
            items.insert(0, created)
            return created

    def delete(self, item_id: str) -> bool:
        if self.read_only:
            return False
        with self.store.transaction() as db:
            items = db[self.collection]
            for idx, item in enumerate(items):
                if item.get("id") == item_id:
                    del items[idx]
                    return True
            return False


# ============================================================
# INVARIANT HOOKS
# ============================================================
def link_invoice_partner(db: dict, invoice: dict) -> bool:
    """Invoices always belong to an affiliate and inherit its first partner."""
    aff = find_by_id(db["affiliates"], invoice.get("affiliateId"))
    if aff is None:
        return False
    partner_ids = aff.get("associatedPartnerIds") or []
    if partner_ids:
        invoice["partnerId"] = partner_ids[0]
    return True


def _clear_rate_when_pending(db: dict, advance: dict) -> bool:
    if advance.get("status") not in ("approved", "settled"):
        advance["appliedRatePct"] = None
    return True


def _stamp_execution(db: dict, instruction: dict) -> bool:
    """executedDate only lives on confirmed/failed instructions."""
    if instruction.get("status") in ("confirmed", "failed"):
        if not instruction.get("executedDate"):
            instruction["executedDate"] = now_iso()
    else:
        instruction["executedDate"] = None
    return True


def _settle_reconciliation(db: dict, item: dict) -> bool:
    settle_match(item)
    return True


def _one_limit_per_period(db: dict, limit: dict) -> bool:
    """A limit row is keyed by (partnerId, type, period); a second row for the same key is rejected."""
    limit_type = limit["type"]
    limit.setdefault("period", period_key(limit_type))
    if limit.get("amount") is None:
        limit["amount"] = DEFAULT_LIMIT_CEILINGS[limit_type]
    for other in db["limits"]:
        if other.get("id") == limit.get("id"):
            continue
        key = (limit.get("partnerId"), limit_type, limit["period"])
        if (other.get("partnerId"), other.get("type"), other.get("period")) == key:
            raise ValueError(f"Limit already exists for partner {limit.get('partnerId')!r}, "
                             f"{limit_type} {limit['period']}")
    return True


def choices(required=(), **fields):
    """Prepare hook rejecting enum values outside their choices.

    Fields named in `required` must be present; the others are only checked
    when set.
    """
    def check(db: dict, record: dict) -> bool:
        for field, allowed in fields.items():
            if field in required or record.get(field) is not None:
                ensure_choice(record.get(field), allowed, field)
        return True
    return check


def chain(*hooks):
    """Run prepare hooks in order; the first that declines stops the write."""
    def run(db: dict, record: dict) -> bool:
        return all(hook(db, record) for hook in hooks)
    return run


# ============================================================
# COLLECTION DEFAULTS
# ============================================================
def _partner_defaults():
    return {"status": "active", "kycStatus": "pending", "documents": [], "contracts": 0,
            "affiliatesCount": 0, "volumeMonthly": 0, "createdAt": now_iso()}


def _affiliate_defaults():
    return {"status": "active", "kycStatus": "pending", "associatedPartnerIds": [],
            "createdAt": now_iso()}


class Repositories:
    """Bundle of every collection repository bound to one store."""

    # URL segment -> attribute
    ROUTES = {
        "partners": "partners",
        "affiliates": "affiliates",
        "services": "services",
        "rates": "rates",
        "charges": "charges",
        "advances": "advances",
        "settlements": "settlements",
        "reconciliation": "reconciliation",
        "bank-integrations": "bank_integrations",
        "settlement-instructions": "settlement_instructions",
        "volume-reports": "volume_reports",
        "agendas": "agendas",
        "notifications": "notifications",
        "contracts": "contracts",
        "risk-scores": "risk_scores",
        "limits": "limits",
        "invoices": "invoices",
    }

    def __init__(self, store):
        self.store = store
        self.partners = Repository(store, "partners", _partner_defaults, protected=("documents", "createdAt"),
                                   prepare=choices(status=PARTNER_STATUSES, kycStatus=KYC_STATUSES))
        self.affiliates = Repository(store, "affiliates", _affiliate_defaults, protected=("code", "createdAt"),
                                     prepare=choices(status=PARTNER_STATUSES, kycStatus=KYC_STATUSES))
        self.services = Repository(store, "services", lambda: {"partnerIds": []})
        self.rates = Repository(store, "rates", lambda: {"isActive": True, "effectiveDate": now_iso()},
                                stamp="updatedAt")
        self.charges = Repository(store, "charges", lambda: {"status": "pending", "createdAt": now_iso()},
                                  protected=("createdAt",), prepare=choices(status=CHARGE_STATUSES))
        self.advances = Repository(store, "advances",
                                   lambda: {"status": "requested", "requestedAt": now_iso(), "appliedRatePct": None},
                                   prepare=chain(choices(status=ADVANCE_STATUSES), _clear_rate_when_pending))
        self.settlements = Repository(store, "settlements", lambda: {"status": "scheduled"},
                                      prepare=choices(status=SETTLEMENT_STATUSES))
        self.reconciliation = Repository(store, "reconciliation",
                                         lambda: {"matched": False, "status": "pending", "transactionDate": now_iso()},
                                         prepare=chain(choices(status=RECONCILIATION_STATUSES),
                                                       _settle_reconciliation))
        self.bank_integrations = Repository(store, "bankIntegrations",
                                            lambda: {"status": "active", "credentials": {}, "config": {}},
                                            stamp="lastSync",
                                            prepare=choices(status=BANK_INTEGRATION_STATUSES,
                                                            integrationType=INTEGRATION_TYPES))
        self.settlement_instructions = Repository(store, "settlementInstructions",
                                                  lambda: {"status": "pending", "executedDate": None},
                                                  prepare=chain(choices(status=INSTRUCTION_STATUSES),
                                                                _stamp_execution))
        self.volume_reports = Repository(store, "volumeReports", read_only=True)
        self.agendas = Repository(store, "agendas", lambda: {"capacity": 0, "booked": 0})
        self.notifications = Repository(store, "notifications",
                                        lambda: {"read": False, "priority": "medium", "createdAt": now_iso()},
                                        protected=("createdAt",),
                                        prepare=choices(type=NOTIFICATION_TYPES, priority=NOTIFICATION_PRIORITIES))
        self.contracts = Repository(store, "contracts", lambda: {"status": "draft", "createdAt": now_iso()},
                                    protected=("createdAt",),
                                    prepare=choices(type=CONTRACT_TYPES, status=CONTRACT_STATUSES))
        self.risk_scores = Repository(store, "riskScores", read_only=True)
        self.limits = Repository(store, "limits", lambda: {"used": 0, "createdAt": now_iso()},
                                 protected=("createdAt",),
                                 prepare=chain(choices(required=("type",), type=LIMIT_TYPES),
                                               _one_limit_per_period))
        self.invoices = Repository(store, "invoices", lambda: {"status": "pending", "createdAt": now_iso()},
                                   protected=("createdAt",),
                                   prepare=chain(choices(status=INVOICE_STATUSES), link_invoice_partner))

    def route(self, segment: str):
        attr = self.ROUTES.get(segment)
        return getattr(self, attr) if attr else None
