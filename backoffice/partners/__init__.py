"""
HealthPartner Backoffice — Partners, Affiliates, Services & Agenda

Partner KYC and append-only document trail, affiliate onboarding
(KYC approval hands out a permanent AFF- code), partner associations,
service availability and daily agenda capacity.
"""
from backoffice.config import KYC_STATUSES
from backoffice.db import now_iso, find_by_id, ensure_choice
from backoffice.ids import new_id, affiliate_code
from backoffice.repositories import Repository, Repositories

AFFILIATE_FIELDS = ("name", "taxId", "registration", "specialty", "email", "phone",
                    "city", "address", "associatedPartnerIds", "status", "kycStatus")


# ============================================================
# PARTNERS
# ============================================================
def set_partner_kyc(store, partner_id: str, kyc_status: str):
    ensure_choice(kyc_status, KYC_STATUSES, "KYC status")
    with store.transaction() as db:
        p = find_by_id(db["partners"], partner_id)
        if p:
            p["kycStatus"] = kyc_status
        return p


def add_partner_document(store, partner_id: str, name: str, doc_type: str):
    """Append a document to the partner trail. Documents are never replaced or removed."""
    with store.transaction() as db:
        p = find_by_id(db["partners"], partner_id)
        if not p:
            return None
        doc = {"id": new_id(), "name": name, "type": doc_type, "uploadedAt": now_iso()}
        p.setdefault("documents", []).append(doc)
        return doc


def delete_partner(store, partner_id: str) -> bool:
    return Repositories(store).partners.delete(partner_id)


# ============================================================
# AFFILIATES
# ============================================================
def create_affiliate(store, data: dict) -> dict:
    """New affiliate, always without a code. Codes are only handed out on approval."""
    fields = {k: data[k] for k in AFFILIATE_FIELDS if k in data}
    fields.setdefault("associatedPartnerIds", [])
    return Repositories(store).affiliates.upsert(fields)


def approve_affiliate(store, affiliate_id: str):
    with store.transaction() as db:
        a = find_by_id(db["affiliates"], affiliate_id)
        if not a:
            return None
        a["kycStatus"] = "approved"
        if not a.get("code"):
            taken = {x.get("code") for x in db["affiliates"]}
            code = affiliate_code(store.rng)
            while code in taken:
                code = affiliate_code(store.rng)
            a["code"] = code
        return a


def reject_affiliate(store, affiliate_id: str):
    with store.transaction() as db:
        a = find_by_id(db["affiliates"], affiliate_id)
        if a:
            a["kycStatus"] = "rejected"
        return a


def associate_affiliate_to_partners(store, affiliate_id: str, partner_ids: list):
    """Replace the affiliate's partner list. The first entry is its primary partner.

    Invoices of the affiliate follow the new primary partner.
    """
    with store.transaction() as db:
        a = find_by_id(db["affiliates"], affiliate_id)
        if a:
            ids = list(dict.fromkeys(partner_ids))
            a["associatedPartnerIds"] = ids
            if ids:
                for inv in db["invoices"]:
                    if inv.get("affiliateId") == affiliate_id:
                        inv["partnerId"] = ids[0]
        return a


def delete_affiliate(store, affiliate_id: str) -> bool:
    return Repositories(store).affiliates.delete(affiliate_id)


# ============================================================
# SERVICES
# ============================================================
def services_for(store, partner_id: str, affiliate_id: str = None) -> list:
    """Services offered at a partner, honoring affiliate exclusivity lists."""
    out = []
    for s in store.read()["services"]:
        if partner_id not in (s.get("partnerIds") or []):
            continue
        exclusive = s.get("exclusiveAffiliateIds") or []
        if exclusive and affiliate_id not in exclusive:
            continue
        out.append(s)
    return out


# ============================================================
# AGENDA
# ============================================================
def list_agenda(store, partner_id: str = None) -> list:
    repo = Repository(store, "agendas")
    return repo.list(partnerId=partner_id) if partner_id else repo.list()


def upsert_agenda(store, slot: dict):
    return Repositories(store).agendas.upsert(slot)
