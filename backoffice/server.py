"""
HealthPartner Backoffice — HTTP API
v1.4 — receivables back-office for the health-services marketplace: partners,
        affiliates, rates, limits, advances, settlements, reconciliation
"""

import os

from fastapi import FastAPI, HTTPException, Body, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice.config import VERSION, RESET_ON_START, AUTH_ENABLED, LIMIT_TYPES
from backoffice.db import build_store, _n
from backoffice.repositories import Repositories
from backoffice.auth import sign_in, get_current_user, require_role
from backoffice.partners import (
    set_partner_kyc, add_partner_document, delete_partner,
    create_affiliate, approve_affiliate, reject_affiliate, associate_affiliate_to_partners,
    services_for, list_agenda, upsert_agenda,
)
from backoffice.receivables import (
    upsert_charge, create_advance, set_advance_status, set_settlement_status,
    create_settlement_instruction, update_settlement_instruction_status,
    create_bank_integration, update_bank_integration_status,
    list_invoices, create_invoice, set_invoice_status, ensure_invoice_affiliates,
)
from backoffice.rates import get_active_rate, upsert_rate, quote_fee, find_overlapping_rates
from backoffice.limits import check_limit, use_limit, try_consume, set_limit
from backoffice.reconciliation import (
    process_reconciliation_file, auto_match_reconciliation, add_reconciliation_items,
    update_reconciliation_item_status, parse_reconciliation_text,
)
from backoffice.reports import generate_volume_report, list_volume_reports
from backoffice.risk import update_risk_score, get_risk_score
from backoffice.notifications import (
    create_notification, list_notifications, mark_notification_read, mark_all_notifications_read,
)
from backoffice.contracts import create_contract, update_contract_status, active_contracts
from backoffice.validators import validate_tax_id, format_cnpj, format_cpf

app = FastAPI(title="HealthPartner Backoffice", version=VERSION)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

operator = Depends(require_role("operator"))
reader = Depends(get_current_user)

# ============================================================
# STORE
# ============================================================
_store = None

def get_store():
    global _store
    if _store is None:
        _store = build_store()
        if RESET_ON_START:
            print("[DB] RESET_ON_START set, replacing stored snapshot")
            _store.reset()
    return _store

def _found(value, what: str = "Not found"):
    if value is None or value is False:
        raise HTTPException(404, what)
    return value

def _limit_type(value: str) -> str:
    if value not in LIMIT_TYPES:
        raise HTTPException(400, f"Invalid limit type. Must be one of: {', '.join(LIMIT_TYPES)}")
    return value

@app.exception_handler(ValueError)
async def invalid_value(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})

# ============================================================
# HEALTH & AUTH
# ============================================================
@app.get("/api/health")
async def health():
    return {"status": "ok", "product": "HealthPartner Backoffice", "version": VERSION,
            "auth": "enabled" if AUTH_ENABLED else "disabled"}

@app.post("/api/auth/sign-in")
async def auth_sign_in(body: dict = Body(...)):
    return sign_in(body.get("role"))

@app.get("/api/auth/me")
async def auth_me(user: dict = reader):
    return user

# ============================================================
# PARTNERS & AFFILIATES
# ============================================================
@app.post("/api/partners/{pid}/kyc")
async def partner_kyc(pid: str, body: dict = Body(...), user: dict = operator):
    return {"success": True, "partner": _found(set_partner_kyc(get_store(), pid, body.get("kycStatus")))}

@app.post("/api/partners/{pid}/documents")
async def partner_document(pid: str, body: dict = Body(...), user: dict = operator):
    doc = add_partner_document(get_store(), pid, body.get("name"), body.get("type"))
    return {"success": True, "document": _found(doc, "Partner not found")}

@app.delete("/api/partners/{pid}")
async def partner_delete(pid: str, user: dict = operator):
    _found(delete_partner(get_store(), pid))
    return {"success": True}

@app.get("/api/partners/{pid}/services")
async def partner_services(pid: str, affiliateId: str = None, user: dict = reader):
    return services_for(get_store(), pid, affiliateId)

@app.get("/api/partners/{pid}/risk-score")
async def partner_risk_score(pid: str, user: dict = reader):
    return _found(get_risk_score(get_store(), pid))

@app.get("/api/partners/{pid}/contracts/active")
async def partner_active_contracts(pid: str, user: dict = reader):
    return active_contracts(get_store(), pid)

@app.post("/api/affiliates")
async def affiliate_create(body: dict = Body(...), user: dict = operator):
    return {"success": True, "affiliate": create_affiliate(get_store(), body)}

@app.post("/api/affiliates/{aid}/approve")
async def affiliate_approve(aid: str, user: dict = operator):
    store = get_store()
    a = _found(approve_affiliate(store, aid))
    create_notification(store, {"type": "kyc", "title": "Affiliate approved",
        "message": f"{a.get('name')} approved with code {a['code']}", "priority": "low",
        "affiliateId": aid})
    return {"success": True, "affiliate": a}

@app.post("/api/affiliates/{aid}/reject")
async def affiliate_reject(aid: str, user: dict = operator):
    return {"success": True, "affiliate": _found(reject_affiliate(get_store(), aid))}

@app.post("/api/affiliates/{aid}/partners")
async def affiliate_partners(aid: str, body: dict = Body(...), user: dict = operator):
    a = associate_affiliate_to_partners(get_store(), aid, body.get("partnerIds") or [])
    return {"success": True, "affiliate": _found(a)}

@app.get("/api/agendas")
async def agenda_list(partnerId: str = None, user: dict = reader):
    return list_agenda(get_store(), partnerId)

@app.post("/api/agendas")
async def agenda_upsert(body: dict = Body(...), user: dict = operator):
    return {"success": True, "agenda": _found(upsert_agenda(get_store(), body))}

# ============================================================
# RECEIVABLES
# ============================================================
@app.post("/api/charges")
async def charge_upsert(body: dict = Body(...), user: dict = operator):
    return {"success": True, "charge": _found(upsert_charge(get_store(), body))}

@app.post("/api/advances")
async def advance_create(body: dict = Body(...), user: dict = operator):
    if _n(body.get("amount")) <= 0:
        raise HTTPException(400, "Advance amount must be positive")
    adv = create_advance(get_store(), body.get("partnerId"), body.get("amount"), body.get("affiliateId"))
    return {"success": True, "advance": adv}

@app.post("/api/advances/{adv_id}/status")
async def advance_status(adv_id: str, body: dict = Body(...), user: dict = operator):
    store = get_store()
    adv = _found(set_advance_status(store, adv_id, body.get("status"), body.get("ratePct")))
    create_notification(store, {"type": "advance", "title": f"Advance {adv['status']}",
        "message": f"Advance of {adv.get('amount')} is now {adv['status']}",
        "partnerId": adv.get("partnerId")})
    return {"success": True, "advance": adv}

@app.post("/api/settlements/{sid}/status")
async def settlement_status(sid: str, body: dict = Body(...), user: dict = operator):
    return {"success": True, "settlement": _found(set_settlement_status(get_store(), sid, body.get("status")))}

@app.post("/api/settlement-instructions")
async def instruction_create(body: dict = Body(...), user: dict = operator):
    return {"success": True, "instruction": create_settlement_instruction(get_store(), body)}

@app.post("/api/settlement-instructions/{iid}/status")
async def instruction_status(iid: str, body: dict = Body(...), user: dict = operator):
    store = get_store()
    ins = _found(update_settlement_instruction_status(store, iid, body.get("status")))
    if ins["status"] == "failed":
        create_notification(store, {"type": "settlement", "title": "Settlement instruction failed",
            "message": f"Instruction {iid} for {ins.get('amount')} failed", "priority": "high",
            "partnerId": ins.get("partnerId")})
    return {"success": True, "instruction": ins}

@app.post("/api/bank-integrations")
async def integration_create(body: dict = Body(...), user: dict = operator):
    return {"success": True, "integration": create_bank_integration(get_store(), body)}

@app.post("/api/bank-integrations/{bid}/status")
async def integration_status(bid: str, body: dict = Body(...), user: dict = operator):
    store = get_store()
    bi = _found(update_bank_integration_status(store, bid, body.get("status")))
    if bi["status"] == "error":
        create_notification(store, {"type": "security", "title": "Bank integration error",
            "message": f"{bi.get('bankName')} ({bi.get('bankCode')}) reported an error", "priority": "high"})
    return {"success": True, "integration": bi}

@app.get("/api/invoices")
async def invoice_list(status: str = None, user: dict = reader):
    return list_invoices(get_store(), status)

@app.post("/api/invoices")
async def invoice_create(body: dict = Body(...), user: dict = operator):
    return {"success": True, "invoice": _found(create_invoice(get_store(), body), "Affiliate not found")}

@app.post("/api/invoices/repair")
async def invoice_repair(user: dict = operator):
    return {"success": True, "linked": ensure_invoice_affiliates(get_store())}

@app.post("/api/invoices/{iid}/status")
async def invoice_status(iid: str, body: dict = Body(...), user: dict = operator):
    return {"success": True, "invoice": _found(set_invoice_status(get_store(), iid, body.get("status")))}

# ============================================================
# RATES & LIMITS
# ============================================================
@app.get("/api/rates/active")
async def rate_active(partnerId: str, serviceId: str, amount: float, user: dict = reader):
    rate = get_active_rate(get_store(), partnerId, serviceId, amount)
    return {"rate": rate, "fee": quote_fee(rate, amount) if rate else None}

@app.get("/api/rates/overlaps")
async def rate_overlaps(partnerId: str = None, serviceId: str = None, user: dict = reader):
    return find_overlapping_rates(get_store(), partnerId, serviceId)

@app.post("/api/rates")
async def rate_upsert(body: dict = Body(...), user: dict = operator):
    return {"success": True, "rate": _found(upsert_rate(get_store(), body, updated_by=user.get("name", "system")))}

@app.get("/api/limits/check")
async def limit_check(partnerId: str, amount: float, type: str = "daily", user: dict = reader):
    return {"allowed": check_limit(get_store(), partnerId, amount, _limit_type(type))}

@app.post("/api/limits/use")
async def limit_use(body: dict = Body(...), user: dict = operator):
    row = use_limit(get_store(), body.get("partnerId"), _n(body.get("amount")), _limit_type(body.get("type", "daily")))
    return {"success": True, "limit": row}

@app.post("/api/limits/consume")
async def limit_consume(body: dict = Body(...), user: dict = operator):
    ok = try_consume(get_store(), body.get("partnerId"), _n(body.get("amount")), _limit_type(body.get("type", "daily")))
    return {"allowed": ok}

@app.post("/api/limits")
async def limit_set(body: dict = Body(...), user: dict = operator):
    row = set_limit(get_store(), body.get("partnerId"), _limit_type(body.get("type", "daily")), _n(body.get("amount")))
    return {"success": True, "limit": row}

# ============================================================
# RECONCILIATION
# ============================================================
@app.post("/api/reconciliation/process")
async def reconciliation_process(body: dict = Body(...), user: dict = operator):
    items = process_reconciliation_file(get_store(), body.get("entries") or [])
    return {"success": True, "items": items,
            "matched": sum(1 for i in items if i["matched"]), "total": len(items)}

@app.post("/api/reconciliation/import")
async def reconciliation_import(body: dict = Body(...), user: dict = operator):
    entries = parse_reconciliation_text(body.get("text", ""))
    items = process_reconciliation_file(get_store(), entries)
    return {"success": True, "items": items,
            "matched": sum(1 for i in items if i["matched"]), "total": len(items)}

@app.post("/api/reconciliation/auto-match")
async def reconciliation_auto_match(user: dict = operator):
    return {"success": True, "matched": auto_match_reconciliation(get_store())}

@app.post("/api/reconciliation/items")
async def reconciliation_items(body: dict = Body(...), user: dict = operator):
    return {"success": True, "items": add_reconciliation_items(get_store(), body.get("items") or [])}

@app.post("/api/reconciliation/{rid}/status")
async def reconciliation_status(rid: str, body: dict = Body(...), user: dict = operator):
    item = update_reconciliation_item_status(get_store(), rid, body.get("status"), body.get("note"))
    return {"success": True, "item": _found(item)}

# ============================================================
# REPORTS, RISK, NOTIFICATIONS, CONTRACTS
# ============================================================
@app.get("/api/volume-reports")
async def volume_report_list(partnerId: str = None, user: dict = reader):
    return list_volume_reports(get_store(), partnerId)

@app.post("/api/volume-reports")
async def volume_report_generate(body: dict = Body(...), user: dict = operator):
    return generate_volume_report(get_store(), body.get("partnerId"), body.get("period"))

@app.post("/api/risk-scores")
async def risk_score_update(body: dict = Body(...), user: dict = operator):
    return update_risk_score(get_store(), body.get("partnerId"), body.get("score"), body.get("factors"))

@app.get("/api/notifications")
async def notification_list(unread: bool = False, user: dict = reader):
    return list_notifications(get_store(), unread_only=unread)

@app.post("/api/notifications")
async def notification_create(body: dict = Body(...), user: dict = operator):
    return create_notification(get_store(), body)

@app.post("/api/notifications/read-all")
async def notification_read_all(user: dict = reader):
    return {"success": True, "updated": mark_all_notifications_read(get_store())}

@app.post("/api/notifications/{nid}/read")
async def notification_read(nid: str, user: dict = reader):
    return {"success": True, "notification": _found(mark_notification_read(get_store(), nid))}

@app.post("/api/contracts")
async def contract_create(body: dict = Body(...), user: dict = operator):
    return {"success": True, "contract": create_contract(get_store(), body)}

@app.post("/api/contracts/{cid}/status")
async def contract_status(cid: str, body: dict = Body(...), user: dict = operator):
    return {"success": True, "contract": _found(update_contract_status(get_store(), cid, body.get("status")))}

@app.get("/api/validate/tax-id")
async def validate_document(value: str):
    digits = "".join(c for c in value if c.isdigit())
    valid = validate_tax_id(digits)
    formatted = format_cpf(digits) if len(digits) == 11 else format_cnpj(digits)
    return {"valid": valid, "formatted": formatted if valid else value}

# ============================================================
# ADMIN
# ============================================================
@app.post("/api/reset")
async def reset(user: dict = operator):
    get_store().reset()
    return {"success": True}

@app.get("/api/export")
async def export(user: dict = reader): return get_store().read()

# ============================================================
# GENERIC COLLECTION CRUD (registered last)
# ============================================================
def _repo(collection: str):
    repo = Repositories(get_store()).route(collection)
    if repo is None:
        raise HTTPException(404, f"Unknown collection: {collection}")
    return repo

@app.get("/api/{collection}")
async def collection_list(collection: str, request: Request, user: dict = reader):
    return _repo(collection).list(**dict(request.query_params))

@app.get("/api/{collection}/{item_id}")
async def collection_get(collection: str, item_id: str, user: dict = reader):
    return _found(_repo(collection).get(item_id))

@app.post("/api/{collection}")
async def collection_upsert(collection: str, body: dict = Body(...), user: dict = operator):
    repo = _repo(collection)
    if repo.read_only:
        raise HTTPException(405, f"{collection} is computed and cannot be written directly")
    return _found(repo.upsert(body))

@app.put("/api/{collection}/{item_id}")
async def collection_update(collection: str, item_id: str, body: dict = Body(...), user: dict = operator):
    repo = _repo(collection)
    if repo.read_only:
        raise HTTPException(405, f"{collection} is computed and cannot be written directly")
    return _found(repo.upsert({**body, "id": item_id}))

@app.delete("/api/{collection}/{item_id}")
async def collection_delete(collection: str, item_id: str, user: dict = operator):
    repo = _repo(collection)
    if repo.read_only:
        raise HTTPException(405, f"{collection} is computed and cannot be written directly")
    _found(repo.delete(item_id))
    return {"success": True}

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    print(f"Starting HealthPartner Backoffice v{VERSION} on port {port}")
    print(f"Auth: {'enabled' if AUTH_ENABLED else 'disabled'}")
    uvicorn.run(app, host="0.0.0.0", port=port)
