"""
HealthPartner Backoffice — Demo Data

seed_db() builds the complete demo dataset used for a cold start in demo mode.
top_up_demo_floor() tops thin collections back up to the demo floor on load.
Both are only reachable when the store runs with seed_demo=True (SEED_DEMO).
"""
import random
from datetime import timedelta

from backoffice.config import (
    DEMO_FLOORS, DEMO_HISTORY_DAYS, DEMO_PERSON_NAMES, DEMO_SPECIALTIES, DEMO_STATES,
    INVOICE_DUE_DAYS, CHARGE_STATUSES, INVOICE_STATUSES,
)
from backoffice.db import utcnow, now_iso, today_iso
from backoffice.ids import new_id, reference
from backoffice.reports import summarize_charges


# ============================================================
# RECORD GENERATORS
# ============================================================
def _days_ago(r, now):
    return now - timedelta(days=r.randrange(DEMO_HISTORY_DAYS))


def make_affiliate(r, partner: dict, index: int, now=None) -> dict:
    name = DEMO_PERSON_NAMES[index % len(DEMO_PERSON_NAMES)]
    email_user = "".join(ch for ch in name.lower() if "a" <= ch <= "z")
    return {
        "id": new_id(),
        "name": name,
        "taxId": f"{r.randint(100, 999)}.{r.randint(100, 999)}.{r.randint(100, 999)}-{r.randint(10, 99)}",
        "registration": f"{r.randint(10000, 99999)}/{r.choice(DEMO_STATES)}",
        "specialty": DEMO_SPECIALTIES[index % len(DEMO_SPECIALTIES)],
        "email": f"{email_user}@example.com",
        "phone": f"+55 ({r.randint(10, 99)}) {r.randint(9000, 9999)}-{r.randint(1000, 9999)}",
        "city": partner.get("city"),
        "address": f"Rua {name.split(' ')[1]}, {r.randint(100, 999)}",
        "status": "active" if r.random() < 0.8 else "inactive",
        "kycStatus": "approved" if r.random() < 0.9 else "pending",
        "code": f"AFF-{1000 + index:04d}",
        "associatedPartnerIds": [partner["id"]],
        "createdAt": now_iso(now),
    }


def make_invoice(r, affiliates: list, partners: list, now=None) -> dict:
    now = now or utcnow()
    issued = _days_ago(r, now)
    aff = r.choice(affiliates)
    partner_ids = aff.get("associatedPartnerIds") or []
    partner_id = partner_ids[0] if partner_ids else (partners[0]["id"] if partners else new_id())
    return {
        "id": new_id(),
        "number": f"NF-{r.randint(10000, 99999)}",
        "partnerId": partner_id,
        "affiliateId": aff["id"],
        "amount": r.randrange(500, 15500),
        "issueDate": issued.date().isoformat(),
        "dueDate": (issued + timedelta(days=INVOICE_DUE_DAYS)).date().isoformat(),
        "status": r.choice(INVOICE_STATUSES),
        "description": "Serviços médicos realizados",
        "createdAt": now_iso(now),
    }


def make_advance(r, partner_id: str, affiliate_id: str = None, now=None) -> dict:
    now = now or utcnow()
    status = r.choice(("requested", "approved", "settled", "rejected"))
    return {
        "id": new_id(),
        "partnerId": partner_id,
        "affiliateId": affiliate_id,
        "amount": r.randrange(2000, 152000),
        "requestedAt": now_iso(_days_ago(r, now)),
        "status": status,
        # 2.0 .. 22.0 in 0.1 steps
        "appliedRatePct": round(2 + r.randint(0, 200) / 10, 1) if status in ("approved", "settled") else None,
    }


def make_charge(r, partner_id: str, affiliate_id: str = None, reference_id: str = None,
                service_id: str = None, now=None) -> dict:
    now = now or utcnow()
    return {
        "id": new_id(),
        "partnerId": partner_id,
        "affiliateId": affiliate_id,
        "serviceId": service_id,
        "referenceId": reference_id or reference("CHG", r.randint(100000, 999999)),
        "amount": r.randrange(150, 15150),
        "status": r.choice(CHARGE_STATUSES),
        "createdAt": now_iso(_days_ago(r, now)),
    }


# ============================================================
# DEMO FLOOR TOP-UP
# ============================================================
def top_up_demo_floor(db: dict, rng: random.Random = None, now=None) -> int:
    """Add synthetic rows to collections below their demo floor. Never removes."""
    r = rng or random
    now = now or utcnow()
    partners = db["partners"]
    affiliates = db["affiliates"]
    added = 0
    if not partners:
        return 0

    threshold, target = DEMO_FLOORS["affiliates"]
    if len(affiliates) < threshold:
        start = len(affiliates)
        for i in range(target - start):
            affiliates.append(make_affiliate(r, r.choice(partners), start + i, now))
            added += 1

    threshold, target = DEMO_FLOORS["invoices"]
    if len(db["invoices"]) < threshold and affiliates:
        for _ in range(target - len(db["invoices"])):
            db["invoices"].append(make_invoice(r, affiliates, partners, now))
            added += 1

    threshold, target = DEMO_FLOORS["advances"]
    if len(db["advances"]) < threshold:
        for _ in range(target - len(db["advances"])):
            aff = r.choice(affiliates) if affiliates else None
            db["advances"].append(make_advance(r, r.choice(partners)["id"], aff and aff["id"], now))
            added += 1

    threshold, target = DEMO_FLOORS["charges"]
    if len(db["charges"]) < threshold:
        for _ in range(target - len(db["charges"])):
            aff = r.choice(affiliates) if affiliates else None
            db["charges"].append(make_charge(r, r.choice(partners)["id"], aff and aff["id"], now=now))
            added += 1

    if added:
        print(f"[Migrate] Topped up demo data with {added} records")
    return added


# ============================================================
# COLD-START DEMO DATASET
# ============================================================
def seed_db(rng: random.Random = None, now=None) -> dict:
    r = rng or random
    now = now or utcnow()
    ts = now_iso(now)

    p1 = {"id": new_id(), "name": "Hospital São Lucas", "taxId": "12.345.678/0001-90",
          "status": "active", "kycStatus": "approved", "city": "São Paulo",
          "volumeMonthly": 850000, "contracts": 3, "affiliatesCount": 12, "documents": [], "createdAt": ts}
    p2 = {"id": new_id(), "name": "Clínica Nova Era", "taxId": "98.765.432/0001-10",
          "status": "active", "kycStatus": "approved", "city": "Rio de Janeiro",
          "volumeMonthly": 650000, "contracts": 2, "affiliatesCount": 8, "documents": [], "createdAt": ts}
    p3 = {"id": new_id(), "name": "Med Center Plus", "taxId": "11.222.333/0001-44",
          "status": "inactive", "kycStatus": "pending", "city": "Belo Horizonte",
          "volumeMonthly": 0, "contracts": 0, "affiliatesCount": 0, "documents": [], "createdAt": ts}
    partners = [p1, p2, p3]

    def named(name, tax_id, crm, specialty, email, phone, partner, address, status, kyc, code):
        return {"id": new_id(), "name": name, "taxId": tax_id, "registration": crm,
                "specialty": specialty, "email": email, "phone": phone, "city": partner["city"],
                "address": address, "status": status, "kycStatus": kyc, "code": code,
                "associatedPartnerIds": [partner["id"]], "createdAt": ts}

    affiliates = [
        named("Dr. João Cardoso", "123.456.789-10", "12345/SP", "Cardiologia", "joao.cardio@example.com",
              "+55 (11) 99999-1111", p1, "Rua das Flores, 123", "active", "approved", "AFF-0001"),
        named("Dra. Maria Pedrosa", "987.654.321-00", "67890/RJ", "Pediatria", "maria.ped@example.com",
              "+55 (21) 98888-2222", p2, "Av. Copacabana, 456", "active", "approved", "AFF-0002"),
        named("Dr. Carlos Andrade", "321.654.987-00", "11223/MG", "Ortopedia", "carlos.orto@example.com",
              "+55 (31) 97777-3333", p3, "Rua da Liberdade, 789", "inactive", "pending", "AFF-0003"),
    ]
    for i in range(25):
        affiliates.append(make_affiliate(r, r.choice(partners), i + 3, now))

    s1 = {"id": new_id(), "name": "Consulta Clínica", "partnerIds": [p1["id"], p2["id"]]}
    s2 = {"id": new_id(), "name": "Exame Laboratorial", "partnerIds": [p1["id"]]}

    rates = [
        {"id": new_id(), "partnerId": p1["id"], "serviceId": s1["id"], "baseRatePct": 2.5, "fixedFee": 3.5,
         "minAmount": 100, "maxAmount": 10000, "effectiveDate": ts, "isActive": True,
         "updatedAt": ts, "updatedBy": "admin"},
        {"id": new_id(), "partnerId": p2["id"], "serviceId": s1["id"], "baseRatePct": 2.8, "fixedFee": 4.0,
         "minAmount": 200, "maxAmount": 15000, "effectiveDate": ts, "isActive": True,
         "updatedAt": ts, "updatedBy": "admin"},
    ]

    invoices = [make_invoice(r, affiliates, partners, now) for _ in range(200)]

    advances = [{"id": new_id(), "partnerId": p1["id"], "amount": 50000, "requestedAt": ts,
                 "status": "requested", "appliedRatePct": None}]
    for _ in range(200):
        aff = r.choice(affiliates)
        advances.append(make_advance(r, aff["associatedPartnerIds"][0], aff["id"], now))

    charges = [{"id": new_id(), "partnerId": p1["id"], "affiliateId": None, "serviceId": s1["id"],
                "referenceId": "CHG-001", "amount": 1200, "status": "pending", "createdAt": ts}]
    service_pool = [None] * 8 + [s1["id"], s2["id"]]
    for i in range(400):
        aff = r.choice(affiliates)
        charges.append(make_charge(r, aff["associatedPartnerIds"][0], aff["id"],
                                   reference("CHG", 100000 + i), r.choice(service_pool), now))

    return {
        "partners": partners,
        "affiliates": affiliates,
        "services": [s1, s2],
        "rates": rates,
        "charges": charges,
        "advances": advances,
        "settlements": [{"id": new_id(), "partnerId": p1["id"], "amount": 20000,
                         "dueDate": now_iso(now + timedelta(days=3)), "status": "scheduled"}],
        "reconciliation": [],
        "bankIntegrations": [
            {"id": new_id(), "bankCode": "001", "bankName": "Banco do Brasil", "integrationType": "CNAB",
             "status": "active", "lastSync": ts,
             "credentials": {"endpoint": "https://api.bb.com.br", "username": "backoffice_bb"},
             "config": {"fileFormat": "CNAB240", "encoding": "UTF-8", "delimiter": ";"}},
            {"id": new_id(), "bankCode": "341", "bankName": "Itaú Unibanco", "integrationType": "API",
             "status": "active", "lastSync": ts,
             "credentials": {"endpoint": "https://api.itau.com.br", "username": "backoffice_itau"},
             "config": {"fileFormat": "JSON", "encoding": "UTF-8"}},
        ],
        "settlementInstructions": [
            {"id": new_id(), "partnerId": p1["id"], "amount": 50000, "bankCode": "001",
             "accountNumber": "12345-6", "agency": "1234", "accountType": "checking", "status": "pending",
             "scheduledDate": now_iso(now + timedelta(days=1)), "executedDate": None,
             "referenceId": "SET-001", "instructions": "Liquidação automática via CNAB"},
        ],
        "volumeReports": [
            {"partnerId": p1["id"], "partnerName": p1["name"], "period": now.strftime("%Y-%m"),
             **summarize_charges([c for c in charges if c["partnerId"] == p1["id"]]), "lastUpdated": ts},
        ],
        "agendas": [{"id": new_id(), "partnerId": p1["id"], "date": today_iso(now), "capacity": 20, "booked": 12}],
        "notifications": [
            {"id": new_id(), "type": "kyc", "title": "KYC Pendente",
             "message": "Hospital São Lucas precisa aprovar documentos", "priority": "high",
             "read": False, "createdAt": ts, "partnerId": p1["id"], "actionUrl": "/partners/kyc"},
            {"id": new_id(), "type": "advance", "title": "Antecipação Excepcional",
             "message": "Pedido de R$ 500k precisa aprovação manual", "priority": "critical",
             "read": False, "createdAt": ts, "partnerId": p1["id"], "actionUrl": "/advances/approvals"},
        ],
        "contracts": [
            {"id": new_id(), "partnerId": p1["id"], "type": "service", "status": "active",
             "terms": "Contrato de prestação de serviços médicos", "penaltyRate": 0.5,
             "createdAt": ts, "effectiveDate": ts, "expirationDate": now_iso(now + timedelta(days=365))},
        ],
        "riskScores": [
            {"id": new_id(), "partnerId": p1["id"], "score": 750, "level": "medium",
             "factors": ["Volume consistente", "Pagamentos em dia", "Documentação completa"],
             "lastUpdated": ts},
        ],
        "limits": [
            {"id": new_id(), "partnerId": p1["id"], "type": "daily", "amount": 100000, "used": 25000,
             "period": today_iso(now), "createdAt": ts},
        ],
        "invoices": invoices,
    }
