"""
HealthPartner Backoffice — Volume Reporter
Per-partner charge volume, recomputed from charges on every request.
"""
from backoffice.db import now_iso, find_by_id, _n


def summarize_charges(charges: list) -> dict:
    total = sum(_n(c.get("amount")) for c in charges)

    def by_status(status):
        return sum(_n(c.get("amount")) for c in charges if c.get("status") == status)

    return {
        "totalVolume": round(total, 2),
        "pendingCharges": round(by_status("pending"), 2),
        "paidCharges": round(by_status("paid"), 2),
        "contestedCharges": round(by_status("contested"), 2),
        "averageTicket": round(total / len(charges), 2) if charges else 0,
        "transactionCount": len(charges),
    }


def generate_volume_report(store, partner_id: str, period: str) -> dict:
    """Rebuild the (partner, period) report, replacing any earlier one for that key.

    Aggregates every charge of the partner regardless of `period`, which is
    stored as a label only.
    """
    # TODO: filter charges by createdAt within `period` once the reporting screens agree on YYYY-MM keys
    with store.transaction() as db:
        partner = find_by_id(db["partners"], partner_id)
        charges = [c for c in db["charges"] if c.get("partnerId") == partner_id]
        report = {
            "partnerId": partner_id,
            "partnerName": partner.get("name") if partner else "Unknown",
            "period": period,
            **summarize_charges(charges),
            "lastUpdated": now_iso(),
        }
        reports = db["volumeReports"]
        for idx, r in enumerate(reports):
            if r.get("partnerId") == partner_id and r.get("period") == period:
                reports[idx] = report
                break
        else:
            reports.insert(0, report)
        return report


def list_volume_reports(store, partner_id: str = None) -> list:
    reports = store.read()["volumeReports"]
    return [r for r in reports if r.get("partnerId") == partner_id] if partner_id else reports
