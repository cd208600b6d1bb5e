"""
HealthPartner Backoffice — Risk Scorer
One risk score per partner on a 0-1000 scale. The level is always derived
from the score and is never written on its own.
"""
from backoffice.config import RISK_LEVEL_THRESHOLDS, RISK_LEVEL_FLOOR, RISK_SCORE_MIN, RISK_SCORE_MAX
from backoffice.db import now_iso, _n
from backoffice.ids import new_id


def risk_level(score: float) -> str:
    """>=800 low, >=600 medium, >=400 high, else critical."""
    for threshold, level in RISK_LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return RISK_LEVEL_FLOOR


def update_risk_score(store, partner_id: str, score: float, factors: list = None) -> dict:
    score = max(RISK_SCORE_MIN, min(RISK_SCORE_MAX, _n(score)))
    with store.transaction() as db:
        existing = next((r for r in db["riskScores"] if r.get("partnerId") == partner_id), None)
        if existing is None:
            existing = {"id": new_id(), "partnerId": partner_id}
            db["riskScores"].insert(0, existing)
        existing["score"] = score
        existing["level"] = risk_level(score)
        existing["factors"] = list(factors or [])
        existing["lastUpdated"] = now_iso()
        return existing


def get_risk_score(store, partner_id: str):
    return next((r for r in store.read()["riskScores"] if r.get("partnerId") == partner_id), None)
