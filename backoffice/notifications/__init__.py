"""
HealthPartner Backoffice — Notifications

Back-office alerts (KYC, advances, settlements, security, agenda).
create_notification never raises: callers fire it as a side effect of other
operations, so a storage failure is logged and an unsaved copy is returned.
"""
from backoffice.config import NOTIFICATION_TYPES, NOTIFICATION_PRIORITIES
from backoffice.db import now_iso, find_by_id
from backoffice.ids import new_id

NOTIFICATION_FIELDS = ("type", "title", "message", "priority", "partnerId", "affiliateId", "actionUrl")


def create_notification(store, notif: dict) -> dict:
    created = {k: notif.get(k) for k in NOTIFICATION_FIELDS}
    created["priority"] = created["priority"] or "medium"
    created.update({"id": new_id(), "createdAt": now_iso(), "read": False})
    try:
        if created["type"] not in NOTIFICATION_TYPES:
            raise ValueError(f"Invalid notification type: {created['type']!r}")
        if created["priority"] not in NOTIFICATION_PRIORITIES:
            raise ValueError(f"Invalid notification priority: {created['priority']!r}")
        with store.transaction() as db:
            db["notifications"].insert(0, created)
    except Exception as e:
        print(f"[Notify] Could not store notification '{created.get('title')}': {e}")
    return created


def list_notifications(store, unread_only: bool = False) -> list:
    items = store.read()["notifications"]
    return [n for n in items if not n.get("read")] if unread_only else items


def mark_notification_read(store, notification_id: str):
    with store.transaction() as db:
        n = find_by_id(db["notifications"], notification_id)
        if n:
            n["read"] = True
        return n


def mark_all_notifications_read(store) -> int:
    with store.transaction() as db:
        unread = [n for n in db["notifications"] if not n.get("read")]
        for n in unread:
            n["read"] = True
        return len(unread)
