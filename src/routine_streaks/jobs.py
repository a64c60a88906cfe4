"""Scheduled jobs: per-minute reminders and the Monday weekly digest.

Both are driven by an external scheduler (cron). They read what they need
in batches, build payloads with the pure modules, and hand them to
notifications.deliver(), so one bad subscription never stops the run.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from routine_streaks.config import get_timezone, get_vapid_settings
from routine_streaks.dates import now_in_reference_tz, today_key, week_bounds
from routine_streaks.db import Database
from routine_streaks.digest import digest_payload
from routine_streaks.notifications import (
    DeliveryResult,
    Sender,
    deliver,
    make_webpush_sender,
)
from routine_streaks.service import previous_week_of, weekly_digest_for

logger = logging.getLogger(__name__)

REMINDER_URL = "/app/today"


def resolve_sender(config_path: Path | None = None) -> Sender | None:
    """Build the Web Push sender from config, or None when VAPID keys are unset."""
    vapid = get_vapid_settings(config_path)
    if vapid is None:
        return None
    return make_webpush_sender(vapid["private_key"], vapid["subject"])


def reminder_payload(label: str, emoji: str | None, item_id: str) -> dict[str, str]:
    return {
        "title": f"{emoji or '⏰'} Reminder",
        "body": f"Time for: {label}",
        "tag": f"reminder-{item_id}",
        "url": REMINDER_URL,
    }


def run_reminders(
    db: Database,
    sender: Sender | None,
    now: datetime | None = None,
    tz: str | None = None,
) -> dict:
    """Send every reminder due at the current minute in the reference timezone."""
    if sender is None:
        logger.warning("Reminder run skipped: VAPID keys not configured")
        return {"ok": False, "reason": "missing_vapid"}

    local = now_in_reference_tz(tz or get_timezone(), now)
    time_str = local.strftime("%H:%M")
    iso_day = local.isoweekday()

    due = db.get_due_reminders(time_str, iso_day)
    if not due:
        return {"ok": True, "time": time_str, "due": 0, "sent": 0, "failed": 0, "removed": 0}

    items = db.get_routine_items_by_keys(sorted({(r.user_id, r.routine_item_id) for r in due}))
    subs_by_user: dict[str, list] = {}
    for sub in db.get_subscriptions(sorted({r.user_id for r in due})):
        subs_by_user.setdefault(sub.user_id, []).append(sub)

    total = DeliveryResult()
    for reminder in due:
        subs = subs_by_user.get(reminder.user_id)
        if not subs:
            continue
        item = items.get((reminder.user_id, reminder.routine_item_id))
        label = item.label if item else reminder.routine_item_id
        payload = reminder_payload(label, item.emoji if item else None, reminder.routine_item_id)
        total.merge(deliver(db, subs, payload, sender))

    logger.info(
        "Reminders at %s: %d due, %d sent, %d failed", time_str, len(due), total.sent, total.failed
    )
    return {
        "ok": True,
        "time": time_str,
        "due": len(due),
        "sent": total.sent,
        "failed": total.failed,
        "removed": total.removed,
    }


def run_weekly_digest(
    db: Database,
    sender: Sender | None,
    now: datetime | None = None,
    tz: str | None = None,
    week_of: str | None = None,
) -> dict:
    """Send a weekly digest to every user with a push subscription.

    Meant to run Monday morning: by default the digest covers the previous
    Monday..Sunday. Pass week_of (any day of the week) to report another
    week, e.g. the current one from a Sunday evening run. Users with no
    tracked day that week get nothing.
    """
    if sender is None:
        logger.warning("Weekly digest skipped: VAPID keys not configured")
        return {"ok": False, "reason": "missing_vapid"}

    today = today_key(tz or get_timezone(), now)
    week_of = week_bounds(week_of)[0] if week_of else previous_week_of(today)

    subs_by_user: dict[str, list] = {}
    for sub in db.get_subscriptions():
        subs_by_user.setdefault(sub.user_id, []).append(sub)

    total = DeliveryResult()
    users_notified = 0
    users_skipped = 0
    for user_id, subs in subs_by_user.items():
        digest = weekly_digest_for(db, user_id, week_of, today=today)
        payload = digest_payload(digest)
        if payload is None:
            users_skipped += 1
            continue
        result = deliver(db, subs, payload, sender)
        total.merge(result)
        if result.sent:
            users_notified += 1

    logger.info(
        "Weekly digest for %s: %d users notified, %d skipped, %d failed",
        week_of, users_notified, users_skipped, total.failed,
    )
    return {
        "ok": True,
        "week_of": week_of,
        "users": len(subs_by_user),
        "users_notified": users_notified,
        "users_skipped": users_skipped,
        "sent": total.sent,
        "failed": total.failed,
        "removed": total.removed,
    }
