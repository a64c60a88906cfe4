"""Web Push delivery for the scheduled jobs.

A failure for one subscription never aborts the batch. Endpoints the push
service reports as gone (404/410) are deleted so they are not retried.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from pywebpush import WebPushException, webpush

from routine_streaks.db import Database
from routine_streaks.models import PushSubscription

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = frozenset({404, 410})

Sender = Callable[[PushSubscription, dict], None]


@dataclass
class DeliveryResult:
    sent: int = 0
    failed: int = 0
    removed: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: DeliveryResult) -> None:
        self.sent += other.sent
        self.failed += other.failed
        self.removed += other.removed
        self.errors.extend(other.errors)


def make_webpush_sender(private_key: str, subject: str) -> Sender:
    """Return a sender bound to the VAPID credentials."""

    def send(sub: PushSubscription, payload: dict) -> None:
        webpush(
            subscription_info={
                "endpoint": sub.endpoint,
                "keys": {"p256dh": sub.p256dh, "auth": sub.auth},
            },
            data=json.dumps(payload, ensure_ascii=False),
            vapid_private_key=private_key,
            vapid_claims={"sub": subject},
        )

    return send


def _status_code(exc: WebPushException) -> int | None:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None) if response is not None else None


def deliver(
    db: Database,
    subscriptions: Iterable[PushSubscription],
    payload: dict,
    sender: Sender,
) -> DeliveryResult:
    """Send one payload to every subscription, cleaning up gone endpoints."""
    result = DeliveryResult()
    for sub in subscriptions:
        try:
            sender(sub, payload)
        except WebPushException as exc:
            result.failed += 1
            status = _status_code(exc)
            result.errors.append(f"{status if status is not None else '?'}: {exc}")
            if status in GONE_STATUS_CODES:
                logger.warning(
                    "Deleting push subscription %s for user %s (status %s)",
                    sub.endpoint[:60], sub.user_id, status,
                )
                db.delete_subscription(sub.user_id, sub.endpoint)
                result.removed += 1
            else:
                logger.error("Push to %s failed: %s", sub.endpoint[:60], exc)
            continue
        except Exception as exc:
            result.failed += 1
            result.errors.append(f"?: {exc}")
            logger.exception("Push send error for %s", sub.endpoint[:60])
            continue
        result.sent += 1
        logger.debug("Sent push to %s", sub.endpoint[:60])
    return result
