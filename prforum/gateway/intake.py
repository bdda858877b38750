"""Webhook intake: secret check → decode → normalize → enqueue.

Extracted from the HTTP route so the pipeline can be driven without a server.
Nothing here raises for a bad delivery: GitHub must never see a retryable
failure because of a payload problem, and a wrong secret must look exactly
like an accepted delivery.
"""

from __future__ import annotations

import hmac

import structlog

from prforum.events.models import LifecycleEvent
from prforum.infra.errors import QueueClosedError, WebhookError
from prforum.pipeline.queue import EventQueue
from prforum.webhook.normalizer import normalize
from prforum.webhook.payloads import parse_webhook_event

logger = structlog.get_logger()


def secret_matches(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode(), expected.encode())


async def intake_delivery(
    *,
    queue: EventQueue,
    expected_secret: str,
    provided_secret: str,
    event_type: str | None,
    body: bytes,
) -> LifecycleEvent | None:
    """Turn one webhook delivery into at most one queued lifecycle event.

    Suspends while the queue is full. Returns the queued event, or None when the
    delivery was rejected or ignored.
    """
    if not secret_matches(provided_secret, expected_secret):
        logger.debug("webhook_secret_mismatch")
        return None

    if not event_type:
        logger.error("webhook_missing_event_header")
        return None

    try:
        payload = parse_webhook_event(event_type, body)
    except WebhookError as e:
        logger.error("webhook_payload_invalid", event_type=event_type, code=e.code, error=str(e))
        return None

    if payload is None:
        logger.debug("webhook_event_ignored", event_type=event_type)
        return None

    event = normalize(payload)
    if event is None:
        return None

    try:
        await queue.submit(event)
    except QueueClosedError:
        logger.warning(
            "webhook_event_dropped_on_shutdown", kind=type(event).__name__, pr=event.pr_number,
        )
        return None
    return event
