"""
Notification Service - "send a notification for event X".

Rendering and delivery belong to an external system; this module posts the
event to a webhook. Sending happens after the business transaction has been
committed and a delivery failure never fails the request.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from fastapi.encoders import jsonable_encoder

from lms.core.config import NOTIFICATION_TIMEOUT_SECONDS, NOTIFICATION_WEBHOOK_URL
from lms.core.money import format_money

logger = logging.getLogger(__name__)


async def send_notification(
    event: str,
    payload: Dict[str, Any],
    webhook_url: Optional[str] = None,
) -> bool:
    """
    Post an event to the notification webhook.

    Args:
        event: Event name, e.g. enrollment_created
        payload: Event data
        webhook_url: Overrides NOTIFICATION_WEBHOOK_URL

    Returns:
        bool: True if the webhook accepted the event, False otherwise
    """
    url = webhook_url or NOTIFICATION_WEBHOOK_URL

    if not url:
        logger.debug(f"Notification webhook not configured, skipping {event}")
        return False

    body = {
        "event": event,
        "sent_at": datetime.now(timezone.utc).isoformat(),
        "data": jsonable_encoder(payload),
    }

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=body, timeout=NOTIFICATION_TIMEOUT_SECONDS)

            if response.is_success:
                logger.info(f"Notification sent: {event}")
                return True
            else:
                logger.error(
                    f"Failed to send notification {event}: {response.status_code} {response.text}"
                )
                return False

    except Exception as e:
        logger.error(f"Error sending notification {event}: {str(e)}")
        return False


async def notify_enrollment_created(enrollment, student, course) -> bool:
    return await send_notification(
        "enrollment_created",
        {
            "enrollment_id": enrollment.id,
            "student": student.to_identity(),
            "course": {"id": course.id, "title": course.title},
            "format": enrollment.format,
            "status": enrollment.status,
            "final_price": enrollment.final_price,
            "display_price": format_money(enrollment.final_price, enrollment.currency),
            "currency": enrollment.currency,
        },
    )


async def notify_payment_recorded(payment) -> bool:
    return await send_notification(
        "payment_recorded",
        {
            "payment_id": payment.id,
            "enrollment_id": payment.enrollment_id,
            "amount": payment.amount,
            "display_amount": format_money(payment.amount, payment.currency),
            "currency": payment.currency,
            "status": payment.status,
            "method": payment.method,
            "transaction_id": payment.transaction_id,
        },
    )
