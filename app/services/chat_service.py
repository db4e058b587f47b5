from typing import Any, Optional

import httpx
import structlog

from app.core.config import settings
from app.core.exceptions import SideEffectError

logger = structlog.get_logger(__name__)


def format_booking_alert(payload: dict[str, Any]) -> str:
    return (
        "*New Booking Alert!*\n\n"
        f"*Customer:* {payload['customer_name']}\n"
        f"*Service:* {payload['service_name']}\n"
        f"*Date:* {payload['date']}\n"
        f"*Time:* {payload['time_slot']}\n"
        f"*Total Price:* ${payload['total_price']}\n\n"
        "_Check the Admin Dashboard for details._"
    )


def send_booking_alert(
    payload: dict[str, Any], client: Optional[httpx.Client] = None
) -> bool:
    """Post a new-booking alert to the operator's WhatsApp group.

    Returns False when the gateway is not configured.
    """
    if not (settings.WHATSAPP_API_URL and settings.WHATSAPP_TOKEN and settings.WHATSAPP_GROUP_ID):
        logger.warning(
            "WhatsApp alert skipped, gateway credentials are missing",
            appointment_id=payload.get("appointment_id"),
        )
        return False

    data = {
        "token": settings.WHATSAPP_TOKEN,
        "to": settings.WHATSAPP_GROUP_ID,
        "body": format_booking_alert(payload),
    }

    http = client or httpx.Client(timeout=10.0)
    try:
        response = http.post(settings.WHATSAPP_API_URL, data=data)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(
            "Failed to send WhatsApp message",
            appointment_id=payload.get("appointment_id"),
            error=str(e),
        )
        raise SideEffectError(f"WhatsApp gateway error: {e}") from e
    finally:
        if client is None:
            http.close()

    logger.info("WhatsApp alert sent", appointment_id=payload.get("appointment_id"))
    return True
