"""
Webhook endpoint for Microsoft Graph change notifications.

Two modes on the same POST:
1. Validation: Graph sends ?validationToken=... when a subscription is
   created. Echo the decoded token as text/plain within a few seconds.
   No session or authentication is involved.
2. Notification: Graph posts a batch of change entries. Processing is
   scheduled in the background and the call answers 200 "OK" at once.
   Graph only redelivers on non-2xx, so per-entry failures never change
   the response.
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from mailhook.dependencies import get_notification_service
from mailhook.services.notification_service import NotificationService, parse_notifications
from mailhook.utils.errors import NotificationParseError
from mailhook.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/notification", response_class=PlainTextResponse)
async def notification(
    request: Request,
    background_tasks: BackgroundTasks,
    validation_token: Optional[str] = Query(None, alias="validationToken"),
    service: NotificationService = Depends(get_notification_service),
):
    # Query params arrive already URL-decoded
    if validation_token is not None:
        logger.info("Webhook validation request received")
        return PlainTextResponse(validation_token, status_code=200)

    try:
        body = await request.json()
    except ValueError:
        logger.error("Webhook body is not valid JSON")
        raise NotificationParseError("Notification payload is not valid JSON.")

    batch = parse_notifications(body)
    background_tasks.add_task(service.process, batch)
    return PlainTextResponse("OK", status_code=200)
