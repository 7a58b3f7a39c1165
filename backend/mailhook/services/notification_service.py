"""
Notification service - turn webhook deliveries into message fetches.

Flow for a delivered batch:
1. parse_notifications() validates the body at the boundary
2. select() keeps entries whose client state resolves to a known account
   and whose resource is a mail message, dropping duplicates
3. process() fetches each selected message concurrently

Per-entry failures are logged and reported in the outcome list; they never
propagate, since the webhook must answer 200 regardless.
"""
import asyncio
from typing import Any, List, Tuple

from pydantic import ValidationError

from mailhook.models.notification import (
    ChangeNotification,
    ChangeNotificationCollection,
    NotificationOutcome,
)
from mailhook.services.mail_service import MailService
from mailhook.services.subscription_service import ClientStateRegistry
from mailhook.utils.errors import AppError, NotificationParseError
from mailhook.utils.logger import get_logger

logger = get_logger(__name__)

ACTIONABLE_CHANGE_TYPES = {"created", "updated"}


def parse_notifications(body: Any) -> ChangeNotificationCollection:
    """
    Validate a webhook body.

    Raises:
        NotificationParseError: Body is not a change notification collection
    """
    if not isinstance(body, dict):
        raise NotificationParseError("Notification payload must be a JSON object.")
    try:
        return ChangeNotificationCollection.model_validate(body)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise NotificationParseError(errors=errors)


class NotificationService:
    """
    Correlates change notifications with accounts and fetches the messages.

    Usage:
        service = NotificationService(registry, mail_service)
        outcomes = await service.process(batch)
    """

    def __init__(self, registry: ClientStateRegistry, mail_service: MailService):
        self.registry = registry
        self.mail = mail_service

    def select(self, batch: ChangeNotificationCollection) -> List[Tuple[str, ChangeNotification]]:
        """
        Pick the actionable entries of a batch, paired with their account id.
        """
        selected = []
        seen = set()

        for entry in batch.value:
            account_id = self.registry.resolve(entry.client_state, entry.subscription_id)
            if not account_id:
                logger.debug(f"Dropping notification with unknown client state (subscription {entry.subscription_id})")
                continue

            if not entry.resource_data or not entry.resource_data.is_message or not entry.resource_data.id:
                logger.debug(f"Dropping non-message notification from subscription {entry.subscription_id}")
                continue

            change_type = entry.change_type.lower()
            if change_type not in ACTIONABLE_CHANGE_TYPES:
                logger.debug(f"Dropping '{entry.change_type}' notification")
                continue

            key = (entry.subscription_id, entry.resource_data.id, change_type)
            if key in seen:
                continue
            seen.add(key)

            selected.append((account_id, entry))

        return selected

    async def _fetch(self, account_id: str, entry: ChangeNotification) -> NotificationOutcome:
        message_id = entry.resource_data.id
        try:
            message = await self.mail.get_email_by_id(account_id, message_id)
        except AppError as e:
            logger.error(f"Failed to fetch notified message {message_id}: {e.message}")
            return NotificationOutcome(
                account_id=account_id,
                message_id=message_id,
                change_type=entry.change_type,
                success=False,
                error=e.code,
            )
        except Exception as e:
            logger.exception(f"Unexpected error fetching notified message {message_id}: {e}")
            return NotificationOutcome(
                account_id=account_id,
                message_id=message_id,
                change_type=entry.change_type,
                success=False,
                error="UNKNOWN_ERROR",
            )

        logger.info(
            f"Mail {entry.change_type}: {message.get('subject', '(No Subject)')} "
            f"[{message_id}]"
        )
        return NotificationOutcome(
            account_id=account_id,
            message_id=message_id,
            change_type=entry.change_type,
            success=True,
            message=message,
        )

    async def process(self, batch: ChangeNotificationCollection) -> List[NotificationOutcome]:
        """
        Fetch every selected message once. Never raises for per-entry failures.
        """
        selected = self.select(batch)
        logger.info(f"Received {len(batch.value)} notification(s), {len(selected)} actionable")

        if not selected:
            return []

        return list(await asyncio.gather(*(self._fetch(account_id, entry) for account_id, entry in selected)))
