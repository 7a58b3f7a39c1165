"""
Subscription service - change subscriptions on the mail resource.

This module provides:
1. ClientStateRegistry: which client-state value belongs to which account
2. SubscriptionManager: create, list, renew and delete Graph subscriptions

Subscriptions are owned by Graph; the server keeps no record of them beyond
the client-state correlation needed to route incoming notifications.
"""
import asyncio
import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from urllib.parse import quote

from mailhook.config import MAX_SUBSCRIPTION_MINUTES, Settings
from mailhook.models.subscription import DeleteAllResult, DeletionResult, Subscription
from mailhook.services.mail_service import MailService
from mailhook.utils.errors import (
    AppError,
    GraphNotFoundError,
    InvalidSubscriptionError,
    SubscriptionNotFoundError,
)
from mailhook.utils.logger import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.0000000Z")


class ClientStateRegistry:
    """
    Maps client-state tokens to the account that owns them.

    With a fixed client state every account shares one value, so the
    subscription id recorded at creation time picks the account.

    Usage:
        registry = ClientStateRegistry(fixed_state=None)
        state = registry.register_account(account_id)
        registry.bind_subscription(sub_id, state, account_id)
        account_id = registry.resolve(state, sub_id)
    """

    def __init__(self, fixed_state: Optional[str] = None):
        self.fixed_state = fixed_state
        self._state_by_account: Dict[str, str] = {}
        self._accounts_by_state: Dict[str, set] = {}
        self._subscriptions: Dict[str, tuple] = {}  # subscription_id -> (state, account_id, expires_at)
        self._lock = threading.Lock()

    def register_account(self, account_id: str) -> str:
        """Return the client state for an account, issuing one if needed."""
        with self._lock:
            state = self._state_by_account.get(account_id)
            if state is None:
                state = self.fixed_state or secrets.token_urlsafe(32)
                self._state_by_account[account_id] = state
            self._accounts_by_state.setdefault(state, set()).add(account_id)
        return state

    def client_state_for(self, account_id: str) -> Optional[str]:
        with self._lock:
            return self._state_by_account.get(account_id)

    def bind_subscription(
        self,
        subscription_id: str,
        client_state: str,
        account_id: str,
        expires_at: Optional[datetime] = None,
    ) -> None:
        """Record which account a subscription belongs to. Lapsed bindings are dropped."""
        now = _utcnow()
        with self._lock:
            for sub_id in [s for s, (_, _, e) in self._subscriptions.items() if e is not None and e <= now]:
                del self._subscriptions[sub_id]
            self._subscriptions[subscription_id] = (client_state, account_id, expires_at)

    def extend_subscription(self, subscription_id: str, expires_at: datetime) -> None:
        with self._lock:
            if subscription_id in self._subscriptions:
                state, account_id, _ = self._subscriptions[subscription_id]
                self._subscriptions[subscription_id] = (state, account_id, expires_at)

    def forget_subscription(self, subscription_id: str) -> None:
        with self._lock:
            self._subscriptions.pop(subscription_id, None)

    def forget_account(self, account_id: str) -> None:
        with self._lock:
            state = self._state_by_account.pop(account_id, None)
            if state is not None:
                accounts = self._accounts_by_state.get(state, set())
                accounts.discard(account_id)
                if not accounts:
                    self._accounts_by_state.pop(state, None)
            for sub_id in [s for s, (_, a, _) in self._subscriptions.items() if a == account_id]:
                del self._subscriptions[sub_id]

    def is_known(self, client_state: Optional[str]) -> bool:
        if not client_state:
            return False
        with self._lock:
            return client_state in self._accounts_by_state

    def resolve(self, client_state: Optional[str], subscription_id: Optional[str] = None) -> Optional[str]:
        """
        Find the account a notification belongs to.

        Returns None unless the client state is known and identifies exactly
        one account (directly, or through the subscription id).
        """
        if not client_state:
            return None

        with self._lock:
            if subscription_id and subscription_id in self._subscriptions:
                state, account_id, _ = self._subscriptions[subscription_id]
                return account_id if state == client_state else None

            accounts = self._accounts_by_state.get(client_state, set())
            if len(accounts) == 1:
                return next(iter(accounts))
        return None


def validate_expiration(expiration: datetime, now: Optional[datetime] = None) -> datetime:
    """
    Reject expirations Graph would refuse.

    Raises:
        InvalidSubscriptionError: In the past or beyond the maximum lifetime
    """
    now = now or _utcnow()
    if expiration.tzinfo is None:
        expiration = expiration.replace(tzinfo=timezone.utc)
    if expiration <= now:
        raise InvalidSubscriptionError("Subscription expiration must be in the future.")
    if expiration > now + timedelta(minutes=MAX_SUBSCRIPTION_MINUTES):
        raise InvalidSubscriptionError(
            f"Subscription expiration exceeds the maximum of {MAX_SUBSCRIPTION_MINUTES} minutes."
        )
    return expiration


class SubscriptionManager:
    """
    Manages Graph change subscriptions for the mail resource.

    Usage:
        manager = SubscriptionManager(mail_service, registry, settings)
        sub = await manager.create(account_id, client_state)
        subs = await manager.list(account_id)
        result = await manager.delete_all(account_id)
    """

    def __init__(self, mail_service: MailService, registry: ClientStateRegistry, settings: Settings):
        self.mail = mail_service
        self.registry = registry
        self.settings = settings

    def default_expiration(self, minutes: Optional[int] = None) -> datetime:
        if minutes is None:
            minutes = self.settings.subscription_expiration_minutes
        return _utcnow() + timedelta(minutes=minutes)

    async def create(
        self,
        account_id: str,
        client_state: str,
        expiration: Optional[datetime] = None,
    ) -> Subscription:
        """
        Register a change subscription for the account's messages.

        Raises:
            InvalidSubscriptionError: Expiration outside the provider window
            GraphError: Provider rejected the subscription
        """
        expiration = validate_expiration(expiration if expiration is not None else self.default_expiration())

        client = await self.mail.client_for(account_id)
        data = await client.post("/subscriptions", {
            "changeType": self.settings.subscription_change_type,
            "notificationUrl": self.settings.notification_url,
            "resource": self.settings.subscription_resource,
            "expirationDateTime": _isoformat(expiration),
            "clientState": client_state,
        })

        subscription = Subscription.model_validate(data)
        self.registry.bind_subscription(subscription.id, client_state, account_id, expiration)
        logger.info(f"Created subscription {subscription.id} expiring {subscription.expiration_date_time}")
        return subscription

    async def list(self, account_id: str) -> List[Subscription]:
        """
        List subscriptions visible to this application.

        Graph returns every subscription created by the app, not only the
        ones for this account.
        """
        client = await self.mail.client_for(account_id)
        data = await client.get("/subscriptions")
        return [Subscription.model_validate(item) for item in data.get("value", [])]

    async def renew(self, account_id: str, subscription_id: str, minutes: Optional[int] = None) -> Subscription:
        """
        Push a subscription's expiration forward.

        Raises:
            InvalidSubscriptionError: Expiration outside the provider window
            SubscriptionNotFoundError: Unknown or already expired subscription
        """
        expiration = validate_expiration(self.default_expiration(minutes))

        client = await self.mail.client_for(account_id)
        try:
            data = await client.patch(
                f"/subscriptions/{quote(subscription_id, safe='')}",
                {"expirationDateTime": _isoformat(expiration)},
            )
        except GraphNotFoundError:
            self.registry.forget_subscription(subscription_id)
            raise SubscriptionNotFoundError(subscription_id)

        self.registry.extend_subscription(subscription_id, expiration)
        logger.info(f"Renewed subscription {subscription_id} until {_isoformat(expiration)}")
        return Subscription.model_validate(data)

    async def delete(self, account_id: str, subscription_id: str) -> None:
        """
        Delete one subscription.

        Raises:
            SubscriptionNotFoundError: Graph has no such subscription
        """
        client = await self.mail.client_for(account_id)
        try:
            await client.delete(f"/subscriptions/{quote(subscription_id, safe='')}")
        except GraphNotFoundError:
            raise SubscriptionNotFoundError(subscription_id)
        finally:
            self.registry.forget_subscription(subscription_id)
        logger.info(f"Deleted subscription {subscription_id}")

    async def delete_all(self, account_id: str) -> DeleteAllResult:
        """
        Delete every listed subscription.

        Deletions run concurrently (bounded by subscription_delete_concurrency)
        and independently: one failure never stops the others. Each outcome
        is reported in the result.
        """
        subscriptions = await self.list(account_id)
        if not subscriptions:
            return DeleteAllResult()

        semaphore = asyncio.Semaphore(self.settings.subscription_delete_concurrency)

        async def _delete_one(subscription_id: str) -> DeletionResult:
            async with semaphore:
                try:
                    await self.delete(account_id, subscription_id)
                    return DeletionResult(subscription_id=subscription_id, success=True)
                except AppError as e:
                    logger.warning(f"Failed to delete subscription {subscription_id}: {e.message}")
                    return DeletionResult(subscription_id=subscription_id, success=False, error=e.message)
                except Exception as e:
                    logger.error(f"Unexpected error deleting subscription {subscription_id}: {e}")
                    return DeletionResult(subscription_id=subscription_id, success=False, error=str(e))

        results = await asyncio.gather(*(_delete_one(sub.id) for sub in subscriptions))
        result = DeleteAllResult(results=list(results))
        logger.info(f"Deleted {len(result.deleted)} of {len(results)} subscriptions")
        return result
