"""
Subscription management endpoints for the signed-in account.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from mailhook.dependencies import get_current_account, get_registry, get_subscription_manager
from mailhook.models.subscription import (
    CreateSubscriptionRequest,
    DeleteAllResult,
    RenewSubscriptionRequest,
    Subscription,
)
from mailhook.services.subscription_service import ClientStateRegistry, SubscriptionManager
from mailhook.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/subscriptions", response_model=list[Subscription])
async def list_subscriptions(
    account_id: str = Depends(get_current_account),
    manager: SubscriptionManager = Depends(get_subscription_manager),
):
    """List every subscription visible to this application."""
    return await manager.list(account_id)


@router.post("/subscriptions", response_model=Subscription, status_code=201)
async def create_subscription(
    request: Optional[CreateSubscriptionRequest] = None,
    account_id: str = Depends(get_current_account),
    manager: SubscriptionManager = Depends(get_subscription_manager),
    registry: ClientStateRegistry = Depends(get_registry),
):
    """Subscribe the signed-in account to new mail."""
    client_state = registry.register_account(account_id)
    expiration = manager.default_expiration(request.expiration_minutes if request else None)
    return await manager.create(account_id, client_state, expiration)


@router.delete("/subscriptions", response_model=DeleteAllResult)
async def delete_all_subscriptions(
    account_id: str = Depends(get_current_account),
    manager: SubscriptionManager = Depends(get_subscription_manager),
):
    """Delete every listed subscription, reporting each outcome."""
    return await manager.delete_all(account_id)


@router.delete("/subscriptions/{subscription_id}", status_code=204)
async def delete_subscription(
    subscription_id: str,
    account_id: str = Depends(get_current_account),
    manager: SubscriptionManager = Depends(get_subscription_manager),
):
    await manager.delete(account_id, subscription_id)


@router.patch("/subscriptions/{subscription_id}", response_model=Subscription)
async def renew_subscription(
    subscription_id: str,
    request: Optional[RenewSubscriptionRequest] = None,
    account_id: str = Depends(get_current_account),
    manager: SubscriptionManager = Depends(get_subscription_manager),
):
    """Extend a subscription's expiration."""
    return await manager.renew(account_id, subscription_id, request.expiration_minutes if request else None)
