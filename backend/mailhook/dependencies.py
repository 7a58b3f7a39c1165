"""
FastAPI dependency providers.

Each collaborator is built once per process. Tests swap them out through
app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends, Request

from mailhook.config import Settings, get_settings
from mailhook.integrations.msal_auth import IdentityClient
from mailhook.services.auth_service import AuthService
from mailhook.services.mail_service import MailService
from mailhook.services.notification_service import NotificationService
from mailhook.services.session_service import AuthFlowStore, SessionStore, resolve_account
from mailhook.services.subscription_service import ClientStateRegistry, SubscriptionManager


@lru_cache()
def get_identity() -> IdentityClient:
    return IdentityClient(get_settings())


@lru_cache()
def get_session_store() -> SessionStore:
    return SessionStore(get_settings())


@lru_cache()
def get_auth_flows() -> AuthFlowStore:
    return AuthFlowStore(get_settings())


@lru_cache()
def get_registry() -> ClientStateRegistry:
    return ClientStateRegistry(fixed_state=get_settings().client_state)


def get_mail_service(identity: IdentityClient = Depends(get_identity)) -> MailService:
    return MailService(identity, get_settings())


def get_subscription_manager(
    mail: MailService = Depends(get_mail_service),
    registry: ClientStateRegistry = Depends(get_registry),
) -> SubscriptionManager:
    return SubscriptionManager(mail, registry, get_settings())


def get_notification_service(
    mail: MailService = Depends(get_mail_service),
    registry: ClientStateRegistry = Depends(get_registry),
) -> NotificationService:
    return NotificationService(registry, mail)


def get_auth_service(
    identity: IdentityClient = Depends(get_identity),
    sessions: SessionStore = Depends(get_session_store),
    registry: ClientStateRegistry = Depends(get_registry),
    subscriptions: SubscriptionManager = Depends(get_subscription_manager),
    flows: AuthFlowStore = Depends(get_auth_flows),
) -> AuthService:
    return AuthService(identity, sessions, registry, subscriptions, flows)


def get_current_account(
    request: Request,
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Dependency for protected routes.

    Raises:
        NotSignedInError: Rendered as 400 "Error" before any remote call
    """
    return resolve_account(request, sessions, settings)
