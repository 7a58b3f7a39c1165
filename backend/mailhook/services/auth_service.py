"""
Authentication service.

This module orchestrates the sign-in flow:
1. Start an auth-code flow → msal_auth (consent URL + per-request state)
2. Handle callback → check state → exchange code → subscribe to mail changes → bind session
3. Sign out → drop session and cached account
"""
import secrets
from typing import List, Optional

from pydantic import BaseModel

from mailhook.integrations.msal_auth import IdentityClient
from mailhook.models.subscription import Subscription
from mailhook.services.session_service import AuthFlowStore, SessionStore
from mailhook.services.subscription_service import ClientStateRegistry, SubscriptionManager
from mailhook.utils.errors import AppError, InvalidRequestError
from mailhook.utils.logger import get_logger

logger = get_logger(__name__)


class AccountInfo(BaseModel):
    home_account_id: str
    username: Optional[str] = None
    name: Optional[str] = None


class CallbackResult(BaseModel):
    """Token response returned to the caller. Raw tokens are never included."""
    account: AccountInfo
    token_type: Optional[str] = None
    scopes: List[str] = []
    expires_in: Optional[int] = None
    subscription: Optional[Subscription] = None


class SignInStart(BaseModel):
    redirect: str
    state: str


class SignInResult(BaseModel):
    session_token: str
    response: CallbackResult


class AuthService:
    """
    Authentication service handling the authorization-code flow.

    Usage:
        auth_service = AuthService(identity, sessions, registry, subscriptions, flows)
        start = await auth_service.signin()
        result = await auth_service.callback(dict(request.query_params), state_cookie)
    """

    def __init__(
        self,
        identity: IdentityClient,
        sessions: SessionStore,
        registry: ClientStateRegistry,
        subscriptions: SubscriptionManager,
        flows: AuthFlowStore,
    ):
        self.identity = identity
        self.sessions = sessions
        self.registry = registry
        self.subscriptions = subscriptions
        self.flows = flows

    async def signin(self) -> SignInStart:
        """Start a flow and get the provider consent URL."""
        flow = await self.identity.initiate_auth_flow()
        state = self.flows.put(flow)
        return SignInStart(redirect=flow["auth_uri"], state=state)

    async def callback(self, auth_response: dict, browser_state: Optional[str]) -> SignInResult:
        """
        Complete the code exchange and subscribe to the account's mail.

        Flow:
        1. Match the returned state to the flow this browser started
        2. Exchange authorization code for tokens
        3. Replace existing subscriptions with a fresh one
        4. Bind the account to a new session

        A rejected subscription does not fail the sign-in; it is logged and
        reported as subscription=None.

        Raises:
            InvalidRequestError: Unknown, stale or foreign state
            AuthError: If the code exchange fails
        """
        state = auth_response.get("state")
        if not state or not browser_state or not secrets.compare_digest(state.encode(), browser_state.encode()):
            logger.warning("Callback state does not match the browser's sign-in")
            raise InvalidRequestError("Sign-in state does not match this browser.")

        flow = self.flows.pop(state)
        if flow is None:
            logger.warning("Callback for an unknown or expired sign-in")
            raise InvalidRequestError("Sign-in request is unknown or has expired.")

        result = await self.identity.acquire_token_by_auth_flow(flow, auth_response)
        account_id = await self.identity.home_account_id(result)
        client_state = self.registry.register_account(account_id)

        subscription = None
        try:
            deleted = await self.subscriptions.delete_all(account_id)
            if deleted.failed:
                logger.warning(f"Could not delete subscriptions: {deleted.failed}")
            subscription = await self.subscriptions.create(account_id, client_state)
            logger.info("Created a subscription successfully")
        except AppError as e:
            logger.error(f"Subscription setup failed: {e.code} {e.message}")

        # Created last: a session is stored only when its cookie is returned
        session_token = self.sessions.create(account_id)

        claims = result.get("id_token_claims") or {}
        response = CallbackResult(
            account=AccountInfo(
                home_account_id=account_id,
                username=claims.get("preferred_username"),
                name=claims.get("name"),
            ),
            token_type=result.get("token_type"),
            scopes=(result.get("scope") or "").split(),
            expires_in=result.get("expires_in"),
            subscription=subscription,
        )
        return SignInResult(session_token=session_token, response=response)

    async def signout(self, session_token: str) -> bool:
        """
        Drop the session and evict the account from the token cache.

        Returns:
            True if a session was removed
        """
        session = self.sessions.delete(session_token)
        if not session:
            return False
        await self.identity.remove_account(session.home_account_id)
        self.registry.forget_account(session.home_account_id)
        return True
