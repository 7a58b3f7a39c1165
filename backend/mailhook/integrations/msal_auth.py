"""
Microsoft identity platform integration (MSAL).

This module handles:
1. Starting an authorization-code flow (consent URL, state, PKCE)
2. Completing the flow from the provider's redirect
3. Acquiring tokens silently for a cached account
4. Evicting accounts from the token cache on sign-out

MSAL is synchronous and may hit the network (authority discovery, token
endpoint), so every call is pushed to the threadpool. Network failures are
bounded by identity_timeout_seconds and surface as IdentityTimeoutError or
IdentityUnavailableError.
"""
from typing import Optional

import msal
import requests
from fastapi.concurrency import run_in_threadpool

from mailhook.config import Settings
from mailhook.utils.errors import AuthError, IdentityTimeoutError, IdentityUnavailableError
from mailhook.utils.logger import get_logger

logger = get_logger(__name__)


class IdentityClient:
    """
    Thin wrapper around msal.ConfidentialClientApplication.

    Usage:
        identity = IdentityClient(settings)
        flow = await identity.initiate_auth_flow()
        result = await identity.acquire_token_by_auth_flow(flow, request_params)
        token = await identity.acquire_token_silent(home_account_id)
    """

    def __init__(self, settings: Settings, token_cache: Optional[msal.TokenCache] = None):
        self.settings = settings
        self.token_cache = token_cache or msal.SerializableTokenCache()
        self._app: Optional[msal.ConfidentialClientApplication] = None

    @property
    def app(self) -> msal.ConfidentialClientApplication:
        # Built lazily: the constructor performs authority discovery
        if self._app is None:
            self._app = msal.ConfidentialClientApplication(
                client_id=self.settings.client_id,
                client_credential=self.settings.client_secret,
                authority=self.settings.authority,
                token_cache=self.token_cache,
                timeout=self.settings.identity_timeout_seconds,
            )
        return self._app

    async def _call(self, method: str, *args, **kwargs):
        """
        Run one MSAL method in the threadpool.

        The app itself is resolved inside the worker so that authority
        discovery is bounded the same way.

        Raises:
            IdentityTimeoutError: The provider did not answer in time
            IdentityUnavailableError: Connection or transport failure
        """
        def invoke():
            return getattr(self.app, method)(*args, **kwargs)

        try:
            return await run_in_threadpool(invoke)
        except requests.exceptions.Timeout as e:
            logger.error(f"Identity provider {method} timed out: {e}")
            raise IdentityTimeoutError()
        except requests.exceptions.RequestException as e:
            logger.error(f"Identity provider {method} failed: {e}")
            raise IdentityUnavailableError()

    async def initiate_auth_flow(self) -> dict:
        """
        Start an authorization-code flow for the fixed scopes.

        Returns:
            The MSAL flow dict. "auth_uri" is the consent URL and "state"
            identifies the flow when the provider redirects back.
        """
        flow = await self._call(
            "initiate_auth_code_flow",
            self.settings.scopes,
            redirect_uri=self.settings.redirect_uri,
        )
        if "auth_uri" not in flow:
            logger.error(f"Could not start auth flow: {flow.get('error')}")
            raise AuthError("Failed to create authorization URL", "AUTH_URL_FAILED")

        logger.info("Generated authorization URL")
        return flow

    async def acquire_token_by_auth_flow(self, flow: dict, auth_response: dict) -> dict:
        """
        Complete a flow with the query parameters of the provider redirect.

        Raises:
            AuthError: State mismatch, or the provider rejects the code
        """
        try:
            result = await self._call(
                "acquire_token_by_auth_code_flow",
                flow,
                auth_response,
                scopes=self.settings.scopes,
            )
        except ValueError as e:
            # MSAL raises on a state mismatch
            logger.warning(f"Authorization response rejected: {e}")
            raise AuthError("Authorization response does not match the sign-in request", "STATE_MISMATCH")

        if not result or "error" in result:
            error = (result or {}).get("error", "unknown_error")
            description = (result or {}).get("error_description", "")
            logger.error(f"Token exchange failed: {error} {description}")
            raise AuthError(f"Failed to exchange code: {error}", "TOKEN_EXCHANGE_FAILED")

        logger.info("Successfully exchanged code for tokens")
        return result

    async def home_account_id(self, result: dict) -> str:
        """
        Resolve the home account id for a token response.

        The account is looked up in the token cache by username; if that
        fails it is derived from the ID token claims (oid.tid).
        """
        claims = result.get("id_token_claims") or {}
        username = claims.get("preferred_username")

        if username:
            accounts = await self._call("get_accounts", username)
            if accounts:
                return accounts[0]["home_account_id"]

        oid, tid = claims.get("oid"), claims.get("tid")
        if oid and tid:
            return f"{oid}.{tid}"

        raise AuthError("Token response did not identify an account", "ACCOUNT_UNKNOWN")

    async def _find_account(self, home_account_id: str) -> Optional[dict]:
        accounts = await self._call("get_accounts")
        for account in accounts:
            if account.get("home_account_id") == home_account_id:
                return account
        return None

    async def acquire_token_silent(self, home_account_id: str) -> str:
        """
        Get an access token for a cached account without user interaction.

        Raises:
            AuthError: If the account is not cached or renewal fails
            IdentityTimeoutError: If the token endpoint does not answer
        """
        if not home_account_id:
            raise AuthError("No account id is provided", "ACCOUNT_UNKNOWN")

        account = await self._find_account(home_account_id)
        if not account:
            logger.warning("Account not found in token cache")
            raise AuthError("Account is not signed in", "ACCOUNT_UNKNOWN")

        result = await self._call("acquire_token_silent", self.settings.scopes, account=account)

        if not result or "access_token" not in result:
            error = (result or {}).get("error", "no_cached_token")
            logger.warning(f"Silent token acquisition failed: {error}")
            raise AuthError("Failed to acquire token silently. Please sign in again.", "TOKEN_RENEWAL_FAILED")

        return result["access_token"]

    async def remove_account(self, home_account_id: str) -> bool:
        """Evict an account from the token cache."""
        account = await self._find_account(home_account_id)
        if not account:
            return False
        await self._call("remove_account", account)
        logger.info("Removed account from token cache")
        return True
