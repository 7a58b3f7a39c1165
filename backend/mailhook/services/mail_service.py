"""
Mail service - pass-through calls to Graph on behalf of a signed-in account.

Each call acquires a token silently for the account, opens a GraphClient
scoped to that token, and calls one endpoint.
"""
from urllib.parse import quote

from mailhook.config import Settings
from mailhook.integrations.graph_client import GraphClient
from mailhook.integrations.msal_auth import IdentityClient
from mailhook.models.email import MESSAGE_FIELDS
from mailhook.utils.errors import GraphNotFoundError, MessageNotFoundError
from mailhook.utils.logger import get_logger

logger = get_logger(__name__)

USER_FIELDS = "displayName,userPrincipalName"


class MailService:
    """
    Graph facade for profile and message reads.

    Usage:
        service = MailService(identity, settings)
        user = await service.get_user_details(account_id)
        emails = await service.get_emails(account_id)
    """

    def __init__(self, identity: IdentityClient, settings: Settings):
        self.identity = identity
        self.settings = settings

    async def client_for(self, account_id: str) -> GraphClient:
        """
        Open a Graph client for an account.

        Raises:
            AuthError: If no token can be acquired silently
        """
        access_token = await self.identity.acquire_token_silent(account_id)
        return GraphClient(
            access_token,
            base_url=self.settings.graph_base_url,
            timeout=self.settings.graph_timeout_seconds,
        )

    async def get_user_details(self, account_id: str) -> dict:
        client = await self.client_for(account_id)
        return await client.get("/me", params={"$select": USER_FIELDS})

    async def get_emails(self, account_id: str) -> dict:
        """List messages. A single page is returned as-is."""
        client = await self.client_for(account_id)
        return await client.get("/me/messages", params={"$select": MESSAGE_FIELDS})

    async def get_email_by_id(self, account_id: str, message_id: str) -> dict:
        """
        Fetch one message.

        Raises:
            MessageNotFoundError: If Graph has no message with this id
        """
        client = await self.client_for(account_id)
        try:
            return await client.get(f"/me/messages/{quote(message_id, safe='')}", params={"$select": MESSAGE_FIELDS})
        except GraphNotFoundError:
            logger.warning(f"Message not found: {message_id}")
            raise MessageNotFoundError(message_id)
