"""
Pytest fixtures for mailhook tests.
"""
import os

# Settings are read at import time of mailhook.main
os.environ["CLIENT_ID"] = "test-client-id"
os.environ["CLIENT_SECRET"] = "test-client-secret"
os.environ["HOST"] = "http://localhost:3000"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ.pop("CLIENT_STATE", None)

import pytest
from unittest.mock import AsyncMock, MagicMock

from mailhook.config import Settings
from mailhook.integrations.graph_client import GraphClient
from mailhook.integrations.msal_auth import IdentityClient
from mailhook.services.mail_service import MailService
from mailhook.services.subscription_service import ClientStateRegistry, SubscriptionManager


@pytest.fixture
def settings():
    """Settings built without reading .env."""
    return Settings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        host="http://localhost:3000",
        session_secret="test-session-secret",
        _env_file=None,
    )


@pytest.fixture
def identity():
    """IdentityClient with every MSAL call mocked."""
    mock = MagicMock(spec=IdentityClient)
    mock.initiate_auth_flow = AsyncMock(side_effect=lambda: mock_auth_flow())
    mock.acquire_token_by_auth_flow = AsyncMock(return_value=mock_token_response())
    mock.home_account_id = AsyncMock(return_value="acct-1.tenant-1")
    mock.acquire_token_silent = AsyncMock(return_value="mock-access-token")
    mock.remove_account = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def graph():
    """GraphClient whose HTTP verbs are mocked."""
    mock = MagicMock(spec=GraphClient)
    mock.get = AsyncMock(return_value={})
    mock.post = AsyncMock(return_value={})
    mock.patch = AsyncMock(return_value={})
    mock.delete = AsyncMock(return_value={})
    return mock


@pytest.fixture
def mail_service(identity, settings, graph):
    """MailService that hands out the mocked GraphClient."""
    service = MailService(identity, settings)
    service.client_for = AsyncMock(return_value=graph)
    return service


@pytest.fixture
def registry():
    return ClientStateRegistry()


@pytest.fixture
def subscription_manager(mail_service, registry, settings):
    return SubscriptionManager(mail_service, registry, settings)


def mock_token_response(**overrides):
    """MSAL acquire_token_by_auth_code_flow result."""
    result = {
        "token_type": "Bearer",
        "scope": "User.Read Mail.Read",
        "expires_in": 3599,
        "access_token": "secret-access-token",
        "refresh_token": "secret-refresh-token",
        "id_token_claims": {
            "preferred_username": "test@example.com",
            "name": "Test User",
            "oid": "acct-1",
            "tid": "tenant-1",
        },
    }
    result.update(overrides)
    return result


def mock_subscription(sub_id="sub-1", client_state="state-1"):
    """Graph subscription resource."""
    return {
        "id": sub_id,
        "changeType": "created",
        "resource": "/me/messages",
        "notificationUrl": "http://localhost:3000/hook/notification",
        "expirationDateTime": "2026-10-22T10:00:00Z",
        "clientState": client_state,
    }


def mock_notification(
    client_state="state-1",
    message_id="m1",
    change_type="created",
    odata_type="#Microsoft.Graph.Message",
    subscription_id="sub-1",
):
    """One change entry as Graph delivers it."""
    return {
        "subscriptionId": subscription_id,
        "changeType": change_type,
        "clientState": client_state,
        "resource": f"Users/acct-1/Messages/{message_id}",
        "resourceData": {
            "@odata.type": odata_type,
            "@odata.id": f"Users/acct-1/Messages/{message_id}",
            "id": message_id,
        },
    }


def mock_auth_flow(state="state-abc"):
    """MSAL initiate_auth_code_flow result."""
    return {
        "state": state,
        "redirect_uri": "http://localhost:3000/auth/callback",
        "scope": ["User.Read", "Mail.Read", "openid", "profile", "offline_access"],
        "auth_uri": "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
        "?client_id=test-client-id&response_type=code"
        f"&redirect_uri=http%3A%2F%2Flocalhost%3A3000%2Fauth%2Fcallback&state={state}",
        "code_verifier": "verifier",
        "nonce": "nonce",
    }
