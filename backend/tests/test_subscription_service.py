"""
Unit tests for subscription management and client-state correlation.
"""
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock

from conftest import mock_subscription
from mailhook.config import MAX_SUBSCRIPTION_MINUTES
from mailhook.services.subscription_service import ClientStateRegistry, validate_expiration
from mailhook.utils.errors import (
    GraphError,
    GraphNotFoundError,
    InvalidSubscriptionError,
    SubscriptionNotFoundError,
)


class TestClientStateRegistry:
    """Test client-state to account correlation."""

    def test_per_account_state_is_stable(self, registry):
        first = registry.register_account("acct-1")
        again = registry.register_account("acct-1")
        other = registry.register_account("acct-2")

        assert first == again
        assert first != other
        assert registry.resolve(first) == "acct-1"
        assert registry.resolve(other) == "acct-2"

    def test_unknown_state_resolves_to_none(self, registry):
        registry.register_account("acct-1")

        assert registry.resolve("not-a-state") is None
        assert registry.resolve(None) is None
        assert not registry.is_known("not-a-state")

    def test_fixed_state_is_shared(self):
        registry = ClientStateRegistry(fixed_state="X")

        assert registry.register_account("acct-1") == "X"
        assert registry.register_account("acct-2") == "X"
        assert registry.is_known("X")

    def test_fixed_state_uses_subscription_to_pick_account(self):
        registry = ClientStateRegistry(fixed_state="X")
        registry.register_account("acct-1")
        registry.register_account("acct-2")
        registry.bind_subscription("sub-2", "X", "acct-2")

        assert registry.resolve("X", "sub-2") == "acct-2"
        # Ambiguous without a known subscription
        assert registry.resolve("X") is None
        assert registry.resolve("X", "sub-unknown") is None

    def test_subscription_with_wrong_state_is_rejected(self, registry):
        state = registry.register_account("acct-1")
        registry.bind_subscription("sub-1", state, "acct-1")

        assert registry.resolve("forged", "sub-1") is None

    def test_lapsed_subscriptions_are_swept(self):
        registry = ClientStateRegistry(fixed_state="X")
        registry.register_account("acct-1")
        registry.register_account("acct-2")
        past = datetime.now(timezone.utc) - timedelta(minutes=1)
        future = datetime.now(timezone.utc) + timedelta(days=1)
        registry.bind_subscription("sub-old", "X", "acct-1", past)

        registry.bind_subscription("sub-new", "X", "acct-2", future)

        assert registry.resolve("X", "sub-old") is None
        assert registry.resolve("X", "sub-new") == "acct-2"

    def test_renewal_extends_binding(self):
        registry = ClientStateRegistry(fixed_state="X")
        registry.register_account("acct-1")
        registry.register_account("acct-2")
        registry.bind_subscription("sub-1", "X", "acct-1", datetime.now(timezone.utc) - timedelta(minutes=1))

        registry.extend_subscription("sub-1", datetime.now(timezone.utc) + timedelta(days=1))
        registry.bind_subscription("sub-2", "X", "acct-2")

        assert registry.resolve("X", "sub-1") == "acct-1"

    def test_forget_account(self, registry):
        state = registry.register_account("acct-1")
        registry.bind_subscription("sub-1", state, "acct-1")

        registry.forget_account("acct-1")

        assert registry.resolve(state) is None
        assert registry.resolve(state, "sub-1") is None
        assert registry.client_state_for("acct-1") is None


class TestValidateExpiration:

    def test_accepts_window(self):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)
        expiration = now + timedelta(days=2)

        assert validate_expiration(expiration, now) == expiration

    def test_naive_datetime_is_utc(self):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)

        result = validate_expiration(datetime(2026, 10, 20), now)

        assert result.tzinfo == timezone.utc

    def test_rejects_past(self):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)

        with pytest.raises(InvalidSubscriptionError):
            validate_expiration(now - timedelta(minutes=1), now)

    def test_rejects_beyond_provider_maximum(self):
        now = datetime(2026, 10, 19, tzinfo=timezone.utc)

        with pytest.raises(InvalidSubscriptionError):
            validate_expiration(now + timedelta(minutes=MAX_SUBSCRIPTION_MINUTES + 1), now)


class TestSubscriptionCreate:

    @pytest.mark.asyncio
    async def test_create_posts_subscription(self, subscription_manager, graph, registry, settings):
        graph.post.return_value = mock_subscription("sub-1", "state-1")

        subscription = await subscription_manager.create("acct-1", "state-1")

        assert subscription.id == "sub-1"
        endpoint, body = graph.post.call_args.args
        assert endpoint == "/subscriptions"
        assert body["changeType"] == "created"
        assert body["resource"] == "/me/messages"
        assert body["notificationUrl"] == "http://localhost:3000/hook/notification"
        assert body["clientState"] == "state-1"
        assert body["expirationDateTime"].endswith("Z")
        assert registry.resolve("state-1", "sub-1") == "acct-1"

    @pytest.mark.asyncio
    async def test_create_rejects_expiration_before_remote_call(self, subscription_manager, graph):
        too_far = datetime.now(timezone.utc) + timedelta(days=30)

        with pytest.raises(InvalidSubscriptionError):
            await subscription_manager.create("acct-1", "state-1", expiration=too_far)

        graph.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_rejects_zero_minutes(self, subscription_manager, graph):
        with pytest.raises(InvalidSubscriptionError):
            await subscription_manager.create("acct-1", "state-1", subscription_manager.default_expiration(0))

        graph.post.assert_not_awaited()

    def test_default_expiration_uses_setting_only_when_unset(self, subscription_manager, settings):
        now = datetime.now(timezone.utc)

        default = subscription_manager.default_expiration()
        zero = subscription_manager.default_expiration(0)

        assert default - now >= timedelta(minutes=settings.subscription_expiration_minutes)
        assert zero - now < timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_create_propagates_provider_rejection(self, subscription_manager, graph):
        graph.post.side_effect = GraphError("Graph API error: 400", status=400)

        with pytest.raises(GraphError):
            await subscription_manager.create("acct-1", "state-1")


class TestSubscriptionListAndRenew:

    @pytest.mark.asyncio
    async def test_list_returns_all_visible(self, subscription_manager, graph):
        graph.get.return_value = {"value": [mock_subscription("sub-1"), mock_subscription("sub-2", "other")]}

        subscriptions = await subscription_manager.list("acct-1")

        assert [s.id for s in subscriptions] == ["sub-1", "sub-2"]
        graph.get.assert_awaited_once_with("/subscriptions")

    @pytest.mark.asyncio
    async def test_renew_patches_expiration(self, subscription_manager, graph):
        graph.patch.return_value = mock_subscription("sub-1")

        subscription = await subscription_manager.renew("acct-1", "sub-1", minutes=60)

        assert subscription.id == "sub-1"
        endpoint, body = graph.patch.call_args.args
        assert endpoint == "/subscriptions/sub-1"
        assert set(body) == {"expirationDateTime"}

    @pytest.mark.asyncio
    async def test_renew_rejects_too_long(self, subscription_manager, graph):
        with pytest.raises(InvalidSubscriptionError):
            await subscription_manager.renew("acct-1", "sub-1", minutes=MAX_SUBSCRIPTION_MINUTES + 60)

        graph.patch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_renew_rejects_zero_minutes(self, subscription_manager, graph):
        with pytest.raises(InvalidSubscriptionError):
            await subscription_manager.renew("acct-1", "sub-1", minutes=0)

        graph.patch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_renew_missing_subscription(self, subscription_manager, graph):
        graph.patch.side_effect = GraphNotFoundError("/subscriptions/gone")

        with pytest.raises(SubscriptionNotFoundError):
            await subscription_manager.renew("acct-1", "gone")


class TestDeleteAll:

    @pytest.mark.asyncio
    async def test_delete_all_with_no_subscriptions(self, subscription_manager, graph):
        graph.get.return_value = {"value": []}

        result = await subscription_manager.delete_all("acct-1")

        assert result.results == []
        graph.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_all_deletes_every_subscription(self, subscription_manager, graph):
        graph.get.return_value = {"value": [mock_subscription(f"sub-{i}") for i in range(3)]}

        result = await subscription_manager.delete_all("acct-1")

        assert sorted(result.deleted) == ["sub-0", "sub-1", "sub-2"]
        assert result.failed == []
        assert graph.delete.await_count == 3

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, subscription_manager, graph):
        graph.get.return_value = {"value": [mock_subscription(f"sub-{i}") for i in range(3)]}

        async def delete(endpoint):
            if endpoint == "/subscriptions/sub-1":
                raise GraphError("Graph API error: 500", status=500)
            return {}

        graph.delete = AsyncMock(side_effect=delete)

        result = await subscription_manager.delete_all("acct-1")

        assert sorted(result.deleted) == ["sub-0", "sub-2"]
        assert result.failed == ["sub-1"]
        failed = [r for r in result.results if not r.success][0]
        assert "500" in failed.error
        assert graph.delete.await_count == 3

    @pytest.mark.asyncio
    async def test_delete_forgets_subscription(self, subscription_manager, graph, registry):
        state = registry.register_account("acct-1")
        registry.bind_subscription("sub-1", state, "acct-1")

        await subscription_manager.delete("acct-1", "sub-1")

        # Falls back to state lookup once the subscription is gone
        assert registry.resolve(state, "sub-1") == "acct-1"
        graph.delete.assert_awaited_once_with("/subscriptions/sub-1")

    @pytest.mark.asyncio
    async def test_delete_missing_subscription(self, subscription_manager, graph):
        graph.delete.side_effect = GraphNotFoundError("/subscriptions/gone")

        with pytest.raises(SubscriptionNotFoundError):
            await subscription_manager.delete("acct-1", "gone")
