"""
Tests for the Stripe provider adapter: result shaping and error translation
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import stripe

from config.settings import Settings
from services.errors import ProviderError
from services.stripe_provider import StripeProvider


def _provider(timeout: float = 5.0) -> StripeProvider:
    provider = StripeProvider(Settings(STRIPE_SECRET_KEY="sk_test_123", STRIPE_TIMEOUT_SECONDS=timeout))
    provider._client = MagicMock()
    return provider


@pytest.mark.asyncio
async def test_missing_secret_key_is_a_provider_error():
    provider = StripeProvider(Settings(STRIPE_SECRET_KEY=None))
    with pytest.raises(ProviderError, match="STRIPE_SECRET_KEY"):
        await provider.create_checkout_session({"mode": "subscription"})


@pytest.mark.asyncio
async def test_checkout_session_is_shaped():
    provider = _provider()
    provider._client.checkout.sessions.create_async = AsyncMock(
        return_value=SimpleNamespace(id="cs_123", url="https://checkout.stripe.test/cs_123")
    )

    session = await provider.create_checkout_session({"mode": "subscription"})

    assert session.id == "cs_123"
    assert session.url == "https://checkout.stripe.test/cs_123"
    provider._client.checkout.sessions.create_async.assert_awaited_once_with(params={"mode": "subscription"})


@pytest.mark.asyncio
async def test_stripe_errors_become_provider_errors():
    provider = _provider()
    provider._client.subscriptions.cancel_async = AsyncMock(side_effect=stripe.APIConnectionError("network down"))

    with pytest.raises(ProviderError):
        await provider.cancel_subscription("sub_123")


@pytest.mark.asyncio
async def test_slow_provider_times_out():
    provider = _provider(timeout=0.01)

    async def never_returns(*args, **kwargs):
        await asyncio.sleep(1)

    provider._client.billing_portal.sessions.create_async = never_returns

    with pytest.raises(ProviderError, match="timed out"):
        await provider.create_portal_session("cus_123", "https://app.test/settings")


@pytest.mark.asyncio
async def test_cancel_returns_reported_status():
    provider = _provider()
    provider._client.subscriptions.cancel_async = AsyncMock(return_value=SimpleNamespace(status="canceled"))

    assert await provider.cancel_subscription("sub_123") == "canceled"
