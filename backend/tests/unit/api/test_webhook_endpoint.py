"""Unit tests for the Stripe webhook endpoint."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from storepilot.api import deps
from storepilot.main import app
from storepilot.schemas.billing_event import EventOutcome

WEBHOOK_URL = "/billing/webhook"
MODULE = "storepilot.api.v1.endpoints.webhook"


@pytest.fixture
def client():
    """Create a test client with the database dependency replaced."""

    async def _override_db():
        yield AsyncMock(spec=AsyncSession)

    app.dependency_overrides[deps.get_db] = _override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def enabled_stripe():
    """Enable Stripe and replace the client used by the endpoint."""
    mock_client = MagicMock()
    mock_client.verify_webhook_signature.return_value = {
        "id": "evt_1",
        "type": "customer.subscription.updated",
    }
    with (
        patch(f"{MODULE}.settings") as mock_settings,
        patch(f"{MODULE}.stripe_client", mock_client),
    ):
        mock_settings.STRIPE_ENABLED = True
        yield mock_client


def test_disabled_stripe_acknowledges(client):
    with patch(f"{MODULE}.settings") as mock_settings:
        mock_settings.STRIPE_ENABLED = False
        response = client.post(WEBHOOK_URL, content=b"{}")

    assert response.status_code == 200


def test_missing_signature(client, enabled_stripe):
    response = client.post(WEBHOOK_URL, content=b"{}")

    assert response.status_code == 400
    enabled_stripe.verify_webhook_signature.assert_not_called()


def test_invalid_signature(client, enabled_stripe):
    enabled_stripe.verify_webhook_signature.side_effect = ValueError("Invalid webhook signature")

    response = client.post(WEBHOOK_URL, content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})

    assert response.status_code == 400


def test_processed_event(client, enabled_stripe):
    with patch(f"{MODULE}.BillingWebhookProcessor") as mock_processor_cls:
        mock_processor_cls.return_value.process_event = AsyncMock(
            return_value=EventOutcome.STALE
        )
        response = client.post(
            WEBHOOK_URL, content=b"{}", headers={"Stripe-Signature": "t=1,v1=ok"}
        )

    assert response.status_code == 200
    enabled_stripe.verify_webhook_signature.assert_called_once_with(b"{}", "t=1,v1=ok")
    mock_processor_cls.return_value.process_event.assert_awaited_once()


def test_processing_failure_asks_for_retry(client, enabled_stripe):
    with patch(f"{MODULE}.BillingWebhookProcessor") as mock_processor_cls:
        mock_processor_cls.return_value.process_event = AsyncMock(
            side_effect=RuntimeError("database unavailable")
        )
        response = client.post(
            WEBHOOK_URL, content=b"{}", headers={"Stripe-Signature": "t=1,v1=ok"}
        )

    assert response.status_code == 500
