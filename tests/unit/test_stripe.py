"""Unit tests for Stripe SDK configuration."""

import logging
from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest

from src.core.stripe import configure_stripe, get_stripe, refund_idempotency_key


@pytest.fixture
def mock_stripe() -> Generator[MagicMock, None, None]:
    with patch("src.core.stripe.stripe") as mock_module:
        mock_module.api_key = None
        yield mock_module


@pytest.fixture
def mock_settings() -> Generator[MagicMock, None, None]:
    with patch("src.core.stripe.get_settings") as mock_get:
        settings = mock_get.return_value
        settings.app_name = "storefront-backend"
        settings.stripe_secret_key = "sk_test_123"
        settings.stripe_webhook_secret = "whsec_123"
        settings.stripe_max_network_retries = 3
        yield settings


class TestConfigureStripe:
    def test_sets_key_retries_and_app_info(self, mock_stripe: MagicMock, mock_settings: MagicMock) -> None:
        assert configure_stripe() is True

        assert mock_stripe.api_key == "sk_test_123"
        assert mock_stripe.max_network_retries == 3
        mock_stripe.set_app_info.assert_called_once_with("storefront-backend")

    def test_missing_key_leaves_sdk_unkeyed(
        self, mock_stripe: MagicMock, mock_settings: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        mock_settings.stripe_secret_key = ""

        with caplog.at_level(logging.WARNING, logger="src.core.stripe"):
            assert configure_stripe() is False

        assert mock_stripe.api_key is None
        assert "secret key not configured" in caplog.text

    def test_missing_webhook_secret_is_warned(
        self, mock_stripe: MagicMock, mock_settings: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        mock_settings.stripe_webhook_secret = ""

        with caplog.at_level(logging.WARNING, logger="src.core.stripe"):
            assert configure_stripe() is True

        assert "webhook secret not configured" in caplog.text


class TestHelpers:
    def test_get_stripe_returns_module(self) -> None:
        import stripe

        assert get_stripe() is stripe

    def test_refund_keys_are_per_action_and_order(self) -> None:
        order_id = "660e8400-e29b-41d4-a716-446655440000"

        assert refund_idempotency_key("cancel", order_id) == f"cancel-{order_id}"
        assert refund_idempotency_key("refund", order_id) != refund_idempotency_key("cancel", order_id)
