"""Tests for the Evolution API adapter."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from app.adapters.base import OutboundDelivery
from app.adapters.evolution import (
    EvolutionAdapter,
    WebhookAuth,
    extract_gateway_message_id,
    verify_webhook,
)
from app.constants.messaging import MessageType
from app.core.encoder import OutboundContent
from app.exceptions import MissingConnectionError, ProviderError


def delivery(**overrides):
    values = dict(
        content=OutboundContent(message_type=MessageType.TEXT, content="Hello"),
        instance="shop-01",
        remote_jid="5511999999999@s.whatsapp.net",
        number="5511999999999",
        gateway_url="https://evo.example.com/",
        gateway_token="tok",
    )
    values.update(overrides)
    return OutboundDelivery(**values)


def test_verify_webhook_no_secret():
    assert verify_webhook(None, {}) == WebhookAuth.OK


@pytest.mark.parametrize(
    "headers,query",
    [
        ({"Authorization": "Bearer s3cret"}, {}),
        ({"apikey": "s3cret"}, {}),
        ({"X-Secret": "s3cret"}, {}),
        ({"x-evo-secret": "s3cret"}, {}),
        ({}, {"token": "s3cret"}),
    ],
)
def test_verify_webhook_accepts_token_locations(headers, query):
    assert verify_webhook("s3cret", headers, query) == WebhookAuth.OK


def test_verify_webhook_missing_and_invalid():
    assert verify_webhook("s3cret", {}, {}) == WebhookAuth.MISSING
    assert verify_webhook("s3cret", {"Authorization": "Bearer nope"}) == WebhookAuth.INVALID


def test_extract_gateway_message_id():
    assert extract_gateway_message_id({"key": {"id": "ABC"}}) == "ABC"
    assert extract_gateway_message_id({"data": {"key": {"id": "DEF"}}}) == "DEF"
    assert extract_gateway_message_id({"id": 7}) == "7"
    assert extract_gateway_message_id("text") is None


@patch("app.adapters.evolution.requests.post")
def test_dispatch_posts_to_send_text(mock_post):
    resp = MagicMock(ok=True, status_code=201)
    resp.json.return_value = {"key": {"id": "WA-1"}}
    mock_post.return_value = resp

    result = EvolutionAdapter(timeout=3).dispatch(delivery())

    assert result.external_id == "WA-1"
    assert result.via == "gateway"
    mock_post.assert_called_once()
    assert mock_post.call_args.args[0] == "https://evo.example.com/message/sendText/shop-01"
    assert mock_post.call_args.kwargs["headers"]["apikey"] == "tok"
    assert mock_post.call_args.kwargs["json"] == {"number": "5511999999999", "text": "Hello"}
    assert mock_post.call_args.kwargs["timeout"] == 3


@patch("app.adapters.evolution.requests.post")
def test_dispatch_provider_error(mock_post):
    resp = MagicMock(ok=False, status_code=400)
    resp.json.return_value = {"error": "bad number"}
    mock_post.return_value = resp

    with pytest.raises(ProviderError) as exc:
        EvolutionAdapter().dispatch(delivery())
    assert exc.value.details["provider_status"] == 400


@patch("app.adapters.evolution.requests.post")
def test_dispatch_timeout(mock_post):
    mock_post.side_effect = requests.Timeout("read timed out")
    with pytest.raises(ProviderError):
        EvolutionAdapter().dispatch(delivery())


def test_dispatch_without_credentials():
    with pytest.raises(MissingConnectionError):
        EvolutionAdapter().dispatch(delivery(gateway_url=None, gateway_token=None))
