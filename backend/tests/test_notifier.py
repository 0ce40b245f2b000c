import json
from datetime import date, datetime, timezone

import httpx
import pytest

from farewatch.exceptions import NotificationDeliveryError
from farewatch.services.email_templates import render_fare_email, stops_text
from farewatch.services.notifier import EmailNotifier


def _transport(status: int = 202, headers=None, body=None):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, headers=headers or {}, json=body)

    return httpx.MockTransport(handler), seen


async def test_disabled_without_provider_keys():
    notifier = EmailNotifier()

    result = await notifier.send("a@example.com", "subject", "<p>hi</p>", "hi")

    assert notifier.provider_name == "disabled"
    assert not result.delivered
    assert result.provider_name == "disabled"


async def test_sendgrid_delivery():
    transport, seen = _transport(202, headers={"x-message-id": "sg-123"})
    notifier = EmailNotifier(
        sendgrid_api_key="SG.key",
        mailgun_api_key="mg-key",
        mailgun_domain="mg.example.com",
        http_client=httpx.AsyncClient(transport=transport),
    )

    result = await notifier.send("a@example.com", "Fare alert", "<p>hi</p>", "hi")

    assert result.delivered
    assert result.message_id == "sg-123"
    assert result.provider_name == "sendgrid"
    request = seen[0]
    assert str(request.url) == "https://api.sendgrid.com/v3/mail/send"
    assert request.headers["Authorization"] == "Bearer SG.key"
    body = json.loads(request.content)
    assert body["personalizations"] == [{"to": [{"email": "a@example.com"}]}]
    assert body["subject"] == "Fare alert"


async def test_mailgun_delivery():
    transport, seen = _transport(200, body={"id": "<mg-1@mg.example.com>", "message": "Queued"})
    notifier = EmailNotifier(
        mailgun_api_key="mg-key",
        mailgun_domain="mg.example.com",
        http_client=httpx.AsyncClient(transport=transport),
    )

    result = await notifier.send("a@example.com", "Fare alert", "<p>hi</p>", "hi")

    assert result.delivered
    assert result.provider_name == "mailgun"
    assert result.message_id == "<mg-1@mg.example.com>"
    assert str(seen[0].url) == "https://api.mailgun.net/v3/mg.example.com/messages"
    assert seen[0].headers["Authorization"].startswith("Basic ")


async def test_provider_rejection_raises():
    transport, _ = _transport(401, body={"errors": [{"message": "bad key"}]})
    notifier = EmailNotifier(sendgrid_api_key="SG.bad", http_client=httpx.AsyncClient(transport=transport))

    with pytest.raises(NotificationDeliveryError):
        await notifier.send("a@example.com", "Fare alert", "<p>hi</p>", "hi")


async def test_network_failure_raises():
    def refuse(request):
        raise httpx.ConnectError("down", request=request)

    notifier = EmailNotifier(
        sendgrid_api_key="SG.key",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)),
    )

    with pytest.raises(NotificationDeliveryError):
        await notifier.send("a@example.com", "Fare alert", "<p>hi</p>", "hi")


async def test_missing_recipient_raises():
    with pytest.raises(NotificationDeliveryError):
        await EmailNotifier(sendgrid_api_key="SG.key").send("", "subject", "<p>hi</p>", "hi")


def test_stops_text():
    assert stops_text(0) == "Non-stop"
    assert stops_text(1) == "1 stop"
    assert stops_text(2) == "2 stops"


def test_fare_email_contents():
    email = render_fare_email(
        origin="JFK",
        destination="LAX",
        depart=date(2026, 4, 1),
        return_date=date(2026, 4, 8),
        total=432.1,
        currency="USD",
        carrier="DL",
        stops_out=0,
        stops_back=1,
        link="https://app.example.com/book?origin=JFK&destination=LAX",
        target_price=500,
        found_at=datetime(2026, 3, 1, 15, 30, tzinfo=timezone.utc),
    )

    assert email.subject == "Fare alert: JFK → LAX now USD 432.10"
    assert "Round-trip" in email.text
    assert "Wed, Apr 1 - Wed, Apr 8" in email.text
    assert "Outbound: Non-stop" in email.text
    assert "Return: 1 stop" in email.text
    assert "USD 67.90 below your target!" in email.text
    assert "2026-03-01 15:30 UTC" in email.text
    assert 'href="https://app.example.com/book?origin=JFK&amp;destination=LAX"' in email.html
    assert "USD 432.10" in email.html


def test_oneway_email_has_no_return_leg():
    email = render_fare_email(
        origin="JFK",
        destination="LAX",
        depart=date(2026, 4, 1),
        return_date=None,
        total=600,
        currency="USD",
        carrier="AA",
        stops_out=1,
        stops_back=None,
        link="https://app.example.com/book",
        target_price=500,
    )

    assert "One-way" in email.text
    assert "Return:" not in email.text
    assert "below your target" not in email.text
