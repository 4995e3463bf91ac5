import httpx
import pytest

import notifications
from errors import NotificationError
from notifications import (
    NotificationDispatcher,
    notify,
    render_contact,
    render_order,
    render_order_confirmation,
)


@pytest.fixture
def outbox(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")
    sent = []

    async def fake_post(message):
        sent.append(message)
        return f"msg-{len(sent)}"

    monkeypatch.setattr(notifications, "_post", fake_post)
    return sent


ORDER = {
    "id": "65f0c0ffee",
    "customer_name": "Ada",
    "customer_email": "ada@example.com",
    "customer_whatsapp": "+234",
    "delivery_address": "12 Marina\nLagos",
    "cart_items": [{"item_name": "Kids Tracksuit 1", "category": "kids", "selected_size": "M", "quantity": 3, "price": 10}],
    "total_price": 30,
    "total_quantity": 3,
    "payment_id": "PAYID-1",
    "referral_code": "ABCD1234",
}


def test_contact_email_escapes_input(test_settings):
    message = render_contact({"name": "<script>", "email": "a@b.co", "message": "line1\nline2"})
    assert message.to == test_settings.ADMIN_EMAIL
    assert "<script>" not in message.html
    assert "&lt;script&gt;" in message.html
    assert "line1<br>line2" in message.html


def test_order_emails():
    admin = render_order(ORDER)
    assert admin.subject == "New Order from Ada"
    assert "$30.00" in admin.html
    assert "ABCD1234" in admin.html
    assert "Kids Tracksuit 1" in admin.html

    customer = render_order_confirmation(ORDER)
    assert customer.to == "ada@example.com"
    assert "65f0c0ffee" in customer.html


async def test_missing_api_key_skips_send(monkeypatch):
    async def fail(message):
        raise AssertionError("should not be called")

    monkeypatch.setattr(notifications, "_post", fail)
    result = await notify("contact", {"name": "Bo", "email": "bo@x.io", "message": "hi"})
    assert not result.success
    assert result.error == "Email service not configured"


async def test_notify_unknown_kind():
    result = await notify("newsletter", {})
    assert not result.success
    assert result.error == "Invalid email type"


async def test_notify_sends(outbox):
    result = await notify("order", ORDER)
    assert result.success
    assert result.id == "msg-1"
    assert outbox[0].subject == "New Order from Ada"


async def test_transport_error_is_contained(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")

    async def down(message):
        raise NotificationError("Resend API error 503")

    monkeypatch.setattr(notifications, "_post", down)
    result = await notify("order", ORDER)
    assert not result.success
    assert result.retryable


async def test_dispatcher_retries_transient_failures(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")
    calls = []

    async def flaky(message):
        calls.append(message)
        if len(calls) < 3:
            raise NotificationError("timeout")
        return "msg-ok"

    monkeypatch.setattr(notifications, "_post", flaky)
    dispatcher = NotificationDispatcher(max_attempts=3, retry_delay=0)

    result = await dispatcher.deliver("order", ORDER)
    assert result.success
    assert len(calls) == 3


async def test_dispatcher_does_not_retry_when_unconfigured():
    dispatcher = NotificationDispatcher(max_attempts=5, retry_delay=0)
    result = await dispatcher.deliver("order", ORDER)
    assert not result.success
    assert not result.retryable


async def test_dispatcher_worker_drains_on_stop(outbox):
    dispatcher = NotificationDispatcher(retry_delay=0)
    dispatcher.start()
    assert dispatcher.enqueue("order", ORDER)
    assert dispatcher.enqueue("order_confirmation", ORDER)

    await dispatcher.stop(grace=2)

    assert [m.to for m in outbox] == [notifications.settings.ADMIN_EMAIL, "ada@example.com"]


async def test_enqueue_drops_when_full():
    dispatcher = NotificationDispatcher(maxsize=1)
    assert dispatcher.enqueue("contact", {})
    assert not dispatcher.enqueue("contact", {})


async def test_worker_survives_failures(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")
    delivered = []

    async def post(message):
        if "Boom" in message.subject:
            raise NotificationError("rejected")
        delivered.append(message.subject)
        return "ok"

    monkeypatch.setattr(notifications, "_post", post)
    dispatcher = NotificationDispatcher(max_attempts=1, retry_delay=0)
    dispatcher.start()
    dispatcher.enqueue("contact", {"name": "Boom", "email": "b@x.io", "message": "x"})
    dispatcher.enqueue("contact", {"name": "Fine", "email": "f@x.io", "message": "y"})
    await dispatcher.stop(grace=2)

    assert delivered == ["New Contact Form Submission from Fine"]


def resend_reply(monkeypatch, **response_kwargs):
    async def post(self, url, **kwargs):
        return httpx.Response(request=httpx.Request("POST", url), **response_kwargs)

    monkeypatch.setattr(httpx.AsyncClient, "post", post)


async def test_resend_reply_id_is_returned(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")
    resend_reply(monkeypatch, status_code=200, json={"id": "re_123"})

    result = await notify("order", ORDER)
    assert result.success
    assert result.id == "re_123"


async def test_accepted_reply_without_json_body(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")
    resend_reply(monkeypatch, status_code=200, text="OK")

    result = await notify("order", ORDER)
    assert result.success
    assert result.id == ""


async def test_rejected_reply_is_retryable(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")
    resend_reply(monkeypatch, status_code=502, text="<html>Bad Gateway</html>")

    result = await notify("order", ORDER)
    assert not result.success
    assert result.retryable
    assert "502" in result.error


async def test_unexpected_send_error_does_not_escape_notify(monkeypatch, test_settings):
    monkeypatch.setattr(test_settings, "RESEND_API_KEY", "re_test")

    async def broken(message):
        raise KeyError("id")

    monkeypatch.setattr(notifications, "_post", broken)
    result = await notify("contact", {"name": "Bo", "email": "b@x.io", "message": "x"})
    assert not result.success
    assert not result.retryable


async def test_worker_keeps_running_after_unexpected_error(monkeypatch, outbox):
    real_deliver = NotificationDispatcher.deliver

    async def deliver(self, kind, payload):
        if payload.get("name") == "Boom":
            raise RuntimeError("unexpected")
        return await real_deliver(self, kind, payload)

    monkeypatch.setattr(NotificationDispatcher, "deliver", deliver)
    dispatcher = NotificationDispatcher(max_attempts=1, retry_delay=0)
    dispatcher.start()
    dispatcher.enqueue("contact", {"name": "Boom", "email": "b@x.io", "message": "x"})
    dispatcher.enqueue("contact", {"name": "Fine", "email": "f@x.io", "message": "y"})
    await dispatcher.stop(grace=2)

    assert [m.subject for m in outbox] == ["New Contact Form Submission from Fine"]


def test_footer_timestamp_is_utc():
    assert " UTC</p>" in render_contact({"name": "Bo", "email": "b@x.io", "message": "x"}).html
