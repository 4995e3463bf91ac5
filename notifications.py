"""
Email notifications for contact and order submissions.

Sending is best effort. ``notify`` never raises, and the request path only
ever hands work to ``NotificationDispatcher.enqueue``, which returns
immediately; delivery and retries happen on the dispatcher's worker task.
"""
from __future__ import annotations
import asyncio
import contextlib
import html
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from config import settings
from database import utcnow
from errors import NotificationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False


def _e(value: Any) -> str:
    return html.escape(str(value if value is not None else ""))


def _multiline(value: Any) -> str:
    return _e(value).replace("\n", "<br>")


def _page(title: str, body: str, footer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    {body}
    <p style="color: #6b7280; font-size: 14px;">Submitted on: {utcnow().strftime("%Y-%m-%d %H:%M")} UTC</p>
    <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">
    <p style="color: #6b7280; font-size: 12px;">{footer}</p>
  </div>
</body>
</html>"""


def _items_table(items: list[dict[str, Any]]) -> str:
    rows = "".join(
        f"<tr><td>{_e(i.get('item_name'))}</td><td>{_e(i.get('category'))}</td>"
        f"<td>{_e(i.get('selected_size'))}</td><td>{_e(i.get('quantity'))}</td>"
        f"<td>${float(i.get('price') or 0):.2f}</td></tr>"
        for i in items
    )
    return (
        '<table style="width: 100%; border-collapse: collapse;">'
        "<tr><th>Item</th><th>Category</th><th>Size</th><th>Qty</th><th>Unit price</th></tr>"
        f"{rows}</table>"
    )


def render_contact(payload: dict[str, Any]) -> EmailMessage:
    body = f"""<h2 style="color: #dc2626;">New Contact Form Submission</h2>
    <div style="background: #f9fafb; padding: 20px; border-radius: 8px; margin: 20px 0;">
      <p><strong>Name:</strong> {_e(payload.get("name"))}</p>
      <p><strong>Email:</strong> <a href="mailto:{_e(payload.get("email"))}">{_e(payload.get("email"))}</a></p>
      <p><strong>Message:</strong></p>
      <div style="background: white; padding: 15px; border-left: 4px solid #dc2626;">{_multiline(payload.get("message"))}</div>
    </div>"""
    return EmailMessage(
        to=settings.ADMIN_EMAIL,
        subject=f"New Contact Form Submission from {payload.get('name', '')}",
        html=_page("New Contact Form Submission", body, "This email was sent from your website contact form."),
    )


def render_order(payload: dict[str, Any]) -> EmailMessage:
    referral = payload.get("referral_code")
    body = f"""<h2 style="color: #059669;">New Order Received</h2>
    <div style="background: #f0fdf4; padding: 20px; border-radius: 8px; margin: 20px 0;">
      <p><strong>Order ID:</strong> {_e(payload.get("id"))}</p>
      <p><strong>Customer Name:</strong> {_e(payload.get("customer_name"))}</p>
      <p><strong>Email:</strong> {_e(payload.get("customer_email"))}</p>
      <p><strong>WhatsApp / Phone:</strong> {_e(payload.get("customer_whatsapp"))}</p>
      <p><strong>Delivery Address:</strong> {_multiline(payload.get("delivery_address"))}</p>
      {_items_table(payload.get("cart_items") or [])}
      <p><strong>Total Quantity:</strong> {_e(payload.get("total_quantity"))}</p>
      <p><strong>Total Amount Paid:</strong> ${float(payload.get("total_price") or 0):.2f}</p>
      <p><strong>Payment ID:</strong> {_e(payload.get("payment_id") or "N/A")}</p>
      {f"<p><strong>Referral Code:</strong> {_e(referral)}</p>" if referral else ""}
    </div>"""
    return EmailMessage(
        to=settings.ADMIN_EMAIL,
        subject=f"New Order from {payload.get('customer_name', '')}",
        html=_page("New Order", body, "This order was submitted after successful payment processing."),
    )


def render_order_confirmation(payload: dict[str, Any]) -> EmailMessage:
    body = f"""<h2 style="color: #059669;">Thank you for your order, {_e(payload.get("customer_name"))}!</h2>
    <p>We have received your payment and your order is being prepared.</p>
    <div style="background: #f9fafb; padding: 20px; border-radius: 8px; margin: 20px 0;">
      <p><strong>Order ID:</strong> {_e(payload.get("id"))}</p>
      {_items_table(payload.get("cart_items") or [])}
      <p><strong>Total:</strong> ${float(payload.get("total_price") or 0):.2f}</p>
      <p><strong>Delivering to:</strong> {_multiline(payload.get("delivery_address"))}</p>
    </div>"""
    return EmailMessage(
        to=str(payload.get("customer_email", "")),
        subject="Your order confirmation",
        html=_page("Order Confirmation", body, "You are receiving this email because you placed an order with us."),
    )


TEMPLATES: dict[str, Callable[[dict[str, Any]], EmailMessage]] = {
    "contact": render_contact,
    "order": render_order,
    "order_confirmation": render_order_confirmation,
}


async def _post(message: EmailMessage) -> str:
    try:
        async with httpx.AsyncClient(timeout=settings.EMAIL_TIMEOUT_SECONDS) as client:
            response = await client.post(
                settings.RESEND_API_URL,
                headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
                json={
                    "from": settings.FROM_EMAIL,
                    "to": message.to,
                    "subject": message.subject,
                    "html": message.html,
                },
            )
    except httpx.HTTPError as e:
        raise NotificationError(f"Email transport error: {e}") from e
    if response.status_code >= 400:
        raise NotificationError(f"Resend API error {response.status_code}: {response.text[:200]}")
    # 2xx: accepted by Resend even when the body is unreadable
    try:
        body = response.json()
    except ValueError:
        logger.warning("Resend accepted email to %s but returned a non-JSON body", message.to)
        return ""
    return str(body.get("id", "")) if isinstance(body, dict) else ""


async def send_email(message: EmailMessage) -> NotificationResult:
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured, skipping email to %s", message.to)
        return NotificationResult(success=False, error="Email service not configured")
    try:
        message_id = await _post(message)
    except NotificationError as e:
        logger.error("Error sending email to %s: %s", message.to, e)
        return NotificationResult(success=False, error=str(e), retryable=True)
    logger.info("Email sent successfully: %s", message_id)
    return NotificationResult(success=True, id=message_id)


async def notify(kind: str, payload: dict[str, Any]) -> NotificationResult:
    render = TEMPLATES.get(kind)
    if render is None:
        return NotificationResult(success=False, error="Invalid email type")
    try:
        message = render(payload)
    except (TypeError, ValueError) as e:
        logger.error("Could not render %s notification: %s", kind, e)
        return NotificationResult(success=False, error="Invalid notification payload")
    try:
        return await send_email(message)
    except Exception:
        logger.exception("Unexpected error sending %s notification", kind)
        return NotificationResult(success=False, error="Email delivery failed")


class NotificationDispatcher:
    """Bounded queue of outbound notifications drained by one worker task."""

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        maxsize: Optional[int] = None,
    ):
        self.max_attempts = max_attempts or settings.NOTIFICATION_MAX_ATTEMPTS
        self.retry_delay = settings.NOTIFICATION_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self._queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue(
            maxsize or settings.NOTIFICATION_QUEUE_SIZE
        )
        self._task: Optional[asyncio.Task] = None

    def enqueue(self, kind: str, payload: dict[str, Any]) -> bool:
        try:
            self._queue.put_nowait((kind, payload))
        except asyncio.QueueFull:
            logger.error("Notification queue full, dropping %s notification", kind)
            return False
        return True

    async def deliver(self, kind: str, payload: dict[str, Any]) -> NotificationResult:
        result = NotificationResult(success=False, error="not attempted")
        for attempt in range(1, self.max_attempts + 1):
            result = await notify(kind, payload)
            if result.success or not result.retryable:
                break
            logger.warning("%s notification attempt %d/%d failed: %s", kind, attempt, self.max_attempts, result.error)
            if attempt < self.max_attempts:
                await asyncio.sleep(self.retry_delay)
        if not result.success:
            logger.error("Giving up on %s notification: %s", kind, result.error)
        return result

    async def _run(self) -> None:
        while True:
            kind, payload = await self._queue.get()
            try:
                await self.deliver(kind, payload)
            except Exception:
                logger.exception("Dropping %s notification after unexpected error", kind)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self, grace: float = 5.0) -> None:
        if self._task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), grace)
        except asyncio.TimeoutError:
            logger.warning("Stopping with %d notification(s) undelivered", self._queue.qsize())
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
