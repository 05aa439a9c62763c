"""
Notification dispatch for booking events.

Email goes out through the SendGrid HTTP API and SMS through a plain HTTP
gateway. Dispatch is fire-and-forget: every public `notify_*` method logs
failures and returns False instead of raising, so a committed booking
transition is never undone by a mail outage.
"""
import logging
from typing import Any, Dict, Optional

import httpx
import pytz

from sporti.config.settings import Settings
from sporti.utils.exceptions import NotificationError

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "confirmed": "Your booking has been confirmed. Please proceed with payment at check-in.",
    "rejected": "Your booking request has been rejected.",
    "cancelled": "Your booking has been cancelled.",
    "completed": "Your booking has been marked as completed.",
}


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, f"Your booking status has been updated to {status}.")


def _format_date(value: Any, tz) -> str:
    if value is None:
        return "-"
    if getattr(value, "tzinfo", None) is None and hasattr(value, "astimezone"):
        value = pytz.utc.localize(value)
    if hasattr(value, "astimezone"):
        value = value.astimezone(tz)
    return value.strftime("%B %d, %Y")


class NotificationDispatcher:
    """Email and SMS notifications for booking events."""

    def __init__(self, config: Settings, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._http_client = http_client
        self.tz = pytz.timezone(config.TIMEZONE)

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.config.NOTIFICATION_TIMEOUT_SECONDS)
        return self._http_client

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== TRANSPORTS ====================

    async def send_email(self, to_email: str, subject: str, html_content: str) -> None:
        if not self.config.SENDGRID_API_KEY:
            raise NotificationError("email", "SENDGRID_API_KEY is not configured")
        payload = {
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": self.config.EMAIL_FROM_ADDRESS, "name": self.config.EMAIL_FROM_NAME},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_content}],
        }
        headers = {
            "Authorization": f"Bearer {self.config.SENDGRID_API_KEY}",
            "Content-Type": "application/json",
        }
        try:
            response = await self.http_client.post(self.config.SENDGRID_API_URL, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise NotificationError("email", str(exc)) from exc
        if response.status_code >= 400:
            raise NotificationError("email", f"HTTP {response.status_code}: {response.text[:200]}")

    async def send_sms(self, phone_number: str, text: str) -> None:
        if not (self.config.SMS_API_URL and self.config.SMS_API_KEY):
            raise NotificationError("sms", "SMS gateway is not configured")
        payload = {
            "to": f"+91{phone_number}" if len(phone_number) == 10 else phone_number,
            "sender": self.config.SMS_SENDER_ID,
            "message": text,
        }
        try:
            response = await self.http_client.post(
                self.config.SMS_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.config.SMS_API_KEY}"},
            )
        except httpx.HTTPError as exc:
            raise NotificationError("sms", str(exc)) from exc
        if response.status_code >= 400:
            raise NotificationError("sms", f"HTTP {response.status_code}")

    # ==================== DISPATCH ====================

    def _recipients(self, booking: Dict) -> Dict[str, Optional[str]]:
        occupant = booking.get("occupant_details") or {}
        officer = booking.get("officer_details") or {}
        return {
            "email": occupant.get("email") or booking.get("user_email") or officer.get("email"),
            "phone": occupant.get("phone_number") or officer.get("phone_number"),
        }

    async def _dispatch(self, event: str, booking: Dict, subject: str, html: str, sms_text: str) -> bool:
        recipients = self._recipients(booking)
        code = booking.get("booking_code")
        delivered = False
        if recipients["email"]:
            try:
                await self.send_email(recipients["email"], subject, html)
                delivered = True
            except NotificationError as exc:
                logger.warning("⚠️  %s email for booking %s not sent: %s", event, code, exc)
            except Exception as exc:
                logger.exception("Unexpected error sending %s email for booking %s: %s", event, code, exc)
        if recipients["phone"]:
            try:
                await self.send_sms(recipients["phone"], sms_text)
                delivered = True
            except NotificationError as exc:
                logger.warning("⚠️  %s SMS for booking %s not sent: %s", event, code, exc)
            except Exception as exc:
                logger.exception("Unexpected error sending %s SMS for booking %s: %s", event, code, exc)
        if delivered:
            logger.info("📨 %s notification sent for booking %s", event, code)
        return delivered

    def _wrap(self, title: str, greeting_name: str, body: str) -> str:
        return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #ddd; border-radius: 5px;">
        <h2 style="color: #0056b3;">{title}</h2>
        <p>Dear {greeting_name},</p>
        {body}
        <div style="margin-top: 20px; padding-top: 20px; border-top: 1px solid #ddd; text-align: center; color: #777;">
          <p>{self.config.EMAIL_FROM_NAME} Management</p>
        </div>
      </div>
    """

    def _summary(self, booking: Dict, resource: Optional[Dict] = None) -> str:
        rows = [
            ("Booking ID", booking.get("booking_code")),
            ("Application No", booking.get("application_no")),
            ("Site", booking.get("site")),
            ("Check-in", _format_date(booking.get("check_in"), self.tz)),
            ("Check-out", _format_date(booking.get("check_out"), self.tz)),
            ("Total Cost", f"₹{booking.get('total_cost', 0):,.2f}"),
            ("Status", str(booking.get("status", "")).capitalize()),
        ]
        if resource is not None:
            if booking.get("booking_type") == "service":
                rows.insert(2, ("Service", resource.get("name")))
            else:
                rows.insert(2, ("Room", f"{resource.get('room_number')} ({resource.get('category')})"))
        items = "".join(f"<p><strong>{label}:</strong> {value}</p>" for label, value in rows)
        return f'<div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 15px 0;">{items}</div>'

    def _name(self, booking: Dict) -> str:
        return (booking.get("occupant_details") or {}).get("name") or "Member"

    async def notify_submission(self, booking: Dict) -> bool:
        html = self._wrap(
            "SPORTI Club - Booking Request Received",
            self._name(booking),
            "<p>We have received your booking request. You will be notified once it is reviewed.</p>"
            + self._summary(booking),
        )
        sms = f"SPORTI: booking request {booking.get('application_no')} received and pending approval."
        return await self._dispatch("submission", booking, "SPORTI Club - Booking Request Received", html, sms)

    async def notify_confirmation(self, booking: Dict, resource: Optional[Dict] = None) -> bool:
        html = self._wrap(
            "SPORTI Club - Booking Confirmed",
            self._name(booking),
            f"<p>{status_message('confirmed')}</p>" + self._summary(booking, resource),
        )
        where = ""
        if resource is not None:
            where = f" {resource.get('room_number') or resource.get('name')},"
        sms = f"SPORTI: booking {booking.get('booking_code')} confirmed{where} check-in {_format_date(booking.get('check_in'), self.tz)}."
        return await self._dispatch("confirmation", booking, "SPORTI Club - Booking Confirmed", html, sms)

    async def notify_status_change(self, booking: Dict, message: str) -> bool:
        body = f"<p>{message}</p>" + self._summary(booking)
        if booking.get("remarks"):
            body += f"<p><strong>Remarks:</strong> {booking['remarks']}</p>"
        html = self._wrap("SPORTI Club - Booking Status Update", self._name(booking), body)
        sms = f"SPORTI: booking {booking.get('booking_code')}: {message}"
        return await self._dispatch("status", booking, "SPORTI Club - Booking Status Update", html, sms)

    async def notify_payment_confirmed(self, booking: Dict) -> bool:
        html = self._wrap(
            "SPORTI Club - Payment Received",
            self._name(booking),
            "<p>We have received your payment. Thank you.</p>" + self._summary(booking),
        )
        sms = f"SPORTI: payment of ₹{booking.get('total_cost', 0):,.2f} received for booking {booking.get('booking_code')}."
        return await self._dispatch("payment", booking, "SPORTI Club - Payment Confirmation", html, sms)

    async def notify_check_in(self, booking: Dict) -> bool:
        html = self._wrap(
            "SPORTI Club - Welcome",
            self._name(booking),
            "<p>You have been checked in. We wish you a pleasant stay.</p>" + self._summary(booking),
        )
        sms = f"SPORTI: checked in for booking {booking.get('booking_code')}. Enjoy your stay."
        return await self._dispatch("check-in", booking, "SPORTI Club - Check-in Confirmation", html, sms)

    async def notify_check_out(self, booking: Dict) -> bool:
        html = self._wrap(
            "SPORTI Club - Thank You",
            self._name(booking),
            "<p>You have been checked out. Thank you for staying with us.</p>" + self._summary(booking),
        )
        sms = f"SPORTI: checked out of booking {booking.get('booking_code')}. Thank you for visiting."
        return await self._dispatch("check-out", booking, "SPORTI Club - Check-out Confirmation", html, sms)
