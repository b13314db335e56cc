# erps/services/notification_service.py
"""
Outbound email / SMS for the lifecycle engine.

Transport is an HTTP gateway (EMAIL_GATEWAY_URL, SMS_GATEWAY_URL) called with httpx.
Every send is best-effort: failures are logged and reported as False, never raised,
so a flaky provider can not fail or roll back a state transition.
"""

import httpx
from typing import Optional
from erps.config import settings
from erps.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationSender:
    def __init__(self, email_url: Optional[str] = None, sms_url: Optional[str] = None,
                 api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.email_url = email_url if email_url is not None else settings.EMAIL_GATEWAY_URL
        self.sms_url = sms_url if sms_url is not None else settings.SMS_GATEWAY_URL
        self.api_key = api_key if api_key is not None else settings.NOTIFICATION_API_KEY
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS

    async def _post(self, url: str, payload: dict, label: str) -> bool:
        headers = {"X-API-Key": self.api_key} if self.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
            if response.status_code >= 400:
                logger.warning(f"[NOTIFY] {label} gateway returned HTTP {response.status_code}")
                return False
            return True
        except httpx.HTTPError as e:
            logger.error(f"[NOTIFY] {label} delivery failed: {e}")
            return False

    async def send_email(self, to: Optional[str], subject: str, html_body: str) -> bool:
        if not to:
            logger.warning(f"[NOTIFY] Email '{subject}' skipped: no recipient")
            return False
        if not self.email_url:
            logger.info(f"[NOTIFY] EMAIL_GATEWAY_URL not set, would email {to}: {subject}")
            return False
        ok = await self._post(self.email_url, {"to": to, "subject": subject, "html": html_body}, "Email")
        if ok:
            logger.info(f"[NOTIFY] Email sent to {to}: {subject}")
        return ok

    async def send_sms(self, to_e164: Optional[str], body: str) -> bool:
        if not to_e164:
            logger.warning("[NOTIFY] SMS skipped: no phone number")
            return False
        if not self.sms_url:
            logger.info(f"[NOTIFY] SMS_GATEWAY_URL not set, would text {to_e164}: {body[:60]}")
            return False
        ok = await self._post(self.sms_url, {"to": to_e164, "body": body}, "SMS")
        if ok:
            logger.info(f"[NOTIFY] SMS sent to {to_e164}")
        return ok


def _link(path: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{path}"


class LifecycleNotifier:
    """Message templates for each lifecycle event, sent through a NotificationSender."""

    def __init__(self, sender: Optional[NotificationSender] = None):
        self.sender = sender or NotificationSender()

    async def _both(self, email: Optional[str], phone: Optional[str], subject: str, html: str, sms: str) -> bool:
        # Guard at the boundary: nothing a sender does may escape into a transition
        try:
            sent_email = await self.sender.send_email(email, subject, html)
            sent_sms = await self.sender.send_sms(phone, sms)
            return sent_email or sent_sms
        except Exception as e:
            logger.error(f"[NOTIFY] Unexpected notification failure for '{subject}': {e}", exc_info=True)
            return False

    async def warranty_verification_requested(self, warranty, installer, token: str) -> bool:
        link = _link(f"/verify-warranty/{token}")
        return await self._both(
            installer.email if installer else None,
            installer.phone_number if installer else None,
            "ERPS warranty awaiting your confirmation",
            f"<p>A warranty for {warranty.customer_name}, {warranty.vehicle_label}, "
            f"lists you as installer.</p><p><a href=\"{link}\">Confirm or decline the installation</a></p>",
            f"ERPS: please confirm installation for {warranty.vehicle_label}: {link}",
        )

    async def inspection_verification_requested(self, inspection, warranty, inspector, token: str) -> bool:
        link = _link(f"/verify-inspection/{token}")
        return await self._both(
            inspector.email if inspector else None,
            inspector.phone_number if inspector else None,
            "ERPS annual inspection awaiting your confirmation",
            f"<p>An annual inspection dated {inspection.inspection_date} for "
            f"{warranty.vehicle_label} lists you as inspector.</p>"
            f"<p><a href=\"{link}\">Confirm or decline the inspection</a></p>",
            f"ERPS: please confirm inspection for {warranty.vehicle_label}: {link}",
        )

    async def customer_activation_requested(self, warranty, token: str, reminder_number: int = 0) -> bool:
        link = _link(f"/customer/activation/{token}")
        prefix = f"Reminder {reminder_number}: " if reminder_number else ""
        return await self._both(
            warranty.email,
            warranty.phone_number,
            f"{prefix}Activate your ERPS warranty",
            f"<p>Dear {warranty.customer_name},</p><p>Your ERPS installation on {warranty.vehicle_label} "
            f"has been confirmed. Review and accept the warranty terms to activate coverage:</p>"
            f"<p><a href=\"{link}\">Activate my warranty</a></p>",
            f"ERPS: {prefix}accept your warranty terms to activate coverage: {link}",
        )

    async def warranty_rejected(self, warranty, agent, reason: str) -> bool:
        return await self._both(
            agent.email if agent else None,
            None,
            "ERPS warranty submission declined",
            f"<p>The installer declined the warranty for {warranty.vehicle_label}.</p><p>Reason: {reason}</p>",
            "",
        )

    async def inspection_reminder(self, warranty, tier: str, days_until_due: int) -> bool:
        if days_until_due >= 0:
            when = f"is due in {days_until_due} day(s)"
        else:
            grace_left = settings.GRACE_PERIOD_DAYS + days_until_due
            when = f"is {-days_until_due} day(s) overdue; coverage lapses in {grace_left} day(s)"
        return await self._both(
            warranty.email,
            warranty.phone_number,
            f"ERPS annual inspection reminder ({tier})",
            f"<p>Dear {warranty.customer_name},</p><p>The annual inspection for {warranty.vehicle_label} "
            f"{when} (due {warranty.inspection_due_date}). Contact your ERPS installer to book it.</p>",
            f"ERPS: annual inspection for {warranty.vehicle_label} {when}.",
        )

    async def warranty_lapsed(self, warranty) -> bool:
        return await self._both(
            warranty.email,
            warranty.phone_number,
            "Your ERPS warranty has lapsed",
            f"<p>Dear {warranty.customer_name},</p><p>No annual inspection was verified for "
            f"{warranty.vehicle_label} within the {settings.GRACE_PERIOD_DAYS}-day grace period, "
            f"so coverage has lapsed. Contact ERPS support about reinstatement.</p>",
            f"ERPS: warranty for {warranty.vehicle_label} has lapsed (inspection overdue).",
        )

    async def warranty_reinstated(self, warranty) -> bool:
        return await self._both(
            warranty.email,
            warranty.phone_number,
            "Your ERPS warranty has been reinstated",
            f"<p>Dear {warranty.customer_name},</p><p>Coverage for {warranty.vehicle_label} is active again. "
            f"Next inspection due {warranty.inspection_due_date}.</p>",
            f"ERPS: warranty reinstated. Next inspection due {warranty.inspection_due_date}.",
        )
