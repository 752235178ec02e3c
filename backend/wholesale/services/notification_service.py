"""
Notification Service - operational alert emails via the Resend API.

Alerts of the same type are rate limited by a cooldown so a flapping sync
does not flood the admin inbox. Without an API key alerts are only logged.
"""
import time
from collections.abc import Callable
from datetime import datetime, timezone
from html import escape
from typing import Optional

import httpx

from wholesale.core.config import Settings
from wholesale.core.config import settings as default_settings
from wholesale.core.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """Admin alert delivery with a per-alert-type cooldown."""

    RESEND_API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or default_settings
        self.resend_api_key = self.settings.resend_api_key
        self.http_client = http_client
        self._clock = clock
        self._last_sent: dict[str, float] = {}

    def should_send(self, alert_type: str) -> bool:
        """True when no alert of this type went out within the cooldown."""
        now = self._clock()
        last_sent = self._last_sent.get(alert_type)
        if last_sent is not None and now - last_sent < self.settings.alert_cooldown_seconds:
            logger.info("Skipping alert, cooldown active", alert_type=alert_type)
            return False
        self._last_sent[alert_type] = now
        return True

    async def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Send email via Resend API.

        Returns:
            True if sent successfully
        """
        if not self.resend_api_key:
            logger.warning("Resend API key not configured, logging alert only", to=to, subject=subject)
            return False

        payload = {
            "from": self.settings.alert_from_email,
            "to": [to],
            "subject": subject,
            "html": html_content,
            "text": text_content or subject,
        }
        headers = {
            "Authorization": f"Bearer {self.resend_api_key}",
            "Content-Type": "application/json",
        }

        try:
            if self.http_client is not None:
                response = await self.http_client.post(
                    self.RESEND_API_URL, headers=headers, json=payload, timeout=10.0
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.RESEND_API_URL, headers=headers, json=payload, timeout=10.0
                    )
        except httpx.HTTPError as e:
            logger.error("Email send error", error=str(e))
            return False

        if response.status_code == 200:
            logger.info("Email sent", to=to, subject=subject)
            return True

        logger.error(
            "Email send failed",
            status=response.status_code,
            response=response.text,
        )
        return False

    async def send_alert(self, alert_type: str, subject: str, html_content: str, text_content: str) -> bool:
        """Send an admin alert unless one of the same type went out recently."""
        if not self.should_send(alert_type):
            return False

        recipient = self.settings.alert_email
        if not recipient:
            logger.warning("Alert email not configured", alert_type=alert_type, subject=subject)
            return False

        return await self.send_email(recipient, subject, html_content, text_content)

    def format_sync_failure_email(
        self,
        sync_type: str,
        error: str,
        triggered_by: Optional[str] = None,
    ) -> tuple[str, str]:
        """
        Format a failed sync run as email content.

        Returns:
            Tuple of (html_content, text_content)
        """
        timestamp = datetime.now(timezone.utc).isoformat()
        html = f"""
<!DOCTYPE html>
<html>
<body style="font-family: system-ui, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #dc2626; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
        <h1 style="margin: 0; font-size: 22px;">Zoho Sync Failed</h1>
    </div>
    <div style="border: 1px solid #e5e7eb; border-top: none; padding: 20px; border-radius: 0 0 8px 8px;">
        <p><strong>Sync type:</strong> {escape(sync_type)}</p>
        <p><strong>Triggered by:</strong> {escape(triggered_by or "unknown")}</p>
        <pre style="background: #fef2f2; padding: 12px; white-space: pre-wrap;">{escape(error)}</pre>
        <p style="color: #6b7280; font-size: 12px;">
            Time: {timestamp}<br>
            Environment: {escape(self.settings.environment)}
        </p>
    </div>
</body>
</html>
"""

        text = f"""
Zoho Sync Failed

Sync type: {sync_type}
Triggered by: {triggered_by or "unknown"}
Error: {error}

Time: {timestamp}
Environment: {self.settings.environment}
"""

        return html, text

    async def send_sync_failure_alert(
        self,
        sync_type: str,
        error: str,
        triggered_by: Optional[str] = None,
    ) -> bool:
        html, text = self.format_sync_failure_email(sync_type, error, triggered_by)
        return await self.send_alert(
            f"sync_failed_{sync_type}",
            f"Zoho sync failed: {sync_type}",
            html,
            text,
        )
