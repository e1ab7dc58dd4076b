"""
New-recording notifications (best-effort).

Channels:
- Bark push (iOS) via the user's Bark push URL, sent with httpx
- E-mail via SMTP

Environment Variables (e-mail):
    SMTP_SERVER, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, FROM_EMAIL

Both notifiers return False when the message could not be delivered and
raise only for programming errors. The sync engine turns failures into
result errors without failing the sync.
"""

from __future__ import annotations

import asyncio
import html
import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Sequence

import httpx
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

BARK_TIMEOUT_SECONDS = 10.0
BARK_GROUP = "Plaud"
MAX_LISTED_NAMES = 5


def _summary(count: int, names: Sequence[str]) -> tuple[str, str]:
    """(title, body) for a new-recordings notification."""
    title = f"{count} new recording{'s' if count != 1 else ''} synced"
    listed = list(names[:MAX_LISTED_NAMES])
    body = "\n".join(listed)
    if len(names) > MAX_LISTED_NAMES:
        body += f"\n...and {len(names) - MAX_LISTED_NAMES} more"
    return title, body


class BarkNotifier:
    """Pushes to a Bark server (https://api.day.app/<key> or self-hosted)."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = BARK_TIMEOUT_SECONDS):
        self._client = http_client
        self._timeout = timeout

    async def send(self, push_url: str, count: int, names: Sequence[str]) -> bool:
        title, body = _summary(count, names)
        payload = {"title": title, "body": body or title, "group": BARK_GROUP}
        try:
            if self._client is not None:
                response = await self._client.post(push_url.rstrip("/"), json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(push_url.rstrip("/"), json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Bark notification failed: %s", exc)
            return False

        if not response.is_success:
            logger.warning("Bark notification rejected (%d): %s", response.status_code, response.text[:200])
            return False
        return True


class EmailNotifier:
    """Sends a plain-text + HTML summary over SMTP (STARTTLS)."""

    def __init__(
        self,
        smtp_server: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
    ):
        self.smtp_server = smtp_server or os.getenv("SMTP_SERVER", "smtp.gmail.com")
        self.smtp_port = smtp_port or int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = smtp_user or os.getenv("SMTP_USER")
        self.smtp_password = smtp_password or os.getenv("SMTP_PASSWORD")
        self.from_email = from_email or os.getenv("FROM_EMAIL") or self.smtp_user

    @property
    def configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def _build_message(self, to_email: str, count: int, names: Sequence[str]) -> MIMEMultipart:
        title, body = _summary(count, names)
        html_items = "".join(f"<li>{html.escape(name)}</li>" for name in names[:MAX_LISTED_NAMES])

        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg["Subject"] = title
        msg.attach(MIMEText(f"{title}\n\n{body}", "plain"))
        msg.attach(MIMEText(f"<h3>{title}</h3><ul>{html_items}</ul>", "html"))
        return msg

    def _send_sync(self, to_email: str, count: int, names: Sequence[str]) -> None:
        msg = self._build_message(to_email, count, names)
        with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.sendmail(self.from_email, [to_email], msg.as_string())

    async def send(self, to_email: str, count: int, names: Sequence[str]) -> bool:
        if not self.configured:
            logger.warning("SMTP credentials not configured. Set SMTP_USER and SMTP_PASSWORD in .env")
            return False
        try:
            await asyncio.to_thread(self._send_sync, to_email, count, names)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Email notification to %s failed: %s", to_email, exc)
            return False
        logger.info("Sent new-recording email to %s", to_email)
        return True
