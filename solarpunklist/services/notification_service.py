"""Subscriber notifications for newly added communities.

Announcements go out through an ``EmailSender``. The production sender posts
to the Resend REST API; tests substitute their own sender.
"""

import asyncio
import html
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from solarpunklist.models import Community, NotificationResult
from solarpunklist.repositories.subscriber_repository_sqlalchemy import SubscriberRepositorySQLAlchemy

logger = logging.getLogger(__name__)

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL", "")
RESEND_API_URL = "https://api.resend.com/emails"

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "https://solarpunklist.com").rstrip("/")

# Timeout for email API requests (seconds)
REQUEST_TIMEOUT = 10.0

BATCH_SIZE = 50


@dataclass
class SendOutcome:
    to: str
    ok: bool
    error: str | None = None


class EmailSender(ABC):
    """Delivers a single message; ``send_batch`` fans out concurrently."""

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        """Send one message. Raises on delivery failure."""

    async def close(self) -> None:
        pass

    async def send_batch(
        self,
        recipients: list[str],
        subject: str,
        html_body: str,
        text_body: str,
    ) -> list[SendOutcome]:
        results = await asyncio.gather(
            *(self.send(to, subject, html_body, text_body) for to in recipients),
            return_exceptions=True,
        )
        return [
            SendOutcome(to=to, ok=False, error=str(result)) if isinstance(result, BaseException)
            else SendOutcome(to=to, ok=True)
            for to, result in zip(recipients, results)
        ]


class ResendEmailSender(EmailSender):
    """Sends email through the Resend HTTP API."""

    def __init__(self, api_key: str | None = None, from_email: str | None = None) -> None:
        self.api_key = (api_key or RESEND_API_KEY or "").strip()
        self.from_email = from_email or RESEND_FROM_EMAIL
        self._http_client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        client = await self._get_client()
        response = await client.post(
            RESEND_API_URL,
            json={
                "from": self.from_email,
                "to": [to],
                "subject": subject,
                "html": html_body,
                "text": text_body,
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        response.raise_for_status()


def _location(community: Community) -> str:
    return ", ".join(p for p in (community.location_region, community.location_country) if p)


def profile_url(community: Community, base_url: str = PUBLIC_BASE_URL) -> str:
    return f"{base_url}/community/{community.slug}"


def build_announcement_html(community: Community, base_url: str = PUBLIC_BASE_URL) -> str:
    score = round(community.solarpunk_score or 0)
    location = html.escape(_location(community))
    stage = html.escape(community.stage.capitalize()) if community.stage else ""
    url = html.escape(profile_url(community, base_url), quote=True)
    name = html.escape(community.name)

    tagline_row = (
        f'<p style="margin:0 0 16px;color:#555;font-size:14px;line-height:1.5;">'
        f"{html.escape(community.tagline)}</p>"
        if community.tagline else ""
    )
    location_row = (
        f'<tr><td style="padding:6px 0;color:#888;font-size:13px;width:100px;">Location</td>'
        f'<td style="padding:6px 0;color:#333;font-size:13px;font-weight:500;">{location}</td></tr>'
        if location else ""
    )
    stage_row = (
        f'<tr><td style="padding:6px 0;color:#888;font-size:13px;width:100px;">Stage</td>'
        f'<td style="padding:6px 0;color:#333;font-size:13px;font-weight:500;">{stage}</td></tr>'
        if stage else ""
    )

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin:0;padding:0;background-color:#f4f7f4;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;">
  <div style="max-width:560px;margin:0 auto;padding:32px 16px;">
    <div style="background:#ffffff;border-radius:12px;overflow:hidden;border:1px solid #e2e8e0;">
      <div style="background:linear-gradient(135deg,#065f46,#047857);padding:28px 24px;text-align:center;">
        <h1 style="margin:0;color:#ffffff;font-size:20px;font-weight:700;">SolarpunkList</h1>
        <p style="margin:8px 0 0;color:#a7f3d0;font-size:13px;">New Community Discovered</p>
      </div>
      <div style="padding:28px 24px;">
        <h2 style="margin:0 0 6px;color:#1a1a1a;font-size:22px;font-weight:700;">{name}</h2>
        {tagline_row}
        <table style="width:100%;border-collapse:collapse;margin-bottom:20px;">
          {location_row}
          {stage_row}
          <tr>
            <td style="padding:6px 0;color:#888;font-size:13px;width:100px;">Solarpunk Score</td>
            <td style="padding:6px 0;font-size:13px;font-weight:700;color:#047857;">{score} / 100</td>
          </tr>
        </table>
        <div style="text-align:center;margin:24px 0 8px;">
          <a href="{url}" style="display:inline-block;background:#047857;color:#ffffff;text-decoration:none;padding:12px 28px;border-radius:8px;font-size:14px;font-weight:600;">View Full Profile</a>
        </div>
      </div>
      <div style="padding:16px 24px;background:#f9fafb;border-top:1px solid #e2e8e0;text-align:center;">
        <p style="margin:0;color:#999;font-size:11px;">You're receiving this because you subscribed to SolarpunkList updates.</p>
      </div>
    </div>
  </div>
</body>
</html>"""


def build_announcement_text(community: Community, base_url: str = PUBLIC_BASE_URL) -> str:
    lines = [f"New community on SolarpunkList: {community.name}", ""]
    if community.tagline:
        lines += [community.tagline, ""]
    location = _location(community)
    if location:
        lines.append(f"Location: {location}")
    lines += [
        f"Solarpunk Score: {round(community.solarpunk_score or 0)}/100",
        "",
        f"View the full profile: {profile_url(community, base_url)}",
    ]
    return "\n".join(lines) + "\n"


class NotificationService:
    """Announces new communities to every subscriber."""

    def __init__(
        self,
        subscribers: SubscriberRepositorySQLAlchemy,
        sender: EmailSender | None = None,
        base_url: str | None = None,
    ) -> None:
        self.subscribers = subscribers
        self.sender = sender or get_email_sender()
        self.base_url = (base_url or PUBLIC_BASE_URL).rstrip("/")

    async def notify_subscribers(self, community: Community) -> NotificationResult:
        """Email every subscriber about ``community``. Never raises."""
        result = NotificationResult()
        try:
            emails = self.subscribers.list_subscriber_emails()
            if not emails:
                logger.info("[email] No subscribers to notify")
                return result

            if not self.sender.is_configured:
                logger.warning("[email] Email sender not configured, skipping notifications")
                return result

            subject = f"New on SolarpunkList: {community.name}"
            html_body = build_announcement_html(community, self.base_url)
            text_body = build_announcement_text(community, self.base_url)

            for i in range(0, len(emails), BATCH_SIZE):
                batch = emails[i:i + BATCH_SIZE]
                for outcome in await self.sender.send_batch(batch, subject, html_body, text_body):
                    if outcome.ok:
                        result.sent += 1
                    else:
                        result.failed += 1
                        logger.error(f"[email] Failed to send to {outcome.to}: {outcome.error}")

            failed_note = f" ({result.failed} failed)" if result.failed else ""
            logger.info(f"[email] Notified {result.sent} subscribers about {community.name}{failed_note}")
        except Exception as e:
            logger.error(f"[email] Failed to notify subscribers: {e}")
        return result


_email_sender: EmailSender | None = None


def get_email_sender() -> EmailSender:
    """Get the singleton email sender."""
    global _email_sender
    if _email_sender is None:
        _email_sender = ResendEmailSender()
    return _email_sender
