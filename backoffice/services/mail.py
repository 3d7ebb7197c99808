"""
Mail - outbound email over AWS SES plus templated messages.

Sending never raises: failures are logged and reported as ``False`` so a
failed notification never fails the request that triggered it.
"""

import asyncio
from typing import Any, Protocol
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from structlog import get_logger

from backoffice.config import Settings
from backoffice.observability.metrics import metrics
from backoffice.services.templates import TemplateRenderer

logger = get_logger(__name__)


class MailSender(Protocol):
    """Delivers one HTML email; returns whether it was accepted."""

    async def send(self, to: str, subject: str, html: str) -> bool: ...


class SesMailSender:
    """MailSender backed by AWS SES."""

    def __init__(self, region: str, from_email: str, from_name: str) -> None:
        self.from_email = from_email
        self.from_name = from_name
        self._client = boto3.client("ses", region_name=region)

    @property
    def is_configured(self) -> bool:
        return bool(self.from_email)

    async def send(self, to: str, subject: str, html: str) -> bool:
        if not self.is_configured:
            logger.warning("mail_not_configured", to=to, subject=subject)
            metrics.record_mail(sent=False)
            return False

        try:
            response = await asyncio.to_thread(
                self._client.send_email,
                Source=f'"{self.from_name}" <{self.from_email}>',
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Html": {"Data": html, "Charset": "UTF-8"}},
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("mail_send_failed", to=to, subject=subject, error=str(e))
            metrics.record_mail(sent=False)
            return False

        logger.info("mail_sent", to=to, subject=subject, message_id=response.get("MessageId"))
        metrics.record_mail(sent=True)
        return True


class Mailer:
    """Renders a named template with company-wide variables and sends it."""

    def __init__(
        self, sender: MailSender, renderer: TemplateRenderer, settings: Settings
    ) -> None:
        self.sender = sender
        self.renderer = renderer
        self.settings = settings

    def base_variables(self, recipient: str) -> dict[str, Any]:
        """Variables available to every template."""
        s = self.settings
        return {
            "company_name": s.company_name,
            "company_email": s.company_email,
            "company_address": s.company_address,
            "company_phone": s.company_phone,
            "website_url": s.website_url,
            "logo_url": s.logo_url,
            "linkedin_url": s.linkedin_url,
            "github_url": s.github_url,
            "instagram_url": s.instagram_url,
            "youtube_url": s.youtube_url,
            "unsubscribe_url": f"{s.website_url.rstrip('/')}/unsubscribe?email={quote(recipient)}",
        }

    async def send(self, to: str, subject: str, html: str) -> bool:
        return await self.sender.send(to, subject, html)

    async def send_template(
        self,
        to: str,
        subject: str,
        template_name: str,
        variables: dict[str, Any] | None = None,
    ) -> bool:
        """Call variables override base variables of the same name."""
        merged = {**self.base_variables(to), **(variables or {})}
        html = self.renderer.render(template_name, merged)
        return await self.sender.send(to, subject, html)
