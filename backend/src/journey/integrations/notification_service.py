"""Notification collaborator: reminder e-mails through the MailRelay API."""
from dataclasses import dataclass
from pathlib import Path

import httpx
import structlog
from jinja2 import Environment, FileSystemLoader

from journey.config import settings
from journey.schemas.reminder import ReminderPayload

logger = structlog.get_logger(__name__)


@dataclass
class NotificationResult:
    """Outcome reported by the notification collaborator."""

    success: bool
    error: str | None = None
    email_sent_to: str | None = None
    retryable: bool = False


class NotificationService:
    """
    Sends reminder e-mails via MailRelay.

    When no API key is configured the service runs in mock mode: the send
    is logged and reported as successful without any network call.
    """

    def __init__(
        self,
        api_key: str | None = None,
        host: str | None = None,
        sender_email: str | None = None,
        sender_name: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize notification service.

        Args:
            api_key: MailRelay API token (empty means mock mode)
            host: MailRelay account host, e.g. ``acme.ipzmarketing.com``
            sender_email: From address
            sender_name: From display name, also used in the footer
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key if api_key is not None else settings.mailrelay_api_key
        self.host = host or settings.mailrelay_host
        self.sender_email = sender_email or settings.email_from
        self.sender_name = sender_name or settings.email_from_name
        self.timeout = timeout or settings.notification_timeout_seconds
        self.transport = transport

        templates_dir = Path(__file__).parent.parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=True,
        )

    @property
    def mock_mode(self) -> bool:
        """True when sends are only logged."""
        return not self.api_key

    def render_html(self, message: str) -> str:
        """Render the plain-text message as the HTML e-mail body, one paragraph per line."""
        template = self.env.get_template("reminder_email.html")
        return template.render(lines=message.split("\n"), sender_name=self.sender_name)

    def build_request_body(self, payload: ReminderPayload) -> dict:
        """MailRelay ``send_emails`` request body."""
        return {
            "from": {"email": self.sender_email, "name": self.sender_name},
            "to": [{"email": payload.user_email, "name": payload.user_email}],
            "subject": payload.subject,
            "html_part": self.render_html(payload.message),
        }

    async def send_reminder(self, payload: ReminderPayload) -> NotificationResult:
        """
        Send one reminder e-mail. Never retries.

        Args:
            payload: Recipient, stage and composed content

        Returns:
            NotificationResult; timeouts are flagged retryable
        """
        body = self.build_request_body(payload)

        if self.mock_mode:
            logger.info(
                "reminder_email_mocked",
                user_id=payload.user_id,
                to=payload.user_email,
                subject=payload.subject,
            )
            return NotificationResult(success=True, email_sent_to=payload.user_email)

        url = f"https://{self.host}/send_emails"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    url,
                    json=body,
                    headers={
                        "Content-Type": "application/json",
                        "X-AUTH-TOKEN": self.api_key,
                    },
                )

                if response.is_success:
                    logger.info(
                        "reminder_email_sent",
                        user_id=payload.user_id,
                        to=payload.user_email,
                        status_code=response.status_code,
                    )
                    return NotificationResult(success=True, email_sent_to=payload.user_email)

                error_msg = f"MailRelay API error: {response.text[:500]}"
                logger.warning(
                    "reminder_email_rejected",
                    user_id=payload.user_id,
                    status_code=response.status_code,
                    error=error_msg,
                )
                return NotificationResult(success=False, error=error_msg)

        except httpx.TimeoutException:
            error_msg = f"Request timeout after {self.timeout}s"
            logger.warning("reminder_email_timeout", user_id=payload.user_id)
            return NotificationResult(success=False, error=error_msg, retryable=True)

        except httpx.HTTPError as e:
            error_msg = f"HTTP error: {str(e)}"
            logger.error("reminder_email_http_error", user_id=payload.user_id, error=str(e))
            return NotificationResult(success=False, error=error_msg)
