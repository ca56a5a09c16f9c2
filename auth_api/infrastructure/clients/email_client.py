from __future__ import annotations

import html
import logging
from dataclasses import dataclass

import httpx

from auth_api.application.ports.notification_port import EmailPort


logger = logging.getLogger(__name__)


MAILPIT_SEND_URL = "http://localhost:8025/api/v1/send"
POSTMARK_SEND_URL = "https://api.postmarkapp.com/email"
RESEND_SEND_URL = "https://api.resend.com/emails"

EMAIL_PROVIDERS = ("mailpit", "postmark", "resend")


@dataclass(frozen=True)
class EmailMessage:
    sender: str
    to: str
    subject: str
    html_body: str


def render_welcome_email(*, app_name: str, username: str) -> tuple[str, str]:
    app = html.escape(app_name)
    user = html.escape(username)
    subject = f"Welcome to {app_name}"
    body = (
        "<html><body>"
        f"<h1>{app}</h1>"
        f"<p>Hi {user},</p>"
        "<p>We're excited to have you on board. Your account is all set and ready to go.</p>"
        f"<p>Get started by exploring the app, where you'll find everything you need to get the most out of {app}.</p>"
        "<p>Let's get started,</p>"
        f"<p>The {app} team</p>"
        "</body></html>"
    )
    return subject, body


class HttpEmailClient(EmailPort):
    def __init__(
        self,
        *,
        provider: str,
        api_key: str,
        sender: str,
        app_name: str,
        environment: str = "production",
        timeout_seconds: float = 10,
        transport: httpx.BaseTransport | None = None,
    ):
        if provider not in EMAIL_PROVIDERS:
            raise ValueError(f"Unknown email provider: {provider}")
        self._provider = provider
        self._api_key = api_key
        self._sender = sender
        self._app_name = app_name
        self._environment = environment
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def send_welcome_email(self, *, to: str, name: str) -> None:
        subject, body = render_welcome_email(app_name=self._app_name, username=name)
        self.send(EmailMessage(sender=self._sender, to=to, subject=subject, html_body=body))

    def send(self, message: EmailMessage) -> None:
        url, headers, payload = self._build_request(message)
        with httpx.Client(timeout=self._timeout_seconds, transport=self._transport) as client:
            response = client.post(url, json=payload, headers=headers)
            response.raise_for_status()
        if self._environment == "development":
            logger.info("[EMAIL] sent to %s", message.to)

    def _build_request(self, message: EmailMessage) -> tuple[str, dict[str, str], dict]:
        if self._provider == "mailpit":
            return (
                MAILPIT_SEND_URL,
                {},
                {
                    "From": {"Email": message.sender},
                    "To": [{"Email": message.to}],
                    "Subject": message.subject,
                    "HTML": message.html_body,
                },
            )
        if self._provider == "postmark":
            return (
                POSTMARK_SEND_URL,
                {"X-Postmark-Server-Token": self._api_key, "Accept": "application/json"},
                {
                    "From": message.sender,
                    "To": message.to,
                    "Subject": message.subject,
                    "HtmlBody": message.html_body,
                },
            )
        return (
            RESEND_SEND_URL,
            {"Authorization": f"Bearer {self._api_key}"},
            {
                "from": message.sender,
                "to": [message.to],
                "subject": message.subject,
                "html": message.html_body,
            },
        )
