"""
Transactional email (welcome, password reset).

Bodies are rendered from Jinja templates under templates/email. With
EMAIL_BACKEND=smtp messages go out through smtplib in a worker thread;
with EMAIL_BACKEND=console they are only logged (development, tests).
"""

import re
import smtplib
from email.message import EmailMessage
from html import unescape

from starlette.concurrency import run_in_threadpool

from tourbook.core.config import get_settings
from tourbook.core.logging import get_logger
from tourbook.core.templating import templates

logger = get_logger(__name__)

WELCOME_SUBJECT = "Welcome to the Tourbook Family!"
PASSWORD_RESET_SUBJECT = "Your password reset token (valid for only 10 minutes)"


def html_to_text(html: str) -> str:
    text = re.sub(r"(?is)<(script|style|head).*?</\1>", "", html)
    text = re.sub(r"(?i)<br\s*/?>|</p>|</h\d>|</li>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = re.sub(r"[ \t]+", " ", unescape(text))
    return re.sub(r"\n\s*\n+", "\n\n", text).strip()


def _deliver(message: EmailMessage) -> None:
    settings = get_settings()
    with smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=10) as smtp:
        if settings.EMAIL_USE_TLS:
            smtp.starttls()
        if settings.EMAIL_USERNAME:
            smtp.login(settings.EMAIL_USERNAME, settings.EMAIL_PASSWORD)
        smtp.send_message(message)


class Email:
    def __init__(self, user, url: str):
        self.to = user.email
        self.first_name = user.name.split(" ")[0]
        self.url = url
        self.sender = get_settings().EMAIL_FROM

    def render(self, template: str, subject: str) -> EmailMessage:
        html = templates.get_template(f"email/{template}.html").render(
            first_name=self.first_name,
            url=self.url,
            subject=subject,
        )
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = self.to
        message["Subject"] = subject
        message.set_content(html_to_text(html))
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, template: str, subject: str) -> None:
        message = self.render(template, subject)
        if get_settings().EMAIL_BACKEND == "console":
            logger.info("email_sent", backend="console", to=self.to, subject=subject, url=self.url)
            return
        await run_in_threadpool(_deliver, message)
        logger.info("email_sent", backend="smtp", to=self.to, subject=subject)

    async def send_welcome(self) -> None:
        await self.send("welcome", WELCOME_SUBJECT)

    async def send_password_reset(self) -> None:
        await self.send("password_reset", PASSWORD_RESET_SUBJECT)
