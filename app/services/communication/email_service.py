from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib
from loguru import logger

from app.core.config import settings


class EmailService:
    @staticmethod
    def build_message(recipient: str, subject: str, text: str, html: str | None = None) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = settings.mail_from
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain"))
        if html:
            msg.attach(MIMEText(html, "html"))
        return msg

    @staticmethod
    async def send(recipient: str, subject: str, text: str, html: str | None = None) -> bool:
        """Send one email. Returns False when delivery is disabled or fails."""
        if not settings.smtp_enabled:
            logger.warning(f"SMTP is not configured, email to {recipient} not sent")
            return False

        msg = EmailService.build_message(recipient, subject, text, html)
        try:
            await aiosmtplib.send(
                msg,
                hostname=settings.smtp_server,
                port=settings.smtp_port,
                start_tls=True,
                username=settings.smtp_user,
                password=settings.smtp_password,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"Failed to send email to {recipient}: {e}")
            return False
        logger.info(f"Email '{subject}' sent to {recipient}")
        return True

    @staticmethod
    async def send_recovery_code(recipient: str, token: str) -> bool:
        minutes = settings.recovery_token_expire_minutes
        text = f"Your recovery code is: {token}\n\nThe code expires in {minutes} minutes."
        html = (
            f"<p>Your recovery code is: <strong>{token}</strong></p>"
            f"<p>The code expires in {minutes} minutes.</p>"
        )
        return await EmailService.send(recipient, "Account recovery code", text, html)
