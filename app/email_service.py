# app/email_service.py
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional
from urllib.parse import quote

from app.core.config import settings
from app.logging_config import get_logger

logger = get_logger("email")


def build_verification_link(token: str) -> str:
    """Link to the frontend verification page; the token is URL-encoded."""
    return f"{settings.frontend_url.rstrip('/')}/verify-email?key={quote(token, safe='')}"


class EmailService:
    """Transactional email over SMTP. Failures are logged, never raised."""

    def __init__(self):
        self.enabled = settings.email_enabled
        if not self.enabled:
            logger.info("Email service is DISABLED. Set EMAIL_ENABLED=true to enable.")

    def send_email(
        self,
        to_emails: List[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        """Send email with HTML and optional text fallback"""
        if not self.enabled:
            logger.info(f"[EMAIL DISABLED] Would send: {subject} to {to_emails}")
            return True

        if not settings.smtp_host or not settings.smtp_user or not settings.smtp_password:
            logger.error("SMTP credentials not configured")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{settings.smtp_from_name} <{settings.smtp_from_email}>"
            msg['To'] = ', '.join(to_emails)

            if text_body:
                msg.attach(MIMEText(text_body, 'plain', 'utf-8'))
            msg.attach(MIMEText(html_body, 'html', 'utf-8'))

            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(msg)

            logger.info(f"Email sent successfully: {subject} to {to_emails}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {str(e)}", exc_info=True)
            return False

    def send_verification_email(self, to_email: str, token: str) -> bool:
        """Send the link that proves control of `to_email`."""
        link = build_verification_link(token)
        subject = "[No reply] Please verify your mangify email"

        html_body = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <style>
                body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .content {{ background: #f9fafb; padding: 30px; border: 1px solid #e5e7eb; border-radius: 8px; }}
                .btn {{ display: inline-block; background: #16a34a; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin-top: 15px; }}
                .footer {{ text-align: center; color: #6b7280; font-size: 12px; margin-top: 20px; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="content">
                    <h2 style="color: #111827;">Welcome to Mangify</h2>
                    <p>Please verify your mangify email by clicking the button below.</p>
                    <a href="{link}" class="btn">Verify email</a>
                    <p style="font-size: 12px; color: #6b7280; margin-top: 20px;">
                        If the button does not work, paste this link into your browser:<br>{link}
                    </p>
                </div>
                <div class="footer">
                    <p>If you did not create a mangify account you can ignore this email.</p>
                </div>
            </div>
        </body>
        </html>
        """

        text_body = f"Please verify your mangify email by clicking the link below:\n\n{link}\n"

        return self.send_email([to_email], subject, html_body, text_body)


# Singleton instance
email_service = EmailService()


def get_email_service() -> EmailService:
    """Dependency injection for FastAPI."""
    return email_service
