"""Email delivery for notifications (SMTP).

SmtpMailer is built once at startup from settings and handed to the
notification dispatcher; it holds no connection between sends.
"""

from __future__ import annotations

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from pms.config import get_settings

logger = logging.getLogger(__name__)

_TYPE_COLORS = {
    "task_assigned": "#2563eb",
    "task_updated": "#d97706",
    "task_comment": "#059669",
    "comment_reply": "#059669",
}


def _build_html_email(title: str, message: str, notification_type: str, link: str | None) -> str:
    """HTML body for a notification email."""
    color = _TYPE_COLORS.get(notification_type, "#374151")
    link_section = ""
    if link:
        link_section = (
            f'<p><a href="{html.escape(link, quote=True)}" '
            f'style="background:{color};color:#fff;padding:10px 16px;border-radius:6px;'
            'text-decoration:none;">Open PMS</a></p>'
        )
    return (
        "<html><body>"
        f'<h2 style="color:{color};">{html.escape(title)}</h2>'
        f"<p>{html.escape(message)}</p>"
        f"{link_section}"
        '<p style="color:#6b7280;font-size:0.8rem;">You are receiving this because of activity '
        "in one of your PMS workspaces.</p>"
        "</body></html>"
    )


def _build_text_email(title: str, message: str, link: str | None) -> str:
    """Plain-text body for a notification email."""
    lines = [title, "=" * 40, "", message]
    if link:
        lines.extend(["", f"Open: {link}"])
    return "\n".join(lines)


class SmtpMailer:
    """Sends notification emails over SMTP. send() reports failure, never raises."""

    def __init__(self, settings=None) -> None:
        if settings is None:
            settings = get_settings()
        self.host = getattr(settings, "smtp_host", "")
        self.port = getattr(settings, "smtp_port", 587)
        self.user = getattr(settings, "smtp_user", "")
        self.password = getattr(settings, "smtp_password", "")
        self.sender = getattr(settings, "smtp_from", "")
        self.frontend_url = getattr(settings, "frontend_url", "")

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send_notification(
        self,
        recipient: str,
        title: str,
        message: str,
        notification_type: str,
        path: str | None = None,
    ) -> bool:
        """Send one notification email. Returns True on success, False on any failure."""
        if not recipient:
            logger.warning("email_send_skipped: no recipient address")
            return False
        if not self.configured:
            logger.warning("email_send_skipped: SMTP host not configured")
            return False

        link = f"{self.frontend_url.rstrip('/')}{path}" if path and self.frontend_url else None

        msg = MIMEMultipart("alternative")
        msg["Subject"] = title
        msg["From"] = self.sender
        msg["To"] = recipient
        msg.attach(MIMEText(_build_text_email(title, message, link), "plain"))
        msg.attach(MIMEText(_build_html_email(title, message, notification_type, link), "html"))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls()
                if self.user:
                    server.login(self.user, self.password)
                server.sendmail(msg["From"], [recipient], msg.as_string())
            logger.info("email_sent: recipient=%s type=%s", recipient, notification_type)
            return True
        except smtplib.SMTPAuthenticationError:
            logger.error("email_auth_failed: could not authenticate with SMTP server")
            return False
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("email_send_failed: %s", exc)
            return False
