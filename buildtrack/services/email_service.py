import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..core.config import settings

logger = logging.getLogger(__name__)


def _send_smtp(
    *,
    host: str,
    port: int,
    username: Optional[str],
    password: Optional[str],
    from_email: str,
    from_name: Optional[str] = None,
    to_email: str,
    subject: str,
    body: str,
    html: bool = False,
    security: str = "starttls",
) -> bool:
    if html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "html", "utf-8"))
    else:
        msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>" if from_name else from_email
    msg["To"] = to_email

    try:
        if security == "ssl":
            with smtplib.SMTP_SSL(host, port) as server:
                if username:
                    server.login(username, password)
                server.sendmail(from_email, [to_email], msg.as_string())
        else:
            with smtplib.SMTP(host, port) as server:
                if security == "starttls":
                    server.starttls()
                if username:
                    server.login(username, password)
                server.sendmail(from_email, [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError):
        logger.exception(f"SMTP delivery to {to_email} via {host}:{port} failed")
        return False
    return True


def send_email(to_email: str, subject: str, body: str, html: bool = False) -> bool:
    """Send an email with the configured SMTP server.

    Returns True on success. Without an SMTP host the message is only
    logged, which keeps development and test environments working.
    """
    if not settings.SMTP_HOST:
        logger.info(f"SMTP not configured; skipping email to {to_email}: {subject}")
        return True
    return _send_smtp(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        from_email=settings.SMTP_FROM,
        from_name=settings.SMTP_FROM_NAME,
        to_email=to_email,
        subject=subject,
        body=body,
        html=html,
        security=settings.SMTP_SECURITY.lower(),
    )


def send_portal_invite(to_email: str, contact_name: str, project_name: str, token: str) -> bool:
    link = f"{settings.PUBLIC_APP_URL.rstrip('/')}/portal/accept?token={token}"
    subject = f"You're invited to {project_name} on {settings.APP_NAME}"
    body = (
        f"Hi {contact_name},\n\n"
        f"You have been invited to the project portal for '{project_name}'. "
        f"Use the link below to accept the invitation:\n\n{link}\n\n"
        f"The link expires in {settings.CONTACT_INVITE_EXPIRY_DAYS} days.\n"
    )
    return send_email(to_email, subject, body)


def send_rfp_invitation(to_email: str, vendor_name: str, rfp_title: str, token: str, message: Optional[str] = None) -> bool:
    link = f"{settings.PUBLIC_APP_URL.rstrip('/')}/bids/{token}"
    subject = f"Request for proposal: {rfp_title}"
    body = f"Hi {vendor_name},\n\nYou are invited to bid on '{rfp_title}'.\n\n"
    if message:
        body += f"{message}\n\n"
    body += f"Submit your bid here:\n{link}\n"
    return send_email(to_email, subject, body)
