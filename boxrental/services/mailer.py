import smtplib
from email.message import EmailMessage
from typing import Optional

from ..config import settings
from .errors import MailNotConfigured


def is_configured() -> bool:
    return bool(settings.enable_email and settings.smtp_host and settings.mail_from)


def build_message(to_email: str, subject: str, html: str, text: Optional[str] = None, to_name: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.mail_from
    msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
    if settings.mail_cc:
        msg["Cc"] = settings.mail_cc
    msg.set_content(text or "Este mensaje requiere un cliente de correo compatible con HTML.")
    msg.add_alternative(html, subtype="html")
    return msg


def _deliver(msg: EmailMessage) -> None:
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as s:
        if settings.smtp_tls:
            s.starttls()
        if settings.smtp_username and settings.smtp_password:
            s.login(settings.smtp_username, settings.smtp_password)
        s.send_message(msg)


def send_email(to_email: str, subject: str, html: str, text: Optional[str] = None, to_name: Optional[str] = None) -> None:
    """Send one message or raise. Callers record the outcome."""
    if not is_configured():
        raise MailNotConfigured("Email service not configured")
    _deliver(build_message(to_email, subject, html, text=text, to_name=to_name))
