# familybrief/emailer.py
import os
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Any, Dict, List, Optional

from .logger import logger


@dataclass
class SmtpSettings:
    host: str
    port: int
    username: Optional[str]
    password: Optional[str]
    from_email: Optional[str]
    from_name: str

    @classmethod
    def from_env(cls) -> "SmtpSettings":
        username = os.getenv("SMTP_USERNAME")
        return cls(
            host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            port=int(os.getenv("SMTP_PORT", "587")),
            username=username,
            password=os.getenv("SMTP_PASSWORD"),
            from_email=os.getenv("SMTP_FROM_EMAIL") or username,
            from_name=os.getenv("SMTP_FROM_NAME", "Teachmo"),
        )

    @property
    def sender(self) -> str:
        if not self.from_email:
            raise RuntimeError("SMTP_FROM_EMAIL/SMTP_USERNAME not configured")
        return formataddr((self.from_name.strip(), self.from_email.strip())) if self.from_name else self.from_email


def build_message(settings: SmtpSettings, subject: str, html: str, text: str, to_addrs: List[str]) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject or "Your weekly brief"
    msg["From"] = settings.sender
    msg["To"] = ", ".join(to_addrs)
    msg["Message-ID"] = make_msgid(domain=settings.from_email.split("@")[-1])
    msg.set_content(text or "")
    if html:
        msg.add_alternative(html, subtype="html")
    return msg


def send_email(subject: str, html: str, text: str, to_addrs: List[str],
               settings: Optional[SmtpSettings] = None) -> Dict[str, Any]:
    """Send one text+HTML message over STARTTLS. Returns {"ok", "provider", "message_id"}."""
    settings = settings or SmtpSettings.from_env()
    to_addrs = [a for a in (to_addrs or []) if a]
    if not to_addrs:
        raise RuntimeError("No recipients")
    if not (settings.username and settings.password):
        raise RuntimeError("SMTP credentials are not configured")

    msg = build_message(settings, subject, html, text, to_addrs)
    try:
        with smtplib.SMTP(settings.host, settings.port, timeout=20) as server:
            server.starttls(context=ssl.create_default_context())
            server.login(settings.username, settings.password)
            server.send_message(msg)
    except smtplib.SMTPAuthenticationError as e:
        detail = (e.smtp_error or b"").decode("utf-8", errors="ignore")
        raise RuntimeError(f"SMTP auth failed (code {e.smtp_code}): {detail}") from e
    except (smtplib.SMTPException, OSError) as e:
        raise RuntimeError(f"Email send failed: {type(e).__name__}: {e}") from e

    logger.info(f"[EMAIL] sent {msg['Message-ID']} to {len(to_addrs)} recipient(s)")
    return {"ok": True, "provider": "smtp", "message_id": msg["Message-ID"]}
