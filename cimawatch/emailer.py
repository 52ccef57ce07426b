# cimawatch/emailer.py
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Dict, List

from .logger import get_logger

logger = get_logger(__name__)

EMAIL_FROM = os.getenv("EMAIL_FROM", "").strip()
EMAIL_FROM_NAME = os.getenv("EMAIL_FROM_NAME", "CIMA Watch").strip()
SMTP_HOST = os.getenv("SMTP_HOST", "").strip()
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "").strip()
SMTP_PASS = os.getenv("SMTP_PASS", "").strip()
SMTP_USE_SSL = os.getenv("SMTP_USE_SSL", "false").lower() == "true"


def is_configured() -> bool:
    return bool(EMAIL_FROM and SMTP_HOST)


def _build_message(subject: str, html_body: str, text_body: str | None, recipient: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((EMAIL_FROM_NAME, EMAIL_FROM))
    msg["To"] = recipient
    msg["Subject"] = subject

    if not text_body:
        text_body = "HTML capable email client required to view this report."

    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    return msg


def send_email(
    subject: str,
    html_body: str,
    text_body: str | None,
    recipient: str,
) -> bool:
    """Send one message to one recipient. Returns False instead of raising."""
    if not is_configured():
        logger.warning(
            "Email not fully configured (EMAIL_FROM/SMTP_HOST); skipping email to %s: %s",
            recipient, subject,
        )
        return False

    msg = _build_message(subject, html_body, text_body, recipient)

    try:
        if SMTP_USE_SSL:
            server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=30)
        else:
            server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to connect to %s:%s for %s: %s", SMTP_HOST, SMTP_PORT, recipient, e)
        return False

    try:
        if not SMTP_USE_SSL:
            server.starttls()
        if SMTP_USER:
            server.login(SMTP_USER, SMTP_PASS)
        server.sendmail(EMAIL_FROM, [recipient], msg.as_string())
        logger.info("Email sent to %s: %s", recipient, subject)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email to %s: %s", recipient, e)
        return False
    finally:
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            pass


def send_report(
    subject: str,
    html_body: str,
    text_body: str | None,
    recipients: List[str],
) -> Dict[str, bool]:
    """One independent send per recipient; a failure never blocks the rest."""
    if not recipients:
        logger.warning("No recipients provided for email '%s'; skipping send.", subject)
        return {}

    results = {r: send_email(subject, html_body, text_body, r) for r in recipients}
    failed = [r for r, ok in results.items() if not ok]
    if failed:
        logger.warning("Email delivery failed for %d/%d recipients: %s", len(failed), len(results), failed)
    return results
