"""
Email delivery for tracker notifications.

Uses SMTP to send templated HTML emails. Deciding *who* gets a mail is the
job of notification_service; this module only renders and delivers.

Usage:
    from app.services.email_service import send_email

    send_email(
        to="user@example.com",
        subject="[Project - Bug #12] Crash on save",
        template="emails/issue_added.html",
        context={"issue": issue},
    )
"""

import logging
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, render_template

logger = logging.getLogger(__name__)


def _send_smtp(app, msg):
    """Deliver ``msg`` over SMTP. Runs in a background thread for send_email."""
    with app.app_context():
        host = app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
        port = app.config.get("MAIL_SMTP_PORT", 587)
        username = app.config.get("MAIL_USERNAME")
        password = app.config.get("MAIL_PASSWORD")

        if not username or not password:
            logger.warning("Email not sent — MAIL_USERNAME or MAIL_PASSWORD not configured.")
            return

        try:
            with smtplib.SMTP(host, port, timeout=30) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(username, password)
                server.send_message(msg)
            logger.info(f"Email sent to {msg['To']} — {msg['Subject']}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {msg['To']}: {e}")


def _build_message(app, to, subject, template, context, reply_to):
    from_name = app.config.get("MAIL_FROM_NAME", "Tracker")
    from_email = app.config.get("MAIL_FROM_ADDRESS") or app.config.get("MAIL_USERNAME", "")

    html_body = render_template(template, **(context or {}))

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)

    if reply_to:
        msg["Reply-To"] = reply_to

    msg.attach(MIMEText(html_body, "html"))
    return msg


def send_email(to, subject, template, context=None, reply_to=None):
    """
    Send a templated HTML email without blocking the request.

    Args:
        to:        Recipient email address (str or list).
        subject:   Email subject line.
        template:  Path to Jinja2 HTML template (relative to templates/).
        context:   Dict of variables to pass to the template.
        reply_to:  Optional reply-to address.
    """
    app = current_app._get_current_object()
    msg = _build_message(app, to, subject, template, context, reply_to)

    thread = threading.Thread(target=_send_smtp, args=(app, msg))
    thread.daemon = True
    thread.start()


def send_email_sync(to, subject, template, context=None, reply_to=None):
    """
    Same as send_email but blocks until sent. Used by CLI commands such
    as the test mail.
    """
    app = current_app._get_current_object()
    msg = _build_message(app, to, subject, template, context, reply_to)
    _send_smtp(app, msg)
