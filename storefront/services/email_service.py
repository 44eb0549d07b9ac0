"""
Email service for account messages (password reset).
Uses Flask-Mail for SMTP; disabled mail never breaks the calling flow.
"""
import logging
from flask import current_app
from flask_mail import Mail, Message

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def send_password_reset_email(to_email: str, full_name: str, reset_link: str) -> bool:
    """
    Send the password reset link.

    Returns:
        True if sent (or mail is disabled), False on SMTP failure
    """
    if not _mail_enabled():
        logger.warning(f"[MAIL DISABLED] Password reset email skipped for {to_email}")
        return True

    ttl_minutes = current_app.config.get('PASSWORD_RESET_TTL', 3600) // 60
    greeting = full_name or 'there'

    html_body = f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="UTF-8"></head>
    <body style="font-family: Arial, sans-serif; color: #333;">
        <div style="max-width: 600px; margin: auto; padding: 20px;">
            <h2 style="color: #16a34a;">Reset your Ozo password</h2>
            <p>Hi <strong>{greeting}</strong>,</p>
            <p>We received a request to reset the password for your account.</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{reset_link}" style="padding: 12px 30px; background: #16a34a;
                   color: #fff; text-decoration: none; border-radius: 5px;">Reset password</a>
            </p>
            <p>This link expires in {ttl_minutes} minutes. If you did not ask for it, ignore this email.</p>
        </div>
    </body>
    </html>
    """
    text_body = (
        f"Hi {greeting},\n\n"
        f"Reset your Ozo password here: {reset_link}\n\n"
        f"This link expires in {ttl_minutes} minutes."
    )

    try:
        msg = Message(
            subject="Reset your Ozo password",
            recipients=[to_email],
            html=html_body,
            body=text_body,
            charset='utf-8'
        )
        mail.send(msg)
        logger.info(f"[EMAIL] ✓ Password reset email sent to {to_email}")
        return True
    except Exception as e:
        logger.exception(f"[EMAIL] ✗ Failed to send password reset email to {to_email}: {e}")
        return False
