from email.message import EmailMessage
import smtplib

from flask import current_app


class MailDeliveryFailed(Exception):
    pass


def send_password_reset_email(email: str, reset_token: str, display_name: str) -> None:
    cfg = current_app.config
    reset_url = f"{cfg.get('FRONTEND_URL', 'http://localhost:3000').rstrip('/')}/reset-password?token={reset_token}"
    greeting = display_name or 'there'

    msg = EmailMessage()
    msg['Subject'] = 'MonoPay - Password Reset Request'
    msg['From'] = f"MonoPay <{cfg.get('MAIL_SENDER')}>"
    msg['To'] = email
    msg.set_content(
        f"Hi {greeting},\n\n"
        "We received a request to reset your MonoPay password.\n\n"
        f"Click this link to reset your password: {reset_url}\n\n"
        "This link expires in 1 hour.\n\n"
        "If you didn't request this, you can safely ignore this email.\n\n"
        "- The MonoPay Team\n"
    )
    msg.add_alternative(
        f"<p>Hi {greeting},</p>"
        "<p>We received a request to reset your MonoPay password.</p>"
        f'<p><a href="{reset_url}">Reset Password</a></p>'
        "<p>This link expires in 1 hour. If you didn't request this, you can safely ignore this email.</p>",
        subtype='html',
    )

    if cfg.get('MAIL_SUPPRESS_SEND'):
        current_app.logger.info(f"[mail-suppressed] to={email} reset_url={reset_url}")
        return

    try:
        with smtplib.SMTP(cfg['MAIL_SERVER'], int(cfg.get('MAIL_PORT', 587)), timeout=10) as smtp:
            if cfg.get('MAIL_USE_TLS'):
                smtp.starttls()
            if cfg.get('MAIL_USERNAME'):
                smtp.login(cfg['MAIL_USERNAME'], cfg.get('MAIL_PASSWORD') or '')
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.error(f"[mail-error] to={email} {exc}")
        raise MailDeliveryFailed('Failed to send email') from exc
    current_app.logger.info(f"[mail] password reset sent to={email}")
