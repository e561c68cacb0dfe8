import smtplib

import pytest

from monopay.services.mail import MailDeliveryFailed, send_password_reset_email


class RecordingSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, username, password):
        pass

    def send_message(self, msg):
        RecordingSMTP.sent.append(msg)


def _live_mail(app):
    app.config.update(MAIL_SUPPRESS_SEND=False, MAIL_SERVER='smtp.test', MAIL_PORT=2525, MAIL_USE_TLS=True)


def test_reset_mail_contains_link(app_ctx, monkeypatch):
    _live_mail(app_ctx)
    RecordingSMTP.sent = []
    monkeypatch.setattr(smtplib, 'SMTP', RecordingSMTP)

    send_password_reset_email('dana@example.com', 'abc123', 'Dana')

    msg = RecordingSMTP.sent[0]
    assert msg['To'] == 'dana@example.com'
    assert 'Password Reset' in msg['Subject']
    body = msg.get_body(preferencelist=('plain',)).get_content()
    assert 'Hi Dana' in body
    assert 'http://localhost:3000/reset-password?token=abc123' in body


def test_smtp_failure_raises(app_ctx, monkeypatch):
    _live_mail(app_ctx)

    def refuse(*args, **kwargs):
        raise ConnectionRefusedError('no server')

    monkeypatch.setattr(smtplib, 'SMTP', refuse)
    with pytest.raises(MailDeliveryFailed):
        send_password_reset_email('dana@example.com', 'abc123', 'Dana')
