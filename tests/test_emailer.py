from unittest.mock import patch

import pytest

from familybrief.emailer import SmtpSettings, send_email


def _settings(**kw):
    base = dict(host="smtp.test", port=587, username="bot@teachmo.test", password="pw",
                from_email="bot@teachmo.test", from_name="Teachmo")
    base.update(kw)
    return SmtpSettings(**base)


@patch("familybrief.emailer.smtplib.SMTP")
def test_sends_multipart_message(mock_smtp):
    server = mock_smtp.return_value.__enter__.return_value
    out = send_email("Ready", "<p>Hi</p>", "Hi", ["parent@example.com"], settings=_settings())

    assert out["ok"] is True and out["provider"] == "smtp"
    mock_smtp.assert_called_once_with("smtp.test", 587, timeout=20)
    server.login.assert_called_once_with("bot@teachmo.test", "pw")
    msg = server.send_message.call_args[0][0]
    assert msg["To"] == "parent@example.com"
    assert msg["From"] == "Teachmo <bot@teachmo.test>"
    assert msg.is_multipart()


def test_missing_credentials_raise():
    with pytest.raises(RuntimeError, match="credentials"):
        send_email("Ready", "", "Hi", ["parent@example.com"], settings=_settings(password=None))


def test_missing_recipients_raise():
    with pytest.raises(RuntimeError, match="No recipients"):
        send_email("Ready", "", "Hi", [None, ""], settings=_settings())


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SMTP_USERNAME", "user@school.test")
    monkeypatch.delenv("SMTP_FROM_EMAIL", raising=False)
    monkeypatch.setenv("SMTP_PORT", "2525")
    s = SmtpSettings.from_env()
    assert s.port == 2525
    assert s.from_email == "user@school.test"
