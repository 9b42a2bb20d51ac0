from unittest.mock import MagicMock, patch

from familybrief.notifier import send_notification


def test_records_in_app_notification(monkeypatch):
    monkeypatch.setenv("NOTIFY_EMAIL_ENABLED", "0")
    store = MagicMock()
    store.create_notification.return_value = "n1"
    assert send_notification(store, "p1", "weekly_brief_ready", "Ready", "Body", {"brief_id": "b1"}) == "n1"
    store.create_notification.assert_called_once_with("p1", "weekly_brief_ready", "Ready", "Body", {"brief_id": "b1"})
    store.lookup_user_email.assert_not_called()


@patch("familybrief.notifier.send_email")
def test_emails_when_enabled(mock_send, monkeypatch):
    monkeypatch.setenv("NOTIFY_EMAIL_ENABLED", "1")
    store = MagicMock()
    store.lookup_user_email.return_value = "parent@example.com"
    send_notification(store, "p1", "weekly_brief_ready", "Ready", "Body <b>", {"brief_id": "b1"})
    subject, html_body, text_body, to = mock_send.call_args[0]
    assert subject == "Ready"
    assert "Body &lt;b&gt;" in html_body
    assert text_body.startswith("Body <b>")
    assert to == ["parent@example.com"]


@patch("familybrief.notifier.send_email", side_effect=RuntimeError("SMTP credentials are not configured"))
def test_failures_are_swallowed(mock_send, monkeypatch):
    monkeypatch.setenv("NOTIFY_EMAIL_ENABLED", "1")
    store = MagicMock()
    store.create_notification.side_effect = RuntimeError("db down")
    store.lookup_user_email.return_value = "parent@example.com"
    assert send_notification(store, "p1", "weekly_brief_ready", "Ready", "Body") is None
    mock_send.assert_called_once()
