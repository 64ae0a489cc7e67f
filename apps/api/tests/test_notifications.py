"""Tests for notification hooks."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from clausebase_api.ledger.proof import ProofResult
from clausebase_api.notifications.service import DELIVER_TASK_NAME, NotificationService
from clausebase_api.versioning.service import VersionService


def test_without_webhook_nothing_is_enqueued(db, contract, alice):
    with patch("clausebase_api.notifications.service.get_celery_app") as mock_get_celery_app:
        VersionService(db, notifier=NotificationService()).create_version(contract.id, alice.id, "Clause 1")
    mock_get_celery_app.assert_not_called()


@patch("clausebase_api.notifications.service.get_celery_app")
def test_version_created_is_enqueued(mock_get_celery_app, db, contract, alice):
    mock_celery_app = MagicMock()
    mock_get_celery_app.return_value = mock_celery_app
    notifier = NotificationService(webhook_url="https://hooks.test/clausebase")

    version = VersionService(db, notifier=notifier).create_version(contract.id, alice.id, "Clause 1").version

    mock_celery_app.send_task.assert_called_once()
    task_name = mock_celery_app.send_task.call_args.args[0]
    event_type, payload = mock_celery_app.send_task.call_args.kwargs["args"]
    assert task_name == DELIVER_TASK_NAME
    assert event_type == "version.created"
    assert payload["version_id"] == version.id
    assert payload["version_number"] == 1


@patch("clausebase_api.notifications.service.get_celery_app")
def test_broker_failure_does_not_fail_version_creation(mock_get_celery_app, db, contract, alice):
    mock_celery_app = MagicMock()
    mock_celery_app.send_task.side_effect = ConnectionError("Broker connection failed")
    mock_get_celery_app.return_value = mock_celery_app
    notifier = NotificationService(webhook_url="https://hooks.test/clausebase")

    result = VersionService(db, notifier=notifier).create_version(contract.id, alice.id, "Clause 1")
    assert result.version.version_number == 1


@patch("clausebase_api.notifications.service.get_celery_app")
def test_merge_completed_payload_includes_proof(mock_get_celery_app):
    mock_celery_app = MagicMock()
    mock_get_celery_app.return_value = mock_celery_app
    version = MagicMock(contract_id="c1", id="v1", version_number=2)
    proof = ProofResult("hash", "sha256:hash", None, error="down", status="failed")

    NotificationService(webhook_url="https://hooks.test").notify_merge_completed(version, proof)

    event_type, payload = mock_celery_app.send_task.call_args.kwargs["args"]
    assert event_type == "version.merged"
    assert payload["onchain_proof"]["error"] == "down"


def test_deliver_posts_event(monkeypatch):
    captured = {}

    class RecordingClient(httpx.Client):
        def __init__(self, **kwargs):
            def handler(request):
                captured["event"] = request.headers["X-Clausebase-Event"]
                captured["url"] = str(request.url)
                return httpx.Response(204)

            super().__init__(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr("clausebase_api.notifications.service.httpx.Client", RecordingClient)

    status = NotificationService(webhook_url="https://hooks.test/in").deliver("version.created", {"a": 1})

    assert status == 204
    assert captured == {"event": "version.created", "url": "https://hooks.test/in"}


def test_deliver_requires_webhook_url():
    with pytest.raises(ValueError):
        NotificationService().deliver("version.created", {})


def test_deliver_timestamp_is_unix_epoch(monkeypatch):
    captured = {}

    class RecordingClient(httpx.Client):
        def __init__(self, **kwargs):
            def handler(request):
                captured["timestamp"] = request.headers["X-Clausebase-Timestamp"]
                return httpx.Response(200)

            super().__init__(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr("clausebase_api.notifications.service.httpx.Client", RecordingClient)
    monkeypatch.setattr("clausebase_api.notifications.service.time.time", lambda: 1700000000.75)

    NotificationService(webhook_url="https://hooks.test/in").deliver("version.merged", {})

    assert captured["timestamp"] == "1700000000"


@patch("clausebase_api.notifications.service.get_celery_app")
def test_invitation_payload_carries_link(mock_get_celery_app):
    from datetime import datetime

    mock_celery_app = MagicMock()
    mock_get_celery_app.return_value = mock_celery_app
    invitation = MagicMock(id="i1", contract_id="c1", email="dana@example.com", expires_at=datetime(2026, 1, 8))

    NotificationService(webhook_url="https://hooks.test").notify_invitation(
        invitation, "Supply Agreement", "Alice", "http://localhost:5173/invite/tok"
    )

    event_type, payload = mock_celery_app.send_task.call_args.kwargs["args"]
    assert event_type == "contract.invitation"
    assert payload["email"] == "dana@example.com"
    assert payload["invitation_link"] == "http://localhost:5173/invite/tok"
    assert payload["expires_at"] == "2026-01-08T00:00:00"
