from __future__ import annotations

from imfpay.services.notification_service import ALREADY_SENT, FAILED, SENT, NotificationService
from imfpay.services.mail_transports import MailMessage
from tests.conftest import RecordingTransport, make_notifier, submission


class CrashingTransport(RecordingTransport):
    """Raises a non-transport exception for the listed recipients."""

    def __init__(self, crash_for: set[str]) -> None:
        super().__init__()
        self.crash_for = crash_for

    def send(self, message: MailMessage) -> None:
        if message.to in self.crash_for:
            raise RuntimeError("unexpected")
        super().send(message)


def _payment_fields(reference: str = "IMF-1") -> dict:
    return {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "amount": 100.0,
        "service_type": "Membership Only",
        "reference": reference,
    }


def test_verification_retries_then_succeeds() -> None:
    transport = RecordingTransport(fail_verify=2)
    sleeps = []
    notifier = make_notifier(transport, retries=3)
    notifier._sleep = sleeps.append
    notifier.backoff_seconds = 3.0

    assert notifier.initialize() is True
    assert notifier.enabled is True
    assert transport.verify_calls == 3
    assert sleeps == [3.0, 3.0]


def test_verification_exhausted_disables_notifier() -> None:
    transport = RecordingTransport(fail_verify=99)
    notifier = make_notifier(transport, retries=3)

    assert notifier.initialize() is False
    assert transport.verify_calls == 3

    result = notifier.send_payment_received("jane@example.com", None, {"name": "Jane"})
    assert result.success is False
    assert result.error.kind == "disabled"
    assert transport.sent == []


def test_incomplete_configuration_skips_verification() -> None:
    transport = RecordingTransport(configured=False)
    notifier = make_notifier(transport)

    assert notifier.initialize() is False
    assert transport.verify_calls == 0


def test_provider_error_is_returned_not_raised(notifier, transport) -> None:
    transport.fail_send = True
    result = notifier.send_payment_received("jane@example.com", None, {"name": "Jane"})
    assert result.success is False
    assert result.error.kind == "provider"
    assert result.error.provider == "fake"
    assert "550" in result.error.message


def test_invalid_payer_address(notifier, transport) -> None:
    result = notifier.send_payment_received("not-an-email", None, {})
    assert result.error.kind == "invalid"
    assert transport.sent == []


def test_single_record_notification_is_idempotent(notifications, store, transport) -> None:
    payment = store.save(_payment_fields())

    first = notifications.notify_payment(payment.id)
    assert first.status == SENT
    assert first.payment.notification_sent is True
    sent_at = first.payment.notification_timestamp
    assert len(transport.sent) == 2

    second = notifications.notify_payment(payment.id)
    assert second.status == ALREADY_SENT
    assert second.payment.notification_timestamp == sent_at
    assert len(transport.sent) == 2


def test_failed_notification_leaves_flag_clear(notifications, store, transport) -> None:
    transport.fail_send = True
    payment = store.save(_payment_fields())

    outcome = notifications.notify_payment(payment.id)
    assert outcome.status == FAILED
    assert store.get_by_id(payment.id).notification_sent is False


def test_sweep_is_idempotent(notifications, store, transport) -> None:
    for i in range(3):
        store.save(_payment_fields(f"IMF-{i}"))

    first = notifications.notify_all_pending()
    assert (first.total, first.sent, first.already_sent, first.failed) == (3, 3, 0, 0)
    assert len(transport.sent) == 6

    second = notifications.notify_all_pending()
    assert (second.total, second.sent, second.already_sent, second.failed) == (3, 0, 3, 0)
    assert len(transport.sent) == 6


def test_sweep_survives_individual_failures(notifications, store, transport) -> None:
    store.save(_payment_fields("IMF-ok"))
    store.save({**_payment_fields("IMF-bad"), "email": "broken"})

    summary = notifications.notify_all_pending()
    assert summary.total == 2
    assert summary.sent == 1
    assert summary.failed == 1


def test_notify_endpoint_reports_already_sent(client, transport) -> None:
    payment_id = client.post("/api/send-transfer-receipt", data=submission()).json()["data"]["id"]
    assert len(transport.sent) == 2

    resp = client.post(f"/api/send-notifications/{payment_id}")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Notification already sent previously"
    assert len(transport.sent) == 2


def test_notify_endpoint_sends_pending_record(client, store, transport) -> None:
    payment = store.save(_payment_fields())

    resp = client.post(f"/api/send-notifications/{payment.id}")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Notification sent successfully"
    assert resp.json()["data"]["notificationSent"] is True


def test_notify_endpoint_failure_and_missing(client, store, transport) -> None:
    transport.fail_send = True
    payment = store.save(_payment_fields())

    resp = client.post(f"/api/send-notifications/{payment.id}")
    assert resp.status_code == 500
    assert resp.json()["success"] is False

    assert client.post("/api/send-notifications/unknown").status_code == 404


def test_pending_sweep_endpoint(client, transport) -> None:
    transport.fail_send = True
    client.post("/api/send-transfer-receipt", data=submission(reference="A"))
    client.post("/api/send-transfer-receipt", data=submission(reference="B"))
    assert transport.sent == []

    transport.fail_send = False
    first = client.post("/api/send-pending-notifications").json()["data"]
    assert first == {"total": 2, "sent": 2, "alreadySent": 0, "failed": 0}

    second = client.post("/api/send-pending-notifications").json()["data"]
    assert second == {"total": 2, "sent": 0, "alreadySent": 2, "failed": 0}
    assert len(transport.sent) == 4


def test_unexpected_transport_exception_is_returned() -> None:
    notifier = make_notifier(CrashingTransport({"jane@example.com"}))
    notifier.initialize()

    result = notifier.send_payment_received("jane@example.com", None, {"reference": "IMF-1"})
    assert result.success is False
    assert result.error.kind == "provider"
    assert result.error.message == "unexpected"


def test_sweep_continues_past_crashing_transport(store, receipts) -> None:
    transport = CrashingTransport({"crash@example.com"})
    notifier = make_notifier(transport)
    notifier.initialize()
    service = NotificationService(store, notifier, receipts)
    store.save({**_payment_fields("IMF-crash"), "email": "crash@example.com"})
    ok = store.save(_payment_fields("IMF-ok"))

    summary = service.notify_all_pending()
    assert summary.total == 2
    assert summary.sent == 1
    assert summary.failed == 1
    assert [p.id for p in store.list_payments(notified=True)] == [ok.id]


def test_sweep_counts_unexpected_errors_as_failed(notifications, store, transport) -> None:
    first = store.save(_payment_fields("IMF-1"))
    store.save(_payment_fields("IMF-2"))
    original_get = store.get_by_id

    def flaky_get(payment_id):
        if payment_id == first.id:
            raise RuntimeError("driver exploded")
        return original_get(payment_id)

    store.get_by_id = flaky_get
    summary = notifications.notify_all_pending()
    assert summary.total == 2
    assert summary.failed == 1
    assert summary.sent == 1
    assert len(transport.sent) == 2
