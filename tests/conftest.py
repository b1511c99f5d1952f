from __future__ import annotations

from typing import List

import pytest
from fastapi.testclient import TestClient

from imfpay.main import app, attach_components
from imfpay.services.mail_transports import MailMessage, MailTransport, TransportError
from imfpay.services.notification_service import Notifier, NotificationService
from imfpay.services.payment_store import MemoryPaymentStore
from imfpay.services.receipt_service import ReceiptStorage

ADMIN = "admin@imfafrica.org"
SENDER = '"IMF Africa Pay" <no-reply@imfafrica.org>'


class RecordingTransport(MailTransport):
    """Fake transport: records every message, fails on demand."""

    name = "fake"

    def __init__(self, fail_verify: int = 0, fail_send: bool = False, configured: bool = True) -> None:
        self.sent: List[MailMessage] = []
        self.verify_calls = 0
        self.fail_verify = fail_verify
        self.fail_send = fail_send
        self.configured = configured

    def is_configured(self) -> bool:
        return self.configured

    def verify(self) -> None:
        self.verify_calls += 1
        if self.verify_calls <= self.fail_verify:
            raise TransportError("fake", "connection refused")

    def send(self, message: MailMessage) -> None:
        if self.fail_send:
            raise TransportError("fake", "550 rejected")
        self.sent.append(message)


def make_notifier(transport: MailTransport, retries: int = 3) -> Notifier:
    return Notifier(
        transport,
        sender=SENDER,
        admin_email=ADMIN,
        verify_retries=retries,
        backoff_seconds=0,
        sleep=lambda _s: None,
    )


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def notifier(transport: RecordingTransport) -> Notifier:
    n = make_notifier(transport)
    n.initialize()
    return n


@pytest.fixture
def store() -> MemoryPaymentStore:
    return MemoryPaymentStore()


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def receipts(upload_dir) -> ReceiptStorage:
    return ReceiptStorage(str(upload_dir))


@pytest.fixture
def notifications(store, notifier, receipts) -> NotificationService:
    return NotificationService(store, notifier, receipts)


@pytest.fixture
def client(store, receipts, notifier) -> TestClient:
    attach_components(app, store, receipts, notifier)
    # Not entered as a context manager: startup wiring is replaced above
    return TestClient(app)


def pdf_bytes(size: int = 2048) -> bytes:
    head = b"%PDF-1.4\n"
    return head + b"0" * (size - len(head))


def submission(**overrides) -> dict:
    data = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "amount": "100",
        "serviceType": "Membership Only",
        "reference": "IMF-1700000000000",
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}
