from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from imfpay.config import Settings
from imfpay.database import connect_with_retry
from imfpay.exceptions import NotFoundError
from imfpay.services.payment_store import (
    MemoryPaymentStore, SQLPaymentStore, create_payment_store,
)


def _fields(reference: str, **extra) -> dict:
    fields = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "amount": 100.0,
        "service_type": "Membership Only",
        "reference": reference,
    }
    fields.update(extra)
    return fields


@pytest.fixture
def sql_store(tmp_path) -> SQLPaymentStore:
    factory = connect_with_retry(f"sqlite:///{tmp_path / 'payments.db'}")
    assert factory is not None
    return SQLPaymentStore(factory)


@pytest.fixture(params=["memory", "sql"])
def any_store(request, sql_store):
    if request.param == "memory":
        return MemoryPaymentStore()
    return sql_store


def test_save_assigns_id_and_timestamp(any_store) -> None:
    payment = any_store.save(_fields("IMF-1"))
    assert payment.id
    assert payment.timestamp.tzinfo is not None
    assert payment.notification_sent is False
    assert payment.notification_timestamp is None
    assert any_store.get_by_id(payment.id) == payment


def test_ids_are_unique(any_store) -> None:
    ids = {any_store.save(_fields(f"IMF-{i}")).id for i in range(20)}
    assert len(ids) == 20


def test_list_is_newest_first(any_store) -> None:
    now = datetime.now(timezone.utc)
    any_store.save(_fields("old", timestamp=now - timedelta(hours=2)))
    any_store.save(_fields("new", timestamp=now))
    any_store.save(_fields("mid", timestamp=now - timedelta(hours=1)))

    assert [p.reference for p in any_store.list_payments()] == ["new", "mid", "old"]


def test_notification_latch_is_one_way(any_store) -> None:
    payment = any_store.save(_fields("IMF-1"))
    first_time = datetime(2024, 1, 1, tzinfo=timezone.utc)

    updated = any_store.update_notification_status(payment.id, first_time)
    assert updated.notification_sent is True
    assert updated.notification_timestamp == first_time

    again = any_store.update_notification_status(payment.id, first_time + timedelta(days=1))
    assert again.notification_timestamp == first_time

    assert [p.id for p in any_store.list_payments(notified=True)] == [payment.id]
    assert any_store.list_payments(notified=False) == []


def test_unknown_id_raises(any_store) -> None:
    with pytest.raises(NotFoundError):
        any_store.get_by_id("12345")
    with pytest.raises(NotFoundError):
        any_store.update_notification_status("nope", datetime.now(timezone.utc))


def test_memory_store_is_lost_on_restart() -> None:
    store = MemoryPaymentStore()
    saved = store.save(_fields("IMF-1"))
    store.save(_fields("IMF-2"))
    assert len(store.list_payments()) == 2
    assert store.get_by_id(saved.id).reference == "IMF-1"

    restarted = MemoryPaymentStore()
    assert restarted.list_payments() == []
    with pytest.raises(NotFoundError):
        restarted.get_by_id(saved.id)


def test_sql_store_survives_restart(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'durable.db'}"
    saved = SQLPaymentStore(connect_with_retry(url)).save(_fields("IMF-1"))

    reopened = SQLPaymentStore(connect_with_retry(url))
    assert reopened.get_by_id(saved.id).reference == "IMF-1"
    assert reopened.is_connected() is True


def test_unreachable_database_falls_back_to_memory(tmp_path) -> None:
    # A directory cannot be opened as a SQLite database
    settings = Settings(DATABASE_URL=f"sqlite:///{tmp_path}", DATABASE_CONNECT_ATTEMPTS=1)
    store = create_payment_store(settings)
    assert store.backend == "memory"
    assert store.is_connected() is False

    saved = store.save(_fields("IMF-1"))
    assert store.list_payments()[0].id == saved.id


def test_empty_database_url_uses_memory() -> None:
    assert create_payment_store(Settings(DATABASE_URL="")).backend == "memory"


@pytest.mark.parametrize("payment_id", ["99999999999999999999999", "9223372036854775808", "²", "-1", ""])
def test_sql_store_unusable_id_is_not_found(sql_store, payment_id) -> None:
    sql_store.save(_fields("IMF-1"))
    with pytest.raises(NotFoundError):
        sql_store.get_by_id(payment_id)
    with pytest.raises(NotFoundError):
        sql_store.update_notification_status(payment_id, datetime.now(timezone.utc))
    assert sql_store.list_payments(notified=True) == []


def test_sql_store_largest_integer_id_is_plain_miss(sql_store) -> None:
    with pytest.raises(NotFoundError):
        sql_store.get_by_id(str(2**63 - 1))
