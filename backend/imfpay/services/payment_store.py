"""
Payment Store — Persistence for payment records.

Two interchangeable backends behind one interface:
  * SQLPaymentStore    — SQLAlchemy, durable, database-assigned integer ids.
  * MemoryPaymentStore — process-local fallback, lost on restart, time-based ids.

The rest of the application only ever sees PaymentStore.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from imfpay.config import Settings
from imfpay.database import connect_with_retry
from imfpay.exceptions import NotFoundError, StorageError
from imfpay.models.payment import PaymentRecord
from imfpay.schemas.schemas import Payment

logger = logging.getLogger(__name__)

RECORD_FIELDS = (
    "name", "email", "amount", "service_type", "reference",
    "receipt_path", "receipt_original_name",
)


SQL_INTEGER_MAX = 2**63 - 1


def _parse_id(payment_id: str) -> int:
    """Database id from a path segment; anything that cannot be a row id is NotFound."""
    raw = str(payment_id)
    if not (raw.isascii() and raw.isdigit()):
        raise NotFoundError("Payment record not found")
    value = int(raw)
    if value > SQL_INTEGER_MAX:
        raise NotFoundError("Payment record not found")
    return value


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PaymentStore(ABC):
    """Storage contract shared by both backends."""

    backend = "abstract"

    @abstractmethod
    def save(self, fields: Dict[str, Any]) -> Payment:
        """Persist a new record, assigning id and timestamp when absent."""

    @abstractmethod
    def list_payments(self, notified: Optional[bool] = None) -> List[Payment]:
        """All records, newest first, optionally filtered on notification_sent."""

    @abstractmethod
    def get_by_id(self, payment_id: str) -> Payment:
        """Fetch one record or raise NotFoundError."""

    @abstractmethod
    def update_notification_status(self, payment_id: str, sent_at: datetime) -> Payment:
        """Latch notification_sent to True. Idempotent once set."""

    @abstractmethod
    def is_connected(self) -> bool:
        """True when the durable database is reachable."""


class MemoryPaymentStore(PaymentStore):
    """Non-durable fallback. A fresh instance starts empty."""

    backend = "memory"

    def __init__(self):
        self._records: Dict[str, Payment] = {}
        self._lock = threading.Lock()
        self._last_id = 0

    def _next_id(self) -> str:
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        self._last_id = candidate
        return str(candidate)

    def save(self, fields: Dict[str, Any]) -> Payment:
        with self._lock:
            payment_id = str(fields.get("id") or self._next_id())
            if payment_id in self._records:
                raise StorageError(f"Payment id {payment_id} already exists")
            payment = Payment(
                id=payment_id,
                timestamp=fields.get("timestamp") or datetime.now(timezone.utc),
                notification_sent=False,
                notification_timestamp=None,
                **{k: fields[k] for k in RECORD_FIELDS if k in fields},
            )
            self._records[payment_id] = payment
        return payment

    def list_payments(self, notified: Optional[bool] = None) -> List[Payment]:
        with self._lock:
            newest_inserted_first = list(reversed(self._records.values()))
        if notified is not None:
            newest_inserted_first = [p for p in newest_inserted_first if p.notification_sent == notified]
        return sorted(newest_inserted_first, key=lambda p: p.timestamp, reverse=True)

    def get_by_id(self, payment_id: str) -> Payment:
        with self._lock:
            payment = self._records.get(str(payment_id))
        if payment is None:
            raise NotFoundError("Payment record not found")
        return payment

    def update_notification_status(self, payment_id: str, sent_at: datetime) -> Payment:
        with self._lock:
            payment = self._records.get(str(payment_id))
            if payment is None:
                raise NotFoundError("Payment record not found")
            if payment.notification_sent:
                return payment
            payment = payment.model_copy(update={
                "notification_sent": True,
                "notification_timestamp": sent_at,
            })
            self._records[payment.id] = payment
        return payment

    def is_connected(self) -> bool:
        return False


class SQLPaymentStore(PaymentStore):
    """Durable store on any SQLAlchemy-supported database."""

    backend = "sql"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @staticmethod
    def _to_payment(record: PaymentRecord) -> Payment:
        return Payment(
            id=str(record.id),
            name=record.name,
            email=record.email,
            amount=record.amount,
            service_type=record.service_type,
            reference=record.reference,
            receipt_path=record.receipt_path or "",
            receipt_original_name=record.receipt_original_name or "",
            timestamp=_aware(record.timestamp),
            notification_sent=bool(record.notification_sent),
            notification_timestamp=_aware(record.notification_timestamp),
        )

    def save(self, fields: Dict[str, Any]) -> Payment:
        record = PaymentRecord(
            timestamp=fields.get("timestamp") or datetime.now(timezone.utc),
            notification_sent=False,
            **{k: fields[k] for k in RECORD_FIELDS if k in fields},
        )
        with self._session_factory() as db:
            try:
                db.add(record)
                db.commit()
                db.refresh(record)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("Failed to save payment %s: %s", fields.get("reference"), exc)
                raise StorageError("Failed to save payment record") from exc
            return self._to_payment(record)

    def list_payments(self, notified: Optional[bool] = None) -> List[Payment]:
        with self._session_factory() as db:
            try:
                query = db.query(PaymentRecord)
                if notified is not None:
                    query = query.filter(PaymentRecord.notification_sent.is_(notified))
                rows = query.order_by(PaymentRecord.timestamp.desc(), PaymentRecord.id.desc()).all()
            except SQLAlchemyError as exc:
                raise StorageError("Failed to retrieve payments") from exc
            return [self._to_payment(r) for r in rows]

    def get_by_id(self, payment_id: str) -> Payment:
        row_id = _parse_id(payment_id)
        with self._session_factory() as db:
            try:
                record = db.get(PaymentRecord, row_id)
            except SQLAlchemyError as exc:
                raise StorageError("Failed to retrieve payment") from exc
            if record is None:
                raise NotFoundError("Payment record not found")
            return self._to_payment(record)

    def update_notification_status(self, payment_id: str, sent_at: datetime) -> Payment:
        row_id = _parse_id(payment_id)
        with self._session_factory() as db:
            try:
                # Conditional update keeps the latch single-writer at the database
                db.query(PaymentRecord).filter(
                    PaymentRecord.id == row_id,
                    PaymentRecord.notification_sent.is_(False),
                ).update(
                    {"notification_sent": True, "notification_timestamp": sent_at},
                    synchronize_session=False,
                )
                db.commit()
                record = db.get(PaymentRecord, row_id)
            except SQLAlchemyError as exc:
                db.rollback()
                raise StorageError("Failed to update notification status") from exc
            if record is None:
                raise NotFoundError("Payment record not found")
            return self._to_payment(record)

    def is_connected(self) -> bool:
        try:
            with self._session_factory() as db:
                db.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False


def create_payment_store(settings: Settings) -> PaymentStore:
    """Pick the backend at startup: database if reachable, else memory."""
    session_factory = connect_with_retry(
        settings.DATABASE_URL,
        attempts=settings.DATABASE_CONNECT_ATTEMPTS,
        connect_timeout=settings.DATABASE_CONNECT_TIMEOUT,
        echo=settings.DEBUG,
    )
    if session_factory is None:
        logger.warning("Using in-memory storage for payments (data will not persist across restarts)")
        return MemoryPaymentStore()
    return SQLPaymentStore(session_factory)
