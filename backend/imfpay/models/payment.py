"""
Payment Record Model — One payer's bank-transfer submission.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Float, DateTime, Boolean

from imfpay.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentRecord(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    name = Column(String(128), nullable=False)
    email = Column(String(254), nullable=False, index=True)
    amount = Column(Float, nullable=False)         # Always > 0
    service_type = Column(String(128), nullable=False)
    reference = Column(String(64), nullable=False, index=True)

    # Receipt (empty when none uploaded)
    receipt_path = Column(String(255), default="")
    receipt_original_name = Column(String(255), default="")

    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    # Only these two ever change, once: (False, None) -> (True, <time>)
    notification_sent = Column(Boolean, default=False, nullable=False, index=True)
    notification_timestamp = Column(DateTime(timezone=True), nullable=True)
