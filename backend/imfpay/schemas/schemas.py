"""
Pydantic Schemas — Payment record and API envelopes.
Attributes are snake_case; JSON keys are camelCase via aliases.
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ──────────────── Payment ────────────────

class Payment(CamelModel):
    """A stored payment record, independent of the backing store."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    email: str
    amount: float
    service_type: str
    reference: str
    receipt_path: str = ""
    receipt_original_name: str = ""
    timestamp: datetime
    notification_sent: bool = False
    notification_timestamp: Optional[datetime] = None


class PaymentResponse(CamelModel):
    success: bool = True
    message: str = ""
    data: Payment


class PaymentListResponse(CamelModel):
    success: bool = True
    data: List[Payment] = []


# ──────────────── Notifications ────────────────

class NotificationResponse(CamelModel):
    success: bool
    message: str
    data: Optional[Payment] = None


class SweepSummary(CamelModel):
    total: int = 0
    sent: int = 0
    already_sent: int = 0
    failed: int = 0


class SweepResponse(CamelModel):
    success: bool = True
    message: str = ""
    data: SweepSummary


class EmailTestRequest(BaseModel):
    to: Optional[str] = None
    subject: Optional[str] = None
    text: Optional[str] = None


# ──────────────── Generic ────────────────

class HealthResponse(CamelModel):
    status: str
    database: str       # Connected | Disconnected
    email: str          # Valid | Invalid
    storage: str        # sql | memory
    transport: str
    timestamp: datetime
    uptime_seconds: float
    version: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
