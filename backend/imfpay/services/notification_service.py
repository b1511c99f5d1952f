"""
Notification Service — Payer confirmation and admin alert emails.

Notifier wraps one MailTransport. It verifies the transport at startup
with a bounded retry loop; if that never succeeds it stays disabled and
every send returns a NotifyError("disabled") without touching the network.
Notifier never raises: failures come back as NotifyResult values.

NotificationService ties the notifier to stored payments: the per-record
path is idempotent on notification_sent, and the sweep replays it for
every record.
"""
import logging
import mimetypes
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any, Callable

from imfpay.config import Settings
from imfpay.exceptions import PaymentServiceError
from imfpay.schemas.schemas import Payment, SweepSummary
from imfpay.services.email_templates import render_payer_confirmation, render_admin_alert
from imfpay.services.mail_transports import (
    Attachment, MailMessage, MailTransport, TransportError, build_transport,
)
from imfpay.services.payment_store import PaymentStore
from imfpay.services.receipt_service import ReceiptStorage
from imfpay.utils.validators import validate_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotifyError:
    kind: str           # disabled | provider | timeout | invalid
    provider: str
    message: str

    def __str__(self) -> str:
        return f"{self.kind} ({self.provider}): {self.message}"


@dataclass(frozen=True)
class NotifyResult:
    success: bool
    provider: str
    error: Optional[NotifyError] = None


class Notifier:
    def __init__(
        self,
        transport: Optional[MailTransport],
        sender: str,
        admin_email: str,
        verify_retries: int = 3,
        backoff_seconds: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.transport = transport
        self.sender = sender
        self.admin_email = admin_email
        self.verify_retries = max(verify_retries, 1)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep
        self.enabled = False

    @property
    def provider(self) -> str:
        return self.transport.name if self.transport else "none"

    def initialize(self) -> bool:
        """Verify the transport, retrying with a fixed backoff. Returns readiness."""
        if self.transport is None:
            logger.warning("No mail transport configured - email notifications disabled")
            self.enabled = False
            return False
        if not self.transport.is_configured():
            logger.warning("Email configuration incomplete (%s) - email notifications disabled", self.provider)
            self.enabled = False
            return False

        for attempt in range(1, self.verify_retries + 1):
            try:
                self.transport.verify()
            except TransportError as exc:
                logger.warning(
                    "Email verification attempt %d/%d failed: %s", attempt, self.verify_retries, exc,
                )
                if attempt < self.verify_retries:
                    self._sleep(self.backoff_seconds)
                continue
            logger.info("Email transport %s verified (attempt %d)", self.provider, attempt)
            self.enabled = True
            return True

        logger.error("All email verification attempts failed - email notifications disabled")
        self.enabled = False
        return False

    def _error(self, kind: str, message: str, provider: Optional[str] = None) -> NotifyResult:
        error = NotifyError(kind=kind, provider=provider or self.provider, message=message)
        return NotifyResult(success=False, provider=error.provider, error=error)

    def _deliver(self, message: MailMessage) -> Optional[NotifyResult]:
        try:
            self.transport.send(message)
        except TransportError as exc:
            return self._error(exc.kind, exc.message, exc.provider)
        except OSError as exc:
            return self._error("provider", str(exc))
        except Exception as exc:
            logger.exception("Unexpected %s transport failure", self.provider)
            return self._error("provider", str(exc) or exc.__class__.__name__)
        return None

    def send_payment_received(
        self,
        payer_email: str,
        admin_email: Optional[str],
        template_data: Dict[str, Any],
        attachment_path: Optional[Path] = None,
        attachment_name: str = "",
    ) -> NotifyResult:
        """Send the payer confirmation, then the admin alert. Both or failure."""
        if not self.enabled:
            return self._error("disabled", "email transport is not available")
        admin_email = admin_email or self.admin_email
        if not validate_email(payer_email):
            return self._error("invalid", f"invalid payer address {payer_email!r}")
        if not admin_email:
            return self._error("invalid", "no admin address configured")

        attachments = []
        if attachment_path is not None:
            suffix = attachment_path.suffix
            content_type = mimetypes.guess_type(attachment_path.name)[0] or "application/octet-stream"
            attachments.append(Attachment(
                filename=attachment_name or f"payment_receipt{suffix}",
                content_type=content_type,
                path=attachment_path,
            ))

        has_attachment = bool(attachments)
        for to, (subject, html, text) in (
            (payer_email, render_payer_confirmation(template_data, has_attachment)),
            (admin_email, render_admin_alert(template_data, has_attachment)),
        ):
            failure = self._deliver(MailMessage(
                sender=self.sender, to=to, subject=subject, text=text, html=html, attachments=attachments,
            ))
            if failure is not None:
                return failure

        return NotifyResult(success=True, provider=self.provider)

    def send_test(self, to: str, subject: str, text: str) -> NotifyResult:
        if not self.enabled:
            return self._error("disabled", "Email transporter not initialized")
        failure = self._deliver(MailMessage(sender=self.sender, to=to, subject=subject, text=text))
        return failure or NotifyResult(success=True, provider=self.provider)

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()


def build_notifier(settings: Settings) -> Notifier:
    return Notifier(
        transport=build_transport(settings),
        sender=settings.EMAIL_FROM,
        admin_email=settings.ADMIN_EMAIL,
        verify_retries=settings.EMAIL_VERIFY_RETRIES,
        backoff_seconds=settings.EMAIL_VERIFY_BACKOFF_SECONDS,
    )


# ─── Per-record Notification ─────────────────────────────────────────

SENT = "sent"
ALREADY_SENT = "already_sent"
FAILED = "failed"


@dataclass(frozen=True)
class NotificationOutcome:
    status: str
    payment: Payment
    error: Optional[NotifyError] = None


class NotificationService:
    def __init__(
        self,
        store: PaymentStore,
        notifier: Notifier,
        receipts: ReceiptStorage,
        currency_symbol: str = "$",
    ):
        self.store = store
        self.notifier = notifier
        self.receipts = receipts
        self.currency_symbol = currency_symbol
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, payment_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(str(payment_id), threading.Lock())

    def template_data(self, payment: Payment) -> Dict[str, Any]:
        return {
            "name": payment.name,
            "email": payment.email,
            "amount": payment.amount,
            "service_type": payment.service_type,
            "reference": payment.reference,
            "date": payment.timestamp.strftime("%d %b %Y, %H:%M UTC"),
            "currency_symbol": self.currency_symbol,
        }

    def notify_payment(self, payment_id: str) -> NotificationOutcome:
        """Email payer and admin for one record unless that already happened.

        Raises NotFoundError / StorageError; notifier failures are returned.
        """
        with self._lock_for(payment_id):
            payment = self.store.get_by_id(payment_id)
            if payment.notification_sent:
                return NotificationOutcome(ALREADY_SENT, payment)

            attachment = self.receipts.resolve(payment.receipt_path)
            if payment.receipt_path and attachment is None:
                logger.warning("Receipt %s for payment %s is missing on disk", payment.receipt_path, payment.id)

            result = self.notifier.send_payment_received(
                payment.email,
                None,
                self.template_data(payment),
                attachment_path=attachment,
                attachment_name=payment.receipt_original_name,
            )
            if not result.success:
                logger.warning(
                    "Notification failed for payment %s (ref %s): %s",
                    payment.id, payment.reference, result.error,
                )
                return NotificationOutcome(FAILED, payment, result.error)

            updated = self.store.update_notification_status(payment.id, datetime.now(timezone.utc))
            logger.info("Payment confirmation emails sent for reference: %s", payment.reference)
            return NotificationOutcome(SENT, updated)

    def notify_all_pending(self) -> SweepSummary:
        """Replay the per-record path over every stored record.

        Records already notified are counted, not re-sent; one failing record
        never stops the sweep.
        """
        summary = SweepSummary()
        for payment in self.store.list_payments():
            summary.total += 1
            if payment.notification_sent:
                summary.already_sent += 1
                continue
            try:
                outcome = self.notify_payment(payment.id)
            except PaymentServiceError as exc:
                logger.error("Sweep could not notify payment %s: %s", payment.id, exc.message)
                summary.failed += 1
                continue
            except Exception:
                logger.exception("Sweep crashed on payment %s", payment.id)
                summary.failed += 1
                continue
            if outcome.status == SENT:
                summary.sent += 1
            elif outcome.status == ALREADY_SENT:
                summary.already_sent += 1
            else:
                summary.failed += 1
        logger.info(
            "Notification sweep finished: total=%d sent=%d already_sent=%d failed=%d",
            summary.total, summary.sent, summary.already_sent, summary.failed,
        )
        return summary

    def dispatch(self, payment_id: str) -> None:
        """Background entry point: runs after the HTTP response, never raises."""
        try:
            self.notify_payment(payment_id)
        except Exception:
            logger.exception("Background notification crashed for payment %s", payment_id)
