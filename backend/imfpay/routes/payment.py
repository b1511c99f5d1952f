"""
Payment Routes — Bank-transfer receipt submission and payment lookup.

Submission order: validate -> store receipt -> persist record -> respond.
Emails go out afterwards as a background task; the client never waits on them.
"""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile

from imfpay.dependencies import get_store, get_receipts, get_notification_service
from imfpay.exceptions import ValidationError
from imfpay.schemas.schemas import PaymentResponse, PaymentListResponse, ErrorResponse
from imfpay.services.notification_service import NotificationService
from imfpay.services.payment_store import PaymentStore
from imfpay.services.receipt_service import ReceiptStorage
from imfpay.utils.validators import (
    validate_email, parse_amount, generate_reference, clean_text, check_lengths, MAX_FILENAME_LENGTH,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/api",
    tags=["Payment"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.post("/send-transfer-receipt", response_model=PaymentResponse)
def send_transfer_receipt(
    background_tasks: BackgroundTasks,
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    amount: Optional[str] = Form(None),
    serviceType: Optional[str] = Form(None),
    reference: Optional[str] = Form(None),
    receipt: Optional[UploadFile] = File(None),
    store: PaymentStore = Depends(get_store),
    receipts: ReceiptStorage = Depends(get_receipts),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Accept a transfer receipt and record the payment."""
    name, email, service_type = clean_text(name), clean_text(email), clean_text(serviceType)
    reference = clean_text(reference) or generate_reference()

    if not name or not email or amount is None or not str(amount).strip() or not service_type:
        raise ValidationError("All fields are required")
    if not validate_email(email):
        raise ValidationError("Invalid email format")
    amount_value = parse_amount(amount)
    if amount_value is None:
        raise ValidationError("Invalid amount")
    too_long = check_lengths({
        "name": name, "email": email, "serviceType": service_type, "reference": reference,
    })
    if too_long:
        raise ValidationError(too_long)

    # Browsers send an empty part when no file was chosen
    has_file = receipt is not None and bool(receipt.filename)
    if receipts.required and not has_file:
        raise ValidationError("Receipt file is required")

    uploaded = None
    if has_file:
        uploaded = receipts.accept_upload(
            receipt.file,
            receipt.content_type,
            receipt.size,
            original_filename=(receipt.filename or "")[-MAX_FILENAME_LENGTH:],
        )

    payment = store.save({
        "name": name,
        "email": email,
        "amount": amount_value,
        "service_type": service_type,
        "reference": reference,
        "receipt_path": uploaded.public_path if uploaded else "",
        "receipt_original_name": uploaded.original_filename if uploaded else "",
    })
    logger.info("Payment %s stored (ref %s, backend %s)", payment.id, payment.reference, store.backend)

    background_tasks.add_task(notifications.dispatch, payment.id)

    return PaymentResponse(
        success=True,
        message="Transfer receipt submitted successfully",
        data=payment,
    )


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(
    notified: Optional[bool] = None,
    store: PaymentStore = Depends(get_store),
):
    """All payment records, newest first. `?notified=` filters on notification state."""
    return PaymentListResponse(success=True, data=store.list_payments(notified=notified))


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: str, store: PaymentStore = Depends(get_store)):
    """Get a single payment record."""
    return PaymentResponse(success=True, data=store.get_by_id(payment_id))
