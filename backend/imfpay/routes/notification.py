"""
Notification Routes — Operator-triggered email sends.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from imfpay.dependencies import get_notifier, get_notification_service
from imfpay.exceptions import ValidationError
from imfpay.schemas.schemas import NotificationResponse, SweepResponse, EmailTestRequest, ErrorResponse
from imfpay.services.notification_service import (
    Notifier, NotificationService, SENT, ALREADY_SENT,
)

router = APIRouter(
    prefix="/api",
    tags=["Notifications"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.post("/send-notifications/{payment_id}", response_model=NotificationResponse)
def send_notification(
    payment_id: str,
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Email payer and admin for one payment. Safe to repeat: a record that
    was already notified is reported as such and nothing is re-sent.
    """
    outcome = notifications.notify_payment(payment_id)
    if outcome.status == ALREADY_SENT:
        return NotificationResponse(
            success=True, message="Notification already sent previously", data=outcome.payment,
        )
    if outcome.status == SENT:
        return NotificationResponse(
            success=True, message="Notification sent successfully", data=outcome.payment,
        )
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": f"Failed to send notification: {outcome.error.message}"},
    )


@router.post("/send-pending-notifications", response_model=SweepResponse)
def send_pending_notifications(
    notifications: NotificationService = Depends(get_notification_service),
):
    """Sweep every payment and notify the ones that have not been yet."""
    summary = notifications.notify_all_pending()
    return SweepResponse(
        success=True,
        message=f"Processed {summary.total} payment(s): {summary.sent} sent, "
                f"{summary.already_sent} already sent, {summary.failed} failed",
        data=summary,
    )


@router.post("/test-email")
def send_test_email(payload: EmailTestRequest, notifier: Notifier = Depends(get_notifier)):
    """Send a plain diagnostic email through the active transport."""
    if not payload.to or not payload.subject or not payload.text:
        raise ValidationError("Missing required fields: to, subject, text")
    if not notifier.enabled:
        raise ValidationError("Email transporter not initialized")

    result = notifier.send_test(payload.to, payload.subject, payload.text)
    if not result.success:
        return JSONResponse(status_code=500, content={"success": False, "error": result.error.message})
    return {"success": True, "message": "Test email sent successfully"}
