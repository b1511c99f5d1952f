"""
FastAPI dependencies — hand route handlers the components built at startup.
"""
from fastapi import Request

from imfpay.services.notification_service import Notifier, NotificationService
from imfpay.services.payment_store import PaymentStore
from imfpay.services.receipt_service import ReceiptStorage


def get_store(request: Request) -> PaymentStore:
    return request.app.state.store


def get_receipts(request: Request) -> ReceiptStorage:
    return request.app.state.receipts


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notifications
