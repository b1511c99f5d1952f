from imfpay.services.payment_store import PaymentStore, SQLPaymentStore, MemoryPaymentStore, create_payment_store
from imfpay.services.receipt_service import ReceiptStorage, UploadedFile
from imfpay.services.notification_service import Notifier, NotificationService, NotifyError, build_notifier

__all__ = [
    "PaymentStore", "SQLPaymentStore", "MemoryPaymentStore", "create_payment_store",
    "ReceiptStorage", "UploadedFile",
    "Notifier", "NotificationService", "NotifyError", "build_notifier",
]
