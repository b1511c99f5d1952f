from imfpay.routes.payment import router as payment_router
from imfpay.routes.notification import router as notification_router

__all__ = ["payment_router", "notification_router"]
