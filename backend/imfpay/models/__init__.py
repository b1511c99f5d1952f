from imfpay.models.payment import PaymentRecord

__all__ = ["PaymentRecord"]
