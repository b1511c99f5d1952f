"""
Exception Hierarchy — Errors raised on the request path.
Each carries the HTTP status the API boundary answers with.
"""


class PaymentServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PaymentServiceError):
    """Client-caused: missing field, malformed email, bad amount, bad file."""
    status_code = 400


class UnsupportedMediaType(ValidationError):
    pass


class PayloadTooLarge(ValidationError):
    pass


class NotFoundError(PaymentServiceError):
    status_code = 404


class StorageError(PaymentServiceError):
    """The backing store refused a read or write."""
    status_code = 500


class UploadError(PaymentServiceError):
    """The receipt could not be written to disk."""
    status_code = 500
