"""
Receipt Service — Validates and stores uploaded proof-of-payment files.

One flat upload directory; every file gets a fresh
`<prefix>-<epoch millis>-<random>.<ext>` name so nothing is ever overwritten.
"""
import logging
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from imfpay.exceptions import PayloadTooLarge, UnsupportedMediaType, UploadError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "application/pdf": ".pdf",
}

# Public URL prefix the upload directory is mounted under
PUBLIC_PREFIX = "uploads"


@dataclass(frozen=True)
class UploadedFile:
    original_filename: str
    content_type: str
    size: int
    filename: str
    path: Path

    @property
    def public_path(self) -> str:
        """Path stored on the payment record and served under /uploads."""
        return f"{PUBLIC_PREFIX}/{self.filename}"


class ReceiptStorage:
    def __init__(
        self,
        upload_dir: str,
        max_bytes: int = 5 * 1024 * 1024,
        allowed_types: Iterable[str] = tuple(EXTENSIONS),
        prefix: str = "receipt",
        required: bool = False,
    ):
        self.upload_dir = Path(upload_dir)
        self.required = required
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(allowed_types)
        self.prefix = prefix

    def ensure_dir(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def _generate_name(self, original_filename: str, content_type: str) -> str:
        ext = Path(original_filename or "").suffix.lower()
        if not ext or len(ext) > 10:
            ext = EXTENSIONS.get(content_type, "")
        return f"{self.prefix}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"

    def accept_upload(
        self,
        stream: BinaryIO,
        content_type: Optional[str],
        declared_size: Optional[int],
        original_filename: str = "",
    ) -> UploadedFile:
        """Validate type and size, then write the stream under a unique name.

        Nothing touches the disk unless the declared type is allowed and the
        declared size (when known) is within the limit. The byte count is
        enforced again while streaming; an oversized body leaves no file.
        """
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type not in self.allowed_types:
            raise UnsupportedMediaType("Only JPG, PNG, or PDF files are allowed")
        if declared_size is not None and declared_size > self.max_bytes:
            raise PayloadTooLarge(self._too_large_message())

        filename = self._generate_name(original_filename, content_type)
        target = self.upload_dir / filename
        written = 0
        try:
            self.ensure_dir()
            with open(target, "xb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        break
                    out.write(chunk)
        except OSError as exc:
            self._discard(target)
            logger.error("Receipt write failed for %s: %s", original_filename, exc)
            raise UploadError("Failed to store receipt file") from exc

        if written > self.max_bytes:
            self._discard(target)
            raise PayloadTooLarge(self._too_large_message())

        logger.info("Stored receipt %s (%d bytes, %s)", filename, written, content_type)
        return UploadedFile(
            original_filename=original_filename,
            content_type=content_type,
            size=written,
            filename=filename,
            path=target,
        )

    def resolve(self, receipt_path: str) -> Optional[Path]:
        """Map a stored receipt_path back to a file on disk, if it still exists."""
        if not receipt_path:
            return None
        candidate = self.upload_dir / os.path.basename(receipt_path)
        return candidate if candidate.is_file() else None

    def _too_large_message(self) -> str:
        return f"File size must be less than {self.max_bytes // (1024 * 1024)}MB"

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove partial receipt %s: %s", path, exc)
