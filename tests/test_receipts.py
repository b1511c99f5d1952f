from __future__ import annotations

import io
import re

import pytest

from imfpay.exceptions import PayloadTooLarge, UnsupportedMediaType, UploadError
from imfpay.services.receipt_service import ReceiptStorage

FIVE_MIB = 5 * 1024 * 1024


def test_exactly_five_mib_is_accepted(receipts, upload_dir) -> None:
    uploaded = receipts.accept_upload(io.BytesIO(b"x" * FIVE_MIB), "application/pdf", FIVE_MIB, "big.pdf")
    assert uploaded.size == FIVE_MIB
    assert uploaded.path.parent == upload_dir
    assert uploaded.path.stat().st_size == FIVE_MIB


def test_one_byte_over_is_rejected_when_declared(receipts, upload_dir) -> None:
    with pytest.raises(PayloadTooLarge):
        receipts.accept_upload(io.BytesIO(b"x" * (FIVE_MIB + 1)), "application/pdf", FIVE_MIB + 1, "big.pdf")
    assert not upload_dir.exists()


def test_one_byte_over_is_rejected_when_undeclared(receipts, upload_dir) -> None:
    with pytest.raises(PayloadTooLarge):
        receipts.accept_upload(io.BytesIO(b"x" * (FIVE_MIB + 1)), "application/pdf", None, "big.pdf")
    assert list(upload_dir.iterdir()) == []


@pytest.mark.parametrize("content_type", ["text/plain", "image/gif", "application/zip", "", None])
def test_disallowed_types(receipts, upload_dir, content_type) -> None:
    with pytest.raises(UnsupportedMediaType):
        receipts.accept_upload(io.BytesIO(b"data"), content_type, 4, "file.bin")
    assert not upload_dir.exists()


def test_generated_names_are_unique_and_shaped(receipts) -> None:
    names = {
        receipts.accept_upload(io.BytesIO(b"img"), "image/jpeg", 3, "photo.JPG").filename
        for _ in range(25)
    }
    assert len(names) == 25
    for name in names:
        assert re.fullmatch(r"receipt-\d{13}-\d+\.jpg", name)


def test_extension_from_mime_when_filename_has_none(receipts) -> None:
    uploaded = receipts.accept_upload(io.BytesIO(b"png"), "image/png", 3, "scan")
    assert uploaded.filename.endswith(".png")
    assert uploaded.public_path == f"uploads/{uploaded.filename}"


def test_resolve_maps_public_path_back(receipts) -> None:
    uploaded = receipts.accept_upload(io.BytesIO(b"%PDF"), "application/pdf", 4, "r.pdf")
    assert receipts.resolve(uploaded.public_path) == uploaded.path
    assert receipts.resolve("") is None
    assert receipts.resolve("uploads/missing.pdf") is None


def test_disk_failure_is_upload_error(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")
    storage = ReceiptStorage(str(blocker / "uploads"))
    with pytest.raises(UploadError):
        storage.accept_upload(io.BytesIO(b"%PDF"), "application/pdf", 4, "r.pdf")
