"""Tests for upload validation, image compression and OCR (mocked Gemini client)."""

import io
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from PIL import Image as PILImage

from easysplit.config import Settings
from easysplit.errors import UploadRejected
from easysplit.ocr import compress_image, extract_receipt_text, prepare_document, validate_upload


def _noise_png(size=(600, 600)) -> bytes:
    buffer = io.BytesIO()
    PILImage.effect_noise(size, 100).convert("RGB").save(buffer, format="PNG")
    return buffer.getvalue()


class TestValidateUpload:
    def test_accepts_supported_types(self):
        settings = Settings()
        for content_type in ("image/jpeg", "image/png", "application/pdf"):
            validate_upload("r", content_type, 1024, settings)

    @pytest.mark.parametrize("content_type", ["image/gif", "text/plain", None])
    def test_rejects_other_types(self, content_type):
        with pytest.raises(UploadRejected, match="Invalid file type"):
            validate_upload("r", content_type, 1024, Settings())

    def test_rejects_empty_file(self):
        with pytest.raises(UploadRejected):
            validate_upload("r.png", "image/png", 0, Settings())

    def test_size_limit(self):
        settings = Settings(max_upload_size_mb=10)
        validate_upload("r.png", "image/png", 10 * 1024 * 1024, settings)
        with pytest.raises(UploadRejected, match="smaller than 10 MB"):
            validate_upload("r.png", "image/png", 10 * 1024 * 1024 + 1, settings)


class TestCompression:
    def test_compresses_to_jpeg(self):
        original = _noise_png()
        compressed = compress_image(original, target_size_bytes=len(original) // 4)
        assert len(compressed) < len(original)
        assert PILImage.open(io.BytesIO(compressed)).format == "JPEG"

    def test_unreadable_image(self):
        with pytest.raises(UploadRejected, match="Cannot identify"):
            compress_image(b"definitely not an image", target_size_bytes=1024)

    def test_small_files_and_pdfs_pass_through(self):
        settings = Settings(compress_target_size_mb=1)
        assert prepare_document(b"%PDF-1.4", "application/pdf", settings) == (b"%PDF-1.4", "application/pdf")
        png = _noise_png((20, 20))
        assert prepare_document(png, "image/png", settings) == (png, "image/png")

    def test_large_images_are_reencoded(self):
        png = _noise_png()
        data, content_type = prepare_document(png, "image/png", Settings(compress_target_size_mb=0.05))
        assert content_type == "image/jpeg"
        assert len(data) < len(png)


class TestExtractReceiptText:
    def test_success(self):
        with patch("easysplit.ocr.genai.Client") as client_cls:
            client_cls.return_value.models.generate_content.return_value = SimpleNamespace(text="  BURGER $10.00\nTOTAL $10.00\n")
            result = extract_receipt_text(b"jpeg", "image/jpeg", Settings(gemini_api_key="key"))
        assert result.success
        assert result.text == "BURGER $10.00\nTOTAL $10.00"

    def test_no_text_detected(self):
        with patch("easysplit.ocr.genai.Client") as client_cls:
            client_cls.return_value.models.generate_content.return_value = SimpleNamespace(text="")
            result = extract_receipt_text(b"jpeg", "image/jpeg", Settings(gemini_api_key="key"))
        assert not result.success
        assert "No text" in result.error

    def test_api_error(self):
        with patch("easysplit.ocr.genai.Client") as client_cls:
            client_cls.return_value.models.generate_content.side_effect = RuntimeError("timeout")
            result = extract_receipt_text(b"jpeg", "image/jpeg", Settings(gemini_api_key="key"))
        assert not result.success
        assert "timeout" in result.error

    def test_missing_api_key(self):
        result = extract_receipt_text(b"jpeg", "image/jpeg", Settings())
        assert not result.success
