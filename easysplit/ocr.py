# easysplit/ocr.py
"""Receipt upload checks and OCR text extraction with Gemini."""
import io
import time
from typing import Optional

from google import genai
from google.genai import types
from loguru import logger
from PIL import Image as PILImage, UnidentifiedImageError
from pydantic import BaseModel

from .config import Settings, get_gemini_config
from .errors import UploadRejected

OCR_PROMPT = """You are an OCR engine. Transcribe all of the text printed on this receipt, line by line, exactly as it appears.
Keep item names and their prices on the same line. Do not summarize, translate or add any commentary.
If the document contains no readable text, reply with an empty string."""


class ExtractionResult(BaseModel):
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None


def validate_upload(file_name: str, content_type: Optional[str], size: int, settings: Settings) -> None:
    """Reject wrong file types and oversized files before any network call."""
    if content_type not in settings.allowed_content_types:
        raise UploadRejected(f"Invalid file type for '{file_name}'. Please upload a JPG, PNG, or PDF file.")
    if size <= 0:
        raise UploadRejected(f"'{file_name}' is empty.")
    if size > settings.max_upload_size_bytes:
        raise UploadRejected(
            f"File too large ({size / (1024 * 1024):.2f} MB). Please upload a file smaller than {settings.max_upload_size_mb:g} MB."
        )


def compress_image(image_bytes: bytes, target_size_bytes: int, quality: int = 90, min_quality: int = 70) -> bytes:
    """Re-encode an image as JPEG until it fits target_size_bytes, resizing as a last resort."""
    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        img.load()
    except UnidentifiedImageError:
        raise UploadRejected("Cannot identify image file.")
    if img.mode not in ('RGB', 'L'): img = img.convert('RGB')

    compressed_bytes = image_bytes
    for q in range(quality, min_quality - 1, -5):
        buffer = io.BytesIO(); img.save(buffer, format="JPEG", quality=q, optimize=True)
        compressed_bytes = buffer.getvalue()
        if len(compressed_bytes) <= target_size_bytes:
            logger.info(f"Image compressed to {len(compressed_bytes)/1024:.2f} KB with quality {q}.")
            return compressed_bytes

    ratio = (target_size_bytes / len(compressed_bytes)) ** 0.5
    new_width = int(img.width * ratio); new_height = int(img.height * ratio)
    if new_width > 0 and new_height > 0:
        img_resized = img.resize((new_width, new_height), PILImage.Resampling.LANCZOS)
        buffer = io.BytesIO(); img_resized.save(buffer, format="JPEG", quality=min_quality, optimize=True)
        compressed_bytes = buffer.getvalue()
        logger.info(f"Resized/compressed image size: {len(compressed_bytes)/1024:.2f} KB.")
    return compressed_bytes


def prepare_document(data: bytes, content_type: str, settings: Settings) -> tuple[bytes, str]:
    """Shrink oversized images before sending them out; PDFs are passed through."""
    if content_type == "application/pdf" or len(data) <= settings.compress_target_size_bytes:
        return data, content_type
    return compress_image(data, settings.compress_target_size_bytes), "image/jpeg"


def extract_receipt_text(data: bytes, content_type: str, settings: Settings) -> ExtractionResult:
    """Run OCR on a receipt image or PDF. Never raises for collaborator failures."""
    start_time = time.time()
    try:
        gemini_api_key, model_name = get_gemini_config(settings)
        client = genai.Client(api_key=gemini_api_key)

        logger.info(f"Sending OCR request to Gemini API ({model_name}, {content_type}, {len(data)} bytes)...")
        response = client.models.generate_content(
            model=model_name,
            contents=[OCR_PROMPT, types.Part.from_bytes(data=data, mime_type=content_type)],
            config=types.GenerateContentConfig(temperature=0.0),
        )
        text = (response.text or "").strip()
    except Exception as e:
        logger.error(f"An error occurred during Gemini OCR: {e}")
        return ExtractionResult(success=False, error=f"OCR request failed: {e}")

    logger.info(f"OCR extraction completed in {time.time() - start_time:.2f} seconds, text length: {len(text)}")
    if not text:
        return ExtractionResult(success=False, error="No text could be detected in this image. Please try with a clearer receipt image.")
    return ExtractionResult(success=True, text=text)
