# easysplit/client.py
"""requests-based client for the EasySplit API, used by the Streamlit front-end."""
import os
from typing import Optional

import requests
from loguru import logger

from .interpret import InterpretationResult
from .ocr import ExtractionResult


class ApiClient:
    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or os.environ.get("FASTAPI_API_URL", "http://localhost:8000")).rstrip("/")
        self.api_key = api_key if api_key is not None else os.environ.get("API_KEY")
        self.timeout = timeout if timeout is not None else float(os.environ.get("API_REQUEST_TIMEOUT", "60"))

    def get_api_headers(self) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            return response.json().get("detail", response.text)
        except ValueError:
            return response.text

    def process_receipt(self, data: bytes, content_type: str, file_name: str = "receipt") -> ExtractionResult:
        """OCR stage. HTTP errors come back as a failed result, transport errors propagate."""
        files = {'file': (file_name, data, content_type)}
        response = requests.post(f"{self.base_url}/process-receipt", files=files, headers=self.get_api_headers(), timeout=self.timeout)
        if not response.ok:
            detail = self._error_detail(response)
            logger.error(f"API Error during receipt processing: {response.status_code} {detail}")
            return ExtractionResult(success=False, error=detail)
        return ExtractionResult.model_validate(response.json())

    def interpret_receipt(self, ocr_text: str) -> InterpretationResult:
        response = requests.post(f"{self.base_url}/interpret-receipt", json={"ocr_text": ocr_text}, headers=self.get_api_headers(), timeout=self.timeout)
        if not response.ok:
            detail = self._error_detail(response)
            logger.error(f"API Error during receipt interpretation: {response.status_code} {detail}")
            return InterpretationResult(success=False, error=detail)
        return InterpretationResult.model_validate(response.json())
