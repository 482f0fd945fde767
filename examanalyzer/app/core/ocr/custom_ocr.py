"""
Custom OCR API Client
Connects to any REST endpoint that accepts {"images": [...]} and returns {"text": ...}.
"""

import logging
from typing import List

import requests

from examanalyzer.app.core.ocr.base import OCREngine, OCRError

logger = logging.getLogger(__name__)


class CustomOCR(OCREngine):

    def __init__(self, endpoint: str, api_key: str = None, timeout: int = 120):
        if not endpoint:
            raise ValueError("Custom OCR endpoint not configured")
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def get_text(self, images: List[str]) -> str:
        if not images:
            raise ValueError("Images array is required")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = requests.post(
                self.endpoint,
                json={"images": images},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.Timeout:
            raise OCRError(f"Custom OCR request timed out ({self.timeout}s)")
        except requests.exceptions.RequestException as e:
            raise OCRError(f"Custom OCR request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            # Plain-text reply
            return response.text

        if isinstance(data, dict):
            if data.get("error"):
                raise OCRError(f"Custom OCR error: {data['error']}")
            return data.get("text") or ""
        return str(data)
