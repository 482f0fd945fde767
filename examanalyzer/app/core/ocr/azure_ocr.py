"""
Azure Document Intelligence OCR Provider.
Uses the prebuilt-read model over REST: submit a page, then poll the
Operation-Location URL until the analysis finishes.
"""

import logging
import time
from typing import List

import requests

from examanalyzer.app.core.ocr.base import OCREngine, OCRError, decode_image

logger = logging.getLogger(__name__)

API_VERSION = "2024-02-29-preview"
POLL_INTERVAL_S = 1.0
MAX_POLL_ATTEMPTS = 30
PAGE_ERROR_TEXT = "[Error extracting text from this page]"


class AzureDocumentOCR(OCREngine):
    """Azure Document Intelligence (prebuilt-read) OCR Engine."""

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        poll_interval: float = POLL_INTERVAL_S,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        session: requests.Session = None,
    ):
        if not api_key or not endpoint:
            raise ValueError("Azure OCR requires both api_key and endpoint")

        self.api_key = api_key
        self.endpoint = endpoint if endpoint.endswith("/") else endpoint + "/"
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.session = session or requests.Session()

    @property
    def analyze_url(self) -> str:
        return (
            f"{self.endpoint}documentintelligence/documentModels/"
            f"prebuilt-read:analyze?api-version={API_VERSION}"
        )

    def read_page(self, image: str) -> str:
        """Run OCR on one page image and return its text."""
        response = self.session.post(
            self.analyze_url,
            headers={
                "Ocp-Apim-Subscription-Key": self.api_key,
                "Content-Type": "application/octet-stream",
            },
            data=decode_image(image),
            timeout=60,
        )
        if not response.ok:
            logger.error("Azure analyze error: %s %s", response.status_code, response.text[:200])
            raise OCRError(f"Azure API error: {response.status_code}")

        operation_location = response.headers.get("Operation-Location")
        if not operation_location:
            raise OCRError("No operation location returned")

        result = None
        for _ in range(self.max_attempts):
            time.sleep(self.poll_interval)
            poll = self.session.get(
                operation_location,
                headers={"Ocp-Apim-Subscription-Key": self.api_key},
                timeout=30,
            )
            if not poll.ok:
                raise OCRError(f"Azure polling error: {poll.status_code}")

            result = poll.json()
            if result.get("status") == "succeeded":
                break
            if result.get("status") == "failed":
                raise OCRError("Azure OCR processing failed")

        if not result or result.get("status") != "succeeded":
            raise OCRError("OCR processing timed out")

        analyze_result = result.get("analyzeResult") or {}
        if analyze_result.get("content"):
            return analyze_result["content"]
        paragraphs = analyze_result.get("paragraphs") or []
        return "\n\n".join(p.get("content", "") for p in paragraphs)

    def get_text(self, images: List[str]) -> str:
        """
        OCR every page. A failing page is marked in the output rather than
        failing the whole document.
        """
        if not images:
            raise ValueError("Images array is required")

        logger.info("Processing %s pages with Azure Document Intelligence", len(images))
        parts = []
        for i, image in enumerate(images, 1):
            try:
                page_text = self.read_page(image)
                if page_text:
                    parts.append(f"--- Page {i} ---\n{page_text}")
            except (OCRError, requests.RequestException, ValueError) as e:
                logger.error("Error processing page %s: %s", i, e)
                parts.append(f"--- Page {i} ---\n{PAGE_ERROR_TEXT}")

        combined = "\n\n".join(parts)
        logger.info("OCR complete, extracted %s characters", len(combined))
        return combined
