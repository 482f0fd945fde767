import logging
import os
from typing import Optional

from examanalyzer.app.core.ai.providers import MissingCredentialsError
from examanalyzer.app.core.ocr.azure_ocr import AzureDocumentOCR
from examanalyzer.app.core.ocr.base import OCREngine, OCRError
from examanalyzer.app.core.ocr.custom_ocr import CustomOCR
from examanalyzer.app.core.ocr.google_vision import GOOGLE_VISION_AVAILABLE, GoogleVisionOCR

logger = logging.getLogger(__name__)

OCR_PROVIDERS = ("azure", "google", "custom")


def get_ocr_engine(settings: dict, engine_name: Optional[str] = None) -> OCREngine:
    """
    Build the OCR engine selected in settings.
    Credentials are checked here, i.e. only when a scanned paper actually needs OCR.
    """
    engine_name = engine_name or settings.get("ocr_provider") or "azure"

    if engine_name == "azure":
        endpoint = settings.get("azure_ocr_endpoint") or os.getenv("AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT", "")
        api_key = settings.get("azure_ocr_key") or os.getenv("AZURE_DOCUMENT_INTELLIGENCE_API_KEY", "")
        if not endpoint or not api_key:
            raise MissingCredentialsError("Azure Document Intelligence credentials not configured")
        return AzureDocumentOCR(api_key=api_key, endpoint=endpoint)

    elif engine_name == "google":
        if not GOOGLE_VISION_AVAILABLE:
            raise OCRError("Google Vision SDK not installed. Install with: pip install google-cloud-vision")
        api_key = settings.get("google_vision_key") or os.getenv("GOOGLE_VISION_API_KEY", "")
        if not api_key:
            raise MissingCredentialsError("Google Vision API key not configured")
        return GoogleVisionOCR(api_key=api_key)

    elif engine_name == "custom":
        endpoint = settings.get("custom_ocr_endpoint", "")
        if not endpoint:
            raise MissingCredentialsError("Custom OCR endpoint URL not configured")
        return CustomOCR(endpoint=endpoint, api_key=settings.get("custom_ocr_key") or None)

    raise OCRError(f"Unknown OCR provider: {engine_name}. Valid options: {', '.join(OCR_PROVIDERS)}")


__all__ = [
    "OCREngine",
    "OCRError",
    "AzureDocumentOCR",
    "GoogleVisionOCR",
    "CustomOCR",
    "get_ocr_engine",
]
