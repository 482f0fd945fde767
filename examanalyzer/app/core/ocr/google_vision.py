"""
Google Cloud Vision OCR Provider.
Uses the Google Cloud Vision API for high-accuracy OCR.
Requires: pip install google-cloud-vision
"""

from typing import Dict, List

try:
    from google.cloud import vision
    GOOGLE_VISION_AVAILABLE = True
except ImportError:
    GOOGLE_VISION_AVAILABLE = False

from examanalyzer.app.core.ocr.base import OCREngine, OCRError, decode_image

MIN_LINE_CONFIDENCE = 0.60


def filter_low_confidence(lines: List[Dict], min_confidence: float = MIN_LINE_CONFIDENCE) -> List[Dict]:
    """Drop blank and low-confidence paragraphs."""
    return [
        line for line in lines
        if line["confidence"] >= min_confidence and line["text"].strip()
    ]


class GoogleVisionOCR(OCREngine):
    """Google Cloud Vision OCR Engine."""

    def __init__(self, api_key: str = None, client=None):
        if client is not None:
            self.client = client
            return

        if not GOOGLE_VISION_AVAILABLE:
            raise RuntimeError(
                "Google Cloud Vision is not installed. "
                "Run: pip install google-cloud-vision"
            )
        if api_key:
            self.client = vision.ImageAnnotatorClient(client_options={"api_key": api_key})
        else:
            # Default credentials (GCP environments)
            self.client = vision.ImageAnnotatorClient()

    def run(self, image: str) -> List[Dict]:
        """
        Run OCR on a single page image (RAW output).

        Returns:
            List of dicts with 'text' and 'confidence' keys, one per paragraph.
        """
        response = self.client.document_text_detection(
            image=vision.Image(content=decode_image(image))
        )
        if response.error.message:
            raise OCRError(f"Google Vision API error: {response.error.message}")

        outputs: List[Dict] = []
        for page in response.full_text_annotation.pages:
            for block in page.blocks:
                for paragraph in block.paragraphs:
                    words = [
                        "".join(symbol.text for symbol in word.symbols)
                        for word in paragraph.words
                    ]
                    if not words:
                        continue
                    confidence = sum(w.confidence for w in paragraph.words) / len(words)
                    outputs.append({
                        "text": " ".join(words).strip(),
                        "confidence": round(confidence, 3),
                    })
        return outputs

    def read_page(self, image: str) -> str:
        return "\n".join(line["text"] for line in filter_low_confidence(self.run(image)))

    def get_text(self, images: List[str]) -> str:
        if not images:
            raise ValueError("Images array is required")

        parts = []
        for i, image in enumerate(images, 1):
            lines = filter_low_confidence(self.run(image))
            if lines:
                parts.append(f"--- Page {i} ---\n" + "\n".join(line["text"] for line in lines))
        return "\n\n".join(parts)
