"""
PDF text extraction and page rendering (PyMuPDF).

Text-based papers are read directly. A paper whose average extracted
characters per page falls below MIN_TEXT_THRESHOLD is treated as a scan,
and its pages are rendered to JPEG data URLs for remote OCR.
"""

import base64
import io
import logging
from dataclasses import dataclass
from typing import List

import fitz
from PIL import Image

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
MAX_UPLOAD_BYTES = 20 * 1024 * 1024
MIN_TEXT_THRESHOLD = 50  # characters per page

DEFAULT_RENDER_SCALE = 2.0
DEFAULT_JPEG_QUALITY = 80


@dataclass
class PdfText:
    text: str
    is_image_based: bool
    page_count: int


def _open(data: bytes) -> fitz.Document:
    return fitz.open(stream=data, filetype="pdf")


def extract_pdf_text(data: bytes) -> PdfText:
    """
    Read every page's text layer and decide whether OCR is needed.

    Raises:
        ValueError: the document has no pages.
        Any PyMuPDF error for unreadable or encrypted files.
    """
    with _open(data) as doc:
        page_count = doc.page_count
        if page_count == 0:
            raise ValueError("PDF has no pages")

        page_texts = []
        total_chars = 0
        for page in doc:
            page_text = page.get_text("text").strip()
            page_texts.append(page_text)
            total_chars += len(page_text)

    avg_chars = total_chars / page_count
    is_image_based = avg_chars < MIN_TEXT_THRESHOLD
    logger.debug(
        "PDF read: %s pages, %.1f chars/page -> %s",
        page_count, avg_chars, "image-based" if is_image_based else "text-based",
    )

    return PdfText(
        text="\n\n".join(page_texts).strip(),
        is_image_based=is_image_based,
        page_count=page_count,
    )


def render_pages_to_images(
    data: bytes,
    scale: float = DEFAULT_RENDER_SCALE,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> List[str]:
    """Render each page to a base64 JPEG data URL (the OCR request payload)."""
    images: List[str] = []
    matrix = fitz.Matrix(scale, scale)

    with _open(data) as doc:
        for page in doc:
            pix = page.get_pixmap(matrix=matrix, alpha=False)
            image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            buffer = io.BytesIO()
            image.save(buffer, "JPEG", quality=quality)
            encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
            images.append(f"data:image/jpeg;base64,{encoded}")

    return images


def is_pdf(filename: str, content_type: str = "") -> bool:
    # Some clients send generic types; fall back to the extension then
    if content_type and content_type != "application/octet-stream":
        return content_type == PDF_CONTENT_TYPE
    return filename.lower().endswith(".pdf")
