"""
Per-file pipeline stages used by the batch controller.

Each stage either returns its result or raises StageFailure carrying the
message shown to the user for that file.
"""

import logging
import re
from typing import Callable, List, Optional

from examanalyzer.app.core.ai.providers import MissingCredentialsError
from examanalyzer.app.core.ocr import OCREngine
from examanalyzer.app.core.pdf.text import extract_pdf_text, render_pages_to_images
from examanalyzer.app.services.progress.models import (
    Classification,
    DocumentHandle,
    ExtractedQuestion,
    Unclassified,
)

logger = logging.getLogger(__name__)

TEXT_EXTRACTION_FAILED = "Failed to extract text from PDF"
NO_TEXT_EXTRACTED = "No text could be extracted"
NO_QUESTIONS_FOUND = "No questions found in document"
PAPER_SAVE_FAILED = "Failed to save paper record"
PROCESSING_FAILED = "Processing failed"


class StageFailure(Exception):
    """A pipeline stage failed; the message is the file's user-visible error."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def paper_title(filename: str) -> str:
    return re.sub(r"\.pdf$", "", filename, flags=re.IGNORECASE)


def extract_document_text(
    document: DocumentHandle,
    ocr_engine: Callable[[], OCREngine],
) -> str:
    """
    Text stage: read the PDF locally, or OCR its rendered pages when it is a scan.
    `ocr_engine` is a factory so OCR credentials are only required for scans.
    """
    try:
        pdf = extract_pdf_text(document.data)
        text = pdf.text
        if pdf.is_image_based:
            logger.info("[OK] %s looks image-based (%s pages), running OCR", document.filename, pdf.page_count)
            images = render_pages_to_images(document.data)
            text = ocr_engine().get_text(images)
    except MissingCredentialsError:
        raise
    except Exception as e:
        logger.warning("[WARN] Text extraction failed for %s: %s", document.filename, e)
        raise StageFailure(TEXT_EXTRACTION_FAILED) from e

    text = (text or "").strip()
    if not text:
        raise StageFailure(NO_TEXT_EXTRACTED)
    return text


def extract_questions(ai_client, text: str) -> List[ExtractedQuestion]:
    """Question stage; client errors propagate with their own message."""
    questions = ai_client.extract_questions(text)
    if not questions:
        raise StageFailure(NO_QUESTIONS_FOUND)
    return list(questions)


def create_paper(store, title: str, exam_type: str, text: str, syllabus_id: Optional[str]) -> str:
    try:
        return store.create_paper(
            title=title,
            exam_type=exam_type,
            raw_text=text,
            syllabus_id=syllabus_id,
        )
    except Exception as e:
        logger.error("[ERROR] Could not create paper %r: %s", title, e)
        raise StageFailure(PAPER_SAVE_FAILED) from e


def classify_question(ai_client, question_text: str, topics: List[str]) -> Classification:
    """Never raises: a failed classification is an Unclassified result."""
    try:
        result = ai_client.analyze_question(question_text, topics)
    except Exception as e:
        logger.warning("[WARN] Classification failed, storing question unanalyzed: %s", e)
        return Unclassified(reason=str(e) or type(e).__name__)
    return result
