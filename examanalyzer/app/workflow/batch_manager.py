"""
Batch controller: drives queued exam papers through the ingestion pipeline.

Files are processed one at a time in queue order. Every mutation produces
a new immutable snapshot of the queue, handed to `on_update` together with
the progress event that caused it.
"""

import logging
from typing import Callable, Iterable, Optional, Tuple

from examanalyzer.app.core.ocr import OCREngine, get_ocr_engine
from examanalyzer.app.core.pdf.text import MAX_UPLOAD_BYTES, is_pdf
from examanalyzer.app.services.progress.models import (
    DocumentHandle,
    EnqueueResult,
    FileStatus,
    ProgressEvent,
    QueuedFile,
    SyllabusData,
)
from examanalyzer.app.services.storage.papers import PAPER_COMPLETED
from examanalyzer.app.settings import load_settings
from examanalyzer.app.workflow.pipeline import (
    PROCESSING_FAILED,
    StageFailure,
    classify_question,
    create_paper,
    extract_document_text,
    extract_questions,
    paper_title,
)

logger = logging.getLogger(__name__)

Snapshot = Tuple[QueuedFile, ...]
UpdateCallback = Callable[[Snapshot, ProgressEvent], None]

NO_PDF_MESSAGE = "Please upload PDF files"

# Progress checkpoints (percent)
TEXT_STARTED = 10
TEXT_DONE = 30
QUESTIONS_STARTED = 40
QUESTIONS_DONE = 50
ANALYSIS_STARTED = 60
ANALYSIS_SPAN = 40


def release_document(document: DocumentHandle) -> DocumentHandle:
    return document.model_copy(update={"data": b""})


class BatchController:
    def __init__(
        self,
        ai_client,
        store,
        ocr_engine: Optional[OCREngine] = None,
        settings: Optional[dict] = None,
    ):
        self.ai_client = ai_client
        self.store = store
        self.settings = settings
        self._ocr_engine = ocr_engine
        self._processing = False
        self._cancelled = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def enqueue(self, files: Snapshot, documents: Iterable[DocumentHandle]) -> EnqueueResult:
        """Append every PDF up to 20MB as a pending file. Rejections are reported, not raised."""
        added = []
        rejected = []
        for document in documents:
            if not is_pdf(document.filename, document.content_type):
                rejected.append((document.filename, "Not a PDF file"))
            elif document.size > MAX_UPLOAD_BYTES:
                rejected.append((document.filename, "File exceeds the 20MB limit"))
            elif document.size == 0:
                rejected.append((document.filename, "File is empty"))
            else:
                added.append(QueuedFile(document=document, name=document.filename))

        message = None
        if not added:
            message = NO_PDF_MESSAGE
        elif rejected:
            message = f"Added {len(added)} file(s), skipped {len(rejected)}"

        for name, reason in rejected:
            logger.info("[WARN] Rejected %s: %s", name, reason)

        return EnqueueResult(
            files=tuple(files) + tuple(added),
            added=len(added),
            rejected=rejected,
            message=message,
        )

    def dequeue(self, files: Snapshot, file_id: str) -> Snapshot:
        return tuple(f for f in files if f.id != file_id)

    def clear(self, files: Snapshot) -> Snapshot:
        return ()

    def cancel(self) -> None:
        """
        Stop before the next pending file; the current file runs to completion.
        A request made before `process` starts stops the whole run; the flag
        is cleared when that run ends.
        """
        self._cancelled = True

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _get_ocr_engine(self) -> OCREngine:
        if self._ocr_engine is None:
            self._ocr_engine = get_ocr_engine(self.settings or load_settings())
        return self._ocr_engine

    def process(
        self,
        files: Snapshot,
        syllabus: SyllabusData,
        on_update: Optional[UpdateCallback] = None,
    ) -> Snapshot:
        """
        Run every pending file through text extraction, question extraction,
        paper creation and per-question classification.

        Returns the final snapshot. A file's failure never stops the batch.
        """
        if self._processing:
            raise RuntimeError("Batch is already processing")

        self._processing = True
        snapshot: Snapshot = tuple(files)

        def update(file_id: str, message: Optional[str] = None, **changes) -> None:
            nonlocal snapshot
            updated = None
            items = []
            for f in snapshot:
                if f.id == file_id:
                    f = updated = f.model_copy(update=changes)
                    if f.status.is_terminal and f.document.size:
                        # Finished files never need their PDF bytes again
                        f = updated = f.model_copy(update={"document": release_document(f.document)})
                items.append(f)
            snapshot = tuple(items)
            if on_update is not None and updated is not None:
                on_update(snapshot, ProgressEvent(
                    file_id=file_id,
                    status=updated.status,
                    progress=updated.progress,
                    message=message,
                ))

        pending = [f for f in snapshot if f.status == FileStatus.PENDING]
        logger.info("[OK] Batch started: %s pending file(s), syllabus %r", len(pending), syllabus.name)

        try:
            for queued in pending:
                if self._cancelled:
                    logger.info("[WARN] Batch cancelled, %s file(s) left pending", sum(
                        1 for f in snapshot if f.status == FileStatus.PENDING))
                    break
                try:
                    self._process_file(queued, syllabus, update)
                except Exception as e:
                    if isinstance(e, StageFailure):
                        message = e.message
                    else:
                        message = str(e) or PROCESSING_FAILED
                        logger.exception("[ERROR] %s failed", queued.name)
                    logger.info("[ERROR] %s: %s", queued.name, message)
                    update(queued.id, message=message, status=FileStatus.ERROR, error=message)
        finally:
            self._processing = False
            self._cancelled = False

        completed = sum(1 for f in snapshot if f.status == FileStatus.COMPLETE)
        questions = sum(f.questions_count or 0 for f in snapshot if f.status == FileStatus.COMPLETE)
        logger.info("[OK] Batch finished: %s/%s complete, %s questions", completed, len(pending), questions)
        return snapshot

    def _process_file(self, queued: QueuedFile, syllabus: SyllabusData, update) -> None:
        # Stage 1: text
        update(queued.id, message="Extracting text", status=FileStatus.EXTRACTING_TEXT,
               progress=TEXT_STARTED, error=None)
        text = extract_document_text(queued.document, self._get_ocr_engine)
        update(queued.id, message="Text extracted", progress=TEXT_DONE)

        # Stage 2: questions
        update(queued.id, message="Extracting questions", status=FileStatus.EXTRACTING_QUESTIONS,
               progress=QUESTIONS_STARTED)
        questions = extract_questions(self.ai_client, text)
        update(queued.id, message=f"Found {len(questions)} questions",
               questions_count=len(questions), progress=QUESTIONS_DONE)

        # Stage 3: paper record
        paper_id = create_paper(self.store, paper_title(queued.name), syllabus.exam_type, text, syllabus.id)

        # Stage 4: classification
        update(queued.id, message="Analyzing questions", status=FileStatus.ANALYZING, progress=ANALYSIS_STARTED)
        progress = float(ANALYSIS_STARTED)
        step = ANALYSIS_SPAN / len(questions)
        for i, question in enumerate(questions):
            classification = classify_question(self.ai_client, question.question_text, syllabus.topics)
            try:
                self.store.create_question(
                    paper_id=paper_id,
                    question_text=question.question_text,
                    question_number=question.question_number or i + 1,
                    classification=classification,
                )
            except Exception as e:
                logger.warning("[WARN] Could not save question %s of %s: %s", i + 1, queued.name, e)
            progress = min(100.0, progress + step)
            update(queued.id, progress=progress)

        # Stage 5: finalize
        try:
            self.store.update_paper_status(paper_id, PAPER_COMPLETED)
        except Exception as e:
            logger.warning("[WARN] Could not mark paper %s completed: %s", paper_id, e)

        update(queued.id, message="Complete", status=FileStatus.COMPLETE, progress=100.0)
        logger.info("[OK] %s: %s questions analyzed", queued.name, len(questions))
