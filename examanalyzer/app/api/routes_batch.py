"""
Batch API Routes - queue exam papers, run the ingestion pipeline, poll progress.

Processing runs in a FastAPI background task (no Celery); the tracker holds
each batch's queue snapshot and progress log in memory.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from examanalyzer.app.core.ai.extractor import QuestionAIClient
from examanalyzer.app.core.pdf.text import MAX_UPLOAD_BYTES
from examanalyzer.app.services.progress.models import DocumentHandle, FileStatus, SyllabusData
from examanalyzer.app.services.progress.tracker import (
    BatchState,
    build_status,
    create_batch,
    delete_status,
    get_batch,
    load_status,
    record_update,
    set_files,
)
from examanalyzer.app.services.storage.papers import PaperStore
from examanalyzer.app.settings import load_settings
from examanalyzer.app.workflow.batch_manager import BatchController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Batch"])


class ProcessRequest(BaseModel):
    syllabus_id: str


def build_controller(settings: Optional[dict] = None) -> BatchController:
    settings = settings if settings is not None else load_settings()
    return BatchController(
        ai_client=QuestionAIClient(settings),
        store=PaperStore(),
        settings=settings,
    )


def _require_batch(batch_id: str) -> BatchState:
    state = get_batch(batch_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return state


def _require_idle(state: BatchState) -> None:
    if state.is_processing:
        raise HTTPException(status_code=409, detail="Batch is processing")


async def read_upload(upload: UploadFile, limit: int = MAX_UPLOAD_BYTES) -> bytes:
    """Read at most one byte past `limit`, enough for enqueue to reject oversize files."""
    return await upload.read(limit + 1)


def run_batch(batch_id: str, syllabus: SyllabusData, controller: BatchController, settings: dict):
    """Background task: process every pending file, then record token usage."""
    state = create_batch(batch_id)
    try:
        final = controller.process(
            state.files,
            syllabus,
            on_update=lambda snapshot, event: record_update(batch_id, snapshot, event),
        )
        set_files(batch_id, final)
    except Exception:
        logger.exception("[ERROR] Batch %s aborted", batch_id)
        raise
    finally:
        state.is_processing = False

    if not settings.get("enable_history", True):
        return

    token_usage = getattr(controller.ai_client, "token_usage", None) or {}
    if not token_usage.get("total_tokens"):
        return
    try:
        controller.store.record_usage(
            token_usage,
            provider=settings.get("ai_provider"),
            operation="batch",
            batch_id=batch_id,
            papers_processed=sum(1 for f in final if f.status == FileStatus.COMPLETE),
        )
    except Exception as e:
        logger.warning("[WARN] Failed to record usage for batch %s: %s", batch_id, e)


@router.post("/files")
async def upload_files(
    files: List[UploadFile] = File(...),
    batch_id: Optional[str] = Form(None),  # append to an existing batch
):
    """
    Queue uploaded PDFs (20MB max each) as pending files.
    Creates a new batch unless an existing batch_id is given.
    """
    state = _require_batch(batch_id) if batch_id else create_batch()
    _require_idle(state)

    documents = []
    for upload in files:
        documents.append(DocumentHandle(
            filename=upload.filename or "upload.pdf",
            content_type=upload.content_type or "",
            data=await read_upload(upload),
        ))

    result = build_controller().enqueue(state.files, documents)
    set_files(state.batch_id, result.files)
    logger.info("[OK] Batch %s: queued %s file(s), rejected %s", state.batch_id, result.added, len(result.rejected))

    return {
        **build_status(state).model_dump(mode="json"),
        "added": result.added,
        "rejected": [{"filename": name, "reason": reason} for name, reason in result.rejected],
        "message": result.message,
    }


@router.get("/{batch_id}")
def get_batch_status(batch_id: str):
    state = get_batch(batch_id)
    if state is not None:
        return build_status(state).model_dump(mode="json")

    # Fall back to the last persisted snapshot (e.g. after a restart)
    saved = load_status(batch_id)
    if saved is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return saved


@router.delete("/{batch_id}")
def delete_batch(batch_id: str):
    """Discard an idle batch, its queued documents and its saved snapshot."""
    state = get_batch(batch_id)
    if state is not None:
        _require_idle(state)
    if not delete_status(batch_id):
        raise HTTPException(status_code=404, detail="Batch not found")
    logger.info("[OK] Batch %s deleted", batch_id)
    return {"batch_id": batch_id, "deleted": True}


@router.delete("/{batch_id}/files/{file_id}")
def remove_file(batch_id: str, file_id: str):
    state = _require_batch(batch_id)
    _require_idle(state)
    if not any(f.id == file_id for f in state.files):
        raise HTTPException(status_code=404, detail="File not found")

    set_files(batch_id, build_controller().dequeue(state.files, file_id))
    return build_status(state).model_dump(mode="json")


@router.delete("/{batch_id}/files")
def clear_files(batch_id: str):
    state = _require_batch(batch_id)
    _require_idle(state)
    set_files(batch_id, build_controller().clear(state.files))
    return build_status(state).model_dump(mode="json")


@router.post("/{batch_id}/process")
def process_batch(batch_id: str, payload: ProcessRequest, background_tasks: BackgroundTasks):
    """Start processing every pending file; poll GET /batch/{batch_id} for progress."""
    state = _require_batch(batch_id)
    _require_idle(state)

    store = PaperStore()
    syllabus = store.get_syllabus(payload.syllabus_id)
    if syllabus is None:
        raise HTTPException(status_code=400, detail="Please select a syllabus first")

    pending = [f for f in state.files if f.status == FileStatus.PENDING]
    if not pending:
        raise HTTPException(status_code=400, detail="No files to process")

    settings = load_settings()
    controller = build_controller(settings)
    state.controller = controller
    state.is_processing = True

    background_tasks.add_task(run_batch, batch_id, syllabus, controller, settings)

    return {
        "batch_id": batch_id,
        "status": "queued",
        "pending": len(pending),
        "syllabus": syllabus.name,
    }


@router.post("/{batch_id}/cancel")
def cancel_batch(batch_id: str):
    state = _require_batch(batch_id)
    if not state.is_processing or state.controller is None:
        return {"batch_id": batch_id, "cancelled": False, "message": "Batch is not processing"}

    state.controller.cancel()
    logger.info("[WARN] Batch %s: cancel requested", batch_id)
    return {"batch_id": batch_id, "cancelled": True, "message": "Processing will stop after the current file"}
