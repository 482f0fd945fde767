import json
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from examanalyzer.app.services.progress.models import (
    BatchStatus,
    FileStatus,
    ProgressEvent,
    QueuedFile,
)
from examanalyzer.app.settings import get_data_home

logger = logging.getLogger(__name__)

PROGRESS_SUBDIR = "progress"


@dataclass
class BatchState:
    """One upload session: its queue snapshot plus the append-only progress log."""
    batch_id: str
    files: Tuple[QueuedFile, ...] = ()
    log: List[ProgressEvent] = field(default_factory=list)
    is_processing: bool = False
    controller: Optional[object] = None


# In-memory batch store, keyed by batch_id
_BATCHES: Dict[str, BatchState] = {}
_lock = threading.Lock()


def _progress_dir() -> str:
    return os.path.join(get_data_home(), PROGRESS_SUBDIR)


def _progress_file(batch_id: str) -> str:
    return os.path.join(_progress_dir(), f"{batch_id}.json")


def create_batch(batch_id: Optional[str] = None) -> BatchState:
    batch_id = batch_id or str(uuid4())
    with _lock:
        state = _BATCHES.setdefault(batch_id, BatchState(batch_id=batch_id))
    return state


def get_batch(batch_id: str) -> Optional[BatchState]:
    return _BATCHES.get(batch_id)


def drop_batch(batch_id: str) -> None:
    with _lock:
        _BATCHES.pop(batch_id, None)


def set_files(batch_id: str, files: Tuple[QueuedFile, ...]) -> BatchState:
    state = create_batch(batch_id)
    state.files = tuple(files)
    save_status(state)
    return state


def record_update(batch_id: str, files: Tuple[QueuedFile, ...], event: ProgressEvent) -> None:
    """Callback target for the batch controller: store the snapshot and log the event."""
    state = create_batch(batch_id)
    state.files = tuple(files)
    state.log.append(event)
    save_status(state)


def build_status(state: BatchState) -> BatchStatus:
    files = list(state.files)
    return BatchStatus(
        batch_id=state.batch_id,
        is_processing=state.is_processing,
        total_files=len(files),
        completed_count=sum(1 for f in files if f.status == FileStatus.COMPLETE),
        error_count=sum(1 for f in files if f.status == FileStatus.ERROR),
        total_questions=sum(f.questions_count or 0 for f in files),
        files=files,
        log=list(state.log),
    )


def save_status(state: BatchState) -> None:
    try:
        os.makedirs(_progress_dir(), exist_ok=True)
        with open(_progress_file(state.batch_id), "w", encoding="utf-8") as f:
            json.dump(build_status(state).model_dump(mode="json"), f, indent=2)
    except OSError as e:
        logger.warning("[WARN] Failed to write progress snapshot for %s: %s", state.batch_id, e)


def load_status(batch_id: str) -> Optional[dict]:
    """Read the last persisted snapshot, e.g. after a restart dropped the in-memory state."""
    path = _progress_file(batch_id)
    if not os.path.exists(path):
        return None
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def delete_status(batch_id: str) -> bool:
    """Forget a batch: drop it from memory and remove its snapshot file."""
    existed = get_batch(batch_id) is not None
    drop_batch(batch_id)
    path = _progress_file(batch_id)
    if os.path.exists(path):
        os.remove(path)
        existed = True
    return existed
