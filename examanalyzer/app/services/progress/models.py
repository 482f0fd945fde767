from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class FileStatus(str, Enum):
    PENDING = "pending"
    EXTRACTING_TEXT = "extracting-text"
    EXTRACTING_QUESTIONS = "extracting-questions"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.COMPLETE, FileStatus.ERROR)


class DocumentHandle(BaseModel):
    """An uploaded document held in memory until its file is processed."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str = ""
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)


class QueuedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    document: DocumentHandle = Field(exclude=True, repr=False)
    name: str
    status: FileStatus = FileStatus.PENDING
    progress: float = 0.0
    questions_count: Optional[int] = None
    error: Optional[str] = None


class ExtractedQuestion(BaseModel):
    question_text: str
    question_number: Optional[int] = None


class Classified(BaseModel):
    kind: Literal["classified"] = "classified"
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    explanation: Optional[str] = None


class Unclassified(BaseModel):
    kind: Literal["unclassified"] = "unclassified"
    reason: Optional[str] = None


Classification = Annotated[Union[Classified, Unclassified], Field(discriminator="kind")]


class ProgressEvent(BaseModel):
    file_id: str
    status: FileStatus
    progress: float
    message: Optional[str] = None
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EnqueueResult(BaseModel):
    files: Tuple[QueuedFile, ...]
    added: int = 0
    rejected: List[Tuple[str, str]] = []
    message: Optional[str] = None


class SyllabusData(BaseModel):
    id: str
    name: str
    exam_type: str
    topics: List[str] = []
    description: Optional[str] = None


class BatchStatus(BaseModel):
    """Serializable view of one batch, returned by the progress API."""
    batch_id: str
    is_processing: bool
    total_files: int
    completed_count: int
    error_count: int
    total_questions: int
    files: List[QueuedFile]
    log: List[ProgressEvent] = []
