from typing import Callable, List, Optional

import fitz
import pytest
import requests

from examanalyzer.app.db.database import init_database, reset_engine
from examanalyzer.app.services.progress.models import Classified, DocumentHandle, ExtractedQuestion
from examanalyzer.app.services.storage.papers import PaperStore

AI_ENV_KEYS = (
    "OPENAI_API_KEY",
    "AZURE_OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GOOGLE_API_KEY",
    "CUSTOM_AI_API_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_DEPLOYMENT",
    "AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT",
    "AZURE_DOCUMENT_INTELLIGENCE_API_KEY",
    "GOOGLE_VISION_API_KEY",
)

TEXT_PAGE = (
    "1. Explain the separation of powers in the Constitution.\n"
    "2. Describe the role of the Reserve Bank of India."
)


def make_pdf(pages: List[str]) -> bytes:
    """Build a PDF in memory with one page per entry (an empty string gives a blank page)."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def make_document(filename: str = "paper.pdf", pages: Optional[List[str]] = None) -> DocumentHandle:
    return DocumentHandle(
        filename=filename,
        content_type="application/pdf",
        data=make_pdf(pages if pages is not None else [TEXT_PAGE]),
    )


class FakeAIClient:
    """Stands in for QuestionAIClient; records every call."""

    def __init__(
        self,
        questions: Callable[[str], List[ExtractedQuestion]] = None,
        classify_error: Exception = None,
    ):
        self._questions = questions or (lambda text: [
            ExtractedQuestion(question_text="Explain the separation of powers.", question_number=1),
            ExtractedQuestion(question_text="Describe the role of the Reserve Bank.", question_number=2),
        ])
        self.classify_error = classify_error
        self.extract_calls = []
        self.analyze_calls = []
        self.token_usage = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0, "model": None}

    def extract_questions(self, text: str) -> List[ExtractedQuestion]:
        self.extract_calls.append(text)
        return self._questions(text)

    def analyze_question(self, question: str, topics: List[str]) -> Classified:
        self.analyze_calls.append((question, list(topics)))
        if self.classify_error is not None:
            raise self.classify_error
        return Classified(topic=topics[0], difficulty="Medium", explanation="Frequently asked topic.")


class FakeOCR:
    def __init__(self, text: str = "--- Page 1 ---\n1. Define inflation and explain its causes."):
        self.text = text
        self.calls = []

    def get_text(self, images: List[str]) -> str:
        self.calls.append(images)
        return self.text


class FakeResponse:
    def __init__(self, status_code=200, payload=None, headers=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeAzureSession:
    """Answers analyze requests with an operation URL, then polls through `results`."""

    def __init__(self, page_results, analyze_status=202):
        self.page_results = list(page_results)
        self.analyze_status = analyze_status
        self.posts = []
        self.polls = []
        self._current = []

    def post(self, url, headers=None, data=None, timeout=None):
        self.posts.append((url, headers, data))
        if self.analyze_status >= 400:
            return FakeResponse(self.analyze_status, text="bad request")
        self._current = list(self.page_results.pop(0))
        return FakeResponse(self.analyze_status, headers={"Operation-Location": f"https://ocr/op/{len(self.posts)}"})

    def get(self, url, headers=None, timeout=None):
        self.polls.append(url)
        return FakeResponse(200, payload=self._current.pop(0))


@pytest.fixture(autouse=True)
def data_home(tmp_path, monkeypatch):
    """Isolated data home: settings file, SQLite database and progress snapshots."""
    monkeypatch.setenv("EXAMANALYZER_HOME", str(tmp_path))
    for key in AI_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    reset_engine()
    init_database()
    yield tmp_path
    reset_engine()


@pytest.fixture
def store():
    return PaperStore()


@pytest.fixture
def syllabus(store):
    return store.create_syllabus(
        name="UPSC Prelims",
        exam_type="UPSC",
        topics=["Indian Polity", "Indian Economy", "History"],
    )


@pytest.fixture
def fake_ai():
    return FakeAIClient()


@pytest.fixture
def fake_ocr():
    return FakeOCR()
