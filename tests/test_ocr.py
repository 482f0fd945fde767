"""
Tests for the OCR providers, using fake HTTP sessions instead of the network.
"""

import base64

import pytest
import requests

from conftest import FakeAzureSession, FakeResponse
from examanalyzer.app.core.ai.providers import MissingCredentialsError
from examanalyzer.app.core.ocr import AzureDocumentOCR, CustomOCR, OCRError, get_ocr_engine
from examanalyzer.app.core.ocr.azure_ocr import PAGE_ERROR_TEXT
from examanalyzer.app.core.ocr.base import OCREngine, decode_image
from examanalyzer.app.core.ocr.google_vision import GoogleVisionOCR, filter_low_confidence

PAGE = "data:image/jpeg;base64," + base64.b64encode(b"fake-jpeg").decode()


def succeeded(content):
    return {"status": "succeeded", "analyzeResult": {"content": content}}


class TestAzureDocumentOCR:

    def test_get_text_formats_pages(self):
        session = FakeAzureSession([
            [{"status": "running"}, succeeded("Q1. Define GDP.")],
            [succeeded("Q2. Explain inflation.")],
        ])
        ocr = AzureDocumentOCR("key", "https://example.cognitiveservices.azure.com", poll_interval=0, session=session)

        text = ocr.get_text([PAGE, PAGE])

        assert text == "--- Page 1 ---\nQ1. Define GDP.\n\n--- Page 2 ---\nQ2. Explain inflation."
        assert len(session.polls) == 3
        url, headers, data = session.posts[0]
        assert url == (
            "https://example.cognitiveservices.azure.com/documentintelligence/documentModels/"
            "prebuilt-read:analyze?api-version=2024-02-29-preview"
        )
        assert headers["Ocp-Apim-Subscription-Key"] == "key"
        assert data == b"fake-jpeg"

    def test_paragraphs_used_when_content_missing(self):
        session = FakeAzureSession([[{
            "status": "succeeded",
            "analyzeResult": {"paragraphs": [{"content": "First"}, {"content": "Second"}]},
        }]])
        ocr = AzureDocumentOCR("key", "https://ocr/", poll_interval=0, session=session)

        assert ocr.get_text([PAGE]) == "--- Page 1 ---\nFirst\n\nSecond"

    def test_failed_page_is_marked_and_others_continue(self):
        session = FakeAzureSession([
            [{"status": "failed"}],
            [succeeded("Q2. Explain inflation.")],
        ])
        ocr = AzureDocumentOCR("key", "https://ocr/", poll_interval=0, session=session)

        text = ocr.get_text([PAGE, PAGE])

        assert text == f"--- Page 1 ---\n{PAGE_ERROR_TEXT}\n\n--- Page 2 ---\nQ2. Explain inflation."

    def test_polling_gives_up_after_max_attempts(self):
        session = FakeAzureSession([[{"status": "running"}] * 3])
        ocr = AzureDocumentOCR("key", "https://ocr/", poll_interval=0, max_attempts=3, session=session)

        with pytest.raises(OCRError, match="timed out"):
            ocr.read_page(PAGE)

    def test_analyze_http_error_raises(self):
        ocr = AzureDocumentOCR("key", "https://ocr/", poll_interval=0, session=FakeAzureSession([], analyze_status=401))

        with pytest.raises(OCRError, match="401"):
            ocr.read_page(PAGE)

    def test_empty_images_rejected(self):
        ocr = AzureDocumentOCR("key", "https://ocr/", session=FakeAzureSession([]))

        with pytest.raises(ValueError, match="Images array is required"):
            ocr.get_text([])


class TestCustomOCR:

    def test_get_text_posts_images(self, monkeypatch):
        calls = []

        def fake_post(url, json=None, headers=None, timeout=None):
            calls.append((url, json, headers))
            return FakeResponse(200, payload={"text": "Q1. Define GDP."})

        monkeypatch.setattr(requests, "post", fake_post)
        ocr = CustomOCR("https://ocr.local/read/", api_key="secret")

        assert ocr.get_text([PAGE]) == "Q1. Define GDP."
        url, body, headers = calls[0]
        assert url == "https://ocr.local/read"
        assert body == {"images": [PAGE]}
        assert headers["Authorization"] == "Bearer secret"

    def test_error_payload_raises(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse(200, payload={"error": "quota exceeded"}))

        with pytest.raises(OCRError, match="quota exceeded"):
            CustomOCR("https://ocr.local").get_text([PAGE])

    def test_plain_text_reply(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse(200, text="plain text"))

        assert CustomOCR("https://ocr.local").get_text([PAGE]) == "plain text"

    def test_timeout_raises_ocr_error(self, monkeypatch):
        def timeout(*args, **kwargs):
            raise requests.exceptions.Timeout()

        monkeypatch.setattr(requests, "post", timeout)

        with pytest.raises(OCRError, match="timed out"):
            CustomOCR("https://ocr.local", timeout=5).get_text([PAGE])


class TestGoogleVision:

    def test_filter_low_confidence(self):
        lines = [
            {"text": "Q1. Define GDP.", "confidence": 0.95},
            {"text": "smudge", "confidence": 0.30},
            {"text": "   ", "confidence": 0.99},
        ]

        assert filter_low_confidence(lines) == [lines[0]]

    def test_get_text_uses_injected_client(self, monkeypatch):
        ocr = GoogleVisionOCR(client=object())
        monkeypatch.setattr(ocr, "run", lambda image: [
            {"text": "Q1. Define GDP.", "confidence": 0.9},
            {"text": "noise", "confidence": 0.1},
        ])

        assert ocr.get_text([PAGE]) == "--- Page 1 ---\nQ1. Define GDP."


class TestGetOcrEngine:

    def test_azure_requires_credentials(self):
        with pytest.raises(MissingCredentialsError):
            get_ocr_engine({"ocr_provider": "azure"})

    def test_azure_from_settings(self):
        engine = get_ocr_engine({
            "ocr_provider": "azure",
            "azure_ocr_endpoint": "https://ocr.example.com",
            "azure_ocr_key": "key",
        })

        assert isinstance(engine, AzureDocumentOCR)
        assert engine.endpoint == "https://ocr.example.com/"

    def test_azure_from_environment(self, monkeypatch):
        monkeypatch.setenv("AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT", "https://env.example.com/")
        monkeypatch.setenv("AZURE_DOCUMENT_INTELLIGENCE_API_KEY", "env-key")

        engine = get_ocr_engine({})

        assert isinstance(engine, AzureDocumentOCR)
        assert engine.api_key == "env-key"

    def test_custom_requires_endpoint(self):
        with pytest.raises(MissingCredentialsError):
            get_ocr_engine({"ocr_provider": "custom"})

    def test_custom_from_settings(self):
        engine = get_ocr_engine({"ocr_provider": "custom", "custom_ocr_endpoint": "https://ocr.local"})

        assert isinstance(engine, CustomOCR)

    def test_unknown_provider(self):
        with pytest.raises(OCRError, match="Unknown OCR provider"):
            get_ocr_engine({"ocr_provider": "tesseract"})


def test_decode_image_accepts_raw_base64():
    raw = base64.b64encode(b"abc").decode()

    assert decode_image(raw) == b"abc"
    assert decode_image("data:image/png;base64," + raw) == b"abc"


def test_read_page_defaults_to_single_image_get_text():
    class EchoOCR(OCREngine):
        def __init__(self):
            self.calls = []

        def get_text(self, images):
            self.calls.append(images)
            return "answer"

    ocr = EchoOCR()

    assert ocr.read_page(PAGE) == "answer"
    assert ocr.calls == [[PAGE]]
