"""
Tests for the AI provider plumbing and the question extraction/classification client.
"""

import pytest

from examanalyzer.app.core.ai import extractor
from examanalyzer.app.core.ai.extractor import QuestionAIClient, normalize_difficulty
from examanalyzer.app.core.ai.providers import (
    AIClientError,
    AIResponseError,
    MissingCredentialsError,
    complete_json,
    parse_json_reply,
    resolve_ai_credentials,
)

USAGE = {"prompt_tokens": 100, "completion_tokens": 20, "total_tokens": 120, "model": "gpt-4o-mini"}


def fake_completion(reply):
    def complete(system, prompt, settings, max_tokens=2000):
        complete.prompts.append(prompt)
        return reply, dict(USAGE)
    complete.prompts = []
    return complete


class TestParseJsonReply:

    def test_plain_json(self):
        assert parse_json_reply('{"topic": "History"}') == {"topic": "History"}

    def test_markdown_fence(self):
        assert parse_json_reply('```json\n{"topic": "History"}\n```') == {"topic": "History"}

    def test_chatter_around_object(self):
        assert parse_json_reply('Sure! Here it is: {"questions": []} Hope that helps.') == {"questions": []}

    def test_no_json_raises(self):
        with pytest.raises(AIResponseError):
            parse_json_reply("I could not find any questions.")

    def test_array_is_not_an_object(self):
        with pytest.raises(AIResponseError):
            parse_json_reply('["a", "b"]')


class TestCredentials:

    def test_settings_key_wins_over_environment(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")

        creds = resolve_ai_credentials({"ai_provider": "openai", "ai_api_key": "settings-key"})

        assert creds["api_key"] == "settings-key"

    def test_environment_fallback(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")

        creds = resolve_ai_credentials({"ai_provider": "anthropic"})

        assert creds["api_key"] == "env-key"

    def test_missing_key_raises_at_call_time(self):
        with pytest.raises(MissingCredentialsError):
            complete_json("system", "prompt", {"ai_provider": "openai"})

    def test_azure_needs_endpoint_and_deployment(self):
        with pytest.raises(MissingCredentialsError):
            complete_json("system", "prompt", {"ai_provider": "azure", "ai_api_key": "key"})

    def test_unknown_provider(self):
        with pytest.raises(AIClientError, match="Unknown AI provider"):
            complete_json("system", "prompt", {"ai_provider": "mystery", "ai_api_key": "key"})


class TestExtractQuestions:

    def test_extract_questions_parses_items(self, monkeypatch):
        monkeypatch.setattr(extractor, "complete_json", fake_completion({"questions": [
            {"question_text": "Define GDP.", "question_number": 1},
            {"question_text": "  Explain inflation.  ", "question_number": "2"},
            "Discuss fiscal deficit.",
            {"question_text": ""},
            42,
        ]}))
        client = QuestionAIClient({})

        questions = client.extract_questions("paper text")

        assert [q.question_text for q in questions] == ["Define GDP.", "Explain inflation.", "Discuss fiscal deficit."]
        assert [q.question_number for q in questions] == [1, 2, None]

    def test_extract_questions_missing_key_is_empty(self, monkeypatch):
        monkeypatch.setattr(extractor, "complete_json", fake_completion({}))

        assert QuestionAIClient({}).extract_questions("paper text") == []

    def test_extract_questions_not_a_list_raises(self, monkeypatch):
        monkeypatch.setattr(extractor, "complete_json", fake_completion({"questions": "none"}))

        with pytest.raises(AIResponseError):
            QuestionAIClient({}).extract_questions("paper text")

    def test_text_is_sent_in_prompt(self, monkeypatch):
        completion = fake_completion({"questions": []})
        monkeypatch.setattr(extractor, "complete_json", completion)

        QuestionAIClient({}).extract_questions("Q1. Define GDP.")

        assert "Q1. Define GDP." in completion.prompts[0]


class TestAnalyzeQuestion:

    def test_analyze_question_returns_classified(self, monkeypatch):
        completion = fake_completion({
            "topic": "Indian Economy",
            "difficulty": "hard",
            "importance_explanation": "Asked almost every year.",
        })
        monkeypatch.setattr(extractor, "complete_json", completion)

        result = QuestionAIClient({}).analyze_question("Define GDP.", ["Indian Polity", "Indian Economy"])

        assert result.kind == "classified"
        assert result.topic == "Indian Economy"
        assert result.difficulty == "Hard"
        assert result.explanation == "Asked almost every year."
        assert "- Indian Economy" in completion.prompts[0]

    def test_invalid_difficulty_is_dropped(self, monkeypatch):
        monkeypatch.setattr(extractor, "complete_json", fake_completion({"topic": "History", "difficulty": "Brutal"}))

        result = QuestionAIClient({}).analyze_question("Who founded the Maurya empire?", ["History"])

        assert result.difficulty is None

    def test_token_usage_accumulates(self, monkeypatch):
        monkeypatch.setattr(extractor, "complete_json", fake_completion({"topic": "History"}))
        client = QuestionAIClient({})

        client.analyze_question("Q1", ["History"])
        client.analyze_question("Q2", ["History"])

        assert client.token_usage["total_tokens"] == 240
        assert client.token_usage["model"] == "gpt-4o-mini"


@pytest.mark.parametrize("value,expected", [
    ("Easy", "Easy"),
    ("medium", "Medium"),
    (" HARD ", "Hard"),
    ("extreme", None),
    (None, None),
    (3, None),
])
def test_normalize_difficulty(value, expected):
    assert normalize_difficulty(value) == expected
