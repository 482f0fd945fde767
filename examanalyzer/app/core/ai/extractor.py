"""
Question extraction and classification clients.

Two request/response operations against the configured AI provider:
    extract_questions: {text} -> {questions: [{question_text, question_number?}]}
    analyze_question:  {question, topics} -> {topic?, difficulty?, importance_explanation?}
"""

import logging
from typing import Dict, List, Optional

from examanalyzer.app.core.ai.providers import AIResponseError, complete_json
from examanalyzer.app.services.progress.models import Classified, ExtractedQuestion

logger = logging.getLogger(__name__)

DIFFICULTY_LEVELS = ("Easy", "Medium", "Hard")

EXTRACT_SYSTEM_PROMPT = "You extract individual questions from exam papers and return JSON."

EXTRACT_PROMPT = """Extract every individual question from the exam paper text below.

Rules:
- Return ONLY valid JSON of the form {{"questions": [{{"question_text": "...", "question_number": 1}}]}}
- Keep each question's full wording, including sub-parts and options
- Use the number printed in the paper as question_number; use null if there is none
- Skip instructions, headers, page numbers and mark allocations
- Do NOT use markdown or explanation

Text:
\"\"\"
{text}
\"\"\""""

ANALYZE_SYSTEM_PROMPT = "You classify exam questions against a syllabus and return JSON."

ANALYZE_PROMPT = """Classify the exam question below.

Syllabus topics:
{topics}

Question:
\"\"\"
{question}
\"\"\"

Return ONLY valid JSON with these keys:
- "topic": the single best matching syllabus topic, copied exactly from the list
- "difficulty": one of "Easy", "Medium", "Hard"
- "importance_explanation": one or two sentences on why this question matters for the exam"""


def normalize_difficulty(value: Optional[str]) -> Optional[str]:
    if not value or not isinstance(value, str):
        return None
    value = value.strip().capitalize()
    return value if value in DIFFICULTY_LEVELS else None


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class QuestionAIClient:
    """
    Thin wrapper around the two question operations.
    Token usage for every successful call is accumulated on `token_usage`.
    """

    def __init__(self, settings: dict):
        self.settings = settings
        self.token_usage: Dict[str, object] = {
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,
            "model": None,
        }

    def _track(self, usage: Optional[dict]) -> None:
        if not usage:
            return
        for key in ("prompt_tokens", "completion_tokens", "total_tokens"):
            self.token_usage[key] += usage.get(key, 0) or 0
        if not self.token_usage["model"]:
            self.token_usage["model"] = usage.get("model")

    def extract_questions(self, text: str) -> List[ExtractedQuestion]:
        data, usage = complete_json(
            EXTRACT_SYSTEM_PROMPT,
            EXTRACT_PROMPT.format(text=text),
            self.settings,
            max_tokens=4000,
        )
        self._track(usage)

        raw_questions = data.get("questions")
        if raw_questions is None:
            raw_questions = []
        if not isinstance(raw_questions, list):
            raise AIResponseError("AI response 'questions' is not a list")

        questions = []
        for item in raw_questions:
            if isinstance(item, str):
                item = {"question_text": item}
            if not isinstance(item, dict):
                continue
            question_text = str(item.get("question_text") or "").strip()
            if not question_text:
                continue
            questions.append(ExtractedQuestion(
                question_text=question_text,
                question_number=_as_int(item.get("question_number")),
            ))

        logger.info("[OK] Extracted %s questions", len(questions))
        return questions

    def analyze_question(self, question: str, topics: List[str]) -> Classified:
        topic_list = "\n".join(f"- {t}" for t in topics) or "- (no topics provided)"
        data, usage = complete_json(
            ANALYZE_SYSTEM_PROMPT,
            ANALYZE_PROMPT.format(topics=topic_list, question=question),
            self.settings,
            max_tokens=500,
        )
        self._track(usage)

        return Classified(
            topic=data.get("topic") or None,
            difficulty=normalize_difficulty(data.get("difficulty")),
            explanation=data.get("importance_explanation") or None,
        )
