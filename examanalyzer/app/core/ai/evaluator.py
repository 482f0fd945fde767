"""
Written-answer evaluation.
Scores a free-text answer against the question, an optional model answer and key points.
"""

import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel

from examanalyzer.app.core.ai.providers import AIResponseError, complete_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert exam answer evaluator and mentor. Your role is to evaluate written answers and provide constructive, detailed feedback to help students improve their answer writing skills.

Evaluation criteria:
1. Content Quality (40%): Accuracy, relevance, depth of analysis, use of facts/data/examples
2. Structure & Format (25%): Introduction, body paragraphs, conclusion, logical flow
3. Answer Writing Technique (20%): Clarity, conciseness, proper headings/subheadings
4. Language & Presentation (15%): Grammar, vocabulary, readability

You must respond with a valid JSON object (no markdown, no code blocks)."""


class EvaluationRequest(BaseModel):
    question_text: str
    question_type: str = "descriptive"
    max_marks: float
    student_answer: str
    word_limit: Optional[int] = None
    model_answer: Optional[str] = None
    key_points: List[str] = []
    subject: Optional[str] = None
    topic: Optional[str] = None


class ParagraphFeedback(BaseModel):
    paragraph_number: int
    content: str = ""
    feedback: str = ""
    rating: str = "average"


class EvaluationResult(BaseModel):
    score: float = 0
    percentage: float = 0
    overall_feedback: str = ""
    strengths: List[str] = []
    improvements: List[str] = []
    paragraph_analysis: List[ParagraphFeedback] = []
    format_suggestions: str = ""
    model_comparison: str = ""


FALLBACK_EVALUATION = EvaluationResult(
    overall_feedback="Unable to evaluate the answer. Please try again.",
    improvements=["Could not process the evaluation"],
)


def build_prompt(request: EvaluationRequest) -> str:
    lines = [
        "Evaluate this answer:",
        "",
        f"Question: {request.question_text}",
        f"Question Type: {request.question_type}",
        f"Maximum Marks: {request.max_marks:g}",
    ]
    if request.word_limit:
        lines.append(f"Word Limit: {request.word_limit} words")
    if request.subject:
        lines.append(f"Subject: {request.subject}")
    if request.topic:
        lines.append(f"Topic: {request.topic}")
    if request.model_answer:
        lines += ["", "Model Answer (for reference):", request.model_answer]
    if request.key_points:
        lines += ["", "Key Points Expected:"] + request.key_points

    lines += [
        "",
        "Student's Answer:",
        request.student_answer,
        "",
        "Provide your evaluation as a JSON object with this exact structure:",
        "{",
        f'  "score": <number between 0 and {request.max_marks:g}>,',
        '  "percentage": <number 0-100>,',
        '  "overallFeedback": "<2-3 sentence summary of the answer quality>",',
        '  "strengths": ["<strength 1>", ...],',
        '  "improvements": ["<specific improvement 1>", ...],',
        '  "paragraphAnalysis": [{"paragraphNumber": 1, "content": "<first 50 chars>...", '
        '"feedback": "<feedback>", "rating": "<good|average|needs_improvement>"}],',
        '  "formatSuggestions": "<suggestions for format, structure and presentation>",',
        '  "modelComparison": "<gaps versus the model answer, or the ideal structure>"',
        "}",
    ]
    return "\n".join(lines)


def _clamp(value, low: float, high: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return low
    return max(low, min(high, value))


def parse_evaluation(data: dict, max_marks: float) -> EvaluationResult:
    score = _clamp(data.get("score"), 0, max_marks)
    percentage = data.get("percentage")
    if percentage is None and max_marks:
        percentage = score / max_marks * 100

    paragraphs = []
    for i, item in enumerate(data.get("paragraphAnalysis") or [], 1):
        if not isinstance(item, dict):
            continue
        paragraphs.append(ParagraphFeedback(
            paragraph_number=int(_clamp(item.get("paragraphNumber", i), 1, 10_000)),
            content=str(item.get("content") or ""),
            feedback=str(item.get("feedback") or ""),
            rating=str(item.get("rating") or "average"),
        ))

    return EvaluationResult(
        score=score,
        percentage=_clamp(percentage, 0, 100),
        overall_feedback=str(data.get("overallFeedback") or ""),
        strengths=[str(s) for s in data.get("strengths") or []],
        improvements=[str(s) for s in data.get("improvements") or []],
        paragraph_analysis=paragraphs,
        format_suggestions=str(data.get("formatSuggestions") or ""),
        model_comparison=str(data.get("modelComparison") or ""),
    )


def evaluate_answer(request: EvaluationRequest, settings: dict) -> Tuple[EvaluationResult, Optional[dict]]:
    """
    Evaluate one answer. An unparsable model reply yields FALLBACK_EVALUATION;
    transport and credential errors propagate.
    """
    try:
        data, token_usage = complete_json(SYSTEM_PROMPT, build_prompt(request), settings, max_tokens=2000)
    except AIResponseError as e:
        logger.warning("[WARN] Failed to parse evaluation response: %s", e)
        return FALLBACK_EVALUATION.model_copy(deep=True), None

    result = parse_evaluation(data, request.max_marks)
    logger.info("[OK] Evaluation completed, score: %s/%s", result.score, request.max_marks)
    return result, token_usage
