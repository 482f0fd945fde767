import logging

from fastapi import APIRouter, HTTPException

from examanalyzer.app.core.ai.evaluator import EvaluationRequest, EvaluationResult, evaluate_answer
from examanalyzer.app.core.ai.providers import AIClientError, MissingCredentialsError
from examanalyzer.app.services.storage.papers import PaperStore
from examanalyzer.app.settings import load_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Evaluate"])


@router.post("/evaluate", response_model=EvaluationResult)
def evaluate(payload: EvaluationRequest):
    """Score a written answer and return structured feedback."""
    if not payload.question_text.strip() or not payload.student_answer.strip():
        raise HTTPException(status_code=400, detail="Missing required fields")
    if payload.max_marks <= 0:
        raise HTTPException(status_code=400, detail="max_marks must be positive")

    settings = load_settings()
    try:
        result, token_usage = evaluate_answer(payload, settings)
    except MissingCredentialsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AIClientError as e:
        logger.error("[ERROR] Evaluation failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    if token_usage and settings.get("enable_history", True):
        try:
            PaperStore().record_usage(token_usage, provider=settings.get("ai_provider"), operation="evaluate")
        except Exception as e:
            logger.warning("[WARN] Failed to record evaluation usage: %s", e)

    return result
