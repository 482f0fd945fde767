from examanalyzer.app.api.routes_batch import router as batch_router
from examanalyzer.app.api.routes_evaluate import router as evaluate_router
from examanalyzer.app.api.routes_ocr import router as ocr_router
from examanalyzer.app.api.routes_questions import router as questions_router
from examanalyzer.app.api.routes_settings import router as settings_router
from examanalyzer.app.api.routes_syllabi import router as syllabi_router
from examanalyzer.app.api.routes_usage import router as usage_router

__all__ = [
    "batch_router",
    "evaluate_router",
    "ocr_router",
    "questions_router",
    "settings_router",
    "syllabi_router",
    "usage_router",
]
