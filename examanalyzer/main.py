from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from examanalyzer.app.api import (
    batch_router,
    evaluate_router,
    ocr_router,
    questions_router,
    settings_router,
    syllabi_router,
    usage_router,
)
from examanalyzer.app.db.database import init_database

# ===============================
# Create database tables on startup
# ===============================
init_database()

app = FastAPI(
    title="ExamAnalyzer - Exam Paper Question Analysis",
    version="1.0.0"
)

# ===============================
# CORS (Frontend ↔ Backend)
# ===============================
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # for development only
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===============================
# API Routes
# ===============================
app.include_router(
    batch_router,
    prefix="/batch",
    tags=["Batch"]
)

app.include_router(
    syllabi_router,
    prefix="/api",
    tags=["Syllabi"]
)

app.include_router(
    questions_router,
    prefix="/api",
    tags=["Questions"]
)

app.include_router(
    evaluate_router,
    prefix="/api",
    tags=["Evaluate"]
)

app.include_router(
    ocr_router,
    prefix="/api",
    tags=["OCR"]
)

app.include_router(
    settings_router,
    prefix="/api",
    tags=["Settings"]
)

app.include_router(
    usage_router,
    prefix="/api/usage",
    tags=["Usage"]
)
