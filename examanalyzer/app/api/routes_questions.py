"""
Papers & Questions API Routes - browse analyzed papers, filter and export questions.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from examanalyzer.app.services.storage.export import EXPORT_FORMATS, export_questions
from examanalyzer.app.services.storage.papers import PaperStore

router = APIRouter(tags=["Questions"])


@router.get("/papers")
def list_papers(limit: int = Query(50, ge=1, le=500)):
    return PaperStore().list_papers(limit=limit)


@router.get("/papers/{paper_id}")
def get_paper(paper_id: str):
    paper = PaperStore().get_paper(paper_id)
    if paper is None:
        raise HTTPException(status_code=404, detail="Paper not found")
    return paper


@router.get("/questions")
def list_questions(
    topic: Optional[str] = None,
    difficulty: Optional[str] = None,
    paper_id: Optional[str] = None,
    search: Optional[str] = None,
    analyzed_only: bool = False,
):
    return PaperStore().list_questions(
        topic=topic,
        difficulty=difficulty,
        paper_id=paper_id,
        search=search,
        analyzed_only=analyzed_only,
    )


@router.get("/questions/export")
def export_question_file(
    format: str = Query("csv", description="Format: 'json', 'csv' or 'xlsx'"),
    topic: Optional[str] = None,
    difficulty: Optional[str] = None,
    paper_id: Optional[str] = None,
    filename: Optional[str] = None,
):
    if format.lower() not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail=f"Invalid format. Must be one of: {list(EXPORT_FORMATS)}")

    rows = PaperStore().list_questions(topic=topic, difficulty=difficulty, paper_id=paper_id)
    content, media_type, download_name = export_questions(rows, format, filename)

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={download_name}"},
    )
