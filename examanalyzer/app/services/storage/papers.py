"""
Database Storage Service - papers, questions, syllabi and usage records.

Uses the configured SQLAlchemy session factory (SQLite by default).
Errors propagate; callers decide whether a failed write is fatal.
"""

import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from examanalyzer.app.db.database import get_session_local
from examanalyzer.app.db.models import ExamPaper, Question, Syllabus, UsageHistory
from examanalyzer.app.services.progress.models import Classification, Classified, SyllabusData

logger = logging.getLogger(__name__)

PAPER_ANALYZING = "analyzing"
PAPER_COMPLETED = "completed"

# Starter syllabi users can copy into their own list
SYLLABUS_TEMPLATES = [
    {
        "name": "UPSC Civil Services",
        "exam_type": "UPSC",
        "topics": ["Indian Polity", "Indian Economy", "History", "Geography",
                   "Science & Technology", "Environment", "Current Affairs", "Ethics"],
        "description": "Comprehensive syllabus for UPSC Civil Services Examination",
    },
    {
        "name": "JEE Main Physics",
        "exam_type": "JEE",
        "topics": ["Mechanics", "Thermodynamics", "Electromagnetism", "Optics",
                   "Modern Physics", "Waves", "Rotational Motion"],
        "description": "Physics syllabus for JEE Main examination",
    },
    {
        "name": "NEET Biology",
        "exam_type": "NEET",
        "topics": ["Cell Biology", "Genetics", "Human Physiology", "Plant Physiology",
                   "Ecology", "Evolution", "Biotechnology"],
        "description": "Biology syllabus for NEET examination",
    },
]


def syllabus_to_data(syllabus: Syllabus) -> SyllabusData:
    return SyllabusData(
        id=syllabus.id,
        name=syllabus.name,
        exam_type=syllabus.exam_type,
        topics=[str(t) for t in syllabus.topics],
        description=syllabus.description,
    )


def question_to_dict(question: Question, paper: Optional[ExamPaper] = None) -> dict:
    paper = paper or question.paper
    return {
        "id": question.id,
        "paper_id": question.paper_id,
        "paper_title": paper.title if paper else None,
        "exam_type": paper.exam_type if paper else None,
        "year": paper.year if paper else None,
        "question_number": question.question_number,
        "question_text": question.question_text,
        "topic": question.topic,
        "difficulty": question.difficulty,
        "importance_explanation": question.importance_explanation,
        "is_analyzed": question.is_analyzed,
    }


def paper_to_dict(paper: ExamPaper, question_count: int = None) -> dict:
    return {
        "id": paper.id,
        "title": paper.title,
        "exam_type": paper.exam_type,
        "year": paper.year,
        "syllabus_id": paper.syllabus_id,
        "status": paper.status,
        "question_count": question_count,
        "created_at": paper.created_at.isoformat() if paper.created_at else None,
    }


class PaperStore:
    """Persistence adapter used by the batch controller and the API routes."""

    def __init__(self, session_factory: Callable[[], Session] = None):
        self._session_factory = session_factory

    def session(self) -> Session:
        factory = self._session_factory or get_session_local()
        return factory()

    # ------------------------------------------------------------------
    # Papers & questions
    # ------------------------------------------------------------------

    def create_paper(
        self,
        title: str,
        exam_type: str,
        raw_text: str,
        syllabus_id: Optional[str],
        status: str = PAPER_ANALYZING,
        year: Optional[int] = None,
    ) -> str:
        with self.session() as db:
            paper = ExamPaper(
                title=title,
                exam_type=exam_type,
                raw_text=raw_text,
                syllabus_id=syllabus_id,
                status=status,
                year=year,
            )
            db.add(paper)
            db.commit()
            return paper.id

    def create_question(
        self,
        paper_id: str,
        question_text: str,
        question_number: Optional[int],
        classification: Classification,
    ) -> str:
        analyzed = isinstance(classification, Classified)
        with self.session() as db:
            question = Question(
                paper_id=paper_id,
                question_text=question_text,
                question_number=question_number,
                topic=classification.topic if analyzed else None,
                difficulty=classification.difficulty if analyzed else None,
                importance_explanation=classification.explanation if analyzed else None,
                is_analyzed=analyzed,
            )
            db.add(question)
            db.commit()
            return question.id

    def update_paper_status(self, paper_id: str, status: str) -> None:
        with self.session() as db:
            paper = db.get(ExamPaper, paper_id)
            if paper is None:
                raise LookupError(f"Paper not found: {paper_id}")
            paper.status = status
            db.commit()

    def get_paper(self, paper_id: str) -> Optional[dict]:
        with self.session() as db:
            paper = db.get(ExamPaper, paper_id)
            if paper is None:
                return None
            data = paper_to_dict(paper, question_count=len(paper.questions))
            data["raw_text"] = paper.raw_text
            data["questions"] = [question_to_dict(q, paper) for q in paper.questions]
            return data

    def list_papers(self, limit: int = 50) -> List[dict]:
        with self.session() as db:
            counts = (
                select(Question.paper_id, func.count(Question.id).label("n"))
                .group_by(Question.paper_id)
                .subquery()
            )
            rows = db.execute(
                select(ExamPaper, counts.c.n)
                .outerjoin(counts, counts.c.paper_id == ExamPaper.id)
                .order_by(ExamPaper.created_at.desc())
                .limit(limit)
            ).all()
            return [paper_to_dict(paper, question_count=n or 0) for paper, n in rows]

    def list_questions(
        self,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
        paper_id: Optional[str] = None,
        search: Optional[str] = None,
        analyzed_only: bool = False,
    ) -> List[dict]:
        with self.session() as db:
            query = select(Question, ExamPaper).join(ExamPaper, Question.paper_id == ExamPaper.id)
            if topic:
                query = query.where(Question.topic == topic)
            if difficulty:
                query = query.where(Question.difficulty == difficulty)
            if paper_id:
                query = query.where(Question.paper_id == paper_id)
            if analyzed_only:
                query = query.where(Question.is_analyzed.is_(True))
            if search:
                pattern = f"%{search}%"
                query = query.where(or_(
                    Question.question_text.ilike(pattern),
                    Question.topic.ilike(pattern),
                ))
            query = query.order_by(ExamPaper.created_at.desc(), Question.question_number)
            return [question_to_dict(q, paper) for q, paper in db.execute(query).all()]

    # ------------------------------------------------------------------
    # Syllabi
    # ------------------------------------------------------------------

    def get_syllabus(self, syllabus_id: str) -> Optional[SyllabusData]:
        with self.session() as db:
            syllabus = db.get(Syllabus, syllabus_id)
            return syllabus_to_data(syllabus) if syllabus else None

    def list_syllabi(self) -> List[SyllabusData]:
        with self.session() as db:
            rows = db.execute(select(Syllabus).order_by(Syllabus.name)).scalars().all()
            return [syllabus_to_data(s) for s in rows]

    def create_syllabus(
        self,
        name: str,
        exam_type: str,
        topics: Iterable[str],
        description: Optional[str] = None,
    ) -> SyllabusData:
        with self.session() as db:
            syllabus = Syllabus(name=name, exam_type=exam_type, description=description or None)
            syllabus.topics = [t.strip() for t in topics if t and t.strip()]
            db.add(syllabus)
            db.commit()
            return syllabus_to_data(syllabus)

    def update_syllabus(self, syllabus_id: str, **fields) -> Optional[SyllabusData]:
        with self.session() as db:
            syllabus = db.get(Syllabus, syllabus_id)
            if syllabus is None:
                return None
            for key in ("name", "exam_type", "description"):
                if fields.get(key) is not None:
                    setattr(syllabus, key, fields[key])
            if fields.get("topics") is not None:
                syllabus.topics = [t.strip() for t in fields["topics"] if t and t.strip()]
            db.commit()
            return syllabus_to_data(syllabus)

    def delete_syllabus(self, syllabus_id: str) -> bool:
        with self.session() as db:
            syllabus = db.get(Syllabus, syllabus_id)
            if syllabus is None:
                return False
            db.delete(syllabus)
            db.commit()
            return True

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def record_usage(
        self,
        token_usage: dict,
        provider: Optional[str],
        operation: str = "batch",
        batch_id: Optional[str] = None,
        papers_processed: int = 0,
    ) -> None:
        total = token_usage.get("total_tokens", 0) or 0
        model = token_usage.get("model")
        with self.session() as db:
            db.add(UsageHistory(
                batch_id=batch_id,
                operation=operation,
                prompt_tokens=token_usage.get("prompt_tokens", 0) or 0,
                completion_tokens=token_usage.get("completion_tokens", 0) or 0,
                total_tokens=total,
                model=model,
                provider=provider,
                papers_processed=papers_processed,
                estimated_cost_cents=UsageHistory.estimate_cost(total, model or "gpt-4o"),
            ))
            db.commit()
