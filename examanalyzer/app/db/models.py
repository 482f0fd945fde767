"""
Database Models for syllabi, exam papers and their questions.

SQLite-compatible models; work with PostgreSQL/MySQL when an external
database URL is configured.
"""

import json
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from examanalyzer.app.db.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Syllabus(Base):
    """Named set of topics used to classify questions."""
    __tablename__ = "syllabi"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    exam_type = Column(String(100), nullable=False)
    topics_json = Column(Text, nullable=False, default="[]")  # JSON stored as text for SQLite compatibility
    description = Column(Text, nullable=True)
    is_template = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def topics(self) -> list:
        if self.topics_json:
            try:
                value = json.loads(self.topics_json)
                return value if isinstance(value, list) else []
            except json.JSONDecodeError:
                return []
        return []

    @topics.setter
    def topics(self, value: list):
        self.topics_json = json.dumps(list(value or []))


class ExamPaper(Base):
    """One uploaded exam document and its processing status."""
    __tablename__ = "exam_papers"

    id = Column(String(36), primary_key=True, default=_uuid)
    syllabus_id = Column(String(36), ForeignKey("syllabi.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    exam_type = Column(String(100), nullable=False)
    year = Column(Integer, nullable=True)
    raw_text = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, analyzing, completed
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    questions = relationship(
        "Question",
        back_populates="paper",
        cascade="all, delete-orphan",
        order_by="Question.question_number",
    )


class Question(Base):
    """One classified (or unclassified) question extracted from a paper."""
    __tablename__ = "questions"
    __table_args__ = (
        CheckConstraint("difficulty IN ('Easy', 'Medium', 'Hard')", name="ck_questions_difficulty"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    paper_id = Column(String(36), ForeignKey("exam_papers.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_number = Column(Integer, nullable=True)
    topic = Column(String(255), nullable=True)
    difficulty = Column(String(10), nullable=True)
    importance_explanation = Column(Text, nullable=True)
    is_analyzed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    paper = relationship("ExamPaper", back_populates="questions")


class UsageHistory(Base):
    """Tracks AI token usage for each batch run or evaluation."""
    __tablename__ = "usage_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(String(36), index=True, nullable=True)
    operation = Column(String(50), nullable=False, default="batch")  # batch, evaluate

    # Token counts
    prompt_tokens = Column(Integer, default=0)
    completion_tokens = Column(Integer, default=0)
    total_tokens = Column(Integer, default=0)

    model = Column(String(100), nullable=True)
    provider = Column(String(50), nullable=True)
    papers_processed = Column(Integer, default=0)

    # Cost estimation (in USD cents to avoid float precision issues)
    estimated_cost_cents = Column(Integer, default=0)

    created_at = Column(DateTime, server_default=func.now())

    @classmethod
    def estimate_cost(cls, total_tokens: int, model: str) -> int:
        """Estimate cost in cents based on model and tokens."""
        # Approximate blended pricing per 1M tokens
        pricing = {
            "gpt-4o": 5.0,
            "gpt-4o-mini": 0.3,
            "gpt-3.5-turbo": 0.5,
            "claude-3-haiku-20240307": 0.25,
            "gemini-1.5-flash": 0.075,
            "gemini-1.5-pro": 1.25,
        }
        rate = pricing.get(model, 2.5)
        cost_dollars = (total_tokens / 1_000_000) * rate
        return int(cost_dollars * 100)
