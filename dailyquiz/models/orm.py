from datetime import datetime
from typing import Optional
from uuid import uuid4
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import Integer, String, Text, Boolean, JSON, DateTime, Index

class Base(DeclarativeBase): pass

def new_id() -> str:
    return uuid4().hex

class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (
        Index("idx_questions_subject_active", "subject", "active"),
    )
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    stem: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSON)
    correct_index: Mapped[int] = mapped_column(Integer)
    explanation: Mapped[str] = mapped_column(Text, default="")
    topic: Mapped[str] = mapped_column(String(64))
    subject: Mapped[str] = mapped_column(String(32))
    difficulty: Mapped[int] = mapped_column(Integer)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

class DailyAssignment(Base):
    __tablename__ = "daily_assignments"
    # id is "{date}-{subject}"; one row per day and subject holding the current version only
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    date: Mapped[str] = mapped_column(String(10))
    subject: Mapped[str] = mapped_column(String(32))
    quiz_version: Mapped[int] = mapped_column(Integer, default=1)
    generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    question_ids: Mapped[list] = mapped_column(JSON)

class Attempt(Base):
    __tablename__ = "attempts"
    __table_args__ = (
        Index("idx_attempts_user_subject_date", "user_label", "subject", "date"),
        Index("idx_attempts_subject_date", "subject", "date"),
        Index("idx_attempts_submitted", "submitted_at"),
    )
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    date: Mapped[str] = mapped_column(String(10))
    subject: Mapped[str] = mapped_column(String(32))
    user_label: Mapped[str] = mapped_column(String(255))
    attempt_number: Mapped[int] = mapped_column(Integer)
    quiz_version: Mapped[int] = mapped_column(Integer)
    question_ids: Mapped[list] = mapped_column(JSON)
    answers: Mapped[list] = mapped_column(JSON)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=True)
    score: Mapped[int] = mapped_column(Integer)
    topic_breakdown: Mapped[dict] = mapped_column(JSON)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    ip_hash: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

class QuestionStat(Base):
    __tablename__ = "question_stats"
    __table_args__ = (
        Index("idx_question_stats_user", "user_label"),
    )
    question_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_label: Mapped[str] = mapped_column(String(255), primary_key=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    correct: Mapped[int] = mapped_column(Integer, default=0)
    last_attempted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
