import os
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timezone
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from dailyquiz.core.clock import DayClock
from dailyquiz.models.orm import Base, Question, new_id

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
TODAY = "2024-03-15"
TOMORROW = "2024-03-16"

@pytest.fixture
def engine():
    eng = create_engine("sqlite://", future=True, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()

@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def file_session_factory(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'quiz.db'}", future=True,
                        connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(eng)
    yield sessionmaker(bind=eng, autocommit=False, autoflush=False, future=True)
    eng.dispose()

@pytest.fixture
def clock():
    return DayClock("Europe/London", now=lambda: NOW)

@pytest.fixture
def make_question(db):
    def _make(subject="biology", topic="cells", difficulty=1, correct_index=0, active=True, qid=None, session=None):
        session = session or db
        q = Question(id=qid or new_id(), stem=f"{topic} question", options=["A", "B", "C", "D"],
                     correct_index=correct_index, explanation=f"Because {topic}", topic=topic,
                     subject=subject, difficulty=difficulty, tags=[], active=active, created_at=NOW)
        session.add(q); session.commit()
        return q.id
    return _make

@pytest.fixture
def seed_set(make_question):
    """One full quiz worth of questions: 3 easy, 2 medium and 1 hard, each on its own topic."""
    def _seed(subject="biology", prefix="a", session=None):
        ids = {"easy": [], "medium": [], "hard": []}
        for i in range(3):
            ids["easy"].append(make_question(subject, f"{prefix}-easy-{i}", 1, correct_index=i, qid=f"{prefix}e{i}", session=session))
        for i in range(2):
            ids["medium"].append(make_question(subject, f"{prefix}-medium-{i}", 2, correct_index=i + 1, qid=f"{prefix}m{i}", session=session))
        ids["hard"].append(make_question(subject, f"{prefix}-hard", 3, correct_index=3, qid=f"{prefix}h0", session=session))
        return ids
    return _seed
