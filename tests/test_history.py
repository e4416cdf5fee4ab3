from dailyquiz.models.orm import Attempt, DailyAssignment
from dailyquiz.services.history import UsageHistory, assignment_key
from conftest import NOW, TODAY

def add_assignment(db, date, subject, ids):
    db.add(DailyAssignment(id=assignment_key(date, subject), date=date, subject=subject,
                           quiz_version=1, generated_at=NOW, question_ids=ids))
    db.commit()

def test_recently_used_unions_window_and_today_attempts(db, clock):
    add_assignment(db, TODAY, "biology", ["t1", "t2"])
    add_assignment(db, "2024-03-13", "biology", ["old1"])
    add_assignment(db, "2024-03-09", "biology", ["edge"])
    add_assignment(db, "2024-03-08", "biology", ["too-old"])
    add_assignment(db, TODAY, "chemistry", ["chem"])
    db.add(Attempt(date=TODAY, subject="biology", user_label="sam", attempt_number=1, quiz_version=1,
                   question_ids=["a1", "t1"], answers=[], score=0, topic_breakdown={}, submitted_at=NOW))
    db.add(Attempt(date="2024-03-14", subject="biology", user_label="sam", attempt_number=1, quiz_version=1,
                   question_ids=["yesterday-attempt"], answers=[], score=0, topic_breakdown={}, submitted_at=NOW))
    db.commit()

    history = UsageHistory(db, clock)
    assert history.recently_used_ids("biology", 7) == {"t1", "t2", "old1", "edge", "a1"}
    assert history.recently_used_ids("biology", 1) == {"t1", "t2", "a1"}
    assert history.recently_used_ids("chemistry", 7) == {"chem"}

def test_missing_days_are_skipped(db, clock):
    history = UsageHistory(db, clock)
    assert history.recently_used_ids("biology", 7) == set()
    assert history.assignment_ids(TODAY, "biology") == []
    assert assignment_key(TODAY, "biology") == "2024-03-15-biology"
