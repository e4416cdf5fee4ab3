"""
Stratified question selection for the daily quiz.

A quiz is 3 easy and 2 medium questions in shuffled order followed by one
hard bonus question. Questions seen recently are avoided while fresh
alternatives exist, and each difficulty bucket is spread across topics.
"""
import logging
import random
from collections import defaultdict
from typing import Collection, Dict, Iterable, List, Optional, Set

from dailyquiz.core.config import RECENT_LOOKBACK_DAYS
from dailyquiz.models.domain import QuizQuestion
from dailyquiz.services.history import UsageHistory
from dailyquiz.services.questions import QuestionRepository, ensure_subject

logger = logging.getLogger(__name__)

EASY, MEDIUM, HARD = 1, 2, 3
EASY_COUNT = 3
MEDIUM_COUNT = 2
REGULAR_COUNT = EASY_COUNT + MEDIUM_COUNT
QUIZ_SIZE = REGULAR_COUNT + 1


def _ids(questions: Iterable[QuizQuestion]) -> Set[str]:
    return {q.id for q in questions}


def pick_by_topic(pool: Iterable[QuizQuestion], count: int, rng: random.Random,
                  taken: Collection[str] = ()) -> List[QuizQuestion]:
    """Pick ``count`` questions, at most one per topic until topics run out."""
    candidates = [q for q in pool if q.id not in taken]
    if count <= 0 or not candidates:
        return []

    by_topic: Dict[str, List[QuizQuestion]] = defaultdict(list)
    for q in candidates:
        by_topic[q.topic].append(q)
    topics = list(by_topic)
    rng.shuffle(topics)

    picked: List[QuizQuestion] = []
    for topic in topics:
        if len(picked) >= count:
            break
        picked.append(rng.choice(by_topic[topic]))

    if len(picked) < count:
        chosen = _ids(picked)
        rest = [q for q in candidates if q.id not in chosen]
        rng.shuffle(rest)
        picked.extend(rest[:count - len(picked)])
    return picked


def _pick_bonus(fresh: List[QuizQuestion], used: List[QuizQuestion], everything: List[QuizQuestion],
                taken: Set[str], rng: random.Random) -> Optional[QuizQuestion]:
    tiers = (
        [q for q in fresh if q.difficulty == HARD and q.id not in taken],
        [q for q in used if q.difficulty == HARD and q.id not in taken],
        [q for q in everything if q.difficulty == HARD and q.id not in taken],
        # no hard question left: any remaining question, fresh ones first
        [q for q in fresh if q.id not in taken],
        [q for q in everything if q.id not in taken],
    )
    for tier in tiers:
        if tier:
            return rng.choice(tier)
    return None


def select_quiz(questions: List[QuizQuestion], exclusions: Collection[str],
                rng: Optional[random.Random] = None) -> List[QuizQuestion]:
    """Up to QUIZ_SIZE distinct questions: shuffled regulars then the bonus."""
    rng = rng or random.Random()
    if not questions:
        return []

    fresh = [q for q in questions if q.id not in exclusions]
    used = [q for q in questions if q.id in exclusions]

    selected: List[QuizQuestion] = []
    for difficulty, count in ((EASY, EASY_COUNT), (MEDIUM, MEDIUM_COUNT)):
        chosen = pick_by_topic([q for q in fresh if q.difficulty == difficulty], count, rng)
        if len(chosen) < count:
            chosen += pick_by_topic([q for q in used if q.difficulty == difficulty],
                                    count - len(chosen), rng, taken=_ids(selected + chosen))
        selected += chosen

    if len(selected) < REGULAR_COUNT:
        for pool in (fresh, questions):
            missing = REGULAR_COUNT - len(selected)
            if missing <= 0:
                break
            selected += pick_by_topic([q for q in pool if q.difficulty != HARD], missing, rng,
                                      taken=_ids(selected))

    rng.shuffle(selected)

    bonus = _pick_bonus(fresh, used, questions, _ids(selected), rng)
    if bonus is not None:
        selected.append(bonus)
    return selected[:QUIZ_SIZE]


class QuestionSelector:
    def __init__(self, repository: QuestionRepository, history: UsageHistory,
                 lookback_days: int = RECENT_LOOKBACK_DAYS, rng: Optional[random.Random] = None):
        self.repository = repository
        self.history = history
        self.lookback_days = lookback_days
        self.rng = rng or random.Random()

    def select(self, subject: str, exclude_ids: Collection[str] = ()) -> List[QuizQuestion]:
        ensure_subject(subject)
        questions = self.repository.fetch_active(subject)
        if not questions:
            logger.warning(f"No active questions for {subject}")
            return []
        exclusions = self.history.recently_used_ids(subject, self.lookback_days) | set(exclude_ids)
        picked = select_quiz(questions, exclusions, self.rng)
        logger.debug(f"Selected {len(picked)} of {len(questions)} {subject} questions ({len(exclusions)} excluded)")
        return picked
