from typing import List
import logging

from models import Quiz, QuizHistoryItem, QuizSubmission

logger = logging.getLogger(__name__)


def snapshot(quiz: Quiz, submissions: List[QuizSubmission]) -> QuizHistoryItem:
    """Deep copy so later edits to the live quiz or submissions never leak into the log."""
    return QuizHistoryItem(
        quiz=quiz.model_copy(deep=True),
        submissions=[s.model_copy(deep=True) for s in submissions],
    )


def append_entry(history: List[QuizHistoryItem], quiz: Quiz,
                 submissions: List[QuizSubmission]) -> QuizHistoryItem:
    entry = snapshot(quiz, submissions)
    history.append(entry)
    logger.info("History entry %d logged: '%s' (%d submissions)",
                len(history), quiz.question[:100], len(submissions))
    return entry


def clear(history: List[QuizHistoryItem]) -> int:
    removed = len(history)
    history.clear()
    logger.info("History cleared (%d entries removed)", removed)
    return removed
