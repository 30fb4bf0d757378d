from typing import List, Optional
import logging

from models import QuizSubmission
import config

logger = logging.getLogger(__name__)


def fastest_correct(submissions: List[QuizSubmission], correct_index: Optional[int],
                    limit: int = config.WINNERS_PER_QUIZ) -> List[QuizSubmission]:
    """Correct submissions, earliest first, capped at ``limit``.

    ``sorted`` is stable, so equal timestamps keep arrival order.
    """
    if correct_index is None:
        return []
    correct = [s for s in submissions if s.answer_index == correct_index]
    return sorted(correct, key=lambda s: s.timestamp)[:limit]


def merge_winners(winners: List[int], ranked: List[QuizSubmission]) -> List[int]:
    """Append each ranked player to the permanent winners list once. Returns the ids added."""
    added = []
    for submission in ranked:
        if submission.player_id in winners:
            continue
        winners.append(submission.player_id)
        added.append(submission.player_id)
        logger.info("Permanent winner added: %s (ID: %d)", submission.player_name, submission.player_id)
    return added


def resolve_winners(winners: List[int], submissions: List[QuizSubmission],
                    correct_index: Optional[int], limit: int = config.WINNERS_PER_QUIZ) -> List[int]:
    return merge_winners(winners, fastest_correct(submissions, correct_index, limit))
