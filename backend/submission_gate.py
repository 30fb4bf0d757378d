"""Admission policy for answer submissions."""
from enum import Enum
from typing import Any, Optional

from models import AppState, Player, QuizPhase
import config


class SubmissionResult(str, Enum):
    ACCEPTED = "accepted"
    REJECTED_NO_IDENTITY = "rejected_no_identity"
    REJECTED_ALREADY_WINNER = "rejected_already_winner"
    REJECTED_WRONG_PHASE = "rejected_wrong_phase"
    REJECTED_DUPLICATE = "rejected_duplicate"
    REJECTED_INVALID_ANSWER = "rejected_invalid_answer"

    @property
    def accepted(self) -> bool:
        return self is SubmissionResult.ACCEPTED


def _valid_answer_index(answer_index: Any) -> bool:
    if answer_index is None:
        return True
    # bool is an int subclass; True/False are not option indices
    if isinstance(answer_index, bool) or not isinstance(answer_index, int):
        return False
    return 0 <= answer_index < config.NUM_OPTIONS


def check_submission(state: AppState, player: Optional[Player], answer_index: Any) -> SubmissionResult:
    """Decide whether ``player`` may submit ``answer_index`` right now.

    Checks run in a fixed order so the reported reason is deterministic:
    identity, permanent winner, phase, duplicate, then the answer itself.
    """
    if player is None:
        return SubmissionResult.REJECTED_NO_IDENTITY
    if player.id in state.winners:
        return SubmissionResult.REJECTED_ALREADY_WINNER
    if state.phase != QuizPhase.FASTEST_FINGER:
        return SubmissionResult.REJECTED_WRONG_PHASE
    if any(s.player_id == player.id for s in state.submissions):
        return SubmissionResult.REJECTED_DUPLICATE
    if not _valid_answer_index(answer_index):
        return SubmissionResult.REJECTED_INVALID_ANSWER
    return SubmissionResult.ACCEPTED
