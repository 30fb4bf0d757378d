"""Session data models shared by the quiz core and the transport."""
import re
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_serializer, field_validator
from pydantic.alias_generators import to_camel

import config


def _sanitize_text(text: str) -> str:
    """Strip HTML tags and control characters from client-supplied text."""
    text = re.sub(r'<[^>]+>', '', text)
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    return text.strip()


class QuizPhase(str, Enum):
    IDLE = "idle"
    FASTEST_FINGER = "fastest_finger"
    REVEAL_ANSWER = "reveal_answer"
    SHOW_RESULTS = "show_results"


class WireModel(BaseModel):
    """Base for models exchanged with clients as camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Player(WireModel):
    id: StrictInt
    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = _sanitize_text(v)
        if not v or len(v) > config.MAX_NAME_LENGTH:
            raise ValueError(f'Name must be 1-{config.MAX_NAME_LENGTH} characters')
        return v


class Quiz(WireModel):
    question: str = ""
    options: List[str] = Field(default_factory=lambda: [""] * config.NUM_OPTIONS)
    correct_answer_index: Optional[StrictInt] = None
    time_limit: StrictInt = config.DEFAULT_TIME_LIMIT

    @classmethod
    def empty(cls) -> "Quiz":
        """The blank template shown while no question is in play."""
        return cls()

    @field_validator('question')
    @classmethod
    def validate_question(cls, v: str) -> str:
        return _sanitize_text(v)[:config.MAX_QUESTION_LENGTH]

    @field_validator('options')
    @classmethod
    def validate_options(cls, v: List[str]) -> List[str]:
        if len(v) != config.NUM_OPTIONS:
            raise ValueError(f'Quiz must have exactly {config.NUM_OPTIONS} options')
        return [_sanitize_text(opt)[:config.MAX_OPTION_LENGTH] for opt in v]

    @field_validator('correct_answer_index')
    @classmethod
    def validate_correct_answer_index(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not (0 <= v < config.NUM_OPTIONS):
            raise ValueError('Invalid correctAnswerIndex')
        return v

    @field_validator('time_limit')
    @classmethod
    def validate_time_limit(cls, v: int) -> int:
        if v < config.MIN_TIME_LIMIT or v > config.MAX_TIME_LIMIT:
            raise ValueError(
                f'Time limit must be between {config.MIN_TIME_LIMIT} and {config.MAX_TIME_LIMIT} seconds'
            )
        return v


class QuizSubmission(WireModel):
    player_id: int
    player_name: str
    timestamp: int  # epoch milliseconds
    answer_index: Optional[int] = None


class QuizHistoryItem(WireModel):
    quiz: Quiz
    submissions: List[QuizSubmission]


class AppState(WireModel):
    """The whole session as pushed to every client on each change."""
    phase: QuizPhase = QuizPhase.IDLE
    current_quiz: Quiz = Field(default_factory=Quiz.empty)
    submissions: List[QuizSubmission] = Field(default_factory=list)
    timer: int = 0
    participants: Dict[int, Player] = Field(default_factory=dict)  # id -> player, join order
    winners: List[int] = Field(default_factory=list)  # permanent, in promotion order
    history: List[QuizHistoryItem] = Field(default_factory=list)

    @field_serializer('participants')
    def serialize_participants(self, participants: Dict[int, Player]) -> List[dict]:
        return [p.model_dump(by_alias=True) for p in participants.values()]

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
