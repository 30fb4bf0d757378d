"""
The quiz session state machine.

idle -> fastest_finger -> reveal_answer -> show_results -> idle

QuizSession is the only thing that mutates AppState. Every public operation
takes the session lock, applies its change, and pushes the full state to the
broadcaster before releasing the lock, so a timer tick and an admin command
can never interleave half-way through each other.
"""
from typing import Any, Callable, List, Optional, Protocol
import asyncio
import logging
import time

from models import AppState, Player, Quiz, QuizPhase, QuizSubmission
from registry import ParticipantRegistry
from submission_gate import SubmissionResult, check_submission
from timer import Countdown
from winners import resolve_winners
import history
import config

logger = logging.getLogger(__name__)


class Broadcaster(Protocol):
    async def broadcast_state(self, state: dict) -> None: ...

    async def force_logout(self, connection_id: str) -> bool: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


class QuizSession:
    def __init__(self, broadcaster: Broadcaster, clock: Optional[Callable[[], int]] = None,
                 tick_interval: float = config.TICK_INTERVAL_SECONDS):
        self.broadcaster = broadcaster
        self.clock = clock or _now_ms
        self.state = AppState()
        self.registry = ParticipantRegistry()
        self.timer = Countdown(tick_interval)
        self.lock = asyncio.Lock()

    def snapshot(self) -> dict:
        return self.state.to_wire()

    async def _broadcast(self):
        await self.broadcaster.broadcast_state(self.state.to_wire())

    # --- Participant events ---

    async def join(self, connection_id: str, player: Player) -> bool:
        async with self.lock:
            added = self.registry.join(self.state, connection_id, player)
            await self._broadcast()
        return added

    async def submit_answer(self, connection_id: str, answer_index: Any = None) -> SubmissionResult:
        async with self.lock:
            player = self.registry.player_for(connection_id)
            result = check_submission(self.state, player, answer_index)
            if not result.accepted:
                logger.info("Submission from %s blocked: %s",
                            player.name if player else connection_id, result.value)
                return result
            self.state.submissions.append(QuizSubmission(
                player_id=player.id,
                player_name=player.name,
                timestamp=self.clock(),
                answer_index=answer_index,
            ))
            await self._broadcast()
        return result

    async def disconnect(self, connection_id: str) -> bool:
        """Forget the connection; a joined player also leaves participants and winners."""
        async with self.lock:
            player = self.registry.unbind(connection_id)
            if player is None:
                return False
            self.registry.leave(self.state, player.id)
            logger.info("Participant removed: %s (ID: %d)", player.name, player.id)
            await self._broadcast()
        return True

    # --- Admin commands ---

    async def start_quiz(self, quiz: Quiz):
        """Start a new answer window from any phase.

        A quiz still in fastest_finger is abandoned without a history entry.
        """
        async with self.lock:
            self.timer.stop()
            if self.state.phase == QuizPhase.FASTEST_FINGER:
                logger.warning("Quiz '%s' abandoned before its answer window closed; not logged",
                               self.state.current_quiz.question[:100])
            self.state.phase = QuizPhase.FASTEST_FINGER
            self.state.current_quiz = quiz
            self.state.submissions = []
            self.state.timer = quiz.time_limit
            self.timer.start(quiz.time_limit, self._on_tick, self._on_expire)
            logger.info("Quiz started: '%s' (%ds)", quiz.question[:100], quiz.time_limit)
            await self._broadcast()

    async def force_end_quiz(self) -> bool:
        async with self.lock:
            if self.state.phase != QuizPhase.FASTEST_FINGER:
                return False
            logger.info("Answer window closed by admin")
            await self._close_answer_window()
        return True

    async def show_results(self) -> Optional[List[int]]:
        """Promote the fastest correct answers. Returns the ids added, or None if not in reveal_answer."""
        async with self.lock:
            if self.state.phase != QuizPhase.REVEAL_ANSWER:
                return None
            added = resolve_winners(self.state.winners, self.state.submissions,
                                    self.state.current_quiz.correct_answer_index)
            self.state.phase = QuizPhase.SHOW_RESULTS
            await self._broadcast()
        return added

    async def reset_quiz(self):
        async with self.lock:
            self.timer.stop()
            self.state.phase = QuizPhase.IDLE
            self.state.current_quiz = Quiz.empty()
            self.state.submissions = []
            self.state.timer = 0
            logger.info("Quiz reset to idle")
            await self._broadcast()

    async def reset_winner(self, player_id: int) -> bool:
        async with self.lock:
            removed = player_id in self.state.winners
            if removed:
                self.state.winners.remove(player_id)
            logger.info("Winner status cleared for ID %d", player_id)
            await self._broadcast()
        return removed

    async def reset_all_winners(self):
        async with self.lock:
            self.state.winners.clear()
            logger.info("All winners cleared")
            await self._broadcast()

    async def force_logout_participant(self, player_id: int) -> bool:
        """Kick the player's connection (if any) and drop them. Returns True if a connection was kicked."""
        async with self.lock:
            connections = self.registry.connections_for(player_id)
            kicked = False
            if connections:
                connection_id = connections[0]
                self.registry.unbind(connection_id)
                logger.info("Sending forced logout to %s (ID: %d)", connection_id, player_id)
                kicked = await self.broadcaster.force_logout(connection_id)
            else:
                logger.info("No connection bound to ID %d; removing from lists only", player_id)
            self.registry.leave(self.state, player_id)
            await self._broadcast()
        return kicked

    async def clear_history(self):
        async with self.lock:
            history.clear(self.state.history)
            await self._broadcast()

    # --- Timer callbacks ---

    async def _on_tick(self, remaining: int):
        async with self.lock:
            if self.state.phase != QuizPhase.FASTEST_FINGER:
                return
            self.state.timer = remaining
            await self._broadcast()

    async def _on_expire(self):
        async with self.lock:
            if self.state.phase != QuizPhase.FASTEST_FINGER:
                return
            logger.info("Time is up")
            await self._close_answer_window()

    async def _close_answer_window(self):
        # caller holds self.lock
        self.timer.stop()
        self.state.phase = QuizPhase.REVEAL_ANSWER
        self.state.timer = 0
        history.append_entry(self.state.history, self.state.current_quiz, self.state.submissions)
        await self._broadcast()
