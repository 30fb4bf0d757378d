from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from typing import Dict, List
import json
import time
import logging

from models import Player, Quiz
from quiz_session import QuizSession
import config

logger = logging.getLogger(__name__)

ADMIN_MESSAGES = (
    "admin:startQuiz",
    "admin:forceEndQuiz",
    "admin:showResults",
    "admin:resetQuiz",
    "admin:resetWinner",
    "admin:resetAllWinners",
    "admin:forceLogoutParticipant",
    "admin:clearHistory",
)


def _player_id(message: dict):
    """Return message["playerId"] if it is a plain int, else None."""
    value = message.get("playerId")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


class SocketManager:
    """WebSocket transport and state broadcaster for the single quiz session."""

    def __init__(self):
        self.connections: Dict[str, WebSocket] = {}
        self.admin_ids: set = set()
        self.allowed_origins: List[str] = []
        # WS rate limiting: client_id -> list of timestamps
        self.msg_timestamps: Dict[str, list] = {}

    def _remove_connection(self, client_id: str):
        self.connections.pop(client_id, None)
        self.admin_ids.discard(client_id)
        self.msg_timestamps.pop(client_id, None)

    async def broadcast_state(self, state: dict):
        message = {"type": "stateUpdate", "state": state}
        disconnected = []
        for client_id, ws in list(self.connections.items()):
            try:
                await ws.send_json(message)
            except Exception:
                disconnected.append(client_id)
        for client_id in disconnected:
            logger.info("Dropping unreachable connection %s", client_id)
            self._remove_connection(client_id)

    async def force_logout(self, client_id: str) -> bool:
        """Tell one connection it has been logged out, then close it."""
        ws = self.connections.get(client_id)
        if ws is None:
            return False
        self._remove_connection(client_id)
        try:
            await ws.send_json({"type": "server:forceLogout"})
            await ws.close()
        except Exception:
            logger.info("Connection %s was already gone during forced logout", client_id)
        return True

    async def connect(self, websocket: WebSocket, session: QuizSession, client_id: str,
                      is_admin: bool = False):
        # Validate WebSocket origin
        origin = websocket.headers.get("origin", "")
        if self.allowed_origins and origin not in self.allowed_origins:
            logger.warning("Rejected WebSocket from unauthorized origin: %s", origin)
            await websocket.close(code=1008)
            return

        if client_id in self.connections:
            logger.warning("Rejected WebSocket with duplicate client id %s", client_id)
            await websocket.close(code=1008)
            return

        await websocket.accept()

        # Register and sync under the session lock so no broadcast slips in between
        async with session.lock:
            await websocket.send_json({"type": "stateUpdate", "state": session.snapshot()})
            self.connections[client_id] = websocket
            if is_admin:
                self.admin_ids.add(client_id)
        logger.info("Client connected: %s%s", client_id, " (admin)" if is_admin else "")

        try:
            while True:
                data = await websocket.receive_text()

                # Enforce message size limit
                if len(data.encode("utf-8")) > config.MAX_WS_MESSAGE_SIZE:
                    logger.warning("Oversized message from client %s dropped", client_id)
                    continue

                # Per-client rate limiting
                now = time.time()
                timestamps = self.msg_timestamps.setdefault(client_id, [])
                timestamps[:] = [t for t in timestamps if now - t < 1.0]
                if len(timestamps) >= config.WS_RATE_LIMIT_PER_SEC:
                    logger.warning("Rate limit hit by client %s; message dropped", client_id)
                    continue
                timestamps.append(now)

                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    logger.warning("Malformed JSON from client %s: %s", client_id, data[:100])
                    continue
                if not isinstance(message, dict):
                    logger.warning("Non-object message from client %s dropped", client_id)
                    continue

                await self.handle_message(session, client_id, message)
        except WebSocketDisconnect:
            logger.info("Client %s disconnected", client_id)
        except Exception:
            logger.exception("WebSocket error for client %s", client_id)
        finally:
            # A newer socket may have taken over this id after we were dropped
            current = self.connections.get(client_id)
            if current is websocket:
                self._remove_connection(client_id)
            if current is None or current is websocket:
                await session.disconnect(client_id)

    async def handle_message(self, session: QuizSession, client_id: str, message: dict):
        msg_type = message.get("type")

        if msg_type in ADMIN_MESSAGES:
            if client_id not in self.admin_ids:
                logger.warning("Admin message %s from non-admin client %s ignored", msg_type, client_id)
                return
            await self._handle_admin(session, msg_type, message)

        elif msg_type == "participant:join":
            try:
                player = Player.model_validate(message.get("player"))
            except ValidationError as e:
                logger.warning("Invalid join from client %s: %s", client_id, e.errors()[:1])
                return
            await session.join(client_id, player)

        elif msg_type == "participant:submitAnswer":
            await session.submit_answer(client_id, message.get("answerIndex"))

        else:
            logger.warning("Unknown message type from client %s: %r", client_id, msg_type)

    async def _handle_admin(self, session: QuizSession, msg_type: str, message: dict):
        logger.info("Admin command received: %s", msg_type)

        if msg_type == "admin:startQuiz":
            try:
                quiz = Quiz.model_validate(message.get("quiz"))
            except ValidationError as e:
                logger.warning("startQuiz rejected: invalid quiz data: %s", e.errors()[:1])
                return
            await session.start_quiz(quiz)

        elif msg_type == "admin:forceEndQuiz":
            await session.force_end_quiz()

        elif msg_type == "admin:showResults":
            await session.show_results()

        elif msg_type == "admin:resetQuiz":
            await session.reset_quiz()

        elif msg_type == "admin:resetAllWinners":
            await session.reset_all_winners()

        elif msg_type == "admin:clearHistory":
            await session.clear_history()

        elif msg_type in ("admin:resetWinner", "admin:forceLogoutParticipant"):
            player_id = _player_id(message)
            if player_id is None:
                logger.warning("%s ignored: missing or invalid playerId", msg_type)
                return
            if msg_type == "admin:resetWinner":
                await session.reset_winner(player_id)
            else:
                await session.force_logout_participant(player_id)
