from typing import Dict, List, Optional
import logging

from models import AppState, Player

logger = logging.getLogger(__name__)


class ParticipantRegistry:
    """Participant membership plus the connection -> player binding map.

    Membership lives on ``AppState.participants`` so it is broadcast with the
    rest of the session; the bindings are transport bookkeeping and never
    leave the server.
    """

    def __init__(self):
        self.bindings: Dict[str, Player] = {}  # connection_id -> player

    def join(self, state: AppState, connection_id: str, player: Player) -> bool:
        """Bind the connection and add the player if unseen. Returns True if newly added."""
        if player.id in state.participants:
            self.bindings[connection_id] = state.participants[player.id]
            logger.info("Player %s (ID: %d) re-joined on %s", player.name, player.id, connection_id)
            return False
        self.bindings[connection_id] = player
        state.participants[player.id] = player
        logger.info("Participant added: %s (ID: %d)", player.name, player.id)
        return True

    def leave(self, state: AppState, player_id: int):
        """Drop the player from participants and permanent winners. Absent ids are fine."""
        state.participants.pop(player_id, None)
        if player_id in state.winners:
            state.winners.remove(player_id)

    def player_for(self, connection_id: str) -> Optional[Player]:
        return self.bindings.get(connection_id)

    def unbind(self, connection_id: str) -> Optional[Player]:
        return self.bindings.pop(connection_id, None)

    def connections_for(self, player_id: int) -> List[str]:
        """Connections currently bound to the player, oldest binding first."""
        return [cid for cid, p in self.bindings.items() if p.id == player_id]
