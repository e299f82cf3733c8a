"""Human-vs-AI play: the AI opponent, the turn orchestrator and its server."""

from .bots import AIOpponent, select_move
from .records import MatchStore
from .session import GameSession

__all__ = ["AIOpponent", "select_move", "MatchStore", "GameSession"]
