"""Kings Corner engine primitives reused by the practice server and scripts."""

from .cards import Card, RANKS, SUITS, create_deck, daily_seed, deal, shuffle
from .game import GameEngine, apply_move, initialize_game
from .models import (
    ActionType,
    Difficulty,
    EmptyTableauPolicy,
    GameConfig,
    GameState,
    MoveAction,
    MoveResult,
    PileRef,
    PileType,
    Player,
    RejectReason,
    ScoringPolicy,
    TurnPhase,
    WinPolicy,
)
from .rules import is_valid_foundation_move, is_valid_sequence, is_valid_tableau_move

__all__ = [
    "Card",
    "RANKS",
    "SUITS",
    "create_deck",
    "daily_seed",
    "deal",
    "shuffle",
    "GameEngine",
    "apply_move",
    "initialize_game",
    "ActionType",
    "Difficulty",
    "EmptyTableauPolicy",
    "GameConfig",
    "GameState",
    "MoveAction",
    "MoveResult",
    "PileRef",
    "PileType",
    "Player",
    "RejectReason",
    "ScoringPolicy",
    "TurnPhase",
    "WinPolicy",
    "is_valid_foundation_move",
    "is_valid_sequence",
    "is_valid_tableau_move",
]
