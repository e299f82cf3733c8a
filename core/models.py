from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .cards import Card, parse_id

TABLEAU_PILES = 4
FOUNDATION_PILES = 4


class TurnPhase(str, Enum):
    PLAYING = "playing"
    DRAWING = "drawing"
    ENDED = "ended"


class ActionType(str, Enum):
    DRAW = "draw"
    MOVE_CARD = "move_card"
    END_TURN = "end_turn"


class PileType(str, Enum):
    HAND = "hand"
    TABLEAU = "tableau"
    FOUNDATION = "foundation"


class Difficulty(str, Enum):
    EASY = "EASY"
    STANDARD = "STANDARD"
    HARD = "HARD"


class EmptyTableauPolicy(str, Enum):
    KING_ONLY = "king_only"
    ANY_CARD = "any_card"


class ScoringPolicy(str, Enum):
    FOUNDATION = "foundation"  # +100 per card placed on a foundation
    PER_MOVE = "per_move"  # +10 per accepted card move


class WinPolicy(str, Enum):
    EMPTY_HAND = "empty_hand"
    CLEAR_BOARD = "clear_board"  # hand, deck and tableau all empty


class RejectReason(str, Enum):
    EMPTY_DECK = "EmptyDeck"
    CARD_NOT_FOUND = "CardNotFound"
    MULTI_CARD_TO_FOUNDATION = "MultiCardToFoundation"
    INVALID_MOVE = "InvalidMove"
    INVALID_PARAMETERS = "InvalidParameters"
    UNKNOWN_ACTION_TYPE = "UnknownActionType"
    GAME_OVER = "GameOver"


class ActionDecodeError(ValueError):
    def __init__(self, reason: RejectReason, msg: str) -> None:
        super().__init__(msg)
        self.reason = reason


@dataclass
class GameConfig:
    num_players: int = 2
    hand_size: int = 7
    empty_tableau: EmptyTableauPolicy = EmptyTableauPolicy.KING_ONLY
    scoring: ScoringPolicy = ScoringPolicy.FOUNDATION
    win: WinPolicy = WinPolicy.EMPTY_HAND
    ai_difficulty: Difficulty = Difficulty.STANDARD
    ai_step_delay_ms: int = 700
    ai_max_steps: int = 60
    undo_limit: int = 20


@dataclass
class Player:
    id: str
    name: str
    is_ai: bool = False
    hand: List[Card] = field(default_factory=list)
    score: int = 0
    ai_difficulty: Optional[Difficulty] = None

    def find_card(self, card_id: str) -> Optional[int]:
        for idx, card in enumerate(self.hand):
            if card.id == card_id:
                return idx
        return None


@dataclass
class GameState:
    deck: List[Card]
    tableau: List[List[Card]]
    foundations: List[List[Card]]
    players: List[Player]
    current_player_index: int = 0
    round: int = 1
    turn_phase: TurnPhase = TurnPhase.PLAYING
    winner: Optional[str] = None
    moves: int = 0
    score: int = 0
    seed: Optional[str] = None

    @property
    def current_player(self) -> Player:
        return self.players[self.current_player_index]

    @property
    def is_terminal(self) -> bool:
        return self.winner is not None

    def player_by_id(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def clone(self) -> "GameState":
        return copy.deepcopy(self)

    def all_card_ids(self) -> List[str]:
        ids = [card.id for card in self.deck]
        for player in self.players:
            ids.extend(card.id for card in player.hand)
        for pile in self.tableau + self.foundations:
            ids.extend(card.id for card in pile)
        return ids

    def position_key(self) -> Tuple[Tuple[str, ...], ...]:
        """Hashable view of where every card sits (face state ignored)."""
        piles = [self.deck] + [player.hand for player in self.players] + self.tableau + self.foundations
        return tuple(tuple(card.id for card in pile) for pile in piles)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "deck": [card_payload(card) for card in self.deck],
            "tableau": [[card_payload(card) for card in pile] for pile in self.tableau],
            "foundations": [[card_payload(card) for card in pile] for pile in self.foundations],
            "players": [
                {
                    "id": player.id,
                    "name": player.name,
                    "is_ai": player.is_ai,
                    "hand": [card_payload(card) for card in player.hand],
                    "score": player.score,
                    "ai_difficulty": player.ai_difficulty.value if player.ai_difficulty else None,
                }
                for player in self.players
            ],
            "current_player_index": self.current_player_index,
            "round": self.round,
            "turn_phase": self.turn_phase.value,
            "winner": self.winner,
            "moves": self.moves,
            "score": self.score,
            "seed": self.seed,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GameState":
        players = [
            Player(
                id=entry["id"],
                name=entry["name"],
                is_ai=bool(entry.get("is_ai", False)),
                hand=[card_from_payload(card) for card in entry.get("hand", [])],
                score=int(entry.get("score", 0)),
                ai_difficulty=Difficulty(entry["ai_difficulty"]) if entry.get("ai_difficulty") else None,
            )
            for entry in payload["players"]
        ]
        return cls(
            deck=[card_from_payload(card) for card in payload["deck"]],
            tableau=[[card_from_payload(card) for card in pile] for pile in payload["tableau"]],
            foundations=[[card_from_payload(card) for card in pile] for pile in payload["foundations"]],
            players=players,
            current_player_index=int(payload.get("current_player_index", 0)),
            round=int(payload.get("round", 1)),
            turn_phase=TurnPhase(payload.get("turn_phase", TurnPhase.PLAYING.value)),
            winner=payload.get("winner"),
            moves=int(payload.get("moves", 0)),
            score=int(payload.get("score", 0)),
            seed=payload.get("seed"),
        )


def card_payload(card: Card) -> Dict[str, Any]:
    return {
        "id": card.id,
        "rank": card.rank,
        "suit": card.suit,
        "color": card.color,
        "face_up": card.face_up,
    }


def card_from_payload(payload: Mapping[str, Any]) -> Card:
    return Card(payload["rank"], payload["suit"], bool(payload.get("face_up", False)))


@dataclass(frozen=True)
class PileRef:
    type: PileType
    index: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {"type": self.type.value, "index": self.index}


@dataclass(frozen=True)
class MoveAction:
    type: ActionType
    source: Optional[PileRef] = None
    target: Optional[PileRef] = None
    card_id: Optional[str] = None

    @classmethod
    def draw(cls) -> "MoveAction":
        return cls(ActionType.DRAW)

    @classmethod
    def end_turn(cls) -> "MoveAction":
        return cls(ActionType.END_TURN)

    @classmethod
    def move(cls, card_id: str, source: PileRef, target: PileRef) -> "MoveAction":
        return cls(ActionType.MOVE_CARD, source=source, target=target, card_id=card_id)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type.value}
        if self.type == ActionType.MOVE_CARD:
            payload["from"] = self.source.to_payload() if self.source else None
            payload["to"] = self.target.to_payload() if self.target else None
            payload["cardId"] = self.card_id
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MoveAction":
        if not isinstance(payload, Mapping):
            raise ActionDecodeError(RejectReason.UNKNOWN_ACTION_TYPE, "Action must be an object")
        try:
            action_type = ActionType(payload.get("type"))
        except ValueError:
            raise ActionDecodeError(
                RejectReason.UNKNOWN_ACTION_TYPE, f"Unknown action type {payload.get('type')!r}"
            ) from None

        if action_type != ActionType.MOVE_CARD:
            return cls(action_type)

        card_id = payload.get("cardId", payload.get("card_id"))
        if not isinstance(card_id, str) or not card_id:
            raise ActionDecodeError(RejectReason.INVALID_PARAMETERS, "cardId required")
        try:
            parse_id(card_id)
        except ValueError:
            raise ActionDecodeError(RejectReason.INVALID_PARAMETERS, f"Malformed cardId {card_id!r}") from None
        source = _pile_ref_from_payload(payload.get("from"), "from")
        target = _pile_ref_from_payload(payload.get("to"), "to")
        return cls(action_type, source=source, target=target, card_id=card_id)


def _pile_ref_from_payload(raw: Any, name: str) -> PileRef:
    if not isinstance(raw, Mapping):
        raise ActionDecodeError(RejectReason.INVALID_PARAMETERS, f"{name} required")
    try:
        pile_type = PileType(raw.get("type"))
    except ValueError:
        raise ActionDecodeError(RejectReason.INVALID_PARAMETERS, f"Bad {name}.type") from None
    index = raw.get("index", 0)
    if isinstance(index, bool) or not isinstance(index, int):
        raise ActionDecodeError(RejectReason.INVALID_PARAMETERS, f"Bad {name}.index")
    return PileRef(pile_type, index)


@dataclass
class MoveResult:
    valid: bool
    state: GameState
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"valid": self.valid, "state": self.state.to_payload()}
        if self.error is not None:
            payload["error"] = self.error
        return payload
