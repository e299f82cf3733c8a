from __future__ import annotations

import json
from typing import List, Optional, Sequence

from websockets.exceptions import ConnectionClosed

from core.cards import RANKS, SUITS, Card
from core.game import GameEngine
from core.models import GameConfig, GameState, MoveAction, PileRef, PileType, Player

SUIT_CODES = {"h": "hearts", "d": "diamonds", "c": "clubs", "s": "spades"}


def c(label: str, face_up: bool = True) -> Card:
    """Card shorthand: c("Qs") is the Queen of spades, c("10h") the ten of hearts."""
    return Card(label[:-1], SUIT_CODES[label[-1]], face_up)


def cards(*labels: str) -> List[Card]:
    return [c(label) for label in labels]


def make_state(
    *,
    hands: Sequence[Sequence[str]] = ((), ()),
    tableau: Sequence[Sequence[str]] = ((), (), (), ()),
    foundations: Sequence[Sequence[str]] = ((), (), (), ()),
    deck: Optional[Sequence[str]] = None,
    current: int = 0,
) -> GameState:
    """Build a conserved 52-card state; unplaced cards go to the deck unless deck is given."""
    players = [
        Player(id=f"P{idx}", name="You" if idx == 0 else "AI", is_ai=idx != 0, hand=cards(*hand))
        for idx, hand in enumerate(hands)
    ]
    tableau_piles = [cards(*pile) for pile in tableau]
    foundation_piles = [cards(*pile) for pile in foundations]
    if deck is None:
        used = {card.id for player in players for card in player.hand}
        used.update(card.id for pile in tableau_piles + foundation_piles for card in pile)
        deck_cards = [Card(rank, suit) for suit in SUITS for rank in RANKS if f"{rank}-{suit}" not in used]
    else:
        deck_cards = [c(label, face_up=False) for label in deck]
    return GameState(
        deck=deck_cards,
        tableau=tableau_piles,
        foundations=foundation_piles,
        players=players,
        current_player_index=current,
    )


def create_engine(**overrides) -> GameEngine:
    return GameEngine(GameConfig(**overrides))


def hand(index: int = 0) -> PileRef:
    return PileRef(PileType.HAND, index)


def tab(index: int) -> PileRef:
    return PileRef(PileType.TABLEAU, index)


def fnd(index: int) -> PileRef:
    return PileRef(PileType.FOUNDATION, index)


def move(card_label: str, source: PileRef, target: PileRef) -> MoveAction:
    return MoveAction.move(c(card_label).id, source, target)


class DummyWebSocket:
    def __init__(self, incoming: Sequence[str] = ()) -> None:
        self.sent: List[str] = []
        self.closed = False
        self.incoming = list(incoming)

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def recv(self) -> str:
        if not self.incoming:
            raise ConnectionClosed(None, None)
        return self.incoming.pop(0)

    async def close(self, *args, **kwargs) -> None:
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while self.incoming:
            yield self.incoming.pop(0)

    def messages(self) -> List[dict]:
        return [json.loads(raw) for raw in self.sent]

    def types(self) -> List[str]:
        return [message["type"] for message in self.messages()]
