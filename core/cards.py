from __future__ import annotations

import random
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

SUITS = ("hearts", "diamonds", "clubs", "spades")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANKS, start=1)}
RED_SUITS = frozenset({"hearts", "diamonds"})
DAILY_PREFIX = "daily-"


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str
    face_up: bool = False

    def __post_init__(self) -> None:
        if self.rank not in RANK_VALUE:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def id(self) -> str:
        return f"{self.rank}-{self.suit}"

    @property
    def color(self) -> str:
        return "red" if self.suit in RED_SUITS else "black"

    @property
    def value(self) -> int:
        return RANK_VALUE[self.rank]

    def flipped_up(self) -> "Card":
        return self if self.face_up else replace(self, face_up=True)


class SeededRandom:
    """Deterministic float stream derived from a seed string.

    The seed is folded into a signed 32-bit hash, which then drives a small
    LCG. The same seed always yields the same sequence, in any process.
    """

    MULTIPLIER = 9301
    INCREMENT = 49297
    MODULUS = 233280

    def __init__(self, seed: str) -> None:
        self.seed = seed
        self._state = _fold_seed(seed)

    def random(self) -> float:
        self._state = (self._state * self.MULTIPLIER + self.INCREMENT) % self.MODULUS
        return self._state / self.MODULUS


def _fold_seed(seed: str) -> int:
    acc = 0
    for ch in seed:
        acc = ((acc << 5) - acc) + ord(ch)
        acc = (acc + 2**31) % 2**32 - 2**31  # wrap to int32
    return acc


def _rng_for(seed: Optional[str]):
    if seed is None:
        return random.Random()
    return SeededRandom(seed)


def create_deck(seed: Optional[str] = None) -> List[Card]:
    deck = [Card(rank, suit) for suit in SUITS for rank in RANKS]
    return shuffle(deck, seed)


def shuffle(deck: Sequence[Card], seed: Optional[str] = None) -> List[Card]:
    shuffled = list(deck)
    rng = _rng_for(seed)
    for i in range(len(shuffled) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def deal(deck: List[Card], count: int) -> List[Card]:
    if len(deck) < count:
        raise ValueError("Not enough cards left in deck")
    cards = deck[:count]
    del deck[:count]
    return cards


def daily_seed(day: Optional[date] = None) -> str:
    if day is None:
        day = datetime.now(timezone.utc).date()
    return f"{DAILY_PREFIX}{day.isoformat()}"


def daily_seed_day(seed: Optional[str]) -> Optional[date]:
    """The challenge date encoded in a daily seed, or None for other seeds."""
    if not seed or not seed.startswith(DAILY_PREFIX):
        return None
    try:
        return date.fromisoformat(seed[len(DAILY_PREFIX) :])
    except ValueError:
        return None


def parse_id(card_id: str, face_up: bool = True) -> Card:
    rank, sep, suit = card_id.partition("-")
    if not sep:
        raise ValueError(f"Invalid card id: {card_id}")
    return Card(rank, suit, face_up)
