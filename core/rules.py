from __future__ import annotations

from typing import Optional, Sequence

from .cards import Card
from .models import EmptyTableauPolicy

# Placement predicates. They never raise and know nothing about turns;
# whose move it is gets enforced by the engine.


def top_card(pile: Sequence[Card]) -> Optional[Card]:
    return pile[-1] if pile else None


def is_valid_foundation_move(card: Card, top: Optional[Card] = None) -> bool:
    """Foundations build down in suit from a King."""
    if top is None:
        return card.rank == "K"
    if card.suit != top.suit:
        return False
    return top.value - card.value == 1


def is_valid_tableau_move(
    card: Card,
    top: Optional[Card] = None,
    empty_policy: EmptyTableauPolicy = EmptyTableauPolicy.KING_ONLY,
) -> bool:
    """Tableau piles build down in alternating colors."""
    if top is None:
        if empty_policy == EmptyTableauPolicy.ANY_CARD:
            return True
        return card.rank == "K"
    if card.color == top.color:
        return False
    return top.value - card.value == 1


def is_valid_sequence(cards: Sequence[Card]) -> bool:
    for current, below in zip(cards, cards[1:]):
        if current.color == below.color:
            return False
        if current.value - below.value != 1:
            return False
    return True


def is_foundation_pile(cards: Sequence[Card]) -> bool:
    """True when a foundation pile is King-based, single-suit, step one."""
    if not cards:
        return True
    if cards[0].rank != "K":
        return False
    return all(is_valid_foundation_move(card, prev) for prev, card in zip(cards, cards[1:]))
