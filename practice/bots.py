from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.models import (
    FOUNDATION_PILES,
    TABLEAU_PILES,
    ActionType,
    Difficulty,
    EmptyTableauPolicy,
    GameState,
    MoveAction,
    PileRef,
    PileType,
)
from core.rules import is_valid_foundation_move, is_valid_sequence, is_valid_tableau_move, top_card

_RNG = random.Random()

DRAW_SCORE = -5
FOUNDATION_BONUS = 100
FROM_HAND_BONUS = 50
EMPTIES_PILE_BONUS = 20
ACE_BONUS = 10


@dataclass
class ScoredMove:
    action: MoveAction
    score: int


def generate_moves(
    state: GameState,
    empty_policy: EmptyTableauPolicy = EmptyTableauPolicy.KING_ONLY,
) -> List[MoveAction]:
    """Every legal card move for the player whose turn it is."""
    moves: List[MoveAction] = []
    hand_ref = PileRef(PileType.HAND)

    for card in state.current_player.hand:
        for f in range(FOUNDATION_PILES):
            if is_valid_foundation_move(card, top_card(state.foundations[f])):
                moves.append(MoveAction.move(card.id, hand_ref, PileRef(PileType.FOUNDATION, f)))
        for t in range(TABLEAU_PILES):
            if is_valid_tableau_move(card, top_card(state.tableau[t]), empty_policy):
                moves.append(MoveAction.move(card.id, hand_ref, PileRef(PileType.TABLEAU, t)))

    for from_t, pile in enumerate(state.tableau):
        source = PileRef(PileType.TABLEAU, from_t)
        for start in range(len(pile)):
            run = pile[start:]
            base = run[0]
            if len(run) == 1:
                for f in range(FOUNDATION_PILES):
                    if is_valid_foundation_move(base, top_card(state.foundations[f])):
                        moves.append(MoveAction.move(base.id, source, PileRef(PileType.FOUNDATION, f)))
            if not is_valid_sequence(run):
                continue
            for to_t in range(TABLEAU_PILES):
                if to_t == from_t:
                    continue
                if is_valid_tableau_move(base, top_card(state.tableau[to_t]), empty_policy):
                    moves.append(MoveAction.move(base.id, source, PileRef(PileType.TABLEAU, to_t)))

    return moves


def score_move(state: GameState, action: MoveAction) -> int:
    """Rank a candidate by its immediate effect. No lookahead."""
    if action.type == ActionType.DRAW:
        return DRAW_SCORE
    if action.type != ActionType.MOVE_CARD or action.source is None or action.target is None:
        return 0

    score = 0
    if action.target.type == PileType.FOUNDATION:
        score += FOUNDATION_BONUS
    if action.source.type == PileType.HAND:
        score += FROM_HAND_BONUS
    if action.source.type == PileType.TABLEAU:
        pile = state.tableau[action.source.index]
        if len(pile) == 1 and pile[0].id == action.card_id:
            score += EMPTIES_PILE_BONUS  # frees the spot for a King

    card = _find_card(state, action)
    if card is not None and card.value == 1:
        score += ACE_BONUS
    return score


def _find_card(state: GameState, action: MoveAction):
    assert action.source is not None
    if action.source.type == PileType.HAND:
        pile = state.current_player.hand
    elif action.source.type == PileType.TABLEAU:
        pile = state.tableau[action.source.index]
    else:
        pile = state.foundations[action.source.index]
    return next((card for card in pile if card.id == action.card_id), None)


def _select_easy(scored: Sequence[ScoredMove], rng: random.Random) -> MoveAction:
    weights = [max(1, move.score + 10) for move in scored]
    roll = rng.random() * sum(weights)
    for move, weight in zip(scored, weights):
        roll -= weight
        if roll <= 0:
            return move.action
    return scored[-1].action


def _select_standard(scored: Sequence[ScoredMove], rng: random.Random) -> MoveAction:
    ranked = sorted(scored, key=lambda move: move.score, reverse=True)
    top_half = ranked[: max(1, math.ceil(len(ranked) / 2))]
    return top_half[int(rng.random() * len(top_half))].action


def _select_hard(scored: Sequence[ScoredMove]) -> MoveAction:
    # sorted() is stable, so ties keep enumeration order.
    return sorted(scored, key=lambda move: move.score, reverse=True)[0].action


def select_move(
    state: GameState,
    difficulty: Difficulty = Difficulty.STANDARD,
    rng: Optional[random.Random] = None,
    empty_policy: EmptyTableauPolicy = EmptyTableauPolicy.KING_ONLY,
) -> Optional[MoveAction]:
    """Pick the next action for the current player, or None when stuck."""
    rng = rng or _RNG
    candidates = generate_moves(state, empty_policy)
    if not candidates:
        return MoveAction.draw() if state.deck else None

    scored = [ScoredMove(action, score_move(state, action)) for action in candidates]
    if difficulty == Difficulty.EASY:
        return _select_easy(scored, rng)
    if difficulty == Difficulty.HARD:
        return _select_hard(scored)
    return _select_standard(scored, rng)


class AIOpponent:
    """Configured selector: one difficulty, one rng."""

    def __init__(
        self,
        difficulty: Difficulty = Difficulty.STANDARD,
        rng: Optional[random.Random] = None,
        empty_policy: EmptyTableauPolicy = EmptyTableauPolicy.KING_ONLY,
    ) -> None:
        self.difficulty = difficulty
        self.rng = rng or _RNG
        self.empty_policy = empty_policy

    def select_move(self, state: GameState) -> Optional[MoveAction]:
        return select_move(state, self.difficulty, self.rng, self.empty_policy)
