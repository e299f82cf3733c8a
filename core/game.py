from __future__ import annotations

from typing import List, Mapping, Optional, Sequence, Tuple, Union

from .cards import Card, create_deck, deal
from .models import (
    FOUNDATION_PILES,
    TABLEAU_PILES,
    ActionDecodeError,
    ActionType,
    Difficulty,
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
from .rules import is_valid_foundation_move, is_valid_sequence, is_valid_tableau_move, top_card

# GameEngine owns the Kings Corner rules. No networking, timing or storage
# lives here: every call takes a snapshot and hands back a new one.

FOUNDATION_POINTS = 100
MOVE_POINTS = 10

ActionLike = Union[MoveAction, Mapping[str, object]]


class GameEngine:
    """Kings Corner state machine for one match."""

    def __init__(self, config: Optional[GameConfig] = None) -> None:
        self.config = config or GameConfig()

    # Setup -----------------------------------------------------------

    def initialize_game(
        self,
        seed: Optional[str] = None,
        num_players: Optional[int] = None,
        players: Optional[Sequence[Player]] = None,
    ) -> GameState:
        if players is None:
            count = num_players if num_players is not None else self.config.num_players
            players = self.default_players(count)
        else:
            players = [Player(id=p.id, name=p.name, is_ai=p.is_ai, ai_difficulty=p.ai_difficulty) for p in players]
        if not 2 <= len(players) <= 4:
            raise ValueError("Kings Corner needs 2 to 4 players")

        deck = create_deck(seed)
        for player in players:
            player.hand = [card.flipped_up() for card in deal(deck, self.config.hand_size)]

        tableau: List[List[Card]] = []
        for _ in range(TABLEAU_PILES):
            tableau.append([deck.pop().flipped_up()])

        return GameState(
            deck=deck,
            tableau=tableau,
            foundations=[[] for _ in range(FOUNDATION_PILES)],
            players=list(players),
            seed=seed,
        )

    def default_players(self, count: int) -> List[Player]:
        players = [Player(id="P0", name="You")]
        for idx in range(1, count):
            name = "AI" if count == 2 else f"AI {idx}"
            players.append(
                Player(id=f"P{idx}", name=name, is_ai=True, ai_difficulty=self.config.ai_difficulty)
            )
        return players

    # Action handling -------------------------------------------------

    def apply_move(self, state: GameState, action: ActionLike) -> MoveResult:
        if not isinstance(action, MoveAction):
            try:
                action = MoveAction.from_payload(action)
            except ActionDecodeError as exc:
                return self._reject(state, exc.reason)

        if state.is_terminal:
            return self._reject(state, RejectReason.GAME_OVER)

        if action.type == ActionType.DRAW:
            return self._draw(state)
        if action.type == ActionType.MOVE_CARD:
            return self._move_card(state, action)
        if action.type == ActionType.END_TURN:
            return self._end_turn(state)
        return self._reject(state, RejectReason.UNKNOWN_ACTION_TYPE)

    def _reject(self, state: GameState, reason: RejectReason) -> MoveResult:
        return MoveResult(valid=False, state=state, error=reason.value)

    def _draw(self, state: GameState) -> MoveResult:
        if not state.deck:
            return self._reject(state, RejectReason.EMPTY_DECK)
        new_state = state.clone()
        card = new_state.deck.pop().flipped_up()
        new_state.current_player.hand.append(card)
        new_state.moves += 1
        self._check_winner(new_state)
        return MoveResult(valid=True, state=new_state)

    def _move_card(self, state: GameState, action: MoveAction) -> MoveResult:
        source, target, card_id = action.source, action.target, action.card_id
        if source is None or target is None or not card_id:
            return self._reject(state, RejectReason.INVALID_PARAMETERS)
        if target.type == PileType.HAND or not self._index_ok(source) or not self._index_ok(target):
            return self._reject(state, RejectReason.INVALID_PARAMETERS)
        if source == target:
            return self._reject(state, RejectReason.INVALID_MOVE)

        located = self._locate_run(state, source, card_id)
        if located is None:
            return self._reject(state, RejectReason.CARD_NOT_FOUND)
        start, run = located

        if target.type == PileType.FOUNDATION:
            if len(run) > 1:
                return self._reject(state, RejectReason.MULTI_CARD_TO_FOUNDATION)
            ok = is_valid_foundation_move(run[0], top_card(state.foundations[target.index]))
        else:
            ok = is_valid_tableau_move(
                run[0], top_card(state.tableau[target.index]), self.config.empty_tableau
            ) and is_valid_sequence(run)
        if not ok:
            return self._reject(state, RejectReason.INVALID_MOVE)

        new_state = state.clone()
        source_pile = self._pile(new_state, source)
        moved = source_pile[start : start + len(run)]
        del source_pile[start : start + len(run)]
        self._pile(new_state, target).extend(moved)

        new_state.moves += 1
        points = self._points_for(target)
        new_state.current_player.score += points
        new_state.score += points
        self._check_winner(new_state)
        return MoveResult(valid=True, state=new_state)

    def _end_turn(self, state: GameState) -> MoveResult:
        new_state = state.clone()
        if new_state.turn_phase == TurnPhase.PLAYING:
            new_state.turn_phase = TurnPhase.DRAWING
            if new_state.deck:
                card = new_state.deck.pop().flipped_up()
                new_state.current_player.hand.append(card)

        new_state.current_player_index = (new_state.current_player_index + 1) % len(new_state.players)
        if new_state.current_player_index == 0:
            new_state.round += 1
        new_state.turn_phase = TurnPhase.PLAYING
        self._check_winner(new_state)
        return MoveResult(valid=True, state=new_state)

    # Helpers ---------------------------------------------------------

    def _index_ok(self, ref: PileRef) -> bool:
        if ref.type == PileType.HAND:
            return True
        limit = TABLEAU_PILES if ref.type == PileType.TABLEAU else FOUNDATION_PILES
        return 0 <= ref.index < limit

    def _pile(self, state: GameState, ref: PileRef) -> List[Card]:
        # Hand references always mean the acting player's hand.
        if ref.type == PileType.HAND:
            return state.current_player.hand
        if ref.type == PileType.TABLEAU:
            return state.tableau[ref.index]
        return state.foundations[ref.index]

    def _locate_run(self, state: GameState, ref: PileRef, card_id: str) -> Optional[Tuple[int, List[Card]]]:
        pile = self._pile(state, ref)
        idx = next((i for i, card in enumerate(pile) if card.id == card_id), None)
        if idx is None:
            return None
        if ref.type == PileType.HAND:
            return idx, [pile[idx]]
        if ref.type == PileType.FOUNDATION:
            # Only the exposed card may leave a foundation.
            if idx != len(pile) - 1:
                return None
            return idx, [pile[idx]]
        return idx, list(pile[idx:])

    def _points_for(self, target: PileRef) -> int:
        if self.config.scoring == ScoringPolicy.PER_MOVE:
            return MOVE_POINTS
        return FOUNDATION_POINTS if target.type == PileType.FOUNDATION else 0

    def _check_winner(self, state: GameState) -> None:
        if state.winner is not None:
            return
        count = len(state.players)
        # The acting player gets first claim on the win.
        for offset in range(count):
            player = state.players[(state.current_player_index + offset) % count]
            if self._has_won(state, player):
                state.winner = player.id
                state.turn_phase = TurnPhase.ENDED
                return

    def _has_won(self, state: GameState, player: Player) -> bool:
        if player.hand:
            return False
        if self.config.win == WinPolicy.CLEAR_BOARD:
            return not state.deck and all(not pile for pile in state.tableau)
        return True

    # Read-only views -------------------------------------------------

    def player_difficulty(self, player: Player) -> Difficulty:
        return player.ai_difficulty or self.config.ai_difficulty


_DEFAULT_ENGINE = GameEngine()


def initialize_game(seed: Optional[str] = None, num_players: int = 2) -> GameState:
    return _DEFAULT_ENGINE.initialize_game(seed, num_players)


def apply_move(state: GameState, action: ActionLike) -> MoveResult:
    return _DEFAULT_ENGINE.apply_move(state, action)
