from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Iterator, List, Optional, Tuple

from core.cards import daily_seed_day
from core.game import ActionLike, GameEngine
from core.models import ActionDecodeError, ActionType, GameConfig, GameState, MoveAction, MoveResult
from practice.bots import AIOpponent
from practice.records import MatchStore

LOGGER = logging.getLogger("kings_corner_session")

AI_TURN_IN_PROGRESS = "AITurnInProgress"
NOT_YOUR_TURN = "NotYourTurn"

StepCallback = Callable[[MoveAction, GameState], Awaitable[None]]
AIStep = Tuple[MoveAction, MoveResult]

# GameSession sequences human and AI turns around the pure engine. It holds
# the current snapshot, the undo stack and the match record id; the engine
# itself stays stateless.


class GameSession:
    """One human-vs-AI match."""

    def __init__(
        self,
        engine: GameEngine,
        state: GameState,
        store: Optional[MatchStore] = None,
        *,
        user_id: Optional[str] = None,
        mode: str = "AI",
        rng: Optional[random.Random] = None,
    ) -> None:
        self.engine = engine
        self.state = state
        self.store = store
        self.mode = mode
        self.user_id = user_id or state.players[0].id
        self.history: Deque[GameState] = deque(maxlen=max(engine.config.undo_limit, 0))
        self.ai_turn_in_progress = False
        self.started_at = time.monotonic()
        self.opponents: Dict[str, AIOpponent] = {
            player.id: AIOpponent(engine.player_difficulty(player), rng, engine.config.empty_tableau)
            for player in state.players
            if player.is_ai
        }
        self.match_id: Optional[str] = None
        if store is not None:
            self.match_id = self._store_call(
                store.start_match,
                mode,
                self.user_id,
                state.seed,
                engine.config.ai_difficulty,
            )
            if self.match_id:
                self._store_call(store.record_state, self.match_id, state)

    @classmethod
    def start(
        cls,
        config: Optional[GameConfig] = None,
        seed: Optional[str] = None,
        store: Optional[MatchStore] = None,
        **kwargs: Any,
    ) -> "GameSession":
        engine = GameEngine(config)
        state = engine.initialize_game(seed)
        return cls(engine, state, store, **kwargs)

    @property
    def is_over(self) -> bool:
        return self.state.is_terminal

    @property
    def is_human_turn(self) -> bool:
        return not self.is_over and not self.state.current_player.is_ai

    # Human actions ---------------------------------------------------

    def submit(self, action: ActionLike) -> MoveResult:
        if self.ai_turn_in_progress:
            return MoveResult(valid=False, state=self.state, error=AI_TURN_IN_PROGRESS)
        if not self.is_over and self.state.current_player.is_ai:
            return MoveResult(valid=False, state=self.state, error=NOT_YOUR_TURN)

        if not isinstance(action, MoveAction):
            try:
                action = MoveAction.from_payload(action)
            except ActionDecodeError as exc:
                return MoveResult(valid=False, state=self.state, error=exc.reason.value)

        before = self.state
        result = self.engine.apply_move(before, action)
        if not result.valid:
            return result

        # Draws reveal a deck card and are final.
        if action.type in (ActionType.DRAW, ActionType.END_TURN):
            self.history.clear()
        elif self.history.maxlen:
            self.history.append(before)
        self._commit(result)
        return result

    def undo(self) -> bool:
        if self.ai_turn_in_progress or not self.history or not self.is_human_turn:
            return False
        self.state = self.history.pop()
        self._record()
        return True

    # AI turns --------------------------------------------------------

    def ai_turn_steps(self) -> Iterator[AIStep]:
        """Play one AI turn, yielding after every accepted action.

        The turn stops when the AI has nothing but a draw left, would return
        to a position it already produced this turn, or hits the step cap.
        It always finishes with end_turn unless the game ended first.
        """
        if self.is_over or not self.state.current_player.is_ai:
            return
        opponent = self.opponents[self.state.current_player.id]
        seen = {self.state.position_key()}
        self.ai_turn_in_progress = True
        try:
            for _ in range(self.engine.config.ai_max_steps):
                action = opponent.select_move(self.state)
                if action is None or action.type == ActionType.DRAW:
                    break
                result = self.engine.apply_move(self.state, action)
                if not result.valid:
                    LOGGER.warning("AI proposed rejected action %s: %s", action, result.error)
                    break
                key = result.state.position_key()
                if key in seen:
                    break
                seen.add(key)
                self._commit(result)
                yield action, result
                if self.is_over:
                    return

            end = MoveAction.end_turn()
            result = self.engine.apply_move(self.state, end)
            self._commit(result)
            yield end, result
        finally:
            self.ai_turn_in_progress = False

    def play_ai_turns(self, max_turns: Optional[int] = None) -> List[AIStep]:
        # max_turns bounds all-AI tables, which can stall once the deck is gone.
        steps: List[AIStep] = []
        turns = 0
        while not self.is_over and self.state.current_player.is_ai:
            if max_turns is not None and turns >= max_turns:
                break
            steps.extend(self.ai_turn_steps())
            turns += 1
        return steps

    async def run_ai_turns(
        self,
        on_step: Optional[StepCallback] = None,
        delay_ms: Optional[int] = None,
    ) -> List[AIStep]:
        if delay_ms is None:
            delay_ms = self.engine.config.ai_step_delay_ms
        steps: List[AIStep] = []
        while not self.is_over and self.state.current_player.is_ai:
            for action, result in self.ai_turn_steps():
                if delay_ms > 0:
                    await asyncio.sleep(delay_ms / 1000)
                steps.append((action, result))
                if on_step is not None:
                    await on_step(action, result.state)
        return steps

    # Bookkeeping -----------------------------------------------------

    def elapsed_seconds(self) -> int:
        return int(time.monotonic() - self.started_at)

    def _commit(self, result: MoveResult) -> None:
        self.state = result.state
        self._record()
        if self.is_over:
            self._finish()

    def _record(self) -> None:
        if self.store is not None and self.match_id:
            self._store_call(self.store.record_state, self.match_id, self.state)

    def _finish(self) -> None:
        human = self.state.players[0]
        winner = self.state.winner
        LOGGER.info("Match %s finished; winner=%s moves=%s", self.match_id, winner, self.state.moves)
        if self.store is None or not self.match_id:
            return
        winner_id = self.user_id if winner == human.id else winner
        self._store_call(
            self.store.finish_match,
            self.match_id,
            winner_id,
            human.score,
            self.state.moves,
            self.state,
        )
        if self.mode == "DAILY":
            self._store_call(
                self.store.submit_daily_score,
                daily_seed_day(self.state.seed),
                self.user_id,
                human.score,
                self.state.moves,
                self.elapsed_seconds(),
                winner == human.id,
            )

    def _store_call(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Match store call %s failed: %s", fn.__name__, exc)
            return None
