import asyncio
import logging
from datetime import date

from core.game import GameEngine
from core.models import ActionType, Difficulty, GameConfig, MoveAction
from practice.records import MatchStore
from practice.session import AI_TURN_IN_PROGRESS, NOT_YOUR_TURN, GameSession

from .helpers import create_engine, fnd, hand, make_state, move


def ai_ready_session(**config):
    # AI to move with exactly one useful play: Qs onto the Ks foundation.
    config.setdefault("ai_difficulty", Difficulty.HARD)
    engine = create_engine(**config)
    state = make_state(
        hands=(("2c", "3d"), ("Qs", "5h")),
        foundations=(("Ks",), (), (), ()),
        current=1,
    )
    return GameSession(engine, state)


def human_session(*labels: str, **config) -> GameSession:
    return GameSession(create_engine(**config), make_state(hands=(labels, ("3c",))))


def test_human_moves_push_history_and_undo_restores():
    session = human_session("Kh", "Qs", "2c")
    initial = session.state
    assert session.is_human_turn

    result = session.submit(move("Kh", hand(), fnd(0)))
    assert result.valid
    assert len(session.history) == 1

    assert session.undo() is True
    assert session.state is initial
    assert session.undo() is False


def test_draw_cannot_be_undone():
    session = human_session("Kh", "2c")
    session.submit(move("Kh", hand(), fnd(0)))
    result = session.submit(MoveAction.draw())
    assert result.valid
    assert len(session.history) == 0
    assert session.undo() is False
    assert len(session.state.players[0].hand) == 2


def test_rejected_moves_do_not_touch_history():
    session = GameSession.start(GameConfig(), seed="reject")
    result = session.submit({"type": "move_card", "cardId": "nope"})
    assert not result.valid
    assert result.error == "InvalidParameters"
    assert len(session.history) == 0


def test_history_is_bounded():
    session = human_session("Kh", "Qs", "Jh", "2c", undo_limit=2)
    for label in ("Kh", "Qs", "Jh"):
        assert session.submit(move(label, hand(), fnd(0))).valid
    assert len(session.history) == 2


def test_end_turn_clears_history_and_blocks_human():
    session = human_session("Kh", "2c")
    session.submit(move("Kh", hand(), fnd(0)))
    assert len(session.history) == 1
    result = session.submit(MoveAction.end_turn())
    assert result.valid
    assert len(session.history) == 0
    assert not session.is_human_turn
    assert session.undo() is False

    blocked = session.submit(MoveAction.draw())
    assert blocked.error == NOT_YOUR_TURN
    assert blocked.state is session.state


def test_play_ai_turns_hands_control_back():
    session = GameSession.start(GameConfig(ai_difficulty=Difficulty.HARD), seed="handback")
    session.submit(MoveAction.end_turn())
    steps = session.play_ai_turns()
    assert steps
    assert steps[-1][0].type == ActionType.END_TURN or session.is_over
    assert session.is_human_turn or session.is_over


def test_ai_turn_blocks_human_until_finished():
    session = ai_ready_session()
    steps = session.ai_turn_steps()
    action, result = next(steps)
    assert action == move("Qs", hand(), fnd(0))
    assert result.valid
    assert session.ai_turn_in_progress

    blocked = session.submit(MoveAction.draw())
    assert blocked.error == AI_TURN_IN_PROGRESS

    rest = list(steps)
    assert [a.type for a, _ in rest] == [ActionType.END_TURN]
    assert not session.ai_turn_in_progress
    assert session.is_human_turn
    # end_turn drew one card for the AI
    assert len(session.state.players[1].hand) == 2


def test_ai_turn_stops_on_repeated_position():
    engine = create_engine(ai_difficulty=Difficulty.HARD)
    state = make_state(
        hands=(("2c",), ("2d",)),
        tableau=(("8s", "7h"), ("8c",), ("Jd",), ("Jh",)),
        current=1,
    )
    session = GameSession(engine, state)
    steps = list(session.ai_turn_steps())
    assert [a.type for a, _ in steps] == [ActionType.MOVE_CARD, ActionType.END_TURN]
    assert session.is_human_turn


def test_ai_step_cap():
    session = ai_ready_session(ai_max_steps=0)
    steps = list(session.ai_turn_steps())
    assert [a.type for a, _ in steps] == [ActionType.END_TURN]


def test_run_ai_turns_reports_each_step():
    session = ai_ready_session(ai_step_delay_ms=0)
    seen = []

    async def on_step(action, state):
        seen.append((action.type, state.moves))

    steps = asyncio.run(session.run_ai_turns(on_step=on_step))
    assert len(steps) == len(seen) == 2
    assert seen[0] == (ActionType.MOVE_CARD, 1)
    assert session.is_human_turn


def test_store_tracks_win_for_player():
    store = MatchStore()
    engine = GameEngine()
    state = make_state(hands=(("Kh",), ("3c",)))
    session = GameSession(engine, state, store, user_id="alice")
    assert store.get_match(session.match_id).status == "ACTIVE"

    session.submit(move("Kh", hand(), fnd(0)))
    assert session.is_over
    record = store.get_match(session.match_id)
    assert record.status == "COMPLETE"
    assert record.winner_id == "alice"
    assert record.player1_score == 100
    assert record.total_moves == 1
    assert record.final_state["winner"] == "P0"
    profile = store.get_profile("alice")
    assert (profile.wins, profile.losses, profile.win_streak, profile.games_played) == (1, 0, 1, 1)


def test_store_tracks_ai_win_as_loss():
    store = MatchStore()
    engine = create_engine(ai_difficulty=Difficulty.HARD)
    state = make_state(hands=(("2c",), ("Kh",)), current=1)
    session = GameSession(engine, state, store, user_id="bob")
    session.play_ai_turns()
    assert session.state.winner == "P1"
    assert store.get_match(session.match_id).winner_id == "P1"
    assert store.get_profile("bob").losses == 1


def test_daily_mode_submits_leaderboard_score():
    store = MatchStore()
    state = make_state(hands=(("Kh",), ("3c",)))
    session = GameSession(GameEngine(), state, store, user_id="carol", mode="DAILY")
    session.submit(move("Kh", hand(), fnd(0)))
    board = store.daily_leaderboard()
    assert [entry.user_id for entry in board] == ["carol"]
    assert board[0].score == 100


def test_daily_score_lands_on_the_seed_day():
    store = MatchStore()
    state = make_state(hands=(("Kh",), ("3c",)))
    state.seed = "daily-2020-01-01"
    session = GameSession(GameEngine(), state, store, user_id="carol", mode="DAILY")
    session.submit(move("Kh", hand(), fnd(0)))
    assert [entry.user_id for entry in store.daily_leaderboard(date(2020, 1, 1))] == ["carol"]
    assert store.daily_leaderboard() == []


class BrokenStore(MatchStore):
    def record_state(self, match_id, state):
        raise RuntimeError("database unavailable")


def test_store_failures_are_logged_not_raised(caplog):
    session = GameSession(GameEngine(), make_state(hands=(("Kh", "2c"), ("3c",))), BrokenStore())
    with caplog.at_level(logging.ERROR, logger="kings_corner_session"):
        result = session.submit(move("Kh", hand(), fnd(0)))
    assert result.valid
    assert "Match store call record_state failed" in caplog.text
