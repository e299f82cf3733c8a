import asyncio
import json
from http import HTTPStatus
from types import SimpleNamespace

import pytest

from core.cards import daily_seed
from core.models import Difficulty, EmptyTableauPolicy, GameConfig
from practice.records import MatchStore
from practice.server import PracticeServer, PracticeServerError, _process_request, build_config, parse_args

from .helpers import DummyWebSocket, make_state


def make_server(**config) -> PracticeServer:
    config.setdefault("ai_step_delay_ms", 0)
    return PracticeServer(GameConfig(**config), MatchStore())


def open_client(server: PracticeServer, **hello):
    hello.setdefault("type", "hello")
    hello.setdefault("player", "alice")
    socket = DummyWebSocket()
    return server.open_session(socket, hello), socket


def test_open_session_validates_hello():
    server = make_server()
    with pytest.raises(PracticeServerError) as exc:
        open_client(server, player="  ")
    assert exc.value.code == "BAD_SCHEMA"
    with pytest.raises(PracticeServerError) as exc:
        open_client(server, mode="ranked")
    assert exc.value.code == "BAD_MODE"
    with pytest.raises(PracticeServerError) as exc:
        open_client(server, difficulty="impossible")
    assert exc.value.code == "BAD_DIFFICULTY"


def test_open_session_applies_difficulty_and_seed():
    server = make_server()
    client, _ = open_client(server, difficulty="hard", seed="fixed")
    assert client.session.engine.config.ai_difficulty == Difficulty.HARD
    assert client.session.state.seed == "fixed"
    assert server.config.ai_difficulty == Difficulty.STANDARD
    assert server.store.get_match(client.session.match_id).player1_id == "alice"


def test_daily_mode_uses_date_seed():
    server = make_server()
    client, _ = open_client(server, mode="daily", seed="ignored")
    assert client.session.mode == "DAILY"
    assert client.session.state.seed == daily_seed()


def test_welcome_then_state():
    server = make_server()
    client, socket = open_client(server, seed="welcome")
    asyncio.run(server._send_welcome(client))
    welcome, state = socket.messages()
    assert welcome["type"] == "welcome"
    assert welcome["v"] == 1
    assert welcome["match_id"] == client.session.match_id
    assert welcome["seed"] == "welcome"
    assert welcome["config"]["empty_tableau"] == "king_only"
    assert state["type"] == "state"
    assert state["your_turn"] is True
    assert state["can_undo"] is False
    assert len(state["state"]["players"][0]["hand"]) == 7


def test_rejected_action_reports_engine_code():
    server = make_server()
    client, socket = open_client(server, seed="reject")
    bad = {"type": "move_card", "cardId": "K-hearts", "from": {"type": "hand"}, "to": {"type": "foundation", "index": 9}}
    asyncio.run(server.handle_message(client, {"type": "action", "action": bad}))
    [error] = socket.messages()
    assert error["type"] == "error"
    assert error["code"] == "InvalidParameters"


def test_schema_and_unknown_type_errors():
    server = make_server()
    client, socket = open_client(server)
    asyncio.run(server.handle_message(client, {"type": "action", "action": "draw"}))
    asyncio.run(server.handle_message(client, {"type": "chat"}))
    assert [message["code"] for message in socket.messages()] == ["BAD_SCHEMA", "UNKNOWN_TYPE"]


def test_move_then_undo():
    server = make_server()
    client, socket = open_client(server, seed="undo")
    client.session.state = make_state(hands=(("Kh", "2c"), ("3c",)))
    king = {"type": "move_card", "cardId": "K-hearts", "from": {"type": "hand"}, "to": {"type": "foundation", "index": 0}}
    asyncio.run(server.handle_message(client, {"type": "undo"}))
    asyncio.run(server.handle_message(client, {"type": "action", "action": king}))
    asyncio.run(server.handle_message(client, {"type": "undo"}))
    error, moved, undone = socket.messages()
    assert error["code"] == "NOTHING_TO_UNDO"
    assert moved["can_undo"] is True
    assert moved["state"]["foundations"][0][0]["id"] == "K-hearts"
    assert undone["can_undo"] is False
    assert undone["state"]["foundations"][0] == []


def test_draw_disables_undo():
    server = make_server()
    client, socket = open_client(server, seed="draw")
    asyncio.run(server.handle_message(client, {"type": "action", "action": {"type": "draw"}}))
    asyncio.run(server.handle_message(client, {"type": "undo"}))
    drawn, error = socket.messages()
    assert drawn["can_undo"] is False
    assert len(drawn["state"]["players"][0]["hand"]) == 8
    assert error["code"] == "NOTHING_TO_UNDO"


def test_ai_turn_crash_is_reported(caplog):
    server = make_server()
    client, socket = open_client(server, seed="crash")

    async def broken_ai(on_step=None, delay_ms=None):
        raise RuntimeError("selector exploded")

    client.session.run_ai_turns = broken_ai

    async def scenario():
        await server.handle_message(client, {"type": "action", "action": {"type": "end_turn"}})
        await client.ai_task

    asyncio.run(scenario())
    assert socket.types() == ["state", "error"]
    assert socket.messages()[-1]["code"] == "AI_FAILED"
    assert "AI turn crashed for alice" in caplog.text


def test_end_turn_runs_ai_and_returns_control():
    server = make_server(ai_difficulty=Difficulty.HARD)
    client, socket = open_client(server, seed="ai-turn")

    async def scenario():
        await server.handle_message(client, {"type": "action", "action": {"type": "end_turn"}})
        assert client.ai_task is not None
        # the task is scheduled but the AI still owns the turn
        await server.handle_message(client, {"type": "action", "action": {"type": "draw"}})
        await client.ai_task

    asyncio.run(scenario())
    messages = socket.messages()
    types = [message["type"] for message in messages]
    assert types[0] == "state"
    assert messages[0]["your_turn"] is False
    assert (messages[1]["type"], messages[1]["code"]) == ("error", "NotYourTurn")
    assert "ai_move" in types
    ai_moves = [message for message in messages if message["type"] == "ai_move"]
    assert ai_moves[-1]["action"]["type"] == "end_turn" or types[-1] == "match_end"
    final_state = [message for message in messages if message["type"] == "state"][-1]
    assert final_state["your_turn"] is True or types[-1] == "match_end"


def test_bad_hello_closes_connection():
    server = make_server()
    socket = DummyWebSocket([json.dumps({"type": "action"})])
    asyncio.run(server._handle_connection(socket))
    assert socket.closed
    [error] = socket.messages()
    assert error["code"] == "BAD_HELLO"


def test_full_connection_session():
    server = make_server()
    socket = DummyWebSocket(
        [
            json.dumps({"type": "hello", "v": 1, "player": "alice", "seed": "conn"}),
            json.dumps({"type": "state"}),
            "not json",
        ]
    )
    asyncio.run(server._handle_connection(socket))
    assert socket.types() == ["welcome", "state", "state", "error"]
    assert socket.messages()[-1]["code"] == "UNKNOWN_TYPE"


class FakeConnection:
    def respond(self, status, text):
        return status, text


def test_process_request_health_check():
    connection = FakeConnection()
    health = SimpleNamespace(path="/healthz", headers={})
    missing = SimpleNamespace(path="/nope", headers={})
    upgrade = SimpleNamespace(path="/", headers={"Upgrade": "websocket"})
    assert _process_request(connection, health)[0] == HTTPStatus.OK
    assert _process_request(connection, missing)[0] == HTTPStatus.NOT_FOUND
    assert _process_request(connection, upgrade) is None


def test_cli_builds_config():
    args = parse_args(["--difficulty", "HARD", "--empty-tableau", "any_card", "--ai-delay", "0", "--undo-limit", "5"])
    config = build_config(args)
    assert config.ai_difficulty == Difficulty.HARD
    assert config.empty_tableau == EmptyTableauPolicy.ANY_CARD
    assert config.ai_step_delay_ms == 0
    assert config.undo_limit == 5
    assert args.port == 9876
