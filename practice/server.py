from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, Optional

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from core.cards import daily_seed
from core.models import (
    Difficulty,
    EmptyTableauPolicy,
    GameConfig,
    GameState,
    MoveAction,
    ScoringPolicy,
    WinPolicy,
)
from practice.records import MatchStore
from practice.session import GameSession

LOGGER = logging.getLogger("kings_corner_practice")

MODES = ("AI", "DAILY")

# PracticeServer glues GameSession to a WebSocket client. Every network
# concern lives here; the engine and session never see a socket.


def _config_payload(config: GameConfig) -> Dict[str, Any]:
    return {
        "num_players": config.num_players,
        "hand_size": config.hand_size,
        "empty_tableau": config.empty_tableau.value,
        "scoring": config.scoring.value,
        "win": config.win.value,
        "difficulty": config.ai_difficulty.value,
        "undo_limit": config.undo_limit,
    }


class PracticeServerError(Exception):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg


@dataclass
class PracticeClient:
    player: str
    websocket: ServerConnection
    session: GameSession
    ai_task: Optional[asyncio.Task] = None


class PracticeServer:
    """Hosts human-vs-AI Kings Corner matches, one session per connection."""

    def __init__(self, config: GameConfig, store: Optional[MatchStore] = None) -> None:
        self.config = config
        self.store = store if store is not None else MatchStore()

    async def start(self, host: str = "0.0.0.0", port: int = 9876) -> None:
        async with serve(self._handle_connection, host, port, process_request=_process_request):
            LOGGER.info("Practice server listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        try:
            client = self.open_session(websocket, hello)
        except PracticeServerError as exc:
            await self._send_error(websocket, code=exc.code, msg=exc.msg)
            await websocket.close()
            return

        await self._send_welcome(client)
        try:
            async for raw in websocket:
                await self.handle_message(client, self._decode(raw))
        except ConnectionClosed:
            pass
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Practice session crashed for %s: %s", client.player, exc)
        finally:
            if client.ai_task and not client.ai_task.done():
                client.ai_task.cancel()
        LOGGER.info("Player %s disconnected", client.player)

    def open_session(self, websocket: ServerConnection, hello: Dict[str, Any]) -> PracticeClient:
        player_raw = hello.get("player")
        player = player_raw.strip() if isinstance(player_raw, str) else ""
        if not player:
            raise PracticeServerError("BAD_SCHEMA", "player required")

        mode_raw = hello.get("mode") or "AI"
        mode = mode_raw.strip().upper() if isinstance(mode_raw, str) else ""
        if mode not in MODES:
            raise PracticeServerError("BAD_MODE", "mode must be AI or DAILY")

        config = self.config
        difficulty_raw = hello.get("difficulty")
        if difficulty_raw is not None:
            try:
                difficulty = Difficulty(str(difficulty_raw).strip().upper())
            except ValueError:
                raise PracticeServerError("BAD_DIFFICULTY", "difficulty must be EASY, STANDARD or HARD") from None
            config = replace(config, ai_difficulty=difficulty)

        if mode == "DAILY":
            seed: Optional[str] = daily_seed()
        else:
            seed_raw = hello.get("seed")
            seed = seed_raw if isinstance(seed_raw, str) and seed_raw else None

        session = GameSession.start(config, seed=seed, store=self.store, user_id=player, mode=mode)
        LOGGER.info(
            "Match %s started for %s (mode=%s difficulty=%s seed=%s)",
            session.match_id,
            player,
            mode,
            config.ai_difficulty.value,
            seed,
        )
        return PracticeClient(player=player, websocket=websocket, session=session)

    async def handle_message(self, client: PracticeClient, message: Dict[str, Any]) -> None:
        msg_type = message.get("type")
        if msg_type == "action":
            await self._handle_action(client, message.get("action"))
        elif msg_type == "undo":
            await self._handle_undo(client)
        elif msg_type == "state":
            await self._send_state(client)
        else:
            await self._send_error(client.websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")

    async def _handle_action(self, client: PracticeClient, action: Any) -> None:
        session = client.session
        if not isinstance(action, dict):
            await self._send_error(client.websocket, code="BAD_SCHEMA", msg="action object required")
            return
        result = session.submit(action)
        if not result.valid:
            LOGGER.warning("Rejected action player=%s action=%s reason=%s", client.player, action, result.error)
            await self._send_error(client.websocket, code=result.error or "INVALID_ACTION", msg="Action rejected")
            return

        LOGGER.debug("Applied action player=%s action=%s moves=%s", client.player, action, result.state.moves)
        await self._send_state(client)
        if session.is_over:
            await self._send_match_end(client)
        elif session.state.current_player.is_ai:
            client.ai_task = asyncio.create_task(self._run_ai(client))

    async def _handle_undo(self, client: PracticeClient) -> None:
        if not client.session.undo():
            await self._send_error(client.websocket, code="NOTHING_TO_UNDO", msg="Nothing to undo")
            return
        await self._send_state(client)

    async def _run_ai(self, client: PracticeClient) -> None:
        async def on_step(action: MoveAction, state: GameState) -> None:
            await self._send_json(
                client.websocket,
                "ai_move",
                {"action": action.to_payload(), "moves": state.moves},
            )

        try:
            await client.session.run_ai_turns(on_step=on_step)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("AI turn crashed for %s: %s", client.player, exc)
            await self._send_error(client.websocket, code="AI_FAILED", msg="AI turn failed")
            return
        await self._send_state(client)
        if client.session.is_over:
            await self._send_match_end(client)

    async def _send_welcome(self, client: PracticeClient) -> None:
        session = client.session
        await self._send_json(
            client.websocket,
            "welcome",
            {
                "match_id": session.match_id,
                "seat": 0,
                "mode": session.mode,
                "seed": session.state.seed,
                "config": _config_payload(session.engine.config),
            },
        )
        await self._send_state(client)

    async def _send_state(self, client: PracticeClient) -> None:
        session = client.session
        await self._send_json(
            client.websocket,
            "state",
            {
                "state": session.state.to_payload(),
                "your_turn": session.is_human_turn,
                "can_undo": bool(session.history),
            },
        )

    async def _send_match_end(self, client: PracticeClient) -> None:
        state = client.session.state
        await self._send_json(
            client.websocket,
            "match_end",
            {
                "match_id": client.session.match_id,
                "winner": state.winner,
                "scores": [{"id": player.id, "score": player.score} for player in state.players],
                "moves": state.moves,
            },
        )
        LOGGER.info("Match %s over: winner=%s", client.session.match_id, state.winner)

    async def _send_json(self, websocket: ServerConnection, msg_type: str, payload: Dict[str, Any]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except ConnectionClosed:
            pass

    async def _send_error(self, websocket: ServerConnection, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, Any]) -> str:
        body: Dict[str, Any] = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: ServerConnection) -> Optional[Dict[str, Any]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: Any) -> Dict[str, Any]:
        try:
            message = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return {}
        return message if isinstance(message, dict) else {}


def _process_request(connection, request):
    """Answer plain HTTP health checks; let WebSocket upgrades through."""

    if request.headers.get("Upgrade", "").lower() == "websocket":
        return None
    if request.path in {"/", "/health", "/healthz"}:
        return connection.respond(HTTPStatus.OK, "practice server running\n")
    return connection.respond(HTTPStatus.NOT_FOUND, "not found\n")


def build_config(args: argparse.Namespace) -> GameConfig:
    return GameConfig(
        empty_tableau=EmptyTableauPolicy(args.empty_tableau),
        scoring=ScoringPolicy(args.scoring),
        win=WinPolicy(args.win),
        ai_difficulty=Difficulty(args.difficulty.upper()),
        ai_step_delay_ms=args.ai_delay,
        undo_limit=args.undo_limit,
    )


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Kings Corner practice server (human vs AI)")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=9876)
    parser.add_argument("--difficulty", default=Difficulty.STANDARD.value, choices=[d.value for d in Difficulty])
    parser.add_argument(
        "--empty-tableau",
        default=EmptyTableauPolicy.KING_ONLY.value,
        choices=[p.value for p in EmptyTableauPolicy],
        help="What an empty tableau pile accepts",
    )
    parser.add_argument("--scoring", default=ScoringPolicy.FOUNDATION.value, choices=[p.value for p in ScoringPolicy])
    parser.add_argument("--win", default=WinPolicy.EMPTY_HAND.value, choices=[p.value for p in WinPolicy])
    parser.add_argument("--ai-delay", type=int, default=700, help="Pause between AI moves in milliseconds")
    parser.add_argument("--undo-limit", type=int, default=20)
    return parser.parse_args(argv)


def main() -> None:
    args = parse_args()
    server = PracticeServer(build_config(args))
    asyncio.run(server.start(host=args.host, port=args.port))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
