from __future__ import annotations

import asyncio
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

LOGGER = logging.getLogger("kings_corner_relay")

# RelayServer only forwards: it never validates moves or owns game state.
# Clients in the same game see each other's moves, nothing more.


@dataclass
class RelayClient:
    client_id: str
    websocket: ServerConnection
    user_id: Optional[str] = None
    game_id: Optional[str] = None


class RelayServer:
    def __init__(self) -> None:
        self.clients: Dict[str, RelayClient] = {}
        self.lock = asyncio.Lock()

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with serve(self._handle_connection, host, port):
            LOGGER.info("Relay listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        client = await self.register(websocket)
        try:
            async for raw in websocket:
                await self.handle_raw(client, raw)
        except ConnectionClosed:
            pass
        finally:
            await self.unregister(client)

    async def register(self, websocket: ServerConnection) -> RelayClient:
        client = RelayClient(client_id=secrets.token_hex(4), websocket=websocket)
        async with self.lock:
            self.clients[client.client_id] = client
        LOGGER.info("Relay client connected: %s", client.client_id)
        return client

    async def unregister(self, client: RelayClient) -> None:
        async with self.lock:
            self.clients.pop(client.client_id, None)
        LOGGER.info("Relay client disconnected: %s", client.client_id)

    async def handle_raw(self, client: RelayClient, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Relay could not parse message from %s: %s", client.client_id, exc)
            return
        if not isinstance(message, dict):
            LOGGER.warning("Relay ignored non-object message from %s", client.client_id)
            return
        await self.handle_message(client, message)

    async def handle_message(self, client: RelayClient, message: Dict[str, Any]) -> None:
        msg_type = message.get("type")
        if msg_type == "auth":
            client.user_id = message.get("userId")
            LOGGER.info("Client %s authenticated as user %s", client.client_id, client.user_id)
        elif msg_type == "join_game":
            client.game_id = message.get("gameId")
            LOGGER.info("Client %s joined game %s", client.client_id, client.game_id)
        elif msg_type == "game_move":
            await self.broadcast_to_game(
                client.game_id,
                {"type": "game_update", "move": message.get("move"), "state": message.get("state")},
                exclude=client.client_id,
            )
        else:
            LOGGER.warning("Unknown relay message type: %s", msg_type)

    async def broadcast_to_game(self, game_id: Optional[str], payload: Dict[str, Any], exclude: Optional[str] = None) -> int:
        if not game_id:
            return 0
        async with self.lock:
            targets = [
                c.websocket
                for c in self.clients.values()
                if c.game_id == game_id and c.client_id != exclude
            ]
        await self._fan_out(targets, payload)
        return len(targets)

    async def send_to_user(self, user_id: str, payload: Dict[str, Any]) -> int:
        async with self.lock:
            targets = [c.websocket for c in self.clients.values() if c.user_id == user_id]
        await self._fan_out(targets, payload)
        return len(targets)

    async def _fan_out(self, targets, payload: Dict[str, Any]) -> None:
        if not targets:
            return
        body = dict(payload)
        body.setdefault("ts", datetime.now(timezone.utc).isoformat())
        message = json.dumps(body)
        await asyncio.gather(*(socket.send(message) for socket in targets), return_exceptions=True)
