#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import websockets

logging.basicConfig(level=logging.INFO)

# ManualClient plays against the practice server from a terminal prompt.

SUIT_SYMBOLS = {"hearts": "♥", "diamonds": "♦", "clubs": "♣", "spades": "♠"}
PILE_CODES = {"h": "hand", "t": "tableau", "f": "foundation"}

HELP = """Commands:
  d                      draw a card
  m <card> <from> <to>   move, e.g. "m 7-hearts h t2" or "m Q-spades t0 f1"
                         piles: h (hand), t0-t3 (tableau), f0-f3 (foundation)
  e                      end your turn
  u                      undo last move this turn
  s                      show the board again
  q                      quit"""


def card_label(card: Dict[str, Any]) -> str:
    return f"{card['rank']}{SUIT_SYMBOLS.get(card['suit'], '?')}"


def render_pile(pile: List[Dict[str, Any]]) -> str:
    return " ".join(card_label(card) for card in pile) if pile else "--"


def parse_pile(token: str) -> Optional[Dict[str, Any]]:
    kind = PILE_CODES.get(token[:1].lower())
    if kind is None:
        return None
    if kind == "hand":
        return {"type": "hand", "index": 0}
    try:
        return {"type": kind, "index": int(token[1:])}
    except ValueError:
        return None


def parse_command(line: str) -> Optional[Dict[str, Any]]:
    parts = line.split()
    if not parts:
        return None
    cmd = parts[0].lower()
    if cmd == "d":
        return {"type": "action", "action": {"type": "draw"}}
    if cmd == "e":
        return {"type": "action", "action": {"type": "end_turn"}}
    if cmd == "u":
        return {"type": "undo"}
    if cmd == "s":
        return {"type": "state"}
    if cmd == "m" and len(parts) == 4:
        source = parse_pile(parts[2])
        target = parse_pile(parts[3])
        if source is None or target is None:
            return None
        return {
            "type": "action",
            "action": {"type": "move_card", "cardId": parts[1], "from": source, "to": target},
        }
    return None


class ManualClient:
    def __init__(self, player: str, url: str, difficulty: str, mode: str, seed: Optional[str]) -> None:
        self.player = player
        self.url = url
        self.difficulty = difficulty
        self.mode = mode
        self.seed = seed
        self.websocket = None
        self.your_turn = False

    async def run(self) -> None:
        async with websockets.connect(self.url) as ws:
            self.websocket = ws
            hello: Dict[str, Any] = {
                "type": "hello",
                "v": 1,
                "player": self.player,
                "difficulty": self.difficulty,
                "mode": self.mode,
            }
            if self.seed:
                hello["seed"] = self.seed
            await self._send(hello)
            await self._loop()

    async def _loop(self) -> None:
        assert self.websocket is not None
        while True:
            raw = await self.websocket.recv()
            msg = json.loads(raw)
            self._print_message(msg)
            if msg.get("type") == "match_end":
                break
            if msg.get("type") in ("state", "error") and self.your_turn:
                if not await self._prompt():
                    break

    async def _prompt(self) -> bool:
        while True:
            line = await asyncio.to_thread(input, "kings-corner (h=help)> ")
            line = line.strip()
            if line.lower() == "q":
                return False
            if line.lower() == "h":
                print(HELP)
                continue
            command = parse_command(line)
            if command is None:
                print("Could not parse that. Type h for help.")
                continue
            await self._send(command)
            return True

    def _print_message(self, msg: Dict[str, Any]) -> None:
        msg_type = msg.get("type")
        if msg_type == "welcome":
            print(f"Match {msg.get('match_id')} ({msg.get('mode')}), seed={msg.get('seed')}")
            print(f"Config: {json.dumps(msg.get('config'))}")
        elif msg_type == "state":
            self.your_turn = bool(msg.get("your_turn"))
            self._render_state(msg["state"])
        elif msg_type == "ai_move":
            action = msg.get("action", {})
            if action.get("type") == "move_card":
                print(f"AI moves {action['cardId']} {action['from']['type']} -> {action['to']['type']} {action['to']['index']}")
            else:
                print(f"AI: {action.get('type')}")
        elif msg_type == "error":
            print(f"Error {msg.get('code')}: {msg.get('msg')}")
        elif msg_type == "match_end":
            print(f"Match over. Winner: {msg.get('winner')} | scores: {msg.get('scores')} | moves: {msg.get('moves')}")
        else:
            print(json.dumps(msg, indent=2))

    def _render_state(self, state: Dict[str, Any]) -> None:
        print(f"\nRound {state['round']}  moves={state['moves']}  deck={len(state['deck'])}")
        for idx, pile in enumerate(state["foundations"]):
            print(f"  f{idx}: {render_pile(pile)}")
        for idx, pile in enumerate(state["tableau"]):
            print(f"  t{idx}: {render_pile(pile)}")
        for player in state["players"]:
            if player["is_ai"]:
                print(f"  {player['name']}: {len(player['hand'])} cards, score {player['score']}")
            else:
                ids = ", ".join(card["id"] for card in player["hand"])
                print(f"  {player['name']} (score {player['score']}): {ids}")
        print("Your turn." if self.your_turn else "Waiting for the AI...")

    async def _send(self, payload: Dict[str, Any]) -> None:
        assert self.websocket is not None
        await self.websocket.send(json.dumps(payload))


def main() -> None:
    parser = argparse.ArgumentParser(description="Terminal client for the Kings Corner practice server")
    parser.add_argument("--player", required=True)
    parser.add_argument("--url", default="ws://127.0.0.1:9876/")
    parser.add_argument("--difficulty", default="STANDARD")
    parser.add_argument("--mode", default="AI", choices=["AI", "DAILY"])
    parser.add_argument("--seed")
    args = parser.parse_args()

    client = ManualClient(args.player, args.url, args.difficulty, args.mode, args.seed)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        print("Bye")


if __name__ == "__main__":
    main()
