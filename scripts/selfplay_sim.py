#!/usr/bin/env python3
"""Play AI-vs-AI Kings Corner matches in-process.

Useful for sanity-checking the engine across many deals and for comparing
difficulty tiers. Every step is checked for card conservation.

Example:
    python scripts/selfplay_sim.py --games 200 --first HARD --second EASY
"""

from __future__ import annotations

import argparse
import logging
import random
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from core.game import GameEngine
from core.models import Difficulty, EmptyTableauPolicy, GameConfig, Player
from practice.session import GameSession

LOGGER = logging.getLogger("selfplay_sim")


@dataclass
class GameOutcome:
    seed: str
    winner: Optional[str]
    moves: int
    rounds: int


def play_one(config: GameConfig, seed: str, first: Difficulty, second: Difficulty, max_turns: int) -> GameOutcome:
    engine = GameEngine(config)
    players = [
        Player(id="P0", name=f"{first.value} bot", is_ai=True, ai_difficulty=first),
        Player(id="P1", name=f"{second.value} bot", is_ai=True, ai_difficulty=second),
    ]
    state = engine.initialize_game(seed, players=players)
    session = GameSession(engine, state, rng=random.Random(seed))
    for _, result in session.play_ai_turns(max_turns=max_turns):
        ids = result.state.all_card_ids()
        if len(ids) != 52 or len(set(ids)) != 52:
            raise RuntimeError(f"Card conservation broken in game {seed}")
    return GameOutcome(seed=seed, winner=session.state.winner, moves=session.state.moves, rounds=session.state.round)


def run_simulation(args: argparse.Namespace) -> Counter:
    config = GameConfig(empty_tableau=EmptyTableauPolicy(args.empty_tableau))
    first = Difficulty(args.first.upper())
    second = Difficulty(args.second.upper())
    tally: Counter = Counter()
    total_moves = 0
    for idx in range(args.games):
        outcome = play_one(config, f"sim-{args.seed}-{idx}", first, second, args.max_turns)
        tally[outcome.winner or "stalled"] += 1
        total_moves += outcome.moves
        LOGGER.debug("Game %s winner=%s moves=%s rounds=%s", outcome.seed, outcome.winner, outcome.moves, outcome.rounds)
    LOGGER.info(
        "%s games: P0(%s)=%s P1(%s)=%s stalled=%s avg_moves=%.1f",
        args.games,
        first.value,
        tally["P0"],
        second.value,
        tally["P1"],
        tally["stalled"],
        total_moves / max(args.games, 1),
    )
    return tally


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run AI-vs-AI Kings Corner games")
    parser.add_argument("--games", type=int, default=100)
    parser.add_argument("--first", default="HARD")
    parser.add_argument("--second", default="STANDARD")
    parser.add_argument("--empty-tableau", default=EmptyTableauPolicy.KING_ONLY.value)
    parser.add_argument("--max-turns", type=int, default=200, help="turn cap for stalled deals")
    parser.add_argument("--seed", default="42")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    run_simulation(args)


if __name__ == "__main__":
    main()
