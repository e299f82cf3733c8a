from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from core.cards import DAILY_PREFIX, daily_seed
from core.models import Difficulty, GameState

# MatchStore stands in for the profile/match database. The session talks to
# it fire-and-forget; nothing in the engine waits on it.


@dataclass
class MatchRecord:
    id: str
    mode: str
    player1_id: str
    seed: Optional[str]
    difficulty: Optional[Difficulty] = None
    status: str = "ACTIVE"
    winner_id: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: Optional[datetime] = None
    current_state: Optional[Dict[str, Any]] = None
    final_state: Optional[Dict[str, Any]] = None
    player1_score: int = 0
    total_moves: int = 0


@dataclass
class Profile:
    user_id: str
    wins: int = 0
    losses: int = 0
    win_streak: int = 0
    games_played: int = 0


@dataclass
class DailyChallenge:
    date: str
    seed: str


@dataclass
class DailyScore:
    user_id: str
    score: int
    moves: int
    time_seconds: int
    completed: bool = False
    completed_at: Optional[datetime] = None


class MatchStore:
    def __init__(self) -> None:
        self.matches: Dict[str, MatchRecord] = {}
        self.profiles: Dict[str, Profile] = {}
        self.challenges: Dict[str, DailyChallenge] = {}
        self.daily_scores: Dict[str, Dict[str, DailyScore]] = {}

    # Matches ---------------------------------------------------------

    def start_match(
        self,
        mode: str,
        player1_id: str,
        seed: Optional[str],
        difficulty: Optional[Difficulty] = None,
    ) -> str:
        match_id = str(uuid.uuid4())
        self.matches[match_id] = MatchRecord(
            id=match_id,
            mode=mode,
            player1_id=player1_id,
            seed=seed,
            difficulty=difficulty,
        )
        return match_id

    def get_match(self, match_id: str) -> MatchRecord:
        return self.matches[match_id]

    def record_state(self, match_id: str, state: GameState) -> None:
        record = self.matches[match_id]
        record.current_state = state.to_payload()
        record.total_moves = state.moves

    def finish_match(
        self,
        match_id: str,
        winner_id: Optional[str],
        player1_score: int,
        total_moves: int,
        final_state: Optional[GameState] = None,
    ) -> MatchRecord:
        record = self.matches[match_id]
        if record.status == "COMPLETE":
            return record
        record.status = "COMPLETE"
        record.winner_id = winner_id
        record.player1_score = player1_score
        record.total_moves = total_moves
        record.ended_at = datetime.now(timezone.utc)
        if final_state is not None:
            record.final_state = final_state.to_payload()
        elif record.current_state is not None:
            record.final_state = record.current_state

        profile = self.get_profile(record.player1_id)
        profile.games_played += 1
        if winner_id == record.player1_id:
            profile.wins += 1
            profile.win_streak += 1
        else:
            profile.losses += 1
            profile.win_streak = 0
        return record

    def match_history(self, player_id: str, limit: int = 20) -> List[MatchRecord]:
        mine = [record for record in self.matches.values() if record.player1_id == player_id]
        mine.sort(key=lambda record: record.started_at, reverse=True)
        return mine[:limit]

    def get_profile(self, user_id: str) -> Profile:
        profile = self.profiles.get(user_id)
        if profile is None:
            profile = Profile(user_id=user_id)
            self.profiles[user_id] = profile
        return profile

    # Daily challenge -------------------------------------------------

    def get_daily_challenge(self, day: Optional[date] = None) -> DailyChallenge:
        seed = daily_seed(day)
        key = seed[len(DAILY_PREFIX) :]
        challenge = self.challenges.get(key)
        if challenge is None:
            challenge = DailyChallenge(date=key, seed=seed)
            self.challenges[key] = challenge
        return challenge

    def submit_daily_score(
        self,
        day: Optional[date],
        user_id: str,
        score: int,
        moves: int,
        time_seconds: int,
        completed: bool,
    ) -> DailyScore:
        challenge = self.get_daily_challenge(day)
        entries = self.daily_scores.setdefault(challenge.date, {})
        existing = entries.get(user_id)
        # Keep a player's best completed attempt.
        if existing and existing.completed and (not completed or existing.score >= score):
            return existing
        entry = DailyScore(
            user_id=user_id,
            score=score,
            moves=moves,
            time_seconds=time_seconds,
            completed=completed,
            completed_at=datetime.now(timezone.utc) if completed else None,
        )
        entries[user_id] = entry
        return entry

    def daily_leaderboard(self, day: Optional[date] = None, limit: int = 100) -> List[DailyScore]:
        challenge = self.get_daily_challenge(day)
        entries = [entry for entry in self.daily_scores.get(challenge.date, {}).values() if entry.completed]
        entries.sort(key=lambda entry: (-entry.score, entry.time_seconds))
        return entries[:limit]
