"""Season records, completed games, and standings rows.

Everything in here is a plain value object built fresh for one standings
request. Records and games are frozen; :class:`StandingEntry` is the mutable
output row the ranking engine and final-standings composer fill in.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List, Optional

TeamId = Hashable
HeadToHeadMatrix = Dict[TeamId, Dict[TeamId, int]]


@dataclass(frozen=True)
class TeamRecord:
    team_id: TeamId
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    division_id: Optional[int] = None
    seed: Optional[int] = None
    display_name: Optional[str] = None
    owner_id: Optional[str] = None

    @property
    def games_played(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def win_pct(self) -> float:
        if self.games_played == 0:
            return 0.0
        return (self.wins + 0.5 * self.ties) / self.games_played


@dataclass(frozen=True)
class Game:
    week: int
    team_a_id: TeamId
    team_b_id: TeamId
    score_a: float
    score_b: float
    matchup_id: Optional[int] = None

    @property
    def is_valid(self) -> bool:
        return (
            self.team_a_id is not None
            and self.team_b_id is not None
            and self.team_a_id != self.team_b_id
        )

    @property
    def is_tie(self) -> bool:
        return math.isclose(self.score_a, self.score_b)

    @property
    def winner_id(self) -> Optional[TeamId]:
        if self.is_tie:
            return None
        return self.team_a_id if self.score_a > self.score_b else self.team_b_id

    @property
    def loser_id(self) -> Optional[TeamId]:
        if self.is_tie:
            return None
        return self.team_b_id if self.score_a > self.score_b else self.team_a_id

    @property
    def pair(self) -> frozenset:
        return frozenset((self.team_a_id, self.team_b_id))

    def involves(self, team_id: TeamId) -> bool:
        return team_id in (self.team_a_id, self.team_b_id)

    def score_for(self, team_id: TeamId) -> float:
        if team_id == self.team_a_id:
            return self.score_a
        if team_id == self.team_b_id:
            return self.score_b
        raise KeyError(f"Team {team_id!r} did not play in this game")


@dataclass(frozen=True)
class BracketMatchup:
    """One game from a platform's pre-classified winners bracket."""

    round: int
    matchup_id: Optional[int]
    team1_id: Optional[TeamId]
    team2_id: Optional[TeamId]
    winner_id: Optional[TeamId] = None
    loser_id: Optional[TeamId] = None
    placement: Optional[int] = None
    team1_score: Optional[float] = None
    team2_score: Optional[float] = None


@dataclass
class StandingEntry:
    team_id: TeamId
    rank: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0
    division_id: Optional[int] = None
    seed: Optional[int] = None
    display_name: Optional[str] = None
    head_to_head_record: Optional[Dict[TeamId, int]] = None
    tiebreak_notes: str = ""
    playoff_outcome: Optional[str] = None
    regular_season_rank: Optional[int] = None
    random_key: Optional[int] = None
    custom_value: Optional[float] = None

    @classmethod
    def from_record(cls, record: TeamRecord) -> "StandingEntry":
        return cls(
            team_id=record.team_id,
            wins=record.wins,
            losses=record.losses,
            ties=record.ties,
            points_for=record.points_for,
            points_against=record.points_against,
            division_id=record.division_id,
            seed=record.seed,
            display_name=record.display_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "rank": self.rank,
            "display_name": self.display_name,
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "points_for": self.points_for,
            "points_against": self.points_against,
            "division_id": self.division_id,
            "seed": self.seed,
            "head_to_head_record": dict(self.head_to_head_record) if self.head_to_head_record else None,
            "tiebreak_notes": self.tiebreak_notes,
            "playoff_outcome": self.playoff_outcome,
            "regular_season_rank": self.regular_season_rank,
        }


@dataclass
class _RecordAccumulator:
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0


def compute_records(
    games: Iterable[Game],
    *,
    end_week: Optional[int] = None,
    divisions: Optional[Dict[TeamId, int]] = None,
    names: Optional[Dict[TeamId, str]] = None,
) -> List[TeamRecord]:
    """Derive win/loss records and scoring totals from completed games.

    Used when a data source exposes weekly results but no season totals.
    Malformed games are ignored.
    """

    totals: Dict[TeamId, _RecordAccumulator] = {}
    for game in games:
        if not game.is_valid:
            continue
        if end_week is not None and game.week > end_week:
            continue
        away = totals.setdefault(game.team_a_id, _RecordAccumulator())
        home = totals.setdefault(game.team_b_id, _RecordAccumulator())

        away.points_for += game.score_a
        away.points_against += game.score_b
        home.points_for += game.score_b
        home.points_against += game.score_a

        if game.is_tie:
            away.ties += 1
            home.ties += 1
        elif game.winner_id == game.team_a_id:
            away.wins += 1
            home.losses += 1
        else:
            home.wins += 1
            away.losses += 1

    divisions = divisions or {}
    names = names or {}
    return [
        TeamRecord(
            team_id=team_id,
            wins=acc.wins,
            losses=acc.losses,
            ties=acc.ties,
            points_for=acc.points_for,
            points_against=acc.points_against,
            division_id=divisions.get(team_id),
            display_name=names.get(team_id),
        )
        for team_id, acc in totals.items()
    ]


def compute_division_win_pct(
    games: Iterable[Game],
    divisions: Dict[TeamId, Optional[int]],
    *,
    end_week: Optional[int] = None,
) -> Dict[TeamId, float]:
    """Win percentage of each team in games against its own division."""

    wins: Dict[TeamId, float] = {}
    played: Dict[TeamId, int] = {}
    for game in games:
        if not game.is_valid:
            continue
        if end_week is not None and game.week > end_week:
            continue
        div_a = divisions.get(game.team_a_id)
        div_b = divisions.get(game.team_b_id)
        if div_a is None or div_a != div_b:
            continue
        for team_id in (game.team_a_id, game.team_b_id):
            played[team_id] = played.get(team_id, 0) + 1
            if game.is_tie:
                wins[team_id] = wins.get(team_id, 0.0) + 0.5
            elif game.winner_id == team_id:
                wins[team_id] = wins.get(team_id, 0.0) + 1.0
    return {team_id: wins.get(team_id, 0.0) / count for team_id, count in played.items() if count}

__all__ = [
    "TeamId",
    "HeadToHeadMatrix",
    "TeamRecord",
    "Game",
    "BracketMatchup",
    "StandingEntry",
    "compute_records",
    "compute_division_win_pct",
]
