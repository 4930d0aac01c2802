from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Set

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_league_client, get_league_config
from api.main import app
from config import LeagueConfig, settings
from records import BracketMatchup, Game, TeamRecord
from sleeper_client import LeagueInfo, SleeperAPIError


class FakeLeagueSource:
    """In-memory :class:`sleeper_client.LeagueDataSource` for tests."""

    def __init__(
        self,
        records: List[TeamRecord],
        games: Iterable[Game] = (),
        bracket: Optional[List[BracketMatchup]] = None,
        *,
        league: Optional[LeagueInfo] = None,
        failing_weeks: Iterable[int] = (),
        records_error: Optional[SleeperAPIError] = None,
    ) -> None:
        self.records = list(records)
        self.games: Dict[int, List[Game]] = {}
        for game in games:
            self.games.setdefault(game.week, []).append(game)
        self.bracket = bracket
        self.league = league or LeagueInfo(league_id="L1", name="Test League", playoff_teams=6, playoff_seed_type=0)
        self.failing_weeks: Set[int] = set(failing_weeks)
        self.records_error = records_error
        self.requested_weeks: List[int] = []

    def get_league(self, league_id: str) -> LeagueInfo:
        return self.league

    def get_team_records(self, league_id: str) -> List[TeamRecord]:
        if self.records_error is not None:
            raise self.records_error
        return list(self.records)

    def get_games(self, league_id: str, week: int) -> List[Game]:
        self.requested_weeks.append(week)
        if week in self.failing_weeks:
            raise SleeperAPIError(f"week {week} unavailable", status_code=500)
        return list(self.games.get(week, []))

    def get_bracket(self, league_id: str) -> List[BracketMatchup]:
        if self.bracket is None:
            raise SleeperAPIError("winners bracket unavailable", status_code=500)
        return list(self.bracket)


def _record(team_id: int, wins: int, losses: int, points_for: float, points_against: float = 1200.0) -> TeamRecord:
    return TeamRecord(
        team_id=team_id,
        wins=wins,
        losses=losses,
        points_for=points_for,
        points_against=points_against,
        display_name=f"Team {team_id}",
    )


@pytest.fixture
def league_records() -> List[TeamRecord]:
    """Eight teams whose default ranking is 1..8 in id order."""

    return [
        _record(1, 10, 4, 1500.0),
        _record(2, 10, 4, 1450.0),
        _record(3, 9, 5, 1400.0),
        _record(4, 8, 6, 1380.0),
        _record(5, 8, 6, 1300.0),
        _record(6, 7, 7, 1350.0),
        _record(7, 4, 10, 1200.0),
        _record(8, 0, 14, 1000.0),
    ]


@pytest.fixture
def playoff_games() -> List[Game]:
    """Six-team bracket: quarterfinals week 15, semifinals 16, final and third place 17."""

    return [
        # quarterfinals: 3 beats 6, 5 beats 4
        Game(15, 3, 6, 120.0, 100.0, matchup_id=1),
        Game(15, 4, 5, 105.0, 110.0, matchup_id=2),
        Game(15, 7, 8, 90.0, 80.0, matchup_id=3),
        # semifinals: 1 beats 5, 3 beats 2
        Game(16, 1, 5, 130.0, 90.0, matchup_id=1),
        Game(16, 2, 3, 115.0, 125.0, matchup_id=2),
        Game(16, 4, 7, 100.0, 95.0, matchup_id=3),
        # championship: 1 beats 3; third place: 2 beats 5
        Game(17, 1, 3, 140.0, 130.0, matchup_id=1),
        Game(17, 2, 5, 100.0, 95.0, matchup_id=2),
    ]


@pytest.fixture
def authoritative_bracket() -> List[BracketMatchup]:
    return [
        BracketMatchup(round=1, matchup_id=1, team1_id=3, team2_id=6, winner_id=3, loser_id=6),
        BracketMatchup(round=1, matchup_id=2, team1_id=4, team2_id=5, winner_id=5, loser_id=4),
        BracketMatchup(round=2, matchup_id=3, team1_id=1, team2_id=5, winner_id=1, loser_id=5),
        BracketMatchup(round=2, matchup_id=4, team1_id=2, team2_id=3, winner_id=3, loser_id=2),
        BracketMatchup(round=2, matchup_id=5, team1_id=4, team2_id=6, winner_id=6, loser_id=4, placement=5),
        BracketMatchup(round=3, matchup_id=6, team1_id=1, team2_id=3, winner_id=1, loser_id=3, placement=1),
        BracketMatchup(round=3, matchup_id=7, team1_id=5, team2_id=2, winner_id=2, loser_id=5, placement=3),
    ]


@pytest.fixture
def make_source(league_records, playoff_games) -> Callable[..., FakeLeagueSource]:
    def _make(**overrides) -> FakeLeagueSource:
        records = overrides.pop("records", league_records)
        games = overrides.pop("games", playoff_games)
        return FakeLeagueSource(records, games, **overrides)

    return _make


@pytest.fixture(autouse=True)
def _reset_settings():
    yield
    settings.reset()


@pytest.fixture
def fake_source(make_source) -> FakeLeagueSource:
    return make_source()


@pytest.fixture
def client(fake_source) -> TestClient:
    app.dependency_overrides[get_league_client] = lambda: fake_source
    app.dependency_overrides[get_league_config] = lambda: LeagueConfig()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
