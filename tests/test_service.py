from __future__ import annotations

import pytest

from config import CustomStandings, LeagueConfig, LeagueSettings, settings
from records import BracketMatchup, Game, TeamRecord
from service import (
    BRACKET_PROCESSING_FAILED,
    BRACKET_VALIDATION_FAILED,
    PolicyInputs,
    StandingsMode,
    compute_standings,
)
from sleeper_client import LeagueInfo, SleeperAPIError


def _ids(report):
    return [entry.team_id for entry in report.standings]


def test_regular_season_standings(fake_source) -> None:
    report = compute_standings("L1", client=fake_source, league_config=LeagueConfig())
    assert report.mode is StandingsMode.REGULAR_SEASON
    assert _ids(report) == [1, 2, 3, 4, 5, 6, 7, 8]
    assert report.policy.source == "platform_default"
    assert report.policy_note == "Tiebreakers applied: [wins, points_for, points_against]"
    assert report.summary == "League standings for 8 teams - Leader: Team 1 (10-4, 1500.0 pts)"
    assert not report.final_available
    assert all(entry.regular_season_rank == entry.rank for entry in report.standings)
    # no head-to-head in the policy, so no weekly fetches
    assert fake_source.requested_weeks == []


def test_final_standings_from_schedule(fake_source) -> None:
    report = compute_standings("L1", mode="final", client=fake_source, league_config=LeagueConfig())
    assert report.final_available
    assert report.bracket.source == "schedule"
    assert _ids(report) == [1, 3, 2, 5, 4, 6, 7, 8]
    assert report.standings[0].playoff_outcome == "champion"
    assert report.policy_note.endswith("(Final standings based on playoff results)")
    assert sorted(fake_source.requested_weeks) == list(range(1, 19))


def test_final_standings_prefers_bracket_feed(make_source, authoritative_bracket) -> None:
    source = make_source(bracket=authoritative_bracket)
    report = compute_standings("L1", mode=StandingsMode.FINAL, client=source, league_config=LeagueConfig())
    assert report.bracket.source == "bracket_api"
    assert _ids(report) == [1, 3, 2, 5, 4, 6, 7, 8]


def test_final_mode_degrades_when_bracket_cannot_be_built(make_source) -> None:
    source = make_source(failing_weeks=[15, 16, 17])
    report = compute_standings("L1", mode="final", client=source, league_config=LeagueConfig())
    assert not report.final_available
    assert _ids(report) == [1, 2, 3, 4, 5, 6, 7, 8]
    assert any(note.startswith(BRACKET_PROCESSING_FAILED) for note in report.notes)
    assert any("weeks [15, 16, 17]" in note for note in report.notes)
    assert all(entry.playoff_outcome is None for entry in report.standings)
    assert "Final standings" not in report.policy_note


def test_final_mode_degrades_when_bracket_is_invalid(make_source) -> None:
    undecided = [BracketMatchup(round=1, matchup_id=1, team1_id=1, team2_id=3, placement=1)]
    source = make_source(games=[], bracket=undecided)
    report = compute_standings("L1", mode="final", client=source, league_config=LeagueConfig())
    assert not report.final_available
    assert any(note.startswith(BRACKET_VALIDATION_FAILED) for note in report.notes)
    assert _ids(report) == [1, 2, 3, 4, 5, 6, 7, 8]


def test_stored_league_policy_is_used(fake_source) -> None:
    config = LeagueConfig(
        leagues={
            "L1": LeagueSettings(
                name="Custom",
                custom=CustomStandings(enabled=True, tiebreak_order=("wins", "points_against")),
            )
        }
    )
    report = compute_standings("L1", client=fake_source, league_config=config)
    assert report.policy.source == "league_config"
    assert [kind.value for kind in report.policy.order] == ["wins", "points_against"]


def test_head_to_head_policy_fetches_regular_season_games(make_source) -> None:
    records = [
        TeamRecord("A", wins=8, losses=6, points_for=1000.0),
        TeamRecord("B", wins=8, losses=6, points_for=1200.0),
    ]
    games = [Game(3, "A", "B", 110.0, 100.0), Game(16, "B", "A", 130.0, 90.0)]
    source = make_source(records=records, games=games)
    inputs = PolicyInputs(tiebreak_order=["wins", "head_to_head", "points_for"])
    report = compute_standings("L1", inputs, client=source, league_config=LeagueConfig())
    # the week 16 rematch is outside the regular season
    assert _ids(report) == ["A", "B"]
    assert sorted(source.requested_weeks) == list(range(1, 15))


def test_league_playoff_week_start_moves_the_window(make_source) -> None:
    league = LeagueInfo(league_id="L1", name="Short season", playoff_teams=6, playoff_week_start=14)
    source = make_source(league=league)
    compute_standings("L1", PolicyInputs(tiebreak_order=["wins", "h2h"]), client=source, league_config=LeagueConfig())
    assert sorted(source.requested_weeks) == list(range(1, 14))


def test_custom_values_accept_string_keys(fake_source) -> None:
    inputs = PolicyInputs(tiebreak_order=["custom"], custom_values={"5": 10.0, "8": 5.0})
    report = compute_standings("L1", inputs, client=fake_source, league_config=LeagueConfig())
    assert _ids(report)[:2] == [5, 8]


def test_instructions_drive_the_policy(fake_source) -> None:
    inputs = PolicyInputs(instructions="ignore wins, rank by points against")
    report = compute_standings("L1", inputs, client=fake_source, league_config=LeagueConfig())
    assert report.policy.source == "instructions"
    assert [kind.value for kind in report.policy.order] == ["points_against"]


def test_records_failure_is_fatal(make_source) -> None:
    source = make_source(records_error=SleeperAPIError("rosters unavailable", status_code=500))
    with pytest.raises(SleeperAPIError):
        compute_standings("L1", client=source, league_config=LeagueConfig())


def test_records_are_derived_from_games_when_missing(make_source) -> None:
    games = [
        Game(1, "A", "B", 100.0, 90.0),
        Game(2, "A", "C", 100.0, 90.0),
        Game(3, "B", "C", 100.0, 90.0),
    ]
    source = make_source(records=[], games=games)
    report = compute_standings("L1", client=source, league_config=LeagueConfig())
    assert _ids(report) == ["A", "B", "C"]
    assert report.standings[0].wins == 2


def test_seed_type_note_and_playoff_size_knob(make_source) -> None:
    settings.set("default_playoff_teams", 6)
    league = LeagueInfo(league_id="L1", name="Seeded", playoff_seed_type=2)
    source = make_source(league=league)
    report = compute_standings("L1", client=source, league_config=LeagueConfig())
    assert "(League playoff_seed_type: 2)" in report.policy_note
    assert report.policy.order[1].value == "head_to_head"


def test_final_standings_when_top_seeds_reach_the_final(make_source) -> None:
    games = [
        Game(15, 3, 6, 120.0, 100.0),
        Game(15, 4, 5, 105.0, 110.0),
        Game(16, 1, 5, 130.0, 90.0),
        Game(16, 2, 3, 115.0, 105.0),
        Game(17, 1, 2, 110.0, 120.0),
        Game(17, 3, 5, 101.0, 99.0),
    ]
    report = compute_standings("L1", mode="final", client=make_source(games=games), league_config=LeagueConfig())
    assert report.final_available
    assert report.bracket.semifinals_week == 16
    assert _ids(report) == [2, 1, 3, 5, 4, 6, 7, 8]
    assert report.standings[0].playoff_outcome == "champion"
