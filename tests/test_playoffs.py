from __future__ import annotations

import logging

import pytest

from playoffs import (
    AuthoritativeBracketSource,
    BracketGame,
    BracketRound,
    BracketUnavailableError,
    BracketValidationError,
    PlayoffBracket,
    ScheduleBracketSource,
    detect_playoff_structure,
    reconstruct_bracket,
    seed_playoff_teams,
    validate_bracket,
)
from records import BracketMatchup, Game, StandingEntry

SEEDS = {1: 1, 2: 2, 3: 3, 4: 4, 5: 5, 6: 6}


def _two_week_final_games():
    return [
        Game(15, 3, 6, 120.0, 100.0),
        Game(15, 4, 5, 105.0, 110.0),
        Game(16, 1, 5, 130.0, 90.0),
        Game(16, 2, 3, 115.0, 125.0),
        Game(17, 1, 3, 50.0, 55.0),
        Game(17, 2, 5, 60.0, 50.0),
        Game(18, 3, 1, 40.0, 60.0),
        Game(18, 5, 2, 70.0, 45.0),
    ]


def test_seed_playoff_teams_takes_top_of_ranking() -> None:
    ranking = [StandingEntry(team_id=tid, rank=rank) for rank, tid in enumerate(["c", "a", "b", "d"], start=1)]
    assert seed_playoff_teams(ranking, 3) == {"c": 1, "a": 2, "b": 3}


def test_bracket_game_from_scores() -> None:
    game = BracketGame.from_scores(BracketRound.SEMIFINAL, 1, 2, 90.0, 101.5)
    assert (game.winner_id, game.loser_id) == (2, 1)
    tie = BracketGame.from_scores(BracketRound.SEMIFINAL, 1, 2, 90.0, 90.0)
    assert not tie.is_decided


def test_authoritative_source_uses_placement_markers(authoritative_bracket) -> None:
    bracket = AuthoritativeBracketSource(authoritative_bracket).build(SEEDS)
    assert bracket.source == "bracket_api"
    assert (bracket.championship.winner_id, bracket.championship.loser_id) == (1, 3)
    assert (bracket.third_place.winner_id, bracket.third_place.loser_id) == (2, 5)
    assert len(bracket.quarterfinals) == 2
    assert len(bracket.semifinals) == 2
    validate_bracket(bracket, 6)


def test_authoritative_source_positional_fallback() -> None:
    matchups = [
        BracketMatchup(round=1, matchup_id=1, team1_id=1, team2_id=4, winner_id=1, loser_id=4),
        BracketMatchup(round=1, matchup_id=2, team1_id=2, team2_id=3, winner_id=3, loser_id=2),
        BracketMatchup(round=2, matchup_id=3, team1_id=1, team2_id=3, winner_id=3),
        BracketMatchup(round=2, matchup_id=4, team1_id=4, team2_id=2, winner_id=4),
    ]
    bracket = AuthoritativeBracketSource(matchups).build({1: 1, 2: 2, 3: 3, 4: 4})
    assert bracket.championship.winner_id == 3
    assert bracket.championship.loser_id == 1
    assert bracket.third_place.winner_id == 4
    assert [game.round for game in bracket.semifinals] == [BracketRound.SEMIFINAL] * 2
    assert bracket.quarterfinals == []
    validate_bracket(bracket, 4)


def test_authoritative_source_without_games_is_unavailable() -> None:
    incomplete = [BracketMatchup(round=3, matchup_id=1, team1_id=None, team2_id=2)]
    with pytest.raises(BracketUnavailableError):
        AuthoritativeBracketSource(incomplete).build(SEEDS)


def test_detect_traditional_structure(playoff_games) -> None:
    weekly = {}
    for game in playoff_games:
        weekly.setdefault(game.week, []).append(game)
    structure = detect_playoff_structure(weekly, SEEDS)
    assert structure.quarterfinals_week == 15
    assert structure.semifinals_week == 16
    assert structure.championship_weeks == (17,)
    assert structure.finalists == (1, 3)
    assert not structure.two_week_final


def test_schedule_source_traditional(playoff_games) -> None:
    bracket = ScheduleBracketSource(playoff_games).build(SEEDS)
    assert bracket.source == "schedule"
    assert bracket.championship.winner_id == 1
    assert bracket.third_place.winner_id == 2
    assert bracket.has_third_place
    assert {game.loser_id for game in bracket.quarterfinals} == {4, 6}
    validate_bracket(bracket, 6)


def _top_seeds_win_semifinals(two_week: bool = False):
    """Quarterfinal winners 3 and 5 both lose their semifinals and meet for third place."""

    games = [
        Game(15, 3, 6, 120.0, 100.0),
        Game(15, 4, 5, 105.0, 110.0),
        Game(16, 1, 5, 130.0, 90.0),
        Game(16, 2, 3, 115.0, 105.0),
    ]
    if two_week:
        games += [
            Game(17, 1, 2, 60.0, 50.0),
            Game(17, 3, 5, 40.0, 45.0),
            Game(18, 2, 1, 70.0, 55.0),
            Game(18, 5, 3, 50.0, 48.0),
        ]
    else:
        games += [
            Game(17, 1, 2, 110.0, 120.0),
            Game(17, 3, 5, 101.0, 99.0),
        ]
    return games


def test_detect_ignores_third_place_meeting_of_quarterfinal_winners() -> None:
    weekly = {}
    for game in _top_seeds_win_semifinals():
        weekly.setdefault(game.week, []).append(game)
    structure = detect_playoff_structure(weekly, SEEDS)
    assert structure.quarterfinals_week == 15
    assert structure.semifinals_week == 16
    assert structure.championship_weeks == (17,)
    assert structure.finalists == (1, 2)


def test_schedule_source_when_top_seeds_reach_the_final() -> None:
    bracket = ScheduleBracketSource(_top_seeds_win_semifinals()).build(SEEDS)
    assert bracket.semifinals_week == 16
    assert (bracket.championship.winner_id, bracket.championship.loser_id) == (2, 1)
    assert (bracket.third_place.winner_id, bracket.third_place.loser_id) == (3, 5)
    assert {game.loser_id for game in bracket.quarterfinals} == {4, 6}
    validate_bracket(bracket, 6)


def test_two_week_final_when_top_seeds_reach_the_final() -> None:
    bracket = ScheduleBracketSource(_top_seeds_win_semifinals(two_week=True)).build(SEEDS)
    assert bracket.semifinals_week == 16
    assert bracket.two_week_final
    assert bracket.championship_weeks == (17, 18)
    champ = bracket.championship
    assert (champ.team1_id, champ.team2_id) == (1, 2)
    assert (champ.team1_score, champ.team2_score) == (115.0, 120.0)
    assert champ.winner_id == 2
    # semifinal losers aggregate across the same weeks: 5 -> 95, 3 -> 88
    assert bracket.third_place.winner_id == 5
    validate_bracket(bracket, 6)


def test_two_week_aggregate_championship() -> None:
    bracket = ScheduleBracketSource(_two_week_final_games()).build(SEEDS)
    assert bracket.two_week_final
    assert bracket.championship_weeks == (17, 18)
    champ = bracket.championship
    assert (champ.team1_score, champ.team2_score) == (110.0, 95.0)
    assert champ.winner_id == 1
    # semifinal losers aggregate across the same weeks: 2 -> 105, 5 -> 120
    assert bracket.third_place.winner_id == 5
    assert bracket.third_place.loser_id == 2
    assert not bracket.has_third_place
    validate_bracket(bracket, 6)


def test_four_team_playoff_has_no_quarterfinals() -> None:
    games = [
        Game(15, 1, 4, 100.0, 90.0),
        Game(15, 2, 3, 80.0, 95.0),
        Game(16, 1, 3, 120.0, 110.0),
        Game(16, 4, 2, 99.0, 98.0),
    ]
    seeds = {1: 1, 2: 2, 3: 3, 4: 4}
    bracket = ScheduleBracketSource(games, start_week=15, end_week=17).build(seeds)
    assert bracket.quarterfinals_week is None
    assert bracket.semifinals_week == 15
    assert bracket.championship.winner_id == 1
    assert bracket.third_place.winner_id == 4
    validate_bracket(bracket, 4)


def test_schedule_without_bracket_games_cannot_be_detected() -> None:
    games = [Game(15, 1, 7, 100.0, 90.0), Game(16, 2, 8, 100.0, 90.0)]
    with pytest.raises(BracketUnavailableError, match="could not detect"):
        ScheduleBracketSource(games).build(SEEDS)


def test_reconstruct_prefers_first_working_source(authoritative_bracket, playoff_games) -> None:
    sources = [AuthoritativeBracketSource([]), ScheduleBracketSource(playoff_games)]
    bracket = reconstruct_bracket(SEEDS, sources)
    assert bracket.source == "schedule"

    sources = [AuthoritativeBracketSource(authoritative_bracket), ScheduleBracketSource(playoff_games)]
    assert reconstruct_bracket(SEEDS, sources).source == "bracket_api"


def test_reconstruct_skips_invalid_bracket_when_validating(playoff_games) -> None:
    undecided = [BracketMatchup(round=1, matchup_id=1, team1_id=1, team2_id=3, placement=1)]
    sources = [AuthoritativeBracketSource(undecided), ScheduleBracketSource(playoff_games)]
    bracket = reconstruct_bracket(SEEDS, sources, expected_playoff_teams=6)
    assert bracket.source == "schedule"

    with pytest.raises(BracketValidationError):
        reconstruct_bracket(SEEDS, [AuthoritativeBracketSource(undecided)], expected_playoff_teams=6)


def test_reconstruct_reports_every_failure() -> None:
    with pytest.raises(BracketUnavailableError) as excinfo:
        reconstruct_bracket(SEEDS, [AuthoritativeBracketSource([]), ScheduleBracketSource([])])
    assert "bracket_api" in str(excinfo.value)
    assert "schedule" in str(excinfo.value)


def _valid_bracket() -> PlayoffBracket:
    return PlayoffBracket(
        playoff_teams=dict(SEEDS),
        quarterfinals=[
            BracketGame.from_scores(BracketRound.QUARTERFINAL, 3, 6, 120.0, 100.0),
            BracketGame.from_scores(BracketRound.QUARTERFINAL, 4, 5, 105.0, 110.0),
        ],
        semifinals=[
            BracketGame.from_scores(BracketRound.SEMIFINAL, 1, 5, 130.0, 90.0),
            BracketGame.from_scores(BracketRound.SEMIFINAL, 2, 3, 115.0, 125.0),
        ],
        championship=BracketGame.from_scores(BracketRound.CHAMPIONSHIP, 1, 3, 140.0, 130.0),
        third_place=BracketGame.from_scores(BracketRound.THIRD_PLACE, 2, 5, 100.0, 95.0),
    )


def test_validate_bracket_accepts_complete_bracket() -> None:
    validate_bracket(_valid_bracket(), 6)


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda b: b.playoff_teams.pop(6), "expected 6 playoff teams"),
        (lambda b: b.quarterfinals.pop(), "incomplete quarterfinals"),
        (lambda b: b.semifinals.pop(), "incomplete semifinals"),
        (lambda b: setattr(b, "championship", None), "championship game not found"),
        (lambda b: setattr(b, "third_place", None), "third place game not found"),
        (
            lambda b: setattr(b, "championship", BracketGame.from_scores(BracketRound.CHAMPIONSHIP, 1, 2, 100.0, 90.0)),
            "don't match semifinal winners",
        ),
    ],
)
def test_validate_bracket_rejects_incomplete(mutate, message) -> None:
    bracket = _valid_bracket()
    mutate(bracket)
    with pytest.raises(BracketValidationError, match=message):
        validate_bracket(bracket, 6)


def test_validate_bracket_missing() -> None:
    with pytest.raises(BracketValidationError):
        validate_bracket(None, 6)


def test_detection_does_not_warn_about_weeks_without_games(playoff_games, caplog) -> None:
    # week 18 is inside the window but the playoffs ended in week 17
    with caplog.at_level(logging.WARNING, logger="playoffs"):
        ScheduleBracketSource(playoff_games).build(SEEDS)
    assert not [record for record in caplog.records if record.levelno >= logging.WARNING]
