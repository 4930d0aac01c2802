from __future__ import annotations

from final_standings import PlayoffOutcome, assign_playoff_outcomes, compose_final_standings
from playoffs import AuthoritativeBracketSource, ScheduleBracketSource, seed_playoff_teams
from standings import rank_teams


def _regular_season(records):
    ranking = rank_teams(records, ["wins", "points_for"])
    for entry in ranking:
        entry.regular_season_rank = entry.rank
    return ranking


def test_outcome_priorities_are_ordered() -> None:
    priorities = [outcome.priority for outcome in PlayoffOutcome]
    assert priorities == sorted(priorities) == [1, 2, 3, 4, 5, 6]


def test_assign_playoff_outcomes(league_records, playoff_games) -> None:
    ranking = _regular_season(league_records)
    bracket = ScheduleBracketSource(playoff_games).build(seed_playoff_teams(ranking, 6))
    outcomes = assign_playoff_outcomes(ranking, bracket)
    assert outcomes[1] is PlayoffOutcome.CHAMPION
    assert outcomes[3] is PlayoffOutcome.RUNNER_UP
    assert outcomes[2] is PlayoffOutcome.THIRD_PLACE
    assert outcomes[5] is PlayoffOutcome.FOURTH_PLACE
    assert outcomes[4] is PlayoffOutcome.QUARTERFINAL_LOSS
    assert outcomes[6] is PlayoffOutcome.QUARTERFINAL_LOSS
    assert outcomes[7] is PlayoffOutcome.NO_PLAYOFFS
    assert outcomes[8] is PlayoffOutcome.NO_PLAYOFFS


def test_compose_final_standings(league_records, authoritative_bracket) -> None:
    ranking = _regular_season(league_records)
    bracket = AuthoritativeBracketSource(authoritative_bracket).build(seed_playoff_teams(ranking, 6))
    final = compose_final_standings(ranking, bracket)

    assert [entry.team_id for entry in final] == [1, 3, 2, 5, 4, 6, 7, 8]
    assert [entry.rank for entry in final] == list(range(1, 9))
    assert final[0].playoff_outcome == "champion"
    assert final[1].regular_season_rank == 3
    # quarterfinal losers always sit above teams that missed the playoffs
    qf_ranks = [e.rank for e in final if e.playoff_outcome == "quarterfinal_loss"]
    out_ranks = [e.rank for e in final if e.playoff_outcome == "no_playoffs"]
    assert max(qf_ranks) < min(out_ranks)


def test_compose_is_pure_and_idempotent(league_records, playoff_games) -> None:
    ranking = _regular_season(league_records)
    bracket = ScheduleBracketSource(playoff_games).build(seed_playoff_teams(ranking, 6))
    first = compose_final_standings(ranking, bracket)
    second = compose_final_standings(ranking, bracket)
    again = compose_final_standings(first, bracket)

    assert [e.team_id for e in first] == [e.team_id for e in second] == [e.team_id for e in again]
    # the input ranking is untouched
    assert [e.team_id for e in ranking] == list(range(1, 9))
    assert all(e.playoff_outcome is None for e in ranking)


def test_undecided_playoff_teams_rank_after_fourth_place(league_records, playoff_games) -> None:
    ranking = _regular_season(league_records)
    bracket = ScheduleBracketSource(playoff_games).build(seed_playoff_teams(ranking, 6))
    bracket.third_place = None
    bracket.has_third_place = False
    final = compose_final_standings(ranking, bracket)

    assert [entry.team_id for entry in final] == [1, 3, 2, 5, 4, 6, 7, 8]
    assert final[2].playoff_outcome is None
    assert final[3].playoff_outcome is None
