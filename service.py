"""League standings orchestration.

``compute_standings`` is the single entry point used by the CLI and the API:
it pulls records and games from a :class:`~sleeper_client.LeagueDataSource`,
resolves the tie-break policy, ranks the regular season and, in final mode,
overlays the playoff bracket. Bracket problems never fail the request; the
report falls back to regular-season standings and says so in its notes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from config import LeagueConfig, load_league_config, settings
from final_standings import compose_final_standings
from head_to_head import build_head_to_head_matrix, collect_weekly_games
from playoffs import (
    AuthoritativeBracketSource,
    BracketSource,
    BracketUnavailableError,
    BracketValidationError,
    PlayoffBracket,
    ScheduleBracketSource,
    reconstruct_bracket,
    seed_playoff_teams,
)
from records import Game, StandingEntry, TeamId, TeamRecord, compute_division_win_pct, compute_records
from sleeper_client import LeagueDataSource, LeagueInfo, SleeperAPIError
from standings import rank_teams
from tiebreakers import ResolvedPolicy, TiebreakKind, format_policy, resolve_policy

logger = logging.getLogger(__name__)

BRACKET_VALIDATION_FAILED = "playoff bracket validation failed, using regular season standings"
BRACKET_PROCESSING_FAILED = "failed to process playoff bracket, using regular season standings"


class StandingsMode(str, Enum):
    REGULAR_SEASON = "regular_season"
    FINAL = "final"


@dataclass
class PolicyInputs:
    """Caller-supplied ranking options for one request."""

    tiebreak_order: Optional[List[str]] = None
    instructions: Optional[str] = None
    custom_values: Dict[Any, float] = field(default_factory=dict)
    random_seed: Optional[int] = None


@dataclass
class StandingsReport:
    league_id: str
    mode: StandingsMode
    standings: List[StandingEntry]
    policy: ResolvedPolicy
    final_available: bool = False
    notes: List[str] = field(default_factory=list)
    policy_note: str = ""
    summary: str = ""
    bracket: Optional[PlayoffBracket] = None
    league: Optional[LeagueInfo] = None
    failed_weeks: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "league_id": self.league_id,
            "mode": self.mode.value,
            "tiebreak_order": [kind.value for kind in self.policy.order],
            "policy_source": self.policy.source,
            "final_available": self.final_available,
            "notes": list(self.notes),
            "policy_note": self.policy_note,
            "summary": self.summary,
            "standings": [entry.to_dict() for entry in self.standings],
        }


def _match_custom_values(custom_values: Mapping[Any, float], team_ids: Sequence[TeamId]) -> Dict[TeamId, float]:
    # Callers going through JSON send string keys; roster ids are ints.
    by_text = {str(key): value for key, value in (custom_values or {}).items()}
    return {team_id: by_text[str(team_id)] for team_id in team_ids if str(team_id) in by_text}


def _policy_note(policy: ResolvedPolicy, league: Optional[LeagueInfo], final: bool) -> str:
    note = f"Tiebreakers applied: {format_policy(policy.order)}"
    if league is not None and league.playoff_seed_type:
        note += f" (League playoff_seed_type: {league.playoff_seed_type})"
    if final:
        note += " (Final standings based on playoff results)"
    return note


def _summary(standings: Sequence[StandingEntry]) -> str:
    if not standings:
        return "League standings for 0 teams"
    leader = standings[0]
    name = leader.display_name or str(leader.team_id)
    return (
        f"League standings for {len(standings)} teams - Leader: {name} "
        f"({leader.wins}-{leader.losses}, {leader.points_for:.1f} pts)"
    )


def _week_window(league: Optional[LeagueInfo]) -> Tuple[int, int, int]:
    """``(regular_season_end, playoff_start, playoff_end)`` for a league."""

    playoff_start = settings.get("playoff_start_week")
    regular_end = settings.get("regular_season_end_week")
    if league is not None and league.playoff_week_start:
        playoff_start = league.playoff_week_start
        regular_end = playoff_start - 1
    return regular_end, playoff_start, settings.get("final_end_week")


def compute_final_standings(
    regular_season: Sequence[StandingEntry],
    sources: Sequence[BracketSource],
    *,
    expected_playoff_teams: Optional[int] = None,
) -> Tuple[List[StandingEntry], PlayoffBracket]:
    """Build the playoff bracket from the seeded field and rank teams by it.

    Raises :class:`BracketUnavailableError` when no source yields a bracket
    and :class:`BracketValidationError` when the bracket is incomplete.
    """

    team_count = expected_playoff_teams or settings.get("default_playoff_teams")
    seeded = seed_playoff_teams(regular_season, team_count)
    bracket = reconstruct_bracket(seeded, sources, expected_playoff_teams=team_count)
    final = compose_final_standings(regular_season, bracket)
    logger.info(
        "Calculated final standings from %s bracket: champion=%s",
        bracket.source,
        bracket.championship.winner_id if bracket.championship else None,
    )
    return final, bracket


def _fetch_games(client: LeagueDataSource, league_id: str, weeks: range) -> Tuple[List[Game], List[int]]:
    return collect_weekly_games(
        lambda week: client.get_games(league_id, week),
        weeks,
        max_workers=settings.get("fetch_workers"),
    )


def compute_standings(
    league_id: str,
    policy_inputs: Optional[PolicyInputs] = None,
    mode: StandingsMode | str = StandingsMode.REGULAR_SEASON,
    *,
    client: LeagueDataSource,
    league_config: Optional[LeagueConfig] = None,
) -> StandingsReport:
    """Rank a league's teams for the regular season or the final placement.

    Failing to load team records is fatal and propagates as
    :class:`SleeperAPIError`. Everything else degrades: a missing league
    payload drops the platform default policy, missing weeks are skipped and
    an unusable bracket leaves the regular-season ranking in place.
    """

    mode = StandingsMode(mode)
    inputs = policy_inputs or PolicyInputs()
    league_config = league_config or load_league_config()

    league: Optional[LeagueInfo] = None
    try:
        league = client.get_league(league_id)
    except SleeperAPIError as exc:
        logger.warning("Failed to get league %s: %s", league_id, exc)

    stored_order, stored_instructions = league_config.get_stored_policy(league_id)
    policy = resolve_policy(
        inputs.tiebreak_order,
        inputs.instructions,
        stored_order=stored_order,
        stored_instructions=stored_instructions,
        seed_type=league.playoff_seed_type if league is not None else None,
    )
    logger.info("Ranking league %s with %s (source: %s)", league_id, policy.describe(), policy.source)

    regular_end, playoff_start, playoff_end = _week_window(league)
    records: List[TeamRecord] = client.get_team_records(league_id)

    needs_games = not records or any(
        kind in policy.order for kind in (TiebreakKind.HEAD_TO_HEAD, TiebreakKind.DIVISION_RECORD)
    )
    last_week = playoff_end if mode is StandingsMode.FINAL else regular_end
    games: List[Game] = []
    failed_weeks: List[int] = []
    if needs_games or mode is StandingsMode.FINAL:
        games, failed_weeks = _fetch_games(client, league_id, range(1, last_week + 1))

    if not records:
        logger.info("No roster totals for league %s; deriving records from games", league_id)
        records = compute_records(games, end_week=regular_end)

    matrix = None
    if TiebreakKind.HEAD_TO_HEAD in policy.order:
        matrix = build_head_to_head_matrix(games, 1, regular_end)
    division_win_pct = None
    if TiebreakKind.DIVISION_RECORD in policy.order:
        divisions = {record.team_id: record.division_id for record in records}
        division_win_pct = compute_division_win_pct(games, divisions, end_week=regular_end) or None

    ranking = rank_teams(
        records,
        policy.order,
        matrix,
        custom_values=_match_custom_values(inputs.custom_values, [r.team_id for r in records]),
        division_win_pct=division_win_pct,
        seed=inputs.random_seed,
    )
    for entry in ranking:
        entry.regular_season_rank = entry.rank

    report = StandingsReport(
        league_id=league_id,
        mode=mode,
        standings=ranking,
        policy=policy,
        league=league,
        failed_weeks=failed_weeks,
    )
    if failed_weeks:
        report.notes.append(f"matchup data unavailable for weeks {failed_weeks}")

    if mode is StandingsMode.FINAL:
        _apply_playoffs(report, client, games, playoff_start, playoff_end)

    report.policy_note = _policy_note(policy, league, report.final_available)
    report.summary = _summary(report.standings)
    return report


def _apply_playoffs(
    report: StandingsReport,
    client: LeagueDataSource,
    games: Sequence[Game],
    playoff_start: int,
    playoff_end: int,
) -> None:
    sources: List[BracketSource] = []
    try:
        sources.append(AuthoritativeBracketSource(client.get_bracket(report.league_id)))
    except SleeperAPIError as exc:
        logger.warning("Failed to get winners bracket for league %s: %s", report.league_id, exc)
    sources.append(ScheduleBracketSource(games, start_week=playoff_start, end_week=playoff_end))

    expected = report.league.playoff_teams if report.league is not None else None
    try:
        final, bracket = compute_final_standings(report.standings, sources, expected_playoff_teams=expected)
    except BracketValidationError as exc:
        logger.warning("Playoff bracket validation failed, using regular season standings: %s", exc)
        report.notes.append(f"{BRACKET_VALIDATION_FAILED}: {exc}")
        return
    except BracketUnavailableError as exc:
        logger.warning("Failed to process playoff bracket, using regular season standings: %s", exc)
        report.notes.append(f"{BRACKET_PROCESSING_FAILED}: {exc}")
        return

    report.standings = final
    report.bracket = bracket
    report.final_available = True


__all__ = [
    "BRACKET_VALIDATION_FAILED",
    "BRACKET_PROCESSING_FAILED",
    "StandingsMode",
    "PolicyInputs",
    "StandingsReport",
    "compute_final_standings",
    "compute_standings",
]
