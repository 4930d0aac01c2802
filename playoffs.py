"""Playoff bracket reconstruction.

Two strategies sit behind :class:`BracketSource`:

* :class:`AuthoritativeBracketSource` reads the platform's winners-bracket
  feed, where every game already carries a round number.
* :class:`ScheduleBracketSource` infers the bracket from weekly matchups by
  looking at which seeded teams meet each other in the playoff weeks. It
  handles the two-week aggregate championship and reports formats it cannot
  read instead of guessing.

:func:`reconstruct_bracket` tries sources in order and :func:`validate_bracket`
checks the result before final standings are built from it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from records import BracketMatchup, Game, StandingEntry, TeamId

logger = logging.getLogger(__name__)

DEFAULT_PLAYOFF_TEAMS = 6
DEFAULT_PLAYOFF_START_WEEK = 15
DEFAULT_PLAYOFF_END_WEEK = 18

CHAMPIONSHIP_MARKER = 1
THIRD_PLACE_MARKER = 3


class BracketUnavailableError(RuntimeError):
    """No bracket could be built from the available data."""


class BracketValidationError(ValueError):
    """A bracket was built but is missing games or is inconsistent."""


class BracketRound(str, Enum):
    QUARTERFINAL = "quarterfinal"
    SEMIFINAL = "semifinal"
    CHAMPIONSHIP = "championship"
    THIRD_PLACE = "third_place"


@dataclass(frozen=True)
class BracketGame:
    round: BracketRound
    team1_id: TeamId
    team2_id: TeamId
    team1_score: Optional[float] = None
    team2_score: Optional[float] = None
    winner_id: Optional[TeamId] = None
    loser_id: Optional[TeamId] = None
    week: Optional[int] = None
    matchup_id: Optional[int] = None

    @classmethod
    def from_scores(
        cls,
        round: BracketRound,
        team1_id: TeamId,
        team2_id: TeamId,
        team1_score: float,
        team2_score: float,
        *,
        week: Optional[int] = None,
        matchup_id: Optional[int] = None,
    ) -> "BracketGame":
        winner: Optional[TeamId] = None
        loser: Optional[TeamId] = None
        if not math.isclose(team1_score, team2_score):
            if team1_score > team2_score:
                winner, loser = team1_id, team2_id
            else:
                winner, loser = team2_id, team1_id
        return cls(
            round=round,
            team1_id=team1_id,
            team2_id=team2_id,
            team1_score=float(team1_score),
            team2_score=float(team2_score),
            winner_id=winner,
            loser_id=loser,
            week=week,
            matchup_id=matchup_id,
        )

    @property
    def participants(self) -> Tuple[TeamId, TeamId]:
        return self.team1_id, self.team2_id

    @property
    def is_decided(self) -> bool:
        return self.winner_id is not None and self.loser_id is not None


@dataclass
class PlayoffBracket:
    playoff_teams: Dict[TeamId, int]
    quarterfinals: List[BracketGame] = field(default_factory=list)
    semifinals: List[BracketGame] = field(default_factory=list)
    championship: Optional[BracketGame] = None
    third_place: Optional[BracketGame] = None
    has_third_place: bool = True
    two_week_final: bool = False
    source: str = ""
    quarterfinals_week: Optional[int] = None
    semifinals_week: Optional[int] = None
    championship_weeks: Tuple[int, ...] = ()


def seed_playoff_teams(ranking: Sequence[StandingEntry], playoff_team_count: int) -> Dict[TeamId, int]:
    """Map the top ``playoff_team_count`` teams of a ranking to seeds 1..N."""

    ordered = sorted(ranking, key=lambda entry: entry.rank)
    return {entry.team_id: seed for seed, entry in enumerate(ordered[:playoff_team_count], start=1)}


class BracketSource(Protocol):
    name: str

    def build(self, playoff_teams: Mapping[TeamId, int]) -> PlayoffBracket:
        ...


# --------------------------------------------------------------------------- #
# Authoritative bracket feed
# --------------------------------------------------------------------------- #
class AuthoritativeBracketSource:
    """Bracket built from pre-classified bracket games (round numbers)."""

    name = "bracket_api"

    def __init__(self, matchups: Sequence[BracketMatchup]) -> None:
        self.matchups = list(matchups)

    @staticmethod
    def _to_game(matchup: BracketMatchup, round: BracketRound) -> BracketGame:
        winner = matchup.winner_id
        loser = matchup.loser_id
        if winner is not None and loser is None:
            loser = matchup.team2_id if winner == matchup.team1_id else matchup.team1_id
        if winner not in (None, matchup.team1_id, matchup.team2_id):
            logger.warning("Bracket matchup %s names a winner outside the game; treating as undecided", matchup.matchup_id)
            winner = loser = None
        return BracketGame(
            round=round,
            team1_id=matchup.team1_id,
            team2_id=matchup.team2_id,
            team1_score=matchup.team1_score,
            team2_score=matchup.team2_score,
            winner_id=winner,
            loser_id=loser,
            matchup_id=matchup.matchup_id,
        )

    def build(self, playoff_teams: Mapping[TeamId, int]) -> PlayoffBracket:
        games = [m for m in self.matchups if m.team1_id is not None and m.team2_id is not None]
        if not games:
            raise BracketUnavailableError("bracket feed has no complete games")

        max_round = max(m.round for m in games)
        final_round = [m for m in games if m.round == max_round]

        championship: Optional[BracketMatchup] = None
        third_place: Optional[BracketMatchup] = None
        if any(m.placement is not None for m in final_round):
            for matchup in final_round:
                if matchup.placement == CHAMPIONSHIP_MARKER and championship is None:
                    championship = matchup
                elif matchup.placement == THIRD_PLACE_MARKER and third_place is None:
                    third_place = matchup
        else:
            championship = final_round[0]
            third_place = final_round[1] if len(final_round) > 1 else None

        if championship is None:
            raise BracketUnavailableError("championship game not found in bracket data")

        bracket = PlayoffBracket(
            playoff_teams=dict(playoff_teams),
            championship=self._to_game(championship, BracketRound.CHAMPIONSHIP),
            third_place=self._to_game(third_place, BracketRound.THIRD_PLACE) if third_place else None,
            has_third_place=third_place is not None,
            source=self.name,
        )

        # Placement games (5th place and the like) carry a marker; only
        # unmarked games belong to the elimination rounds.
        for matchup in sorted(games, key=lambda m: (m.round, m.matchup_id or 0)):
            if matchup.round == max_round or matchup.placement is not None:
                continue
            if matchup.round == max_round - 1:
                bracket.semifinals.append(self._to_game(matchup, BracketRound.SEMIFINAL))
            else:
                bracket.quarterfinals.append(self._to_game(matchup, BracketRound.QUARTERFINAL))

        logger.info(
            "Processed bracket from feed: champion=%s runner_up=%s third=%s quarterfinals=%d semifinals=%d",
            bracket.championship.winner_id,
            bracket.championship.loser_id,
            bracket.third_place.winner_id if bracket.third_place else None,
            len(bracket.quarterfinals),
            len(bracket.semifinals),
        )
        return bracket


# --------------------------------------------------------------------------- #
# Heuristic detection from weekly matchups
# --------------------------------------------------------------------------- #
@dataclass
class PlayoffStructure:
    quarterfinals_week: Optional[int] = None
    semifinals_week: Optional[int] = None
    championship_weeks: Tuple[int, ...] = ()
    finalists: Tuple[TeamId, ...] = ()
    two_week_final: bool = False
    week_counts: Dict[int, int] = field(default_factory=dict)


def _games_by_week(games: Iterable[Game]) -> Dict[int, List[Game]]:
    weeks: Dict[int, List[Game]] = {}
    for game in games:
        if not game.is_valid:
            continue
        weeks.setdefault(game.week, []).append(game)
    return weeks


def bracket_games_for_week(games: Sequence[Game], playoff_teams: Mapping[TeamId, int]) -> List[Game]:
    """Games in which both participants are seeded playoff teams."""

    return [g for g in games if g.team_a_id in playoff_teams and g.team_b_id in playoff_teams]


def count_bracket_teams(games: Sequence[Game], playoff_teams: Mapping[TeamId, int]) -> int:
    teams = set()
    for game in bracket_games_for_week(games, playoff_teams):
        teams.update((game.team_a_id, game.team_b_id))
    return len(teams)


def _round_winners(games: Sequence[Game]) -> Optional[frozenset]:
    winners = {game.winner_id for game in games}
    if len(games) != 2 or None in winners or len(winners) != 2:
        return None
    return frozenset(winners)


def _weeks_with_pair(
    weekly_bracket_games: Mapping[int, Sequence[Game]],
    pair: frozenset,
    after_week: int,
) -> List[int]:
    """Consecutive weeks after ``after_week`` in which ``pair`` meet each other.

    The run has to start in the first week with data after ``after_week``; a
    later meeting (a third-place game between two semifinal losers) does not
    count.
    """

    weeks: List[int] = []
    for week in sorted(w for w in weekly_bracket_games if w > after_week):
        if weeks and week != weeks[-1] + 1:
            break
        if not any(game.pair == pair for game in weekly_bracket_games[week]):
            break
        weeks.append(week)
    return weeks


def detect_playoff_structure(
    weekly_games: Mapping[int, Sequence[Game]],
    playoff_teams: Mapping[TeamId, int],
    *,
    start_week: int = DEFAULT_PLAYOFF_START_WEEK,
    end_week: int = DEFAULT_PLAYOFF_END_WEEK,
) -> PlayoffStructure:
    """Read the playoff layout off which seeded teams meet each other each week.

    A week where exactly four seeded teams meet is a four-team round
    (quarterfinal, then semifinal); the semifinal is the four-team round whose
    two winners meet in the next week with games. A week with exactly two
    seeded teams meeting is a championship-type round. The same two finalists
    meeting in two consecutive weeks is a two-week aggregate final. Weeks with
    no games are skipped. Raises :class:`BracketUnavailableError` when no
    championship round can be found.
    """

    structure = PlayoffStructure()
    bracket_games: Dict[int, List[Game]] = {}
    for week in range(start_week, end_week + 1):
        games = weekly_games.get(week)
        if games is None:
            logger.debug("No games found for week %s during playoff detection", week)
            continue
        bracket_games[week] = bracket_games_for_week(games, playoff_teams)
        structure.week_counts[week] = count_bracket_teams(games, playoff_teams)
        logger.debug("Week %s: %s playoff teams in bracket games", week, structure.week_counts[week])

    four_team_weeks = [week for week, count in sorted(structure.week_counts.items()) if count == 4]

    for idx, week in enumerate(four_team_weeks):
        winners = _round_winners(bracket_games[week])
        if winners is None:
            continue
        final_weeks = _weeks_with_pair(bracket_games, winners, week)
        if final_weeks:
            structure.semifinals_week = week
            structure.quarterfinals_week = four_team_weeks[idx - 1] if idx > 0 else None
            structure.finalists = tuple(sorted(winners, key=lambda tid: playoff_teams.get(tid, 0)))
            structure.championship_weeks = tuple(final_weeks[:2])
            break

    if structure.semifinals_week is None:
        if len(four_team_weeks) >= 2:
            structure.quarterfinals_week, structure.semifinals_week = four_team_weeks[0], four_team_weeks[1]
        elif len(four_team_weeks) == 1:
            structure.semifinals_week = four_team_weeks[0]

        last_round = structure.semifinals_week or (start_week - 1)
        two_team_weeks = [
            week for week, count in sorted(structure.week_counts.items()) if count == 2 and week > last_round
        ]
        if two_team_weeks:
            pair = bracket_games[two_team_weeks[0]][0].pair
            structure.finalists = tuple(sorted(pair, key=lambda tid: playoff_teams.get(tid, 0)))
            structure.championship_weeks = tuple(_weeks_with_pair(bracket_games, pair, two_team_weeks[0] - 1)[:2])

    structure.two_week_final = len(structure.championship_weeks) == 2

    if not structure.championship_weeks:
        raise BracketUnavailableError(
            f"could not detect championship week (playoff team counts by week: {structure.week_counts})"
        )
    return structure


class ScheduleBracketSource:
    """Bracket inferred from the weekly matchup schedule."""

    name = "schedule"

    def __init__(
        self,
        games: Iterable[Game],
        *,
        start_week: int = DEFAULT_PLAYOFF_START_WEEK,
        end_week: int = DEFAULT_PLAYOFF_END_WEEK,
    ) -> None:
        self.weekly_games = _games_by_week(games)
        self.start_week = start_week
        self.end_week = end_week

    def _round_games(self, week: Optional[int], round: BracketRound, playoff_teams: Mapping[TeamId, int]) -> List[BracketGame]:
        if week is None:
            return []
        return [
            BracketGame.from_scores(
                round,
                game.team_a_id,
                game.team_b_id,
                game.score_a,
                game.score_b,
                week=week,
                matchup_id=game.matchup_id,
            )
            for game in bracket_games_for_week(self.weekly_games.get(week, []), playoff_teams)
        ]

    def _aggregate(self, teams: Sequence[TeamId], weeks: Sequence[int], round: BracketRound) -> Optional[BracketGame]:
        totals: Dict[TeamId, float] = {}
        for week in weeks:
            for game in self.weekly_games.get(week, []):
                for team_id in teams:
                    if game.involves(team_id):
                        totals[team_id] = totals.get(team_id, 0.0) + game.score_for(team_id)
        if len(totals) != 2:
            return None
        team1, team2 = teams
        return BracketGame.from_scores(round, team1, team2, totals[team1], totals[team2], week=weeks[0])

    def build(self, playoff_teams: Mapping[TeamId, int]) -> PlayoffBracket:
        structure = detect_playoff_structure(
            self.weekly_games,
            playoff_teams,
            start_week=self.start_week,
            end_week=self.end_week,
        )
        bracket = PlayoffBracket(
            playoff_teams=dict(playoff_teams),
            quarterfinals=self._round_games(structure.quarterfinals_week, BracketRound.QUARTERFINAL, playoff_teams),
            semifinals=self._round_games(structure.semifinals_week, BracketRound.SEMIFINAL, playoff_teams),
            source=self.name,
            quarterfinals_week=structure.quarterfinals_week,
            semifinals_week=structure.semifinals_week,
            championship_weeks=structure.championship_weeks,
            two_week_final=structure.two_week_final,
        )

        final_weeks = structure.championship_weeks
        finalists = list(structure.finalists)

        if structure.two_week_final:
            bracket.championship = self._aggregate(finalists, final_weeks, BracketRound.CHAMPIONSHIP)
            bracket.has_third_place = False
            semifinal_losers = [game.loser_id for game in bracket.semifinals if game.loser_id is not None]
            if len(semifinal_losers) == 2:
                bracket.third_place = self._aggregate(semifinal_losers, final_weeks, BracketRound.THIRD_PLACE)
        else:
            pair = frozenset(finalists)
            game = next(g for g in self.weekly_games.get(final_weeks[0], []) if g.pair == pair)
            bracket.championship = BracketGame.from_scores(
                BracketRound.CHAMPIONSHIP,
                game.team_a_id,
                game.team_b_id,
                game.score_a,
                game.score_b,
                week=game.week,
                matchup_id=game.matchup_id,
            )
            bracket.third_place = self._third_place_game(bracket, final_weeks[0])
            bracket.has_third_place = bracket.third_place is not None

        logger.info(
            "Detected playoff structure: quarterfinals=%s semifinals=%s championship=%s two_week=%s",
            structure.quarterfinals_week,
            structure.semifinals_week,
            structure.championship_weeks,
            structure.two_week_final,
        )
        return bracket

    def _third_place_game(self, bracket: PlayoffBracket, week: int) -> Optional[BracketGame]:
        losers = {game.loser_id for game in bracket.semifinals if game.loser_id is not None}
        if len(losers) != 2:
            return None
        for game in self.weekly_games.get(week, []):
            if game.pair == frozenset(losers):
                return BracketGame.from_scores(
                    BracketRound.THIRD_PLACE,
                    game.team_a_id,
                    game.team_b_id,
                    game.score_a,
                    game.score_b,
                    week=week,
                    matchup_id=game.matchup_id,
                )
        return None


def reconstruct_bracket(
    playoff_teams: Mapping[TeamId, int],
    sources: Sequence[BracketSource],
    *,
    expected_playoff_teams: Optional[int] = None,
) -> PlayoffBracket:
    """Build a bracket from the first source that can produce one.

    With ``expected_playoff_teams`` each candidate is also validated and an
    invalid bracket moves on to the next source. If every source fails and
    at least one produced a bracket, the last validation error is raised.
    """

    errors: List[str] = []
    validation_error: Optional[BracketValidationError] = None
    for source in sources:
        try:
            bracket = source.build(playoff_teams)
        except BracketUnavailableError as exc:
            logger.warning("Bracket source %s unavailable: %s", source.name, exc)
            errors.append(f"{source.name}: {exc}")
            continue
        if expected_playoff_teams is None:
            return bracket
        try:
            validate_bracket(bracket, expected_playoff_teams)
        except BracketValidationError as exc:
            logger.warning("Bracket from %s failed validation: %s", source.name, exc)
            validation_error = exc
            continue
        return bracket

    if validation_error is not None:
        raise validation_error
    raise BracketUnavailableError("; ".join(errors) or "no bracket sources configured")


def validate_bracket(bracket: Optional[PlayoffBracket], expected_playoff_teams: int = DEFAULT_PLAYOFF_TEAMS) -> None:
    """Raise :class:`BracketValidationError` unless the bracket is complete."""

    if bracket is None:
        raise BracketValidationError("bracket is missing")
    if len(bracket.playoff_teams) != expected_playoff_teams:
        raise BracketValidationError(
            f"expected {expected_playoff_teams} playoff teams, got {len(bracket.playoff_teams)}"
        )
    if expected_playoff_teams > 4 and len(bracket.quarterfinals) < 2:
        raise BracketValidationError(f"incomplete quarterfinals: expected 2 games, got {len(bracket.quarterfinals)}")
    if (bracket.quarterfinals or expected_playoff_teams <= 4) and len(bracket.semifinals) < 2:
        raise BracketValidationError(f"incomplete semifinals: expected 2 games, got {len(bracket.semifinals)}")
    if bracket.championship is None:
        raise BracketValidationError("championship game not found")
    if not bracket.championship.is_decided:
        raise BracketValidationError("championship game has no winner")
    if bracket.has_third_place and bracket.third_place is None:
        raise BracketValidationError("third place game not found")
    if bracket.third_place is not None and not bracket.has_third_place and not bracket.two_week_final:
        raise BracketValidationError("unexpected third place game")
    if bracket.third_place is not None and not bracket.third_place.is_decided:
        raise BracketValidationError("third place game has no winner")

    seeded = set(bracket.playoff_teams)
    for game in [*bracket.quarterfinals, *bracket.semifinals, bracket.championship]:
        if not set(game.participants) <= seeded:
            raise BracketValidationError(f"{game.round.value} game includes a team that was not seeded")

    if not bracket.two_week_final:
        semifinal_winners = {game.winner_id for game in bracket.semifinals}
        if set(bracket.championship.participants) != semifinal_winners:
            raise BracketValidationError("championship game participants don't match semifinal winners")


__all__ = [
    "DEFAULT_PLAYOFF_TEAMS",
    "DEFAULT_PLAYOFF_START_WEEK",
    "DEFAULT_PLAYOFF_END_WEEK",
    "BracketUnavailableError",
    "BracketValidationError",
    "BracketRound",
    "BracketGame",
    "PlayoffBracket",
    "PlayoffStructure",
    "BracketSource",
    "AuthoritativeBracketSource",
    "ScheduleBracketSource",
    "seed_playoff_teams",
    "bracket_games_for_week",
    "count_bracket_teams",
    "detect_playoff_structure",
    "reconstruct_bracket",
    "validate_bracket",
]
