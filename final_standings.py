"""Overlay playoff results onto the regular-season ranking."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from playoffs import PlayoffBracket
from records import StandingEntry, TeamId

logger = logging.getLogger(__name__)


class PlayoffOutcome(str, Enum):
    CHAMPION = "champion"
    RUNNER_UP = "runner_up"
    THIRD_PLACE = "third_place"
    FOURTH_PLACE = "fourth_place"
    QUARTERFINAL_LOSS = "quarterfinal_loss"
    NO_PLAYOFFS = "no_playoffs"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]


_PRIORITY: Dict[PlayoffOutcome, int] = {
    PlayoffOutcome.CHAMPION: 1,
    PlayoffOutcome.RUNNER_UP: 2,
    PlayoffOutcome.THIRD_PLACE: 3,
    PlayoffOutcome.FOURTH_PLACE: 4,
    PlayoffOutcome.QUARTERFINAL_LOSS: 5,
    PlayoffOutcome.NO_PLAYOFFS: 6,
}

# Seeded teams the bracket never placed (a missing third-place game, say)
# sit between fourth place and the quarterfinal losers.
_UNDECIDED_PRIORITY = 4.5

# Outcomes whose members are ordered by their regular-season finish.
_RANKED_BY_SEASON = {PlayoffOutcome.QUARTERFINAL_LOSS, PlayoffOutcome.NO_PLAYOFFS}


def assign_playoff_outcomes(
    ranking: Sequence[StandingEntry],
    bracket: PlayoffBracket,
) -> Dict[TeamId, PlayoffOutcome]:
    """Map every team the bracket placed to its :class:`PlayoffOutcome`.

    Teams that were seeded but have no decided result are left out.
    """

    outcomes: Dict[TeamId, PlayoffOutcome] = {}

    def _set(team_id: Optional[TeamId], outcome: PlayoffOutcome) -> None:
        if team_id is not None:
            outcomes[team_id] = outcome

    if bracket.championship is not None:
        _set(bracket.championship.winner_id, PlayoffOutcome.CHAMPION)
        _set(bracket.championship.loser_id, PlayoffOutcome.RUNNER_UP)
    if bracket.third_place is not None:
        _set(bracket.third_place.winner_id, PlayoffOutcome.THIRD_PLACE)
        _set(bracket.third_place.loser_id, PlayoffOutcome.FOURTH_PLACE)
    for game in bracket.quarterfinals:
        if game.loser_id is not None and game.loser_id not in outcomes:
            outcomes[game.loser_id] = PlayoffOutcome.QUARTERFINAL_LOSS

    for entry in ranking:
        if entry.team_id not in bracket.playoff_teams:
            outcomes.setdefault(entry.team_id, PlayoffOutcome.NO_PLAYOFFS)
    return outcomes


def _sort_key(entry: StandingEntry, outcome: Optional[PlayoffOutcome]) -> Tuple[float, int]:
    season_rank = entry.regular_season_rank or entry.rank
    if outcome is None:
        return _UNDECIDED_PRIORITY, season_rank
    if outcome in _RANKED_BY_SEASON:
        return outcome.priority, season_rank
    return outcome.priority, 0


def compose_final_standings(
    regular_season_ranking: Sequence[StandingEntry],
    bracket: PlayoffBracket,
) -> List[StandingEntry]:
    """Final placement: playoff outcome first, regular-season rank second.

    Inputs are not mutated; entries are copied, so composing the same ranking
    twice gives the same result.
    """

    entries: List[StandingEntry] = []
    for entry in sorted(regular_season_ranking, key=lambda e: e.regular_season_rank or e.rank):
        copy = StandingEntry(**vars(entry))
        if copy.regular_season_rank is None:
            copy.regular_season_rank = entry.rank
        entries.append(copy)

    outcomes = assign_playoff_outcomes(entries, bracket)
    undecided = [e.team_id for e in entries if e.team_id not in outcomes]
    if undecided:
        logger.warning("Playoff teams without a decided outcome: %s", undecided)

    for entry in entries:
        outcome = outcomes.get(entry.team_id)
        entry.playoff_outcome = outcome.value if outcome else None

    entries.sort(key=lambda e: _sort_key(e, outcomes.get(e.team_id)))
    for rank, entry in enumerate(entries, start=1):
        entry.rank = rank
    return entries


__all__ = [
    "PlayoffOutcome",
    "assign_playoff_outcomes",
    "compose_final_standings",
]
