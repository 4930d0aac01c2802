"""Head-to-head win matrix built from completed weekly games."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from records import Game, HeadToHeadMatrix, TeamId

logger = logging.getLogger(__name__)


def collect_weekly_games(
    fetch_week: Callable[[int], Sequence[Game]],
    weeks: Iterable[int],
    *,
    max_workers: int = 4,
) -> Tuple[List[Game], List[int]]:
    """Fetch each week independently and merge the results in week order.

    A week whose fetch raises is logged and skipped. Returns ``(games,
    failed_weeks)``.
    """

    week_list = sorted(set(int(week) for week in weeks))
    if not week_list:
        return [], []

    def _fetch(week: int) -> Tuple[int, Sequence[Game] | None]:
        try:
            return week, fetch_week(week)
        except Exception as exc:  # noqa: BLE001 - a single week never fails the request
            logger.warning("Failed to get games for week %s: %s", week, exc)
            return week, None

    workers = max(1, min(max_workers, len(week_list)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="week-fetch") as pool:
        results = dict(pool.map(_fetch, week_list))

    games: List[Game] = []
    failed: List[int] = []
    for week in week_list:
        week_games = results.get(week)
        if week_games is None:
            failed.append(week)
            continue
        games.extend(week_games)
    if failed and len(failed) == len(week_list):
        logger.warning("No weekly game data could be retrieved (weeks %s-%s)", week_list[0], week_list[-1])
    return games, failed


def build_head_to_head_matrix(
    games: Iterable[Game],
    start_week: int = 1,
    end_week: int | None = None,
) -> HeadToHeadMatrix:
    """Count direct wins between every pair of teams inside a week window.

    ``matrix[a][b]`` is the number of times ``a`` beat ``b``. Tied games add
    nothing. Entries are created lazily, so absent pairs mean zero.
    """

    by_week: Dict[int, Dict[frozenset, List[Game]]] = {}
    for game in games:
        if not game.is_valid:
            logger.debug("Skipping malformed game in week %s: %r", game.week, game)
            continue
        if game.week < start_week or (end_week is not None and game.week > end_week):
            continue
        by_week.setdefault(game.week, {}).setdefault(game.pair, []).append(game)

    matrix: HeadToHeadMatrix = {}
    for week in sorted(by_week):
        for pair_games in by_week[week].values():
            for game in pair_games:
                winner = game.winner_id
                if winner is None:
                    continue
                loser = game.loser_id
                row = matrix.setdefault(winner, {})
                row[loser] = row.get(loser, 0) + 1
    return matrix


def wins_against(matrix: HeadToHeadMatrix, team_id: TeamId, opponent_id: TeamId) -> int:
    return matrix.get(team_id, {}).get(opponent_id, 0)


def has_complete_data(team_ids: Sequence[TeamId], matrix: HeadToHeadMatrix) -> bool:
    """True when every pair of distinct teams has at least one decided result."""

    for idx, team_a in enumerate(team_ids):
        for team_b in team_ids[idx + 1:]:
            if team_a == team_b:
                continue
            if wins_against(matrix, team_a, team_b) == 0 and wins_against(matrix, team_b, team_a) == 0:
                return False
    return True


def record_within(team_ids: Sequence[TeamId], matrix: HeadToHeadMatrix, team_id: TeamId) -> Tuple[int, int]:
    """Mini-league ``(wins, losses)`` of ``team_id`` against the rest of the group."""

    wins = 0
    losses = 0
    for opponent in team_ids:
        if opponent == team_id:
            continue
        wins += wins_against(matrix, team_id, opponent)
        losses += wins_against(matrix, opponent, team_id)
    return wins, losses


def group_record(team_ids: Sequence[TeamId], matrix: HeadToHeadMatrix, team_id: TeamId) -> Dict[TeamId, int]:
    return {
        opponent: wins_against(matrix, team_id, opponent)
        for opponent in team_ids
        if opponent != team_id
    }


__all__ = [
    "collect_weekly_games",
    "build_head_to_head_matrix",
    "wins_against",
    "has_complete_data",
    "record_within",
    "group_record",
]
