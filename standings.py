"""Regular-season ranking with cascading tie-breakers.

The engine refines one group of teams at a time. At each policy level the
current group is split into sub-groups of teams that share a value for that
criterion, the sub-groups are ordered best first, and each sub-group is
refined again at the next level. A sub-group of one is settled; a sub-group
that runs out of criteria keeps its incoming order.

``head_to_head`` is the exception to scalar partitioning: teams are split by
their record in a mini-league restricted to the current group, and only when
every pair in the group has actually met. Otherwise that level is skipped for
that group alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from head_to_head import group_record, has_complete_data, record_within
from records import HeadToHeadMatrix, StandingEntry, TeamId, TeamRecord
from tiebreakers import Policy, TiebreakKind, coerce_policy, format_policy

logger = logging.getLogger(__name__)

RANDOM_KEY_BITS = 62


def assign_random_keys(
    team_ids: Sequence[TeamId],
    *,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> Dict[TeamId, int]:
    """Draw one random key per team for the lifetime of a single request."""

    generator = rng if rng is not None else np.random.default_rng(seed)
    keys = generator.integers(0, 2**RANDOM_KEY_BITS, size=len(team_ids))
    return {team_id: int(key) for team_id, key in zip(team_ids, keys)}


@dataclass
class RankingContext:
    """Per-request lookups shared by every level of the recursion."""

    records: Dict[TeamId, TeamRecord]
    policy: Policy
    matrix: HeadToHeadMatrix = field(default_factory=dict)
    custom_values: Mapping[TeamId, float] = field(default_factory=dict)
    random_keys: Mapping[TeamId, int] = field(default_factory=dict)
    division_win_pct: Optional[Mapping[TeamId, float]] = None
    notes: Dict[TeamId, List[str]] = field(default_factory=dict)
    head_to_head: Dict[TeamId, Dict[TeamId, int]] = field(default_factory=dict)

    def note(self, team_ids: Sequence[TeamId], text: str) -> None:
        for team_id in team_ids:
            self.notes.setdefault(team_id, []).append(text)


ScalarFn = Callable[[RankingContext, TeamId], float]


def _custom_value(ctx: RankingContext, team_id: TeamId) -> float:
    value = ctx.custom_values.get(team_id)
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


_SCALARS: Dict[TiebreakKind, ScalarFn] = {
    TiebreakKind.WINS: lambda ctx, tid: float(ctx.records[tid].wins),
    TiebreakKind.LOSSES: lambda ctx, tid: -float(ctx.records[tid].losses),
    TiebreakKind.POINTS_FOR: lambda ctx, tid: float(ctx.records[tid].points_for),
    TiebreakKind.POINTS_AGAINST: lambda ctx, tid: -float(ctx.records[tid].points_against),
    TiebreakKind.CUSTOM: _custom_value,
    TiebreakKind.RANDOM: lambda ctx, tid: ctx.random_keys.get(tid, 0),
}


def _partition(group: Sequence[TeamId], key: Callable[[TeamId], object]) -> List[List[TeamId]]:
    """Split ``group`` into equal-key buckets, keeping member order inside each."""

    buckets: Dict[object, List[TeamId]] = {}
    for team_id in group:
        buckets.setdefault(key(team_id), []).append(team_id)
    return [buckets[value] for value in sorted(buckets, reverse=True)]


def _refine(group: List[TeamId], level: int, ctx: RankingContext) -> List[TeamId]:
    if len(group) <= 1 or level >= len(ctx.policy):
        return group

    kind = ctx.policy[level]
    if kind is TiebreakKind.HEAD_TO_HEAD:
        return _refine_head_to_head(group, level, ctx)

    if kind is TiebreakKind.DIVISION_RECORD:
        if not ctx.division_win_pct:
            return _refine(group, level + 1, ctx)
        division = ctx.division_win_pct
        subgroups = _partition(group, lambda tid: float(division.get(tid, 0.0)))
    else:
        scalar = _SCALARS[kind]
        subgroups = _partition(group, lambda tid: scalar(ctx, tid))

    if len(subgroups) > 1:
        for subgroup in subgroups:
            ctx.note(subgroup, kind.value)

    ordered: List[TeamId] = []
    for subgroup in subgroups:
        ordered.extend(_refine(subgroup, level + 1, ctx))
    return ordered


def _refine_head_to_head(group: List[TeamId], level: int, ctx: RankingContext) -> List[TeamId]:
    if not ctx.matrix or not has_complete_data(group, ctx.matrix):
        ctx.note(group, "head_to_head skipped (incomplete)")
        return _refine(group, level + 1, ctx)

    mini_league: Dict[TeamId, Tuple[int, int]] = {
        team_id: record_within(group, ctx.matrix, team_id) for team_id in group
    }
    for team_id in group:
        ctx.head_to_head[team_id] = group_record(group, ctx.matrix, team_id)

    # Wins descending, then losses ascending.
    subgroups = _partition(group, lambda tid: (mini_league[tid][0], -mini_league[tid][1]))
    if len(subgroups) > 1:
        for subgroup in subgroups:
            wins, losses = mini_league[subgroup[0]]
            ctx.note(subgroup, f"head_to_head {wins}-{losses}")

    ordered: List[TeamId] = []
    for subgroup in subgroups:
        ordered.extend(_refine(subgroup, level + 1, ctx))
    return ordered


def rank_teams(
    records: Sequence[TeamRecord],
    policy: Sequence[TiebreakKind | str],
    matrix: Optional[HeadToHeadMatrix] = None,
    *,
    custom_values: Optional[Mapping[TeamId, float]] = None,
    random_keys: Optional[Mapping[TeamId, int]] = None,
    division_win_pct: Optional[Mapping[TeamId, float]] = None,
    seed: Optional[int] = None,
) -> List[StandingEntry]:
    """Produce a strict ranking of ``records`` under ``policy``.

    Every input team appears exactly once with a rank in ``1..N``. When
    ``policy`` contains ``random`` and no ``random_keys`` are passed, keys are
    drawn once here (from ``seed`` when given) and reused at every level.
    """

    ordered_policy = coerce_policy(policy)
    by_id: Dict[TeamId, TeamRecord] = {}
    for record in records:
        if record.team_id in by_id:
            logger.warning("Duplicate record for team %r ignored", record.team_id)
            continue
        by_id[record.team_id] = record
    team_ids = list(by_id)

    keys: Mapping[TeamId, int] = random_keys or {}
    if TiebreakKind.RANDOM in ordered_policy and not random_keys:
        keys = assign_random_keys(team_ids, seed=seed)

    ctx = RankingContext(
        records=by_id,
        policy=ordered_policy,
        matrix=matrix or {},
        custom_values=custom_values or {},
        random_keys=keys,
        division_win_pct=division_win_pct,
    )
    final_order = _refine(team_ids, 0, ctx)

    summary = f"Tiebreakers applied: {format_policy(ordered_policy)}"
    standings: List[StandingEntry] = []
    for rank, team_id in enumerate(final_order, start=1):
        entry = StandingEntry.from_record(by_id[team_id])
        entry.rank = rank
        entry.head_to_head_record = ctx.head_to_head.get(team_id)
        entry.random_key = keys.get(team_id) if keys else None
        if TiebreakKind.CUSTOM in ordered_policy:
            entry.custom_value = _custom_value(ctx, team_id)
        resolved_by = ctx.notes.get(team_id)
        entry.tiebreak_notes = summary if not resolved_by else f"{summary}; resolved by {', '.join(resolved_by)}"
        standings.append(entry)
    return standings


def standings_to_dataframe(standings: Sequence[StandingEntry]) -> pd.DataFrame:
    """Tabular view of a ranking, one row per team in rank order."""

    rows = [
        {
            "Rank": entry.rank,
            "TeamId": entry.team_id,
            "Team": entry.display_name or str(entry.team_id),
            "Wins": entry.wins,
            "Losses": entry.losses,
            "Ties": entry.ties,
            "PointsFor": entry.points_for,
            "PointsAgainst": entry.points_against,
            "PlayoffOutcome": entry.playoff_outcome,
            "RegularSeasonRank": entry.regular_season_rank,
        }
        for entry in standings
    ]
    if not rows:
        return pd.DataFrame(
            columns=[
                "Rank",
                "TeamId",
                "Team",
                "Wins",
                "Losses",
                "Ties",
                "PointsFor",
                "PointsAgainst",
                "PlayoffOutcome",
                "RegularSeasonRank",
            ]
        )
    return pd.DataFrame(rows).sort_values("Rank").reset_index(drop=True)


__all__ = [
    "assign_random_keys",
    "RankingContext",
    "rank_teams",
    "standings_to_dataframe",
]
