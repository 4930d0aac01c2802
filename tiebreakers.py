"""Tie-break policy vocabulary and resolution.

A policy is an ordered tuple of :class:`TiebreakKind` values. The resolver
merges, from highest precedence down: the caller's explicit order, the
league's stored configuration, the platform default implied by the league's
``playoff_seed_type`` and finally :data:`DEFAULT_POLICY`. Free-text
instructions are matched against a handful of keyword patterns; anything the
matcher cannot make sense of degrades to the fallback order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class TiebreakKind(str, Enum):
    WINS = "wins"
    LOSSES = "losses"
    POINTS_FOR = "points_for"
    POINTS_AGAINST = "points_against"
    HEAD_TO_HEAD = "head_to_head"
    DIVISION_RECORD = "division_record"
    CUSTOM = "custom"
    RANDOM = "random"


Policy = Tuple[TiebreakKind, ...]

DEFAULT_POLICY: Policy = (
    TiebreakKind.WINS,
    TiebreakKind.POINTS_FOR,
    TiebreakKind.POINTS_AGAINST,
)

SEED_TYPE_POLICIES = {
    0: DEFAULT_POLICY,
    1: (TiebreakKind.WINS, TiebreakKind.POINTS_FOR),
    2: (
        TiebreakKind.WINS,
        TiebreakKind.HEAD_TO_HEAD,
        TiebreakKind.POINTS_FOR,
        TiebreakKind.POINTS_AGAINST,
    ),
}

_INSTRUCTION_PATTERNS: Sequence[Tuple[re.Pattern[str], TiebreakKind]] = (
    (re.compile(r"head.to.head|h2h"), TiebreakKind.HEAD_TO_HEAD),
    (re.compile(r"points? for|total points|points scored"), TiebreakKind.POINTS_FOR),
    (re.compile(r"points? against|points allowed"), TiebreakKind.POINTS_AGAINST),
    (re.compile(r"division"), TiebreakKind.DIVISION_RECORD),
    (re.compile(r"custom"), TiebreakKind.CUSTOM),
    (re.compile(r"random|coin.?flip"), TiebreakKind.RANDOM),
)

_WINS_DISCLAIMERS = ("ignore wins", "not wins")

_ALIASES = {
    "h2h": TiebreakKind.HEAD_TO_HEAD,
    "head-to-head": TiebreakKind.HEAD_TO_HEAD,
    "pf": TiebreakKind.POINTS_FOR,
    "pa": TiebreakKind.POINTS_AGAINST,
    "division": TiebreakKind.DIVISION_RECORD,
}


def coerce_kind(value: str | TiebreakKind) -> Optional[TiebreakKind]:
    if isinstance(value, TiebreakKind):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower().replace(" ", "_")
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return TiebreakKind(key)
    except ValueError:
        return None


def coerce_policy(values: Optional[Iterable[str | TiebreakKind]]) -> Policy:
    """Convert caller-supplied names into a de-duplicated policy.

    Unknown names are dropped with a warning rather than failing the request.
    """

    if not values:
        return ()
    order: List[TiebreakKind] = []
    for value in values:
        kind = coerce_kind(value)
        if kind is None:
            logger.warning("Ignoring unknown tiebreaker %r", value)
            continue
        if kind not in order:
            order.append(kind)
    return tuple(order)


def policy_for_seed_type(seed_type: Optional[int]) -> Policy:
    if seed_type is None:
        return DEFAULT_POLICY
    return SEED_TYPE_POLICIES.get(seed_type, DEFAULT_POLICY)


def parse_instructions(instructions: Optional[str], fallback: Sequence[TiebreakKind] = DEFAULT_POLICY) -> Policy:
    """Best-effort keyword parse of free-text tie-break instructions.

    ``wins`` leads the order unless the text disclaims it. Other criteria are
    appended in the order they first appear in the text. When nothing beyond
    ``wins`` is recognised the ``fallback`` order is returned.
    """

    fallback_policy = tuple(fallback)
    if not instructions or not instructions.strip():
        return fallback_policy

    text = instructions.lower()
    order: List[TiebreakKind] = []
    if not any(phrase in text for phrase in _WINS_DISCLAIMERS):
        order.append(TiebreakKind.WINS)

    hits: List[Tuple[int, TiebreakKind]] = []
    for pattern, kind in _INSTRUCTION_PATTERNS:
        match = pattern.search(text)
        if match:
            hits.append((match.start(), kind))
    for _, kind in sorted(hits, key=lambda item: item[0]):
        if kind not in order:
            order.append(kind)

    if not order or order == [TiebreakKind.WINS]:
        logger.info("Instructions did not name any tiebreakers; using fallback %s", format_policy(fallback_policy))
        return fallback_policy
    return tuple(order)


def format_policy(policy: Sequence[TiebreakKind]) -> str:
    return "[" + ", ".join(kind.value for kind in policy) + "]"


@dataclass(frozen=True)
class ResolvedPolicy:
    order: Policy
    source: str
    instructions: Optional[str] = None

    def describe(self) -> str:
        return format_policy(self.order)


def resolve_policy(
    explicit_order: Optional[Iterable[str | TiebreakKind]] = None,
    instructions: Optional[str] = None,
    *,
    stored_order: Optional[Iterable[str | TiebreakKind]] = None,
    stored_instructions: Optional[str] = None,
    seed_type: Optional[int] = None,
) -> ResolvedPolicy:
    """Merge every policy input into one ordered list of criteria.

    Order first: explicit, then stored, then the ``seed_type`` platform
    default, then the global default. Instructions (the caller's, else the
    stored ones) are then parsed with that order as their fallback.
    """

    base = coerce_policy(explicit_order)
    source = "explicit"
    if not base:
        base = coerce_policy(stored_order)
        source = "league_config"
    if not base:
        if seed_type is not None:
            base = policy_for_seed_type(seed_type)
            source = "platform_default"
        else:
            base = DEFAULT_POLICY
            source = "default"

    text = instructions if instructions and instructions.strip() else stored_instructions
    if text and text.strip():
        parsed = parse_instructions(text, base)
        if parsed != base:
            return ResolvedPolicy(order=parsed, source="instructions", instructions=text)
        return ResolvedPolicy(order=base, source=source, instructions=text)
    return ResolvedPolicy(order=base, source=source)


__all__ = [
    "TiebreakKind",
    "Policy",
    "DEFAULT_POLICY",
    "SEED_TYPE_POLICIES",
    "coerce_kind",
    "coerce_policy",
    "policy_for_seed_type",
    "parse_instructions",
    "format_policy",
    "ResolvedPolicy",
    "resolve_policy",
]
