"""Minimal Sleeper API client for league records, matchups and brackets."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import httpx

from records import BracketMatchup, Game, TeamRecord


def _load_local_env() -> None:
    """Populate os.environ with values from .env files if present."""

    env_dir = Path(__file__).resolve().parent
    for filename in (".env.local", ".env"):
        path = env_dir / filename
        if not path.exists():
            continue
        try:
            for raw_line in path.read_text().splitlines():
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                if key and key not in os.environ:
                    os.environ[key] = value
        except OSError:
            continue


_load_local_env()

SLEEPER_API_BASE = "https://api.sleeper.app/v1"
DEFAULT_TIMEOUT = 10.0
USER_AGENT = "league-standings/sleeper-client"

logger = logging.getLogger(__name__)


class SleeperAPIError(RuntimeError):
    """A Sleeper request failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class SleeperConfig:
    base_url: str = SLEEPER_API_BASE
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_environment(cls) -> "SleeperConfig":
        base_url = os.getenv("SLEEPER_BASE_URL", SLEEPER_API_BASE).rstrip("/")
        timeout = DEFAULT_TIMEOUT
        timeout_raw = os.getenv("SLEEPER_TIMEOUT")
        if timeout_raw:
            try:
                timeout = float(timeout_raw)
            except ValueError:
                logger.warning("Invalid SLEEPER_TIMEOUT '%s'; defaulting to %s", timeout_raw, DEFAULT_TIMEOUT)
        return cls(base_url=base_url, timeout=timeout)


@dataclass(frozen=True)
class LeagueInfo:
    league_id: str
    name: str
    season: Optional[str] = None
    status: Optional[str] = None
    total_rosters: Optional[int] = None
    playoff_teams: Optional[int] = None
    playoff_seed_type: Optional[int] = None
    playoff_week_start: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class LeagueDataSource(Protocol):
    """What the standings service needs from a league data provider."""

    def get_league(self, league_id: str) -> LeagueInfo:
        ...

    def get_team_records(self, league_id: str) -> List[TeamRecord]:
        ...

    def get_games(self, league_id: str, week: int) -> List[Game]:
        ...

    def get_bracket(self, league_id: str) -> List[BracketMatchup]:
        ...


def _coerce_int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "" or isinstance(value, (dict, list, bool)):
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _coerce_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _points(whole: Any, decimal: Any) -> float:
    # Sleeper splits season totals into an integer part and hundredths.
    return float(_coerce_int(whole) or 0) + float(_coerce_int(decimal) or 0) / 100.0


def _parse_league(payload: Dict[str, Any], league_id: str) -> LeagueInfo:
    settings = payload.get("settings") or {}
    return LeagueInfo(
        league_id=str(payload.get("league_id") or league_id),
        name=str(payload.get("name") or f"League {league_id}"),
        season=str(payload["season"]) if payload.get("season") else None,
        status=payload.get("status"),
        total_rosters=_coerce_int(payload.get("total_rosters")),
        playoff_teams=_coerce_int(settings.get("playoff_teams")),
        playoff_seed_type=_coerce_int(settings.get("playoff_seed_type")),
        playoff_week_start=_coerce_int(settings.get("playoff_week_start")),
        raw=payload,
    )


def _build_user_directory(users: List[Dict[str, Any]]) -> Dict[str, str]:
    directory: Dict[str, str] = {}
    for user in users or []:
        user_id = user.get("user_id")
        if user_id is None:
            continue
        name = user.get("display_name") or user.get("username")
        directory[str(user_id)] = str(name) if name else str(user_id)
    return directory


def _parse_roster(roster: Dict[str, Any], users: Dict[str, str]) -> Optional[TeamRecord]:
    roster_id = _coerce_int(roster.get("roster_id"))
    if roster_id is None:
        return None
    settings = roster.get("settings") or {}
    owner_id = roster.get("owner_id")
    return TeamRecord(
        team_id=roster_id,
        wins=_coerce_int(settings.get("wins")) or 0,
        losses=_coerce_int(settings.get("losses")) or 0,
        ties=_coerce_int(settings.get("ties")) or 0,
        points_for=_points(settings.get("fpts"), settings.get("fpts_decimal")),
        points_against=_points(settings.get("fpts_against"), settings.get("fpts_against_decimal")),
        division_id=_coerce_int(settings.get("division")),
        seed=_coerce_int(settings.get("playoff_seed")),
        display_name=users.get(str(owner_id)) if owner_id is not None else None,
        owner_id=str(owner_id) if owner_id is not None else None,
    )


def _parse_matchups(entries: List[Dict[str, Any]], week: int) -> List[Game]:
    """Pair weekly roster entries sharing a ``matchup_id`` into games."""

    grouped: Dict[int, List[Dict[str, Any]]] = {}
    for entry in entries or []:
        matchup_id = _coerce_int(entry.get("matchup_id"))
        if matchup_id is None:
            continue
        grouped.setdefault(matchup_id, []).append(entry)

    games: List[Game] = []
    for matchup_id in sorted(grouped):
        sides = grouped[matchup_id]
        if len(sides) != 2:
            logger.debug("Week %s matchup %s has %d sides; skipping", week, matchup_id, len(sides))
            continue
        first, second = sides
        team_a = _coerce_int(first.get("roster_id"))
        team_b = _coerce_int(second.get("roster_id"))
        if team_a is None or team_b is None:
            continue
        games.append(
            Game(
                week=week,
                team_a_id=team_a,
                team_b_id=team_b,
                score_a=_coerce_float(first.get("points")) or 0.0,
                score_b=_coerce_float(second.get("points")) or 0.0,
                matchup_id=matchup_id,
            )
        )
    return games


def _parse_bracket_matchup(entry: Dict[str, Any]) -> Optional[BracketMatchup]:
    round_number = _coerce_int(entry.get("r"))
    if round_number is None:
        return None
    # Undetermined slots reference earlier games as {"w": m} / {"l": m}; they
    # coerce to None and the matchup is treated as incomplete.
    return BracketMatchup(
        round=round_number,
        matchup_id=_coerce_int(entry.get("m")),
        team1_id=_coerce_int(entry.get("t1")),
        team2_id=_coerce_int(entry.get("t2")),
        winner_id=_coerce_int(entry.get("w")),
        loser_id=_coerce_int(entry.get("l")),
        placement=_coerce_int(entry.get("p")),
    )


class SleeperClient:
    """Read-only Sleeper client implementing :class:`LeagueDataSource`."""

    def __init__(self, config: Optional[SleeperConfig] = None, *, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.config = config or SleeperConfig.from_environment()
        self._transport = transport

    # ------------------------------------------------------------------ #
    # Low-level HTTP helpers
    # ------------------------------------------------------------------ #
    def _request(self, path: str) -> Any:
        url = f"{self.config.base_url}{path}"
        logger.debug("GET %s", url)
        try:
            with httpx.Client(timeout=self.config.timeout, transport=self._transport) as client:
                response = client.get(url, headers={"User-Agent": USER_AGENT})
        except httpx.HTTPError as exc:
            raise SleeperAPIError(f"request to {path} failed: {exc}") from exc

        if response.status_code == 404:
            raise SleeperAPIError(f"{path} not found", status_code=404)
        if response.status_code != 200:
            raise SleeperAPIError(
                f"{path} returned status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SleeperAPIError(f"{path} returned invalid JSON") from exc

    def _request_list(self, path: str) -> List[Dict[str, Any]]:
        payload = self._request(path)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise SleeperAPIError(f"{path} returned {type(payload).__name__}, expected a list")
        return payload

    # ------------------------------------------------------------------ #
    # League helpers
    # ------------------------------------------------------------------ #
    def get_league(self, league_id: str) -> LeagueInfo:
        payload = self._request(f"/league/{league_id}")
        if not isinstance(payload, dict):
            raise SleeperAPIError(f"league {league_id} not found", status_code=404)
        return _parse_league(payload, league_id)

    def get_users(self, league_id: str) -> Dict[str, str]:
        return _build_user_directory(self._request_list(f"/league/{league_id}/users"))

    def get_team_records(self, league_id: str) -> List[TeamRecord]:
        rosters = self._request_list(f"/league/{league_id}/rosters")
        try:
            users = self.get_users(league_id)
        except SleeperAPIError as exc:
            logger.warning("Failed to get users for league %s: %s", league_id, exc)
            users = {}
        records = [record for roster in rosters if (record := _parse_roster(roster, users)) is not None]
        logger.info("Loaded %d rosters for league %s", len(records), league_id)
        return records

    def get_games(self, league_id: str, week: int) -> List[Game]:
        return _parse_matchups(self._request_list(f"/league/{league_id}/matchups/{week}"), week)

    def get_bracket(self, league_id: str) -> List[BracketMatchup]:
        entries = self._request_list(f"/league/{league_id}/winners_bracket")
        return [matchup for entry in entries if (matchup := _parse_bracket_matchup(entry)) is not None]


__all__ = [
    "SLEEPER_API_BASE",
    "SleeperAPIError",
    "SleeperConfig",
    "LeagueInfo",
    "LeagueDataSource",
    "SleeperClient",
]
