"""Runtime configuration for the standings engine.

Two layers live here:

* a thread-safe :class:`SettingsManager` holding the numeric knobs (playoff
  week window, default bracket size, fetch parallelism). The API exposes them
  for inspection and override, so modules read ``settings.get(...)`` at call
  time instead of importing constants.
* :class:`LeagueConfig`, the per-league stored tie-break configuration read
  from ``configs/league_settings.json``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class SettingsManager:
    """Thread-safe accessor for mutable engine knobs.

    ``snapshot`` returns a copy that can be embedded in API responses without
    risking mid-request mutation.
    """

    def __init__(self, defaults: Dict[str, Any]) -> None:
        self._defaults = dict(defaults)
        self._settings = dict(defaults)
        self._lock = RLock()

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._settings.keys())

    def get(self, name: str) -> Any:
        with self._lock:
            if name not in self._settings:
                raise KeyError(f"Unknown setting '{name}'")
            return self._settings[name]

    def set(self, name: str, value: Any) -> None:
        with self._lock:
            if name not in self._settings:
                raise KeyError(f"Unknown setting '{name}'")
            self._settings[name] = value

    def reset(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._settings = dict(self._defaults)
                return
            if name not in self._defaults:
                raise KeyError(f"Unknown setting '{name}'")
            self._settings[name] = self._defaults[name]

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._settings)


_DEFAULT_SETTINGS: Dict[str, Any] = {
    "regular_season_end_week": 14,
    "final_end_week": 18,
    "playoff_start_week": 15,
    "default_playoff_teams": 6,
    "fetch_workers": 4,
}

SETTINGS_HELP: Dict[str, str] = {
    "regular_season_end_week": "Last week whose games count toward the regular-season head-to-head matrix.",
    "final_end_week": "Last week fetched in final mode; also the end of the playoff window.",
    "playoff_start_week": "First week searched for playoff games when the bracket is inferred from the schedule.",
    "default_playoff_teams": "Bracket size used when the league does not report how many teams make the playoffs.",
    "fetch_workers": "Maximum number of weekly matchup fetches run in parallel.",
}

settings = SettingsManager(_DEFAULT_SETTINGS)


def set_knob(name: str, value: Any) -> None:
    settings.set(name, value)


def get_knob(name: str) -> Any:
    return settings.get(name)


def all_knobs() -> Dict[str, Any]:
    return settings.snapshot()


# --------------------------------------------------------------------------- #
# Per-league stored tie-break configuration
# --------------------------------------------------------------------------- #
LEAGUE_SETTINGS_ENV = "LEAGUE_SETTINGS_PATH"

LEAGUE_SETTINGS_PATHS: Tuple[str, ...] = (
    "configs/league_settings.json",
    "../configs/league_settings.json",
    "../../configs/league_settings.json",
)


@dataclass(frozen=True)
class CustomStandings:
    enabled: bool = False
    instructions: str = ""
    tiebreak_order: Tuple[str, ...] = ()
    notes: str = ""

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "CustomStandings":
        payload = payload or {}
        order = payload.get("tiebreak_order") or []
        if not isinstance(order, list):
            raise ValueError("custom_standings.tiebreak_order must be a list")
        return cls(
            enabled=bool(payload.get("enabled", False)),
            instructions=str(payload.get("instructions") or ""),
            tiebreak_order=tuple(str(item) for item in order),
            notes=str(payload.get("notes") or ""),
        )


@dataclass(frozen=True)
class LeagueSettings:
    name: str = ""
    description: str = ""
    custom: CustomStandings = field(default_factory=CustomStandings)

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "LeagueSettings":
        payload = payload or {}
        if not isinstance(payload, dict):
            raise ValueError("league settings entries must be objects")
        return cls(
            name=str(payload.get("name") or ""),
            description=str(payload.get("description") or ""),
            custom=CustomStandings.from_dict(payload.get("custom_standings")),
        )


DEFAULT_LEAGUE_SETTINGS = LeagueSettings(
    name="Default League",
    description="League with standard Sleeper tiebreakers",
    custom=CustomStandings(
        enabled=False,
        instructions="Use Sleeper default tiebreakers (wins, then points for)",
        tiebreak_order=("wins", "points_for"),
        notes="Standard Sleeper tiebreaker rules apply",
    ),
)


@dataclass
class LeagueConfig:
    leagues: Dict[str, LeagueSettings] = field(default_factory=dict)
    default_settings: LeagueSettings = DEFAULT_LEAGUE_SETTINGS
    source_path: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], source_path: Optional[str] = None) -> "LeagueConfig":
        if not isinstance(payload, dict):
            raise ValueError("league settings file must contain a JSON object")
        leagues_raw = payload.get("leagues") or {}
        if not isinstance(leagues_raw, dict):
            raise ValueError("'leagues' must map league ids to settings")
        default_raw = payload.get("default_settings")
        return cls(
            leagues={str(key): LeagueSettings.from_dict(value) for key, value in leagues_raw.items()},
            default_settings=LeagueSettings.from_dict(default_raw) if default_raw else DEFAULT_LEAGUE_SETTINGS,
            source_path=source_path,
        )

    def get_league_settings(self, league_id: str) -> LeagueSettings:
        return self.leagues.get(str(league_id), self.default_settings)

    def has_custom_standings(self, league_id: str) -> bool:
        return self.get_league_settings(league_id).custom.enabled

    def get_custom_instructions(self, league_id: str) -> str:
        custom = self.get_league_settings(league_id).custom
        if custom.enabled and custom.instructions:
            return custom.instructions
        return ""

    def get_stored_policy(self, league_id: str) -> Tuple[Optional[List[str]], Optional[str]]:
        """Stored ``(tiebreak_order, instructions)`` for a league.

        Both are ``None`` unless the league has custom standings enabled, so
        that the platform default for the league applies instead.
        """

        custom = self.get_league_settings(league_id).custom
        if not custom.enabled:
            return None, None
        order = list(custom.tiebreak_order) or None
        return order, custom.instructions or None


def _candidate_paths(paths: Optional[Sequence[str]] = None) -> List[Path]:
    override = os.getenv(LEAGUE_SETTINGS_ENV)
    if override:
        return [Path(override)]
    return [Path(p) for p in (paths or LEAGUE_SETTINGS_PATHS)]


def load_league_config(paths: Optional[Sequence[str]] = None) -> LeagueConfig:
    """Load the first league settings file found.

    A missing file yields the built-in default. A file that exists but cannot
    be parsed raises :class:`ValueError`.
    """

    for path in _candidate_paths(paths):
        if not path.is_file():
            continue
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"failed to parse league settings from {path}: {exc}") from exc
        config = LeagueConfig.from_dict(payload, source_path=str(path))
        logger.info("Loaded league settings for %d leagues from %s", len(config.leagues), path)
        return config

    logger.debug("No league settings file found; using defaults")
    return LeagueConfig()


__all__ = [
    "SettingsManager",
    "SETTINGS_HELP",
    "settings",
    "set_knob",
    "get_knob",
    "all_knobs",
    "CustomStandings",
    "LeagueSettings",
    "LeagueConfig",
    "DEFAULT_LEAGUE_SETTINGS",
    "LEAGUE_SETTINGS_ENV",
    "load_league_config",
]
