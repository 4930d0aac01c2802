"""Pydantic schemas used by the API endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from service import StandingsMode

TeamKey = Union[int, str]


class ConfigResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    knobs: Dict[str, Any]


class ConfigUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    updates: Dict[str, Any] = Field(default_factory=dict)


class LeagueSettingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    league_id: str = Field(..., alias="leagueId")
    name: str
    description: str
    custom_enabled: bool = Field(..., alias="customEnabled")
    instructions: Optional[str] = None
    tiebreak_order: List[str] = Field(default_factory=list, alias="tiebreakOrder")
    notes: Optional[str] = None
    configured: bool


class StandingsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: StandingsMode = StandingsMode.REGULAR_SEASON
    tiebreak_order: Optional[List[str]] = Field(default=None, alias="tiebreakOrder")
    instructions: Optional[str] = None
    custom_values: Dict[str, float] = Field(default_factory=dict, alias="customValues")
    random_seed: Optional[int] = Field(default=None, alias="randomSeed")


class StandingEntryModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_id: TeamKey = Field(..., alias="teamId")
    rank: int
    display_name: Optional[str] = Field(default=None, alias="displayName")
    wins: int
    losses: int
    ties: int
    points_for: float = Field(..., alias="pointsFor")
    points_against: float = Field(..., alias="pointsAgainst")
    division_id: Optional[int] = Field(default=None, alias="divisionId")
    seed: Optional[int] = None
    head_to_head_record: Optional[Dict[str, int]] = Field(default=None, alias="headToHeadRecord")
    tiebreak_notes: str = Field(default="", alias="tiebreakNotes")
    playoff_outcome: Optional[str] = Field(default=None, alias="playoffOutcome")
    regular_season_rank: Optional[int] = Field(default=None, alias="regularSeasonRank")


class BracketGameModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    round: str
    team1_id: TeamKey = Field(..., alias="team1Id")
    team2_id: TeamKey = Field(..., alias="team2Id")
    team1_score: Optional[float] = Field(default=None, alias="team1Score")
    team2_score: Optional[float] = Field(default=None, alias="team2Score")
    winner_id: Optional[TeamKey] = Field(default=None, alias="winnerId")
    loser_id: Optional[TeamKey] = Field(default=None, alias="loserId")
    week: Optional[int] = None


class BracketModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str
    playoff_teams: Dict[str, int] = Field(default_factory=dict, alias="playoffTeams")
    quarterfinals: List[BracketGameModel] = Field(default_factory=list)
    semifinals: List[BracketGameModel] = Field(default_factory=list)
    championship: Optional[BracketGameModel] = None
    third_place: Optional[BracketGameModel] = Field(default=None, alias="thirdPlace")
    has_third_place: bool = Field(..., alias="hasThirdPlace")
    two_week_final: bool = Field(..., alias="twoWeekFinal")
    championship_weeks: List[int] = Field(default_factory=list, alias="championshipWeeks")


class StandingsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    league_id: str = Field(..., alias="leagueId")
    mode: StandingsMode
    tiebreak_order: List[str] = Field(..., alias="tiebreakOrder")
    policy_source: str = Field(..., alias="policySource")
    final_available: bool = Field(..., alias="finalAvailable")
    notes: List[str] = Field(default_factory=list)
    policy_note: str = Field(..., alias="policyNote")
    summary: str
    standings: List[StandingEntryModel]
    bracket: Optional[BracketModel] = None


class ParseInstructionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instructions: str
    fallback: Optional[List[str]] = None


class PolicyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tiebreak_order: List[str] = Field(..., alias="tiebreakOrder")
    source: str
    instructions: Optional[str] = None
