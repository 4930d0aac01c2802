from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_league_client, get_league_config, require_api_key
from api.models import (
    BracketGameModel,
    BracketModel,
    ParseInstructionsRequest,
    PolicyResponse,
    StandingEntryModel,
    StandingsRequest,
    StandingsResponse,
)
from config import LeagueConfig
from playoffs import BracketGame, PlayoffBracket
from records import StandingEntry
from service import PolicyInputs, StandingsMode, StandingsReport, compute_standings
from sleeper_client import LeagueDataSource, SleeperAPIError
from tiebreakers import DEFAULT_POLICY, coerce_policy, parse_instructions, resolve_policy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/standings", tags=["standings"], dependencies=[Depends(require_api_key)])


def _entry_model(entry: StandingEntry) -> StandingEntryModel:
    h2h = None
    if entry.head_to_head_record:
        h2h = {str(opponent): wins for opponent, wins in entry.head_to_head_record.items()}
    return StandingEntryModel(
        team_id=entry.team_id,
        rank=entry.rank,
        display_name=entry.display_name,
        wins=entry.wins,
        losses=entry.losses,
        ties=entry.ties,
        points_for=entry.points_for,
        points_against=entry.points_against,
        division_id=entry.division_id,
        seed=entry.seed,
        head_to_head_record=h2h,
        tiebreak_notes=entry.tiebreak_notes,
        playoff_outcome=entry.playoff_outcome,
        regular_season_rank=entry.regular_season_rank,
    )


def _game_model(game: Optional[BracketGame]) -> Optional[BracketGameModel]:
    if game is None:
        return None
    return BracketGameModel(
        round=game.round.value,
        team1_id=game.team1_id,
        team2_id=game.team2_id,
        team1_score=game.team1_score,
        team2_score=game.team2_score,
        winner_id=game.winner_id,
        loser_id=game.loser_id,
        week=game.week,
    )


def _bracket_model(bracket: Optional[PlayoffBracket]) -> Optional[BracketModel]:
    if bracket is None:
        return None
    return BracketModel(
        source=bracket.source,
        playoff_teams={str(team_id): seed for team_id, seed in bracket.playoff_teams.items()},
        quarterfinals=[_game_model(game) for game in bracket.quarterfinals],
        semifinals=[_game_model(game) for game in bracket.semifinals],
        championship=_game_model(bracket.championship),
        third_place=_game_model(bracket.third_place),
        has_third_place=bracket.has_third_place,
        two_week_final=bracket.two_week_final,
        championship_weeks=list(bracket.championship_weeks),
    )


def _to_response(report: StandingsReport) -> StandingsResponse:
    return StandingsResponse(
        league_id=report.league_id,
        mode=report.mode,
        tiebreak_order=[kind.value for kind in report.policy.order],
        policy_source=report.policy.source,
        final_available=report.final_available,
        notes=report.notes,
        policy_note=report.policy_note,
        summary=report.summary,
        standings=[_entry_model(entry) for entry in report.standings],
        bracket=_bracket_model(report.bracket),
    )


def _run(
    league_id: str,
    inputs: PolicyInputs,
    mode: StandingsMode,
    client: LeagueDataSource,
    league_config: LeagueConfig,
) -> StandingsResponse:
    try:
        report = compute_standings(league_id, inputs, mode, client=client, league_config=league_config)
    except SleeperAPIError as exc:
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"League {league_id} not found") from exc
        logger.error("Standings request for league %s failed: %s", league_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    if not report.standings:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No teams found for league {league_id}")
    return _to_response(report)


@router.get("/{league_id}", response_model=StandingsResponse, summary="Compute league standings")
async def get_standings(
    league_id: str,
    mode: StandingsMode = Query(StandingsMode.REGULAR_SEASON),
    tiebreaker: Optional[List[str]] = Query(default=None, description="Tiebreak criteria in priority order."),
    instructions: Optional[str] = Query(default=None),
    seed: Optional[int] = Query(default=None, description="Seed for the random tiebreaker."),
    client: LeagueDataSource = Depends(get_league_client),
    league_config: LeagueConfig = Depends(get_league_config),
) -> StandingsResponse:
    inputs = PolicyInputs(tiebreak_order=tiebreaker, instructions=instructions, random_seed=seed)
    return _run(league_id, inputs, mode, client, league_config)


@router.post("/{league_id}", response_model=StandingsResponse, summary="Compute standings with custom values")
async def post_standings(
    league_id: str,
    payload: StandingsRequest,
    client: LeagueDataSource = Depends(get_league_client),
    league_config: LeagueConfig = Depends(get_league_config),
) -> StandingsResponse:
    inputs = PolicyInputs(
        tiebreak_order=payload.tiebreak_order,
        instructions=payload.instructions,
        custom_values=dict(payload.custom_values),
        random_seed=payload.random_seed,
    )
    return _run(league_id, inputs, payload.mode, client, league_config)


@router.get("/{league_id}/policy", response_model=PolicyResponse, summary="Preview the tiebreak policy for a league")
async def get_policy(
    league_id: str,
    tiebreaker: Optional[List[str]] = Query(default=None),
    instructions: Optional[str] = Query(default=None),
    client: LeagueDataSource = Depends(get_league_client),
    league_config: LeagueConfig = Depends(get_league_config),
) -> PolicyResponse:
    seed_type = None
    try:
        seed_type = client.get_league(league_id).playoff_seed_type
    except SleeperAPIError as exc:
        logger.warning("Failed to get league %s for policy preview: %s", league_id, exc)
    stored_order, stored_instructions = league_config.get_stored_policy(league_id)
    policy = resolve_policy(
        tiebreaker,
        instructions,
        stored_order=stored_order,
        stored_instructions=stored_instructions,
        seed_type=seed_type,
    )
    return PolicyResponse(
        tiebreak_order=[kind.value for kind in policy.order],
        source=policy.source,
        instructions=policy.instructions,
    )


@router.post("/instructions/parse", response_model=PolicyResponse, summary="Parse free-text tiebreak instructions")
async def parse_tiebreak_instructions(payload: ParseInstructionsRequest) -> PolicyResponse:
    if not payload.instructions.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="instructions must not be empty")
    fallback = coerce_policy(payload.fallback) or DEFAULT_POLICY
    order = parse_instructions(payload.instructions, fallback)
    return PolicyResponse(
        tiebreak_order=[kind.value for kind in order],
        source="fallback" if order == fallback else "instructions",
        instructions=payload.instructions,
    )
