from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_league_config, require_api_key
from api.models import ConfigResponse, ConfigUpdateRequest, LeagueSettingsResponse
from config import SETTINGS_HELP, LeagueConfig, settings

router = APIRouter(prefix="/config", tags=["config"], dependencies=[Depends(require_api_key)])


@router.get("/", response_model=ConfigResponse, summary="List current engine knobs")
async def get_config() -> ConfigResponse:
    return ConfigResponse(knobs=settings.snapshot())


@router.patch("/", response_model=ConfigResponse, summary="Update one or more engine knobs")
async def patch_config(payload: ConfigUpdateRequest) -> ConfigResponse:
    if not payload.updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates provided")
    snapshot = settings.snapshot()
    for name, value in payload.updates.items():
        if name not in snapshot:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown knob '{name}'")
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Knob '{name}' must be a positive integer")
    for name, value in payload.updates.items():
        settings.set(name, value)
    return ConfigResponse(knobs=settings.snapshot())


@router.get("/help", summary="Describe available configuration knobs")
async def config_help() -> dict[str, str]:
    return SETTINGS_HELP.copy()


@router.get("/leagues/{league_id}", response_model=LeagueSettingsResponse, summary="Stored tiebreak settings for a league")
async def get_league_settings(league_id: str, league_config: LeagueConfig = Depends(get_league_config)) -> LeagueSettingsResponse:
    league = league_config.get_league_settings(league_id)
    return LeagueSettingsResponse(
        league_id=league_id,
        name=league.name,
        description=league.description,
        custom_enabled=league.custom.enabled,
        instructions=league.custom.instructions or None,
        tiebreak_order=list(league.custom.tiebreak_order),
        notes=league.custom.notes or None,
        configured=league_id in league_config.leagues,
    )
