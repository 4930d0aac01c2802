from __future__ import annotations

from fastapi import APIRouter

from tiebreakers import TiebreakKind

router = APIRouter(tags=["health"])


@router.get("/healthz", summary="Application health check")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/tiebreakers", summary="List supported tiebreak criteria")
async def list_tiebreakers() -> dict[str, list[str]]:
    return {"tiebreakers": [kind.value for kind in TiebreakKind]}
