from __future__ import annotations

from fastapi import FastAPI

from api.routes import config, health, standings

app = FastAPI(title="League Standings API", version="0.1.0")
app.include_router(health.router)
app.include_router(config.router)
app.include_router(standings.router)


@app.get("/", summary="Root endpoint", tags=["health"])
async def root() -> dict[str, str]:
    return {"message": "League Standings API"}
