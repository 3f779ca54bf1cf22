import logging
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, List, Optional

from . import database
from .config import CORS_ORIGINS, LOG_LEVEL
from .errors import ExternalFetchError, LeagueNotFoundError
from .models.keepers import (
    AcquisitionRecord,
    DesignationIn,
    DraftBoard,
    KeeperComputation,
    KeeperDesignation,
    KeeperSelection,
    LeagueSettings,
    SeasonLeague,
)
from .services import keeper_service
from .services.sync_feed import LeagueSyncFeed, SleeperFeed

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await database.create_tables()
    yield


app = FastAPI(lifespan=lifespan)

# Configure CORS for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_feed() -> LeagueSyncFeed:
    return SleeperFeed()


@app.get("/")
def read_root():
    return {"service": "keeper_engine"}


@app.get("/league/{league_id}/history", response_model=List[SeasonLeague])
async def get_league_history(league_id: str, feed: LeagueSyncFeed = Depends(get_feed)):
    try:
        return await keeper_service.get_league_history(league_id, feed)
    except LeagueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExternalFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.post("/league/{league_id}/keepers/{season}/compute", response_model=KeeperComputation)
async def compute_keepers(
    league_id: str,
    season: int,
    as_of: Optional[datetime] = None,
    feed: LeagueSyncFeed = Depends(get_feed),
):
    """Recompute every roster's keepers for the season and replace the stored result."""
    try:
        return await keeper_service.compute_keeper_costs(league_id, season, feed, as_of=as_of)
    except LeagueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExternalFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.get("/league/{league_id}/keepers/{season}", response_model=KeeperComputation)
async def get_keepers(league_id: str, season: int):
    computation = await database.get_keeper_result(league_id, season)
    if not computation:
        raise HTTPException(status_code=404, detail="No keeper computation stored for this season")
    return computation


@app.get("/league/{league_id}/keepers/{season}/owner/{owner_id}", response_model=List[KeeperSelection])
async def get_owner_keepers(league_id: str, season: int, owner_id: str):
    return await keeper_service.get_owner_keepers(league_id, season, owner_id)


@app.get("/league/{league_id}/draft_board/{season}", response_model=DraftBoard)
async def get_draft_board(league_id: str, season: int):
    board = await keeper_service.get_draft_board(league_id, season)
    if not board:
        raise HTTPException(status_code=404, detail="No keeper computation stored for this season")
    return board


@app.get("/league/{league_id}/settings", response_model=LeagueSettings)
async def get_league_settings(league_id: str, feed: LeagueSyncFeed = Depends(get_feed)):
    try:
        return await keeper_service.get_league_settings(league_id, feed)
    except LeagueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExternalFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))


@app.put("/league/{league_id}/settings", response_model=LeagueSettings)
async def update_league_settings(
    league_id: str,
    overrides: Dict[str, int],
    feed: LeagueSyncFeed = Depends(get_feed),
):
    """Store per-league rule overrides. Unknown keys are rejected."""
    unknown = sorted(set(overrides) - set(LeagueSettings.model_fields))
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown settings: {', '.join(unknown)}")
    stored = await database.get_league_settings(league_id)
    stored.update(overrides)
    await database.save_league_settings(league_id, stored)
    return await get_league_settings(league_id, feed)


@app.get("/league/{league_id}/designations/{season}", response_model=List[KeeperDesignation])
async def get_designations(league_id: str, season: int):
    return await database.get_designations(league_id, season)


@app.put("/league/{league_id}/designations/{season}/{owner_id}", response_model=List[KeeperDesignation])
async def replace_designations(league_id: str, season: int, owner_id: str, designations: List[DesignationIn]):
    records = [
        KeeperDesignation(season=season, owner_id=owner_id, **d.model_dump())
        for d in designations
    ]
    await database.replace_designations(league_id, season, owner_id, records)
    return [d for d in await database.get_designations(league_id, season) if d.owner_id == owner_id]


@app.get(
    "/league/{league_id}/player/{player_id}/acquisition/{owner_id}/{season}",
    response_model=AcquisitionRecord,
)
async def get_acquisition(
    league_id: str,
    player_id: str,
    owner_id: str,
    season: int,
    as_of: Optional[datetime] = None,
    feed: LeagueSyncFeed = Depends(get_feed),
):
    """How the owner came to hold the player, and the season keeper years count from."""
    try:
        return await keeper_service.trace_acquisition(league_id, player_id, owner_id, season, feed, as_of=as_of)
    except LeagueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExternalFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
