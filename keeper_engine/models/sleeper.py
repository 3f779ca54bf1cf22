from typing import List, Dict, Any, Optional
from pydantic import BaseModel


class User(BaseModel):
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class League(BaseModel):
    league_id: str
    name: Optional[str] = None
    season: str
    total_rosters: Optional[int] = None
    status: Optional[str] = None
    previous_league_id: Optional[str] = None
    settings: Dict[str, Any] = {}


class Roster(BaseModel):
    roster_id: int
    league_id: str
    owner_id: Optional[str] = None
    players: Optional[List[str]] = None
    settings: Dict[str, Any] = {}
    metadata: Optional[Dict[str, Any]] = None


class Draft(BaseModel):
    draft_id: str
    league_id: str
    status: Optional[str] = None
    type: Optional[str] = None
    season: str
    start_time: Optional[int] = None  # Unix timestamp in ms
    settings: Dict[str, Any] = {}
    metadata: Optional[Dict[str, Any]] = None


class Pick(BaseModel):
    player_id: Optional[str] = None
    pick_no: int
    round: int
    draft_slot: Optional[int] = None
    roster_id: Optional[int] = None
    draft_id: str
    is_keeper: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class TradedPick(BaseModel):
    season: str
    round: int
    roster_id: int  # ORIGINAL owner of the pick (who initially had this draft slot)
    owner_id: int   # CURRENT owner of the pick
    previous_owner_id: Optional[int] = None  # Roster that last traded it away


class Transaction(BaseModel):
    transaction_id: str
    type: str
    status: str
    status_updated: Optional[int] = None  # Unix timestamp in ms
    created: Optional[int] = None
    adds: Optional[Dict[str, int]] = None
    drops: Optional[Dict[str, int]] = None
    roster_ids: Optional[List[int]] = None
    draft_picks: Optional[List[TradedPick]] = None
    leg: Optional[int] = None
