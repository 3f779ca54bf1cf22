from enum import Enum
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel

from ..config import DEFAULT_KEEPER_RULES


class TransactionType(str, Enum):
    TRADE = "trade"
    WAIVER = "waiver"
    FREE_AGENT = "free_agent"
    COMMISSIONER = "commissioner"


class AcquisitionType(str, Enum):
    DRAFTED = "drafted"
    TRADE = "trade"
    WAIVER = "waiver"
    FREE_AGENT = "free_agent"
    COMMISSIONER = "commissioner"
    UNDRAFTED = "undrafted"  # no evidence at all


class KeeperType(str, Enum):
    REGULAR = "regular"
    FRANCHISE = "franchise"


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    KEEPER = "keeper"
    TRADED = "traded"


class UnresolvedReason(str, Enum):
    NO_OPEN_ROUND = "no_open_round"
    INELIGIBLE = "ineligible"
    QUOTA_EXCEEDED = "quota_exceeded"
    NOT_ON_ROSTER = "not_on_roster"


class LeagueSettings(BaseModel):
    max_keepers: int = DEFAULT_KEEPER_RULES["max_keepers"]
    max_franchise_tags: int = DEFAULT_KEEPER_RULES["max_franchise_tags"]
    max_regular_keeper_years: int = DEFAULT_KEEPER_RULES["max_regular_keeper_years"]
    undrafted_round: int = DEFAULT_KEEPER_RULES["undrafted_round"]
    minimum_round: int = DEFAULT_KEEPER_RULES["minimum_round"]
    total_rounds: int = DEFAULT_KEEPER_RULES["total_rounds"]
    offseason_start_month: int = DEFAULT_KEEPER_RULES["offseason_start_month"]
    offseason_start_day: int = DEFAULT_KEEPER_RULES["offseason_start_day"]
    offseason_end_month: int = DEFAULT_KEEPER_RULES["offseason_end_month"]
    offseason_end_day: int = DEFAULT_KEEPER_RULES["offseason_end_day"]
    season_rollover_month: int = DEFAULT_KEEPER_RULES["season_rollover_month"]


# ---------------------------------------------------------------------------
# Ledger facts supplied by the sync feed
# ---------------------------------------------------------------------------

class SeasonLeague(BaseModel):
    league_id: str
    external_id: str
    season: int
    previous_external_id: Optional[str] = None
    name: Optional[str] = None
    total_rounds: Optional[int] = None
    max_keepers: Optional[int] = None


class RosterIdentity(BaseModel):
    """A season-local roster row and the stable owner behind it."""
    league_id: str
    roster_id: int
    owner_id: Optional[str] = None
    team_name: Optional[str] = None
    players: Optional[List[str]] = None


class DraftPick(BaseModel):
    draft_id: str
    round: int
    pick_no: int
    draft_slot: Optional[int] = None
    player_id: Optional[str] = None
    roster_id: Optional[int] = None
    is_keeper: bool = False  # draft-time reservation flag as reported by the provider


class DraftEvent(BaseModel):
    draft_id: str
    league_id: str
    season: int
    start_time: Optional[datetime] = None
    picks: List[DraftPick] = []


class PlayerMovement(BaseModel):
    player_id: str
    from_roster: Optional[int] = None  # None = added from free agency
    to_roster: Optional[int] = None    # None = dropped


class TransactionRecord(BaseModel):
    transaction_id: str
    league_id: str
    type: TransactionType
    timestamp: datetime
    movements: List[PlayerMovement] = []


class TradedPickRecord(BaseModel):
    league_id: str
    season: int
    round: int
    original_roster: int
    current_roster: int
    previous_roster: Optional[int] = None


class LeagueLedgers(BaseModel):
    """Everything the engine reads for one league chain, oldest season first."""
    leagues: List[SeasonLeague] = []
    rosters: List[RosterIdentity] = []
    drafts: List[DraftEvent] = []
    transactions: List[TransactionRecord] = []
    traded_picks: List[TradedPickRecord] = []


# ---------------------------------------------------------------------------
# Keeper inputs
# ---------------------------------------------------------------------------

class KeeperReservation(BaseModel):
    """Keeper record implied by a draft-time keeper flag (raw, never computed)."""
    player_id: str
    owner_id: str
    season: int
    draft_id: str
    pick_no: int
    round: int
    reassigned_from: Optional[str] = None


class ReservationFix(BaseModel):
    player_id: str
    season: int
    draft_id: str
    action: str  # "reassigned" | "removed"
    from_owner_id: str
    to_owner_id: Optional[str] = None


class KeeperDesignation(BaseModel):
    season: int
    owner_id: str
    player_id: str
    requested_type: Optional[KeeperType] = None
    locked: bool = False
    source: str = "manager"  # "manager" | "draft"


class DesignationIn(BaseModel):
    player_id: str
    requested_type: Optional[KeeperType] = None
    locked: bool = False


# ---------------------------------------------------------------------------
# Computed outputs
# ---------------------------------------------------------------------------

class AcquisitionStep(BaseModel):
    owner_id: str
    kind: str  # draft | trade | waiver | free_agent | commissioner | continuation | cycle | fallback
    season: int
    transaction_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    from_owner_id: Optional[str] = None
    draft_round: Optional[int] = None
    reset_to_season: Optional[int] = None


class AcquisitionRecord(BaseModel):
    player_id: str
    owner_id: str
    target_season: int
    origin_season: int
    draft_round: Optional[int] = None
    acquisition_type: AcquisitionType
    acquisition_date: Optional[datetime] = None
    reset_by_offseason_trade: bool = False
    lineage: List[AcquisitionStep] = []


class KeeperCost(BaseModel):
    years_kept: int
    base_cost: int
    final_cost: int
    regular_eligible: bool
    breakdown: str


class KeeperSelection(BaseModel):
    player_id: str
    owner_id: str
    roster_id: Optional[int] = None
    season: int
    keeper_type: KeeperType
    years_kept: int
    base_cost: int
    original_cost: int
    final_cost: int
    locked: bool = False
    cascaded: bool = False
    cascade_reason: Optional[str] = None
    acquisition: Optional[AcquisitionRecord] = None


class CascadeEvent(BaseModel):
    player_id: str
    from_round: int
    to_round: Optional[int] = None  # None = no open round
    reason: str


class UnresolvedKeeper(BaseModel):
    owner_id: str
    roster_id: Optional[int] = None
    player_id: str
    reason: UnresolvedReason
    detail: str


class RosterKeepers(BaseModel):
    roster_id: Optional[int] = None
    owner_id: str
    team_name: Optional[str] = None
    keepers: List[KeeperSelection] = []
    cascade_events: List[CascadeEvent] = []


class BoardSlot(BaseModel):
    round: int
    status: SlotStatus
    original_owner_id: str
    player_id: Optional[str] = None
    traded_to_owner_id: Optional[str] = None


class BoardRow(BaseModel):
    owner_id: str
    roster_id: Optional[int] = None
    team_name: Optional[str] = None
    slots: List[BoardSlot] = []


class DraftBoard(BaseModel):
    league_id: str
    season: int
    total_rounds: int
    rosters: List[BoardRow] = []


class SyncFailure(BaseModel):
    league_id: str
    season: Optional[int] = None
    detail: str


class KeeperComputation(BaseModel):
    league_id: str
    season: int
    as_of: datetime
    per_roster: List[RosterKeepers] = []
    unresolved: List[UnresolvedKeeper] = []
    board: DraftBoard
    reservation_fixes: List[ReservationFix] = []
    sync_failures: List[SyncFailure] = []
