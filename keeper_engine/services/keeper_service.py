import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from .. import database
from ..errors import ExternalFetchError, LeagueNotFoundError
from ..models.keepers import (
    AcquisitionRecord,
    DraftBoard,
    KeeperComputation,
    KeeperSelection,
    LeagueLedgers,
    LeagueSettings,
    SeasonLeague,
    SyncFailure,
)
from .acquisition import AcquisitionTracer
from .keeper_engine import resolve_keepers
from .league_history import LeagueChain, walk_league_history
from .sync_feed import LeagueSyncFeed

logger = logging.getLogger(__name__)


async def get_league_history(league_id: str, feed: LeagueSyncFeed) -> List[SeasonLeague]:
    history = await walk_league_history(league_id, feed.get_league)
    if not history:
        raise LeagueNotFoundError(league_id)
    return history


async def _load_season(league: SeasonLeague, feed: LeagueSyncFeed) -> LeagueLedgers:
    rosters, drafts, transactions, traded_picks = await asyncio.gather(
        feed.get_rosters(league.league_id),
        feed.get_drafts(league.league_id),
        feed.get_transactions(league.league_id),
        feed.get_traded_picks(league.league_id),
    )
    return LeagueLedgers(
        leagues=[league],
        rosters=rosters,
        drafts=drafts,
        transactions=transactions,
        traded_picks=traded_picks,
    )


async def load_league_snapshot(league_id: str, feed: LeagueSyncFeed) -> Tuple[LeagueLedgers, List[SyncFailure]]:
    """
    Fetch every season's ledgers for the chain ending at `league_id`.

    Seasons load concurrently. One that fails is reported as a SyncFailure and
    the rest of the chain is still used.
    """
    history = await get_league_history(league_id, feed)
    results = await asyncio.gather(*(_load_season(l, feed) for l in history), return_exceptions=True)

    snapshot = LeagueLedgers(leagues=history)
    failures: List[SyncFailure] = []
    for league, result in zip(history, results):
        if isinstance(result, (ExternalFetchError, ValidationError)):
            logger.warning("Could not load league %s (%d): %s", league.league_id, league.season, result)
            failures.append(SyncFailure(league_id=league.league_id, season=league.season, detail=str(result)))
            continue
        if isinstance(result, BaseException):
            raise result
        snapshot.rosters.extend(result.rosters)
        snapshot.drafts.extend(result.drafts)
        snapshot.transactions.extend(result.transactions)
        snapshot.traded_picks.extend(result.traded_picks)

    return snapshot, failures


def merge_settings(league: Optional[SeasonLeague], overrides: Dict[str, Any]) -> LeagueSettings:
    """Defaults, then the provider's league settings, then stored overrides."""
    values: Dict[str, Any] = {}
    if league is not None:
        if league.total_rounds:
            values["total_rounds"] = league.total_rounds
        if league.max_keepers:
            values["max_keepers"] = league.max_keepers
    values.update({k: v for k, v in overrides.items() if k in LeagueSettings.model_fields})
    return LeagueSettings(**values)


async def get_league_settings(league_id: str, feed: LeagueSyncFeed) -> LeagueSettings:
    try:
        league = await feed.get_league(league_id)
    except ExternalFetchError as e:
        raise e.for_league(league_id) from e
    if league is None:
        raise LeagueNotFoundError(league_id)
    return merge_settings(league, await database.get_league_settings(league_id))


async def compute_keeper_costs(
    league_id: str,
    season: int,
    feed: LeagueSyncFeed,
    as_of: Optional[datetime] = None,
) -> KeeperComputation:
    """
    Recompute and store every roster's keepers for `season`.

    Always starts from the provider's ledgers and the stored designations, and
    replaces whatever was stored before, so running it twice gives the same
    stored state.
    """
    snapshot, failures = await load_league_snapshot(league_id, feed)
    chain = LeagueChain(snapshot.leagues, snapshot.rosters)
    settings = merge_settings(chain.latest, await database.get_league_settings(league_id))
    designations = await database.get_designations(league_id, season)

    computation = resolve_keepers(
        chain,
        snapshot,
        season,
        settings,
        designations=designations,
        as_of=as_of,
        sync_failures=failures,
    )
    await database.replace_keeper_results(computation)
    return computation


async def get_owner_keepers(league_id: str, season: int, owner_id: str) -> List[KeeperSelection]:
    return await database.get_keeper_selections(league_id, season, owner_id=owner_id)


async def get_draft_board(league_id: str, season: int) -> Optional[DraftBoard]:
    computation = await database.get_keeper_result(league_id, season)
    return computation.board if computation else None


async def trace_acquisition(
    league_id: str,
    player_id: str,
    owner_id: str,
    season: int,
    feed: LeagueSyncFeed,
    as_of: Optional[datetime] = None,
) -> AcquisitionRecord:
    snapshot, _ = await load_league_snapshot(league_id, feed)
    chain = LeagueChain(snapshot.leagues, snapshot.rosters)
    settings = merge_settings(chain.latest, await database.get_league_settings(league_id))
    tracer = AcquisitionTracer(chain, snapshot.drafts, snapshot.transactions, settings, as_of)
    return tracer.trace(player_id, owner_id, season)
