import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from .. import client
from ..models.keepers import (
    DraftEvent,
    DraftPick,
    PlayerMovement,
    RosterIdentity,
    SeasonLeague,
    TradedPickRecord,
    TransactionRecord,
    TransactionType,
)
from ..models.sleeper import Draft, League, Pick, Roster, TradedPick, Transaction, User

logger = logging.getLogger(__name__)


class LeagueSyncFeed(Protocol):
    """Read side of whatever keeps league ledgers in sync with the provider."""

    async def get_league(self, league_id: str) -> Optional[SeasonLeague]: ...

    async def get_rosters(self, league_id: str) -> List[RosterIdentity]: ...

    async def get_drafts(self, league_id: str) -> List[DraftEvent]: ...

    async def get_transactions(self, league_id: str) -> List[TransactionRecord]: ...

    async def get_traded_picks(self, league_id: str) -> List[TradedPickRecord]: ...


def _from_ms(ms: Optional[int]) -> Optional[datetime]:
    if not ms:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).replace(tzinfo=None)


def _optional_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class SleeperFeed:
    """LeagueSyncFeed over the Sleeper v1 API (through the caching client)."""

    async def get_league(self, league_id: str) -> Optional[SeasonLeague]:
        data = await client.get_league(league_id)
        if not data:
            return None
        league = League(**data)
        previous = league.previous_league_id
        if previous in ("0", ""):
            previous = None
        return SeasonLeague(
            league_id=league.league_id,
            external_id=league.league_id,
            season=int(league.season),
            previous_external_id=previous,
            name=league.name,
            total_rounds=_optional_int(league.settings.get("draft_rounds")),
            max_keepers=_optional_int(league.settings.get("max_keepers")),
        )

    async def get_rosters(self, league_id: str) -> List[RosterIdentity]:
        rosters_data, users_data = await asyncio.gather(
            client.get_league_rosters(league_id),
            client.get_league_users(league_id),
        )
        users: Dict[str, User] = {}
        for user_data in users_data:
            user = User(**user_data)
            users[user.user_id] = user

        identities = []
        for roster_data in rosters_data:
            roster = Roster(**{"league_id": league_id, **roster_data})
            user = users.get(roster.owner_id) if roster.owner_id else None
            team_name = None
            if user is not None:
                team_name = (user.metadata or {}).get("team_name") or user.display_name or user.username
            identities.append(RosterIdentity(
                league_id=league_id,
                roster_id=roster.roster_id,
                owner_id=roster.owner_id,
                team_name=team_name,
                players=roster.players,
            ))
        return identities

    async def _draft_event(self, league_id: str, draft: Draft) -> DraftEvent:
        picks_data = await client.get_draft_picks(draft.draft_id)
        picks = []
        for pick_data in picks_data:
            pick = Pick(**{"draft_id": draft.draft_id, **pick_data})
            picks.append(DraftPick(
                draft_id=draft.draft_id,
                round=pick.round,
                pick_no=pick.pick_no,
                draft_slot=pick.draft_slot,
                player_id=pick.player_id or None,
                roster_id=pick.roster_id,
                is_keeper=bool(pick.is_keeper),
            ))
        return DraftEvent(
            draft_id=draft.draft_id,
            league_id=league_id,
            season=int(draft.season),
            start_time=_from_ms(draft.start_time),
            picks=picks,
        )

    async def get_drafts(self, league_id: str) -> List[DraftEvent]:
        drafts = [Draft(**d) for d in await client.get_league_drafts(league_id)]
        return list(await asyncio.gather(*(self._draft_event(league_id, d) for d in drafts)))

    async def get_transactions(self, league_id: str) -> List[TransactionRecord]:
        records: Dict[str, TransactionRecord] = {}
        for tx_data in await client.get_all_league_transactions(league_id):
            tx = Transaction(**tx_data)
            if tx.status != "complete":
                continue
            try:
                tx_type = TransactionType(tx.type)
            except ValueError:
                logger.debug("Skipping transaction %s of type %s", tx.transaction_id, tx.type)
                continue
            timestamp = _from_ms(tx.status_updated or tx.created)
            if timestamp is None:
                logger.warning("Transaction %s in league %s has no timestamp, skipping", tx.transaction_id, league_id)
                continue

            adds = tx.adds or {}
            drops = tx.drops or {}
            movements = [
                PlayerMovement(player_id=player_id, from_roster=drops.get(player_id), to_roster=roster_id)
                for player_id, roster_id in adds.items()
            ]
            movements.extend(
                PlayerMovement(player_id=player_id, from_roster=roster_id, to_roster=None)
                for player_id, roster_id in drops.items()
                if player_id not in adds
            )
            records[tx.transaction_id] = TransactionRecord(
                transaction_id=tx.transaction_id,
                league_id=league_id,
                type=tx_type,
                timestamp=timestamp,
                movements=movements,
            )
        return sorted(records.values(), key=lambda r: (r.timestamp, r.transaction_id))

    async def get_traded_picks(self, league_id: str) -> List[TradedPickRecord]:
        records = []
        for pick_data in await client.get_traded_picks(league_id):
            pick = TradedPick(**pick_data)
            records.append(TradedPickRecord(
                league_id=league_id,
                season=int(pick.season),
                round=pick.round,
                original_roster=pick.roster_id,
                current_roster=pick.owner_id,
                previous_roster=pick.previous_owner_id,
            ))
        return records
