import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from ..models.keepers import (
    AcquisitionRecord,
    AcquisitionStep,
    AcquisitionType,
    DraftEvent,
    DraftPick,
    KeeperReservation,
    LeagueSettings,
    ReservationFix,
    TransactionRecord,
    TransactionType,
)
from .keeper_cost import _naive_utc, default_as_of, offseason_season_for, season_for_timestamp
from .league_history import LeagueChain

logger = logging.getLogger(__name__)


_MOVE_KINDS = {
    TransactionType.TRADE: AcquisitionType.TRADE,
    TransactionType.WAIVER: AcquisitionType.WAIVER,
    TransactionType.FREE_AGENT: AcquisitionType.FREE_AGENT,
    TransactionType.COMMISSIONER: AcquisitionType.COMMISSIONER,
}


class _DraftEvidence(NamedTuple):
    season: int
    pick_no: int
    round: int
    owner_id: str
    draft_id: str
    start_time: Optional[datetime]


class _OwnerMove(NamedTuple):
    timestamp: datetime
    transaction_id: str
    type: TransactionType
    from_owner: Optional[str]
    to_owner: Optional[str]


# ---------------------------------------------------------------------------
# Redraft anomaly: one player picked several times in the same draft
# ---------------------------------------------------------------------------

def authoritative_picks(event: DraftEvent) -> Tuple[List[DraftPick], Dict[int, DraftPick]]:
    """
    Split a draft's picks into the ones that count for ownership and the ones
    superseded by a later pick of the same player.

    The provider sometimes records a player drafted, dropped and re-drafted
    within one draft. The highest pick number is the real owner. Returns the
    authoritative picks (ordered by pick number) and a map from each superseded
    pick number to the pick that replaced it.
    """
    by_player: Dict[str, List[DraftPick]] = defaultdict(list)
    for pick in event.picks:
        if pick.player_id:
            by_player[pick.player_id].append(pick)

    kept: List[DraftPick] = []
    superseded: Dict[int, DraftPick] = {}
    for picks in by_player.values():
        picks.sort(key=lambda p: p.pick_no)
        final = picks[-1]
        kept.append(final)
        for earlier in picks[:-1]:
            superseded[earlier.pick_no] = final

    kept.sort(key=lambda p: p.pick_no)
    return kept, superseded


def reconcile_reservations(
    drafts: Iterable[DraftEvent],
    chain: LeagueChain,
) -> Tuple[List[KeeperReservation], List[ReservationFix]]:
    """
    Build keeper reservations from draft-time keeper flags, moving any that
    sit on a superseded pick to the final pick's owner. If that owner already
    has a reservation for the player that season, the stray one is dropped.
    """
    reservations: List[KeeperReservation] = []
    fixes: List[ReservationFix] = []
    held: Set[Tuple[str, str, int]] = set()

    for event in sorted(drafts, key=lambda d: (d.season, d.draft_id)):
        _, superseded = authoritative_picks(event)
        flagged = sorted(
            (p for p in event.picks if p.is_keeper and p.player_id),
            key=lambda p: p.pick_no,
        )

        pending: List[Tuple[DraftPick, str]] = []
        for pick in flagged:
            owner_id = chain.owner_for(event.league_id, pick.roster_id)
            if owner_id is None:
                continue
            if pick.pick_no in superseded:
                pending.append((pick, owner_id))
                continue
            key = (pick.player_id, owner_id, event.season)
            if key in held:
                continue
            held.add(key)
            reservations.append(KeeperReservation(
                player_id=pick.player_id,
                owner_id=owner_id,
                season=event.season,
                draft_id=event.draft_id,
                pick_no=pick.pick_no,
                round=pick.round,
            ))

        for pick, owner_id in pending:
            final = superseded[pick.pick_no]
            final_owner = chain.owner_for(event.league_id, final.roster_id)
            key = (pick.player_id, final_owner, event.season)

            if final_owner is None or key in held:
                logger.info(
                    "Removing keeper record for %s on %s (%d): superseded by pick %d",
                    pick.player_id, owner_id, event.season, final.pick_no,
                )
                fixes.append(ReservationFix(
                    player_id=pick.player_id,
                    season=event.season,
                    draft_id=event.draft_id,
                    action="removed",
                    from_owner_id=owner_id,
                ))
                continue

            held.add(key)
            reservations.append(KeeperReservation(
                player_id=pick.player_id,
                owner_id=final_owner,
                season=event.season,
                draft_id=event.draft_id,
                pick_no=final.pick_no,
                round=final.round,
                reassigned_from=owner_id if final_owner != owner_id else None,
            ))
            if final_owner != owner_id:
                logger.info(
                    "Reassigning keeper record for %s (%d) from %s to %s",
                    pick.player_id, event.season, owner_id, final_owner,
                )
                fixes.append(ReservationFix(
                    player_id=pick.player_id,
                    season=event.season,
                    draft_id=event.draft_id,
                    action="reassigned",
                    from_owner_id=owner_id,
                    to_owner_id=final_owner,
                ))

    return reservations, fixes


# ---------------------------------------------------------------------------
# Tracer
# ---------------------------------------------------------------------------

class AcquisitionTracer:
    """
    Works out how an owner came to hold a player, walking back through trades
    until a draft, an add, or a dead end explains it.
    """

    def __init__(
        self,
        chain: LeagueChain,
        drafts: Iterable[DraftEvent],
        transactions: Iterable[TransactionRecord],
        settings: LeagueSettings,
        as_of: Optional[datetime] = None,
    ):
        self.chain = chain
        self.settings = settings
        self.as_of = _naive_utc(as_of) if as_of else None

        self._draft_starts: Dict[int, datetime] = {}
        self._picks: Dict[str, List[_DraftEvidence]] = defaultdict(list)
        for event in drafts:
            if event.start_time is not None:
                start = _naive_utc(event.start_time)
                if event.season not in self._draft_starts or start < self._draft_starts[event.season]:
                    self._draft_starts[event.season] = start

            kept, _ = authoritative_picks(event)
            for pick in kept:
                if pick.is_keeper:
                    continue
                owner_id = chain.owner_for(event.league_id, pick.roster_id)
                if owner_id is None:
                    continue
                self._picks[pick.player_id].append(_DraftEvidence(
                    event.season, pick.pick_no, pick.round, owner_id, event.draft_id, event.start_time,
                ))
        for evidence in self._picks.values():
            evidence.sort(key=lambda e: (e.season, e.pick_no))

        self._moves: Dict[str, List[_OwnerMove]] = defaultdict(list)
        for tx in transactions:
            ts = _naive_utc(tx.timestamp)
            for movement in tx.movements:
                self._moves[movement.player_id].append(_OwnerMove(
                    ts,
                    tx.transaction_id,
                    tx.type,
                    chain.owner_for(tx.league_id, movement.from_roster),
                    chain.owner_for(tx.league_id, movement.to_roster),
                ))
        for moves in self._moves.values():
            moves.sort(key=lambda m: (m.timestamp, m.transaction_id))

    def _draft_evidence(self, player_id: str, owner_id: str, target_season: int, bound: datetime) -> Optional[_DraftEvidence]:
        bound_season = season_for_timestamp(bound, self.settings)
        for evidence in self._picks.get(player_id, ()):
            if evidence.owner_id != owner_id or evidence.season >= target_season:
                continue
            if evidence.season > bound_season:
                continue
            if evidence.start_time is not None and _naive_utc(evidence.start_time) > bound:
                continue
            return evidence
        return None

    def _latest_move_onto(self, player_id: str, owner_id: str, bound: datetime, used: Set[str]) -> Optional[_OwnerMove]:
        for move in reversed(self._moves.get(player_id, ())):
            if move.timestamp > bound or move.transaction_id in used:
                continue
            if move.to_owner == owner_id:
                return move
        return None

    def _drop_before(self, player_id: str, owner_id: str, add: _OwnerMove, used: Set[str]) -> Optional[_OwnerMove]:
        add_season = season_for_timestamp(add.timestamp, self.settings)
        for move in reversed(self._moves.get(player_id, ())):
            if move.transaction_id in used or move.timestamp >= add.timestamp:
                continue
            if season_for_timestamp(move.timestamp, self.settings) != add_season:
                break
            if move.from_owner == owner_id and move.to_owner is None:
                return move
        return None

    def trace(
        self,
        player_id: str,
        owner_id: str,
        target_season: int,
        as_of: Optional[datetime] = None,
    ) -> AcquisitionRecord:
        bound = _naive_utc(as_of) if as_of else (self.as_of or default_as_of(target_season, self.settings))

        steps: List[AcquisitionStep] = []  # newest first
        visited: Set[Tuple[str, str]] = set()
        used: Set[str] = set()
        owner = owner_id
        continuing = False

        while True:
            if not continuing:
                if (player_id, owner) in visited:
                    logger.warning(
                        "Trade cycle for player %s at owner %s, treating %d as acquisition season",
                        player_id, owner, target_season,
                    )
                    terminal = AcquisitionStep(owner_id=owner, kind="cycle", season=target_season)
                    origin, draft_round, kind = target_season, None, AcquisitionType.TRADE
                    break
                visited.add((player_id, owner))
            continuing = False

            pick = self._draft_evidence(player_id, owner, target_season, bound)
            if pick is not None:
                terminal = AcquisitionStep(
                    owner_id=owner, kind="draft", season=pick.season,
                    timestamp=pick.start_time, draft_round=pick.round,
                )
                origin, draft_round, kind = pick.season, pick.round, AcquisitionType.DRAFTED
                break

            move = self._latest_move_onto(player_id, owner, bound, used)
            if move is None:
                logger.warning(
                    "No draft or transaction explains %s holding %s, treating as undrafted %d pickup",
                    owner, player_id, target_season,
                )
                terminal = AcquisitionStep(owner_id=owner, kind="fallback", season=target_season)
                origin, draft_round, kind = target_season, None, AcquisitionType.UNDRAFTED
                break
            used.add(move.transaction_id)
            move_season = season_for_timestamp(move.timestamp, self.settings)

            if move.from_owner is not None and move.type in (TransactionType.TRADE, TransactionType.COMMISSIONER):
                reset_to = None
                if move.type == TransactionType.TRADE:
                    reset_to = offseason_season_for(move.timestamp, self.settings, self._draft_starts)
                steps.append(AcquisitionStep(
                    owner_id=owner,
                    kind=_MOVE_KINDS[move.type].value,
                    season=move_season,
                    transaction_id=move.transaction_id,
                    timestamp=move.timestamp,
                    from_owner_id=move.from_owner,
                    reset_to_season=reset_to,
                ))
                owner = move.from_owner
                bound = move.timestamp
                continue

            drop = self._drop_before(player_id, owner, move, used)
            if drop is not None:
                used.add(drop.transaction_id)
                steps.append(AcquisitionStep(
                    owner_id=owner,
                    kind="continuation",
                    season=move_season,
                    transaction_id=move.transaction_id,
                    timestamp=move.timestamp,
                ))
                bound = drop.timestamp
                continuing = True
                continue

            terminal = AcquisitionStep(
                owner_id=owner,
                kind=_MOVE_KINDS[move.type].value,
                season=move_season,
                transaction_id=move.transaction_id,
                timestamp=move.timestamp,
            )
            origin, draft_round, kind = move_season, None, _MOVE_KINDS[move.type]
            break

        reset = False
        for step in reversed(steps):
            if step.reset_to_season is not None:
                origin = step.reset_to_season
                reset = True

        newest = next((s for s in steps if s.kind != "continuation"), None)
        if newest is not None:
            kind = AcquisitionType(newest.kind)

        return AcquisitionRecord(
            player_id=player_id,
            owner_id=owner_id,
            target_season=target_season,
            origin_season=origin,
            draft_round=draft_round,
            acquisition_type=kind,
            acquisition_date=steps[0].timestamp if steps else terminal.timestamp,
            reset_by_offseason_trade=reset,
            lineage=steps + [terminal],
        )
