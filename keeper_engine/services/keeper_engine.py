import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..models.keepers import (
    AcquisitionRecord,
    KeeperComputation,
    KeeperDesignation,
    KeeperReservation,
    KeeperSelection,
    LeagueLedgers,
    LeagueSettings,
    RosterKeepers,
    SyncFailure,
    UnresolvedKeeper,
    UnresolvedReason,
)
from .acquisition import AcquisitionTracer, reconcile_reservations
from .cascade import build_draft_board, resolve_cascade
from .keeper_cost import (
    KeeperCandidate,
    _naive_utc,
    allocate_keeper_types,
    calculate_keeper_cost,
    default_as_of,
)
from .league_history import LeagueChain
from .traded_picks import TradedPickLedger

logger = logging.getLogger(__name__)


def merge_designations(
    designations: Iterable[KeeperDesignation],
    reservations: Iterable[KeeperReservation],
    target_season: int,
) -> Dict[str, Dict[str, KeeperDesignation]]:
    """
    owner -> player -> designation for the target season.

    Keeper flags already set in the target season's draft count as locked
    designations; a manager's own entry for the same player keeps its
    requested type.
    """
    merged: Dict[str, Dict[str, KeeperDesignation]] = {}
    for reservation in reservations:
        if reservation.season != target_season:
            continue
        merged.setdefault(reservation.owner_id, {})[reservation.player_id] = KeeperDesignation(
            season=target_season,
            owner_id=reservation.owner_id,
            player_id=reservation.player_id,
            locked=True,
            source="draft",
        )
    for designation in designations:
        if designation.season != target_season:
            continue
        existing = merged.setdefault(designation.owner_id, {}).get(designation.player_id)
        if existing is not None:
            designation = designation.model_copy(update={"locked": True, "source": existing.source})
        merged[designation.owner_id][designation.player_id] = designation
    return merged


def resolve_keepers(
    chain: LeagueChain,
    ledgers: LeagueLedgers,
    target_season: int,
    settings: LeagueSettings,
    designations: Iterable[KeeperDesignation] = (),
    as_of: Optional[datetime] = None,
    sync_failures: Iterable[SyncFailure] = (),
) -> KeeperComputation:
    """
    Compute every roster's keepers for `target_season` from scratch.

    Pure: the same chain, ledgers, settings, designations and as-of time always
    produce the same result.
    """
    if chain.latest is None:
        raise ValueError("Cannot compute keepers without any league in the chain")

    as_of = _naive_utc(as_of) if as_of else default_as_of(target_season, settings)
    league_id = chain.latest.league_id

    reservations, fixes = reconcile_reservations(ledgers.drafts, chain)
    tracer = AcquisitionTracer(chain, ledgers.drafts, ledgers.transactions, settings, as_of)
    ledger = TradedPickLedger(ledgers.traded_picks, chain)
    wanted = merge_designations(designations, reservations, target_season)

    per_roster: List[RosterKeepers] = []
    unresolved: List[UnresolvedKeeper] = []
    occupancy: Dict[str, Dict[int, List[str]]] = {}
    rosters = chain.current_rosters()

    for roster in rosters:
        owner_id = roster.owner_id
        acquisitions: Dict[str, AcquisitionRecord] = {}
        candidates: List[KeeperCandidate] = []

        for designation in sorted(wanted.get(owner_id, {}).values(), key=lambda d: d.player_id):
            if designation.source == "manager" and roster.players is not None and designation.player_id not in roster.players:
                unresolved.append(UnresolvedKeeper(
                    owner_id=owner_id,
                    roster_id=roster.roster_id,
                    player_id=designation.player_id,
                    reason=UnresolvedReason.NOT_ON_ROSTER,
                    detail="Player is not on this roster",
                ))
                continue
            acquisition = tracer.trace(designation.player_id, owner_id, target_season)
            acquisitions[designation.player_id] = acquisition
            candidates.append(KeeperCandidate(
                designation=designation,
                cost=calculate_keeper_cost(acquisition, target_season, settings),
            ))

        assigned, rejected = allocate_keeper_types(candidates, settings)
        for candidate, reason, detail in rejected:
            unresolved.append(UnresolvedKeeper(
                owner_id=owner_id,
                roster_id=roster.roster_id,
                player_id=candidate.designation.player_id,
                reason=reason,
                detail=detail,
            ))

        selections = [
            KeeperSelection(
                player_id=candidate.designation.player_id,
                owner_id=owner_id,
                roster_id=roster.roster_id,
                season=target_season,
                keeper_type=keeper_type,
                years_kept=candidate.cost.years_kept,
                base_cost=candidate.cost.base_cost,
                original_cost=candidate.cost.final_cost,
                final_cost=candidate.cost.final_cost,
                locked=candidate.designation.locked,
                acquisition=acquisitions[candidate.designation.player_id],
            )
            for candidate, keeper_type in assigned
        ]

        result = resolve_cascade(
            owner_id,
            selections,
            ledger.owned_rounds(target_season, owner_id, settings.total_rounds),
            settings.total_rounds,
        )
        unresolved.extend(result.unresolved)
        occupancy[owner_id] = result.occupancy
        per_roster.append(RosterKeepers(
            roster_id=roster.roster_id,
            owner_id=owner_id,
            team_name=roster.team_name,
            keepers=result.keepers,
            cascade_events=result.events,
        ))

    known = {r.owner_id for r in rosters}
    for owner_id in sorted(set(wanted) - known):
        logger.warning("Keeper designations for %s, who has no roster in %s", owner_id, league_id)
        for player_id in sorted(wanted[owner_id]):
            unresolved.append(UnresolvedKeeper(
                owner_id=owner_id,
                player_id=player_id,
                reason=UnresolvedReason.NOT_ON_ROSTER,
                detail=f"Owner has no roster in league {league_id}",
            ))

    board = build_draft_board(
        league_id,
        target_season,
        settings.total_rounds,
        [(r.owner_id, r.roster_id, r.team_name) for r in rosters],
        ledger,
        occupancy,
    )

    unresolved.sort(key=lambda u: (u.owner_id, u.player_id))
    logger.info(
        "Computed %d keepers for %s (%d), %d unresolved",
        sum(len(r.keepers) for r in per_roster), league_id, target_season, len(unresolved),
    )

    return KeeperComputation(
        league_id=league_id,
        season=target_season,
        as_of=as_of,
        per_roster=per_roster,
        unresolved=unresolved,
        board=board,
        reservation_fixes=fixes,
        sync_failures=list(sync_failures),
    )
