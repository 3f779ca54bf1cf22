import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from ..models.keepers import (
    BoardRow,
    BoardSlot,
    CascadeEvent,
    DraftBoard,
    KeeperSelection,
    SlotStatus,
    UnresolvedKeeper,
    UnresolvedReason,
)
from .traded_picks import TradedPickLedger

logger = logging.getLogger(__name__)


class CascadeResult(NamedTuple):
    keepers: List[KeeperSelection]
    events: List[CascadeEvent]
    unresolved: List[UnresolvedKeeper]
    occupancy: Dict[int, List[str]]  # round -> player ids, in slot order


def resolve_cascade(
    owner_id: str,
    selections: Iterable[KeeperSelection],
    owned_rounds: Counter,
    total_rounds: int,
) -> CascadeResult:
    """
    Seat one roster's keepers in rounds it actually owns.

    Each selection arrives with its provisional round in `final_cost`. Every
    owned round first seats its own claimants, cheapest original cost first,
    up to the number of picks held in it. Only the keepers that lose a
    contested round, or whose round was traded away or lies past the end,
    then move toward later rounds until an owned, unoccupied one turns up.
    A keeper with nowhere to go is reported unresolved.
    """
    def order(s: KeeperSelection):
        return (s.final_cost, s.original_cost, s.player_id)

    occupancy: Dict[int, List[str]] = defaultdict(list)

    def has_room(round: int) -> bool:
        return owned_rounds.get(round, 0) > len(occupancy[round])

    keepers: List[KeeperSelection] = []
    events: List[CascadeEvent] = []
    unresolved: List[UnresolvedKeeper] = []

    claims: Dict[int, List[KeeperSelection]] = defaultdict(list)
    for selection in selections:
        claims[selection.final_cost].append(selection)

    movers: List[KeeperSelection] = []
    for wanted in sorted(claims):
        for selection in sorted(claims[wanted], key=order):
            if wanted <= total_rounds and has_room(wanted):
                occupancy[wanted].append(selection.player_id)
                keepers.append(selection)
            else:
                movers.append(selection)

    for selection in sorted(movers, key=order):
        wanted = selection.final_cost
        if wanted > total_rounds:
            reason = f"Round {wanted} is past the last round ({total_rounds})"
        elif owned_rounds.get(wanted, 0) == 0:
            reason = f"Round {wanted} traded away"
        else:
            reason = f"Round {wanted} already held by {occupancy[wanted][-1]}"

        target = next((r for r in range(wanted + 1, total_rounds + 1) if has_room(r)), None)
        events.append(CascadeEvent(
            player_id=selection.player_id,
            from_round=wanted,
            to_round=target,
            reason=reason,
        ))

        if target is None:
            logger.info("No open round for %s on %s (wanted round %d)", selection.player_id, owner_id, wanted)
            unresolved.append(UnresolvedKeeper(
                owner_id=owner_id,
                roster_id=selection.roster_id,
                player_id=selection.player_id,
                reason=UnresolvedReason.NO_OPEN_ROUND,
                detail=f"{reason}; no owned round open from {wanted} to {total_rounds}",
            ))
            continue

        occupancy[target].append(selection.player_id)
        keepers.append(selection.model_copy(update={
            "final_cost": target,
            "cascaded": True,
            "cascade_reason": reason,
        }))

    keepers.sort(key=lambda s: (s.final_cost, s.player_id))
    return CascadeResult(keepers, events, unresolved, {r: p for r, p in occupancy.items() if p})


def _open_slot(round: int, original_owner_id: str, holders: List[str]) -> BoardSlot:
    if holders:
        return BoardSlot(
            round=round, status=SlotStatus.KEEPER,
            original_owner_id=original_owner_id, player_id=holders.pop(0),
        )
    return BoardSlot(round=round, status=SlotStatus.AVAILABLE, original_owner_id=original_owner_id)


def build_draft_board(
    league_id: str,
    season: int,
    total_rounds: int,
    rows: Iterable[Tuple[str, Optional[int], Optional[str]]],
    ledger: TradedPickLedger,
    occupancy: Dict[str, Dict[int, List[str]]],
) -> DraftBoard:
    """
    Round-by-round grid per roster built from cascade output.

    `rows` is (owner_id, roster_id, team_name) per roster. A roster's own pick
    that now belongs to someone else shows as traded; picks it acquired appear
    after its own slot in the same round.
    """
    board_rows: List[BoardRow] = []
    for owner_id, roster_id, team_name in rows:
        seated = occupancy.get(owner_id, {})
        acquired: Dict[int, List[str]] = defaultdict(list)
        for pick in ledger.acquired(season, owner_id):
            acquired[pick.round].append(pick.original_owner_id)

        slots: List[BoardSlot] = []
        for round in range(1, total_rounds + 1):
            holders = list(seated.get(round, []))

            holder = ledger.current_owner(season, round, owner_id)
            if holder != owner_id:
                slots.append(BoardSlot(
                    round=round, status=SlotStatus.TRADED,
                    original_owner_id=owner_id, traded_to_owner_id=holder,
                ))
            else:
                slots.append(_open_slot(round, owner_id, holders))

            for original_owner_id in sorted(acquired.get(round, [])):
                slots.append(_open_slot(round, original_owner_id, holders))

        board_rows.append(BoardRow(owner_id=owner_id, roster_id=roster_id, team_name=team_name, slots=slots))

    return DraftBoard(league_id=league_id, season=season, total_rounds=total_rounds, rosters=board_rows)
