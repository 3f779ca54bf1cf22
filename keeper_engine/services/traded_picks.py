import logging
from collections import Counter
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from ..models.keepers import TradedPickRecord
from .league_history import LeagueChain

logger = logging.getLogger(__name__)


class OwnedPick(NamedTuple):
    season: int
    round: int
    original_owner_id: str
    current_owner_id: str
    previous_owner_id: Optional[str]


class TradedPickLedger:
    """
    Draft-round ownership transfers, keyed by stable owner id.

    Several seasons of the chain can report the same future pick; the record
    from the most recent league wins, and within a league the last one listed.
    """

    def __init__(self, records: Iterable[TradedPickRecord], chain: LeagueChain):
        order = {league_id: i for i, league_id in enumerate(chain.league_ids)}
        ranked = sorted(
            enumerate(records),
            key=lambda item: (order.get(item[1].league_id, -1), item[0]),
        )

        self._picks: Dict[Tuple[int, int, str], OwnedPick] = {}
        for _, record in ranked:
            original = chain.owner_for(record.league_id, record.original_roster)
            current = chain.owner_for(record.league_id, record.current_roster)
            if original is None or current is None:
                logger.warning(
                    "Skipping traded pick %s round %d in league %s: roster not mapped to an owner",
                    record.season, record.round, record.league_id,
                )
                continue
            previous = chain.owner_for(record.league_id, record.previous_roster)
            self._picks[(record.season, record.round, original)] = OwnedPick(
                record.season, record.round, original, current, previous,
            )

    def for_season(self, season: int) -> List[OwnedPick]:
        picks = [p for p in self._picks.values() if p.season == season]
        return sorted(picks, key=lambda p: (p.round, p.original_owner_id))

    def current_owner(self, season: int, round: int, original_owner_id: str) -> str:
        pick = self._picks.get((season, round, original_owner_id))
        return pick.current_owner_id if pick else original_owner_id

    def traded_away(self, season: int, owner_id: str) -> List[OwnedPick]:
        return [
            p for p in self.for_season(season)
            if p.original_owner_id == owner_id and p.current_owner_id != owner_id
        ]

    def acquired(self, season: int, owner_id: str) -> List[OwnedPick]:
        return [
            p for p in self.for_season(season)
            if p.current_owner_id == owner_id and p.original_owner_id != owner_id
        ]

    def owned_rounds(self, season: int, owner_id: str, total_rounds: int) -> Counter:
        """Pick count per round: all rounds, minus traded away, plus acquired."""
        owned = Counter({r: 1 for r in range(1, total_rounds + 1)})
        for pick in self.traded_away(season, owner_id):
            owned[pick.round] -= 1
        for pick in self.acquired(season, owner_id):
            if pick.round <= total_rounds:
                owned[pick.round] += 1
        return Counter({r: n for r, n in owned.items() if n > 0})

    def ownership(self, season: int, owner_ids: Iterable[str], total_rounds: int) -> Dict[str, Counter]:
        return {owner_id: self.owned_rounds(season, owner_id, total_rounds) for owner_id in owner_ids}
