import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..config import MAX_CHAIN_DEPTH
from ..errors import ExternalFetchError
from ..models.keepers import RosterIdentity, SeasonLeague

logger = logging.getLogger(__name__)


async def walk_league_history(
    league_id: str,
    fetch_league: Callable[[str], Awaitable[Optional[SeasonLeague]]],
    max_depth: int = MAX_CHAIN_DEPTH,
) -> List[SeasonLeague]:
    """
    Follow previous-league pointers back from `league_id`.

    Returns the seasons oldest-first. A missing or unfetchable league ends the
    walk where it is; whatever was collected so far is still returned. If the
    starting league itself cannot be fetched, the ExternalFetchError is raised
    tagged with that league id.
    """
    history: List[SeasonLeague] = []
    seen = set()
    current_id: Optional[str] = league_id

    while current_id and len(history) < max_depth:
        if current_id in seen:
            logger.warning("League chain loops back to %s, stopping", current_id)
            break
        seen.add(current_id)

        try:
            league = await fetch_league(current_id)
        except ExternalFetchError as e:
            if not history:
                raise e.for_league(current_id) from e
            logger.warning("Broken league chain at %s: %s", current_id, e)
            break

        if league is None:
            if history:
                logger.warning(
                    "Broken league chain: %s (previous of %s) could not be resolved",
                    current_id, history[-1].league_id,
                )
            break

        history.append(league)
        current_id = league.previous_external_id

    if current_id and len(history) >= max_depth:
        logger.info("League chain for %s truncated at depth %d", league_id, max_depth)

    history.reverse()
    return history


class LeagueChain:
    """
    Season-ordered league records plus the roster -> owner mapping that ties
    season-local roster rows to one franchise across seasons.
    """

    def __init__(self, leagues: Iterable[SeasonLeague], rosters: Iterable[RosterIdentity] = ()):
        self.leagues: List[SeasonLeague] = sorted(leagues, key=lambda l: l.season)
        self._seasons: Dict[str, int] = {l.league_id: l.season for l in self.leagues}
        self._owners: Dict[Tuple[str, int], str] = {}
        self._rosters: Dict[Tuple[str, str], RosterIdentity] = {}
        self._unmapped = set()

        for roster in rosters:
            if roster.league_id not in self._seasons:
                continue
            if not roster.owner_id:
                logger.warning(
                    "Roster %s in league %s has no owner, skipping",
                    roster.roster_id, roster.league_id,
                )
                self._unmapped.add((roster.league_id, roster.roster_id))
                continue
            self._owners[(roster.league_id, roster.roster_id)] = roster.owner_id
            self._rosters[(roster.league_id, roster.owner_id)] = roster

    @property
    def latest(self) -> Optional[SeasonLeague]:
        return self.leagues[-1] if self.leagues else None

    @property
    def league_ids(self) -> List[str]:
        return [l.league_id for l in self.leagues]

    def season_of(self, league_id: str) -> Optional[int]:
        return self._seasons.get(league_id)

    def owner_for(self, league_id: str, roster_id: Optional[int]) -> Optional[str]:
        if roster_id is None:
            return None
        owner_id = self._owners.get((league_id, roster_id))
        if owner_id is None and (league_id, roster_id) not in self._unmapped:
            logger.warning("No owner mapping for roster %s in league %s", roster_id, league_id)
            self._unmapped.add((league_id, roster_id))
        return owner_id

    def roster_for(self, league_id: str, owner_id: str) -> Optional[RosterIdentity]:
        return self._rosters.get((league_id, owner_id))

    def current_rosters(self) -> List[RosterIdentity]:
        """Rosters of the most recent season, ordered by roster id."""
        if not self.latest:
            return []
        league_id = self.latest.league_id
        rosters = [r for (lid, _), r in self._rosters.items() if lid == league_id]
        return sorted(rosters, key=lambda r: r.roster_id)
