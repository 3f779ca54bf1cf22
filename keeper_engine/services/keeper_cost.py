from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel

from ..models.keepers import (
    AcquisitionRecord,
    KeeperCost,
    KeeperDesignation,
    KeeperType,
    LeagueSettings,
    UnresolvedReason,
)


def _naive_utc(ts: datetime) -> datetime:
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def season_for_timestamp(ts: datetime, settings: LeagueSettings) -> int:
    """January/February belong to the previous season's playoffs."""
    ts = _naive_utc(ts)
    if ts.month < settings.season_rollover_month:
        return ts.year - 1
    return ts.year


def offseason_window(season: int, settings: LeagueSettings) -> Tuple[datetime, datetime]:
    """Inclusive window; it opens in the previous year when the start date falls after the end date."""
    opens = (settings.offseason_start_month, settings.offseason_start_day)
    closes = (settings.offseason_end_month, settings.offseason_end_day)
    start_year = season - 1 if opens > closes else season
    start = datetime(start_year, settings.offseason_start_month, settings.offseason_start_day)
    end = datetime(season, settings.offseason_end_month, settings.offseason_end_day, 23, 59, 59, 999999)
    return start, end


def offseason_season_for(
    ts: datetime,
    settings: LeagueSettings,
    draft_starts: Optional[Mapping[int, datetime]] = None,
) -> Optional[int]:
    """
    The keeper season whose offseason window contains `ts`, or None when the
    timestamp falls in-season. Once a season's draft has started, trades for
    that season are no longer offseason trades.
    """
    ts = _naive_utc(ts)
    for season in (ts.year, ts.year + 1):
        start, end = offseason_window(season, settings)
        if draft_starts and draft_starts.get(season) is not None:
            if ts >= _naive_utc(draft_starts[season]):
                continue
        if start <= ts <= end:
            return season
    return None


def is_offseason_trade(
    ts: datetime,
    target_season: int,
    settings: LeagueSettings,
    draft_starts: Optional[Mapping[int, datetime]] = None,
) -> bool:
    return offseason_season_for(ts, settings, draft_starts) == target_season


def default_as_of(target_season: int, settings: LeagueSettings) -> datetime:
    """Close of the target season's offseason window."""
    return offseason_window(target_season, settings)[1]


def calculate_keeper_cost(
    acquisition: AcquisitionRecord,
    target_season: int,
    settings: LeagueSettings,
) -> KeeperCost:
    years_kept = max(0, target_season - acquisition.origin_season)

    if acquisition.draft_round is not None:
        base_cost = acquisition.draft_round
        breakdown = f"R{base_cost} (draft round)"
    else:
        base_cost = settings.undrafted_round
        breakdown = f"R{base_cost} (undrafted)"

    final_cost = max(settings.minimum_round, base_cost - years_kept)

    if acquisition.reset_by_offseason_trade and years_kept == 0:
        breakdown = f"R{base_cost} (offseason trade - years reset)"
    elif years_kept > 0:
        breakdown = f"R{base_cost} - {years_kept}yr = R{final_cost}"

    return KeeperCost(
        years_kept=years_kept,
        base_cost=base_cost,
        final_cost=final_cost,
        regular_eligible=years_kept < settings.max_regular_keeper_years,
        breakdown=breakdown,
    )


class KeeperCandidate(BaseModel):
    designation: KeeperDesignation
    cost: KeeperCost


def allocate_keeper_types(
    candidates: List[KeeperCandidate],
    settings: LeagueSettings,
) -> Tuple[List[Tuple[KeeperCandidate, KeeperType]], List[Tuple[KeeperCandidate, UnresolvedReason, str]]]:
    """
    Assign regular or franchise to one roster's candidates.

    Regular keepers count against `max_keepers`, franchise tags against
    `max_franchise_tags`; neither consumes the other. Locked designations are
    placed first, then cheapest first, ties broken by player id.
    """
    ordered = sorted(
        candidates,
        key=lambda c: (not c.designation.locked, c.cost.final_cost, c.designation.player_id),
    )
    used: Dict[KeeperType, int] = {KeeperType.REGULAR: 0, KeeperType.FRANCHISE: 0}
    quota = {KeeperType.REGULAR: settings.max_keepers, KeeperType.FRANCHISE: settings.max_franchise_tags}

    assigned: List[Tuple[KeeperCandidate, KeeperType]] = []
    rejected: List[Tuple[KeeperCandidate, UnresolvedReason, str]] = []

    for candidate in ordered:
        wants_franchise = candidate.designation.requested_type == KeeperType.FRANCHISE
        if wants_franchise or not candidate.cost.regular_eligible:
            preference = [KeeperType.FRANCHISE]
            if candidate.cost.regular_eligible:
                preference.append(KeeperType.REGULAR)
        else:
            preference = [KeeperType.REGULAR, KeeperType.FRANCHISE]

        chosen = next((t for t in preference if used[t] < quota[t]), None)
        if chosen is not None:
            used[chosen] += 1
            assigned.append((candidate, chosen))
        elif not candidate.cost.regular_eligible:
            rejected.append((
                candidate,
                UnresolvedReason.INELIGIBLE,
                f"Kept {candidate.cost.years_kept} years (max {settings.max_regular_keeper_years}) "
                f"and no franchise tags left",
            ))
        else:
            rejected.append((
                candidate,
                UnresolvedReason.QUOTA_EXCEEDED,
                f"No keeper slots left ({settings.max_keepers} regular, "
                f"{settings.max_franchise_tags} franchise)",
            ))

    return assigned, rejected
