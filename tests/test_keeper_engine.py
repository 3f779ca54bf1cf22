from datetime import datetime

import pytest

from keeper_engine.models.keepers import (
    DraftEvent,
    DraftPick,
    KeeperDesignation,
    KeeperReservation,
    KeeperType,
    LeagueLedgers,
    LeagueSettings,
    SlotStatus,
    UnresolvedReason,
)
from keeper_engine.services.keeper_engine import merge_designations, resolve_keepers
from keeper_engine.services.league_history import LeagueChain

SETTINGS = LeagueSettings(total_rounds=6)


def _make_snapshot(data, extra_drafts=()):
    ledgers = LeagueLedgers(
        leagues=list(data["leagues"].values()),
        rosters=[r for rows in data["rosters"].values() for r in rows],
        drafts=[d for rows in data["drafts"].values() for d in rows] + list(extra_drafts),
        transactions=[t for rows in data["transactions"].values() for t in rows],
        traded_picks=[p for rows in data["traded_picks"].values() for p in rows],
    )
    return LeagueChain(ledgers.leagues, ledgers.rosters), ledgers


def _designate(owner_id, player_id, **kwargs):
    return KeeperDesignation(season=2025, owner_id=owner_id, player_id=player_id, **kwargs)


def test_keepers_cascade_past_traded_round(league_data):
    chain, ledgers = _make_snapshot(league_data)
    result = resolve_keepers(chain, ledgers, 2025, SETTINGS, [_designate("A", "p1"), _designate("B", "p2")])

    by_owner = {r.owner_id: r for r in result.per_roster}
    assert [r.owner_id for r in result.per_roster] == ["B", "A"]

    [p1] = by_owner["A"].keepers
    assert (p1.years_kept, p1.base_cost, p1.original_cost, p1.final_cost) == (1, 4, 3, 4)
    assert p1.cascade_reason == "Round 3 traded away"
    assert p1.roster_id == 2

    [p2] = by_owner["B"].keepers
    assert (p2.final_cost, p2.cascaded) == (1, False)
    assert result.unresolved == []
    assert result.as_of == datetime(2025, 8, 31, 23, 59, 59, 999999)


def test_board_follows_cascade_output(league_data):
    chain, ledgers = _make_snapshot(league_data)
    result = resolve_keepers(chain, ledgers, 2025, SETTINGS, [_designate("A", "p1"), _designate("B", "p2")])
    rows = {row.owner_id: row for row in result.board.rosters}

    a_slots = {(s.round, s.original_owner_id): s for s in rows["A"].slots}
    assert a_slots[(3, "A")].status == SlotStatus.TRADED
    assert a_slots[(3, "A")].traded_to_owner_id == "B"
    assert a_slots[(4, "A")].player_id == "p1"

    b_round_three = [s for s in rows["B"].slots if s.round == 3]
    assert [s.original_owner_id for s in b_round_three] == ["B", "A"]
    assert rows["B"].slots[0].player_id == "p2"


def test_resolution_is_idempotent(league_data):
    chain, ledgers = _make_snapshot(league_data)
    designations = [_designate("A", "p1"), _designate("B", "p2"), _designate("B", "p3")]
    first = resolve_keepers(chain, ledgers, 2025, SETTINGS, designations)
    second = resolve_keepers(chain, ledgers, 2025, SETTINGS, designations)
    assert first.model_dump() == second.model_dump()


def test_waiver_pickup_past_last_round_is_unresolved(league_data):
    chain, ledgers = _make_snapshot(league_data)
    result = resolve_keepers(chain, ledgers, 2025, SETTINGS, [_designate("B", "p3")])
    [unresolved] = result.unresolved
    assert (unresolved.player_id, unresolved.reason) == ("p3", UnresolvedReason.NO_OPEN_ROUND)


def test_player_not_on_roster_is_reported(league_data):
    chain, ledgers = _make_snapshot(league_data)
    result = resolve_keepers(chain, ledgers, 2025, SETTINGS, [_designate("A", "p2")])
    [unresolved] = result.unresolved
    assert (unresolved.owner_id, unresolved.reason) == ("A", UnresolvedReason.NOT_ON_ROSTER)


def test_designation_for_unknown_owner_is_reported(league_data):
    chain, ledgers = _make_snapshot(league_data)
    result = resolve_keepers(chain, ledgers, 2025, SETTINGS, [_designate("Z", "p1")])
    assert [(u.owner_id, u.reason) for u in result.unresolved] == [("Z", UnresolvedReason.NOT_ON_ROSTER)]


def test_other_seasons_designations_are_ignored(league_data):
    chain, ledgers = _make_snapshot(league_data)
    stale = KeeperDesignation(season=2024, owner_id="A", player_id="p1")
    result = resolve_keepers(chain, ledgers, 2025, SETTINGS, [stale])
    assert all(r.keepers == [] for r in result.per_roster)


def test_draft_time_keeper_flag_becomes_locked_keeper(league_data):
    keeper_draft = DraftEvent(
        draft_id="D25", league_id="L25", season=2025, start_time=datetime(2025, 8, 28),
        picks=[DraftPick(draft_id="D25", round=1, pick_no=1, player_id="p2", roster_id=1, is_keeper=True)],
    )
    chain, ledgers = _make_snapshot(league_data, extra_drafts=[keeper_draft])
    result = resolve_keepers(chain, ledgers, 2025, SETTINGS)
    [b] = [r for r in result.per_roster if r.owner_id == "B"]
    [p2] = b.keepers
    assert p2.locked
    assert p2.final_cost == 1


def test_manager_type_request_survives_merge_with_reservation():
    reservation = KeeperReservation(player_id="p2", owner_id="B", season=2025, draft_id="D25", pick_no=1, round=1)
    merged = merge_designations(
        [_designate("B", "p2", requested_type=KeeperType.FRANCHISE)],
        [reservation],
        2025,
    )
    designation = merged["B"]["p2"]
    assert designation.requested_type == KeeperType.FRANCHISE
    assert designation.locked
    assert designation.source == "draft"


def test_empty_chain_is_rejected():
    with pytest.raises(ValueError):
        resolve_keepers(LeagueChain([]), LeagueLedgers(), 2025, SETTINGS)
