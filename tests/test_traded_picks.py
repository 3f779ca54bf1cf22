from collections import Counter

from keeper_engine.models.keepers import RosterIdentity, SeasonLeague, TradedPickRecord
from keeper_engine.services.league_history import LeagueChain
from keeper_engine.services.traded_picks import TradedPickLedger


def _make_chain():
    # Roster ids are reshuffled in 2025; owners are the stable identity
    leagues = [
        SeasonLeague(league_id="L24", external_id="L24", season=2024),
        SeasonLeague(league_id="L25", external_id="L25", season=2025, previous_external_id="L24"),
    ]
    rosters = [
        RosterIdentity(league_id="L24", roster_id=1, owner_id="A"),
        RosterIdentity(league_id="L24", roster_id=2, owner_id="B"),
        RosterIdentity(league_id="L24", roster_id=3, owner_id="C"),
        RosterIdentity(league_id="L25", roster_id=3, owner_id="A"),
        RosterIdentity(league_id="L25", roster_id=1, owner_id="B"),
        RosterIdentity(league_id="L25", roster_id=2, owner_id="C"),
    ]
    return LeagueChain(leagues, rosters)


def _make_pick(league_id, round, original, current, previous=None, season=2025):
    return TradedPickRecord(
        league_id=league_id, season=season, round=round,
        original_roster=original, current_roster=current, previous_roster=previous,
    )


def test_latest_league_wins_for_the_same_pick():
    ledger = TradedPickLedger(
        [
            _make_pick("L25", 3, original=3, current=2, previous=1),  # A -> C, reported by 2025
            _make_pick("L24", 3, original=1, current=2),              # A -> B, reported by 2024
        ],
        _make_chain(),
    )
    assert ledger.current_owner(2025, 3, "A") == "C"
    [pick] = ledger.for_season(2025)
    assert (pick.original_owner_id, pick.current_owner_id, pick.previous_owner_id) == ("A", "C", "B")


def test_untraded_pick_stays_with_original_owner():
    ledger = TradedPickLedger([], _make_chain())
    assert ledger.current_owner(2025, 5, "B") == "B"


def test_owned_rounds_counts_multiplicity():
    ledger = TradedPickLedger(
        [
            _make_pick("L25", 3, original=3, current=1),  # A's 3rd to B
            _make_pick("L25", 5, original=1, current=3),  # B's 5th to A
            _make_pick("L25", 5, original=2, current=3),  # C's 5th to A
        ],
        _make_chain(),
    )
    owned = ledger.owned_rounds(2025, "A", 6)
    assert owned == Counter({1: 1, 2: 1, 4: 1, 5: 3, 6: 1})
    assert ledger.owned_rounds(2025, "B", 6)[3] == 2
    assert 5 not in ledger.owned_rounds(2025, "B", 6)
    assert [p.round for p in ledger.traded_away(2025, "A")] == [3]
    assert [p.original_owner_id for p in ledger.acquired(2025, "A")] == ["B", "C"]


def test_other_seasons_do_not_leak():
    ledger = TradedPickLedger([_make_pick("L25", 2, original=3, current=1, season=2026)], _make_chain())
    assert ledger.owned_rounds(2025, "A", 4) == Counter({1: 1, 2: 1, 3: 1, 4: 1})
    assert ledger.current_owner(2026, 2, "A") == "B"


def test_unmapped_rosters_are_skipped():
    ledger = TradedPickLedger([_make_pick("L25", 2, original=9, current=1)], _make_chain())
    assert ledger.for_season(2025) == []


def test_ownership_covers_every_owner():
    ledger = TradedPickLedger([_make_pick("L25", 1, original=3, current=1)], _make_chain())
    ownership = ledger.ownership(2025, ["A", "B", "C"], 2)
    assert ownership["A"] == Counter({2: 1})
    assert ownership["B"] == Counter({1: 2, 2: 1})
    assert ownership["C"] == Counter({1: 1, 2: 1})
