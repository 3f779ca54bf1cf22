import asyncio
from datetime import datetime

import pytest

from keeper_engine import client
from keeper_engine.config import API_URL
from keeper_engine.models.keepers import TransactionType
from keeper_engine.services.sync_feed import SleeperFeed

# Sleeper payloads trimmed to the fields the feed reads
RESPONSES = {
    f"{API_URL}/league/L25": {
        "league_id": "L25", "name": "Dynasty", "season": "2025", "status": "pre_draft",
        "previous_league_id": "L24", "settings": {"draft_rounds": 14, "max_keepers": 6},
    },
    f"{API_URL}/league/L24": {
        "league_id": "L24", "name": "Dynasty", "season": "2024", "status": "complete",
        "previous_league_id": "0", "settings": {},
    },
    f"{API_URL}/league/L25/rosters": [
        {"roster_id": 1, "owner_id": "u1", "players": ["p1", "p2"], "settings": {}},
        {"roster_id": 2, "owner_id": None, "players": [], "settings": {}},
    ],
    f"{API_URL}/league/L25/users": [
        {"user_id": "u1", "username": "alice", "display_name": "Alice", "metadata": {"team_name": "Sharks"}},
    ],
    f"{API_URL}/league/L25/drafts": [
        {"draft_id": "D25", "league_id": "L25", "season": "2025", "status": "complete",
         "start_time": 1724608800000, "settings": {"rounds": 14}},
    ],
    f"{API_URL}/draft/D25/picks": [
        {"draft_id": "D25", "pick_no": 1, "round": 1, "roster_id": 1, "player_id": "p1", "is_keeper": True},
        {"draft_id": "D25", "pick_no": 2, "round": 1, "roster_id": 2, "player_id": "p9", "is_keeper": None},
    ],
    f"{API_URL}/league/L25/transactions/1": [
        {"transaction_id": "t1", "type": "trade", "status": "complete", "status_updated": 1728993600000,
         "adds": {"p1": 2}, "drops": {"p1": 1}, "roster_ids": [1, 2]},
        {"transaction_id": "t2", "type": "waiver", "status": "failed", "status_updated": 1728993600000,
         "adds": {"p7": 1}},
        {"transaction_id": "t3", "type": "free_agent", "status": "complete", "status_updated": 1729000000000,
         "adds": {"p8": 1}, "drops": {"p3": 1}},
    ],
    f"{API_URL}/league/L25/traded_picks": [
        {"season": "2026", "round": 2, "roster_id": 1, "owner_id": 2, "previous_owner_id": 1},
    ],
}


@pytest.fixture(autouse=True)
def fake_sleeper(monkeypatch):
    async def fake_get(url, http_client=None):
        return RESPONSES.get(url)
    monkeypatch.setattr(client, "get", fake_get)


def test_league_normalization():
    feed = SleeperFeed()
    league = asyncio.run(feed.get_league("L25"))
    assert (league.season, league.previous_external_id) == (2025, "L24")
    assert (league.total_rounds, league.max_keepers) == (14, 6)

    first = asyncio.run(feed.get_league("L24"))
    assert first.previous_external_id is None
    assert asyncio.run(feed.get_league("missing")) is None


def test_rosters_carry_owner_and_team_name():
    rosters = asyncio.run(SleeperFeed().get_rosters("L25"))
    assert [(r.roster_id, r.owner_id, r.team_name) for r in rosters] == [(1, "u1", "Sharks"), (2, None, None)]
    assert rosters[0].players == ["p1", "p2"]


def test_drafts_include_picks_and_start_time():
    [draft] = asyncio.run(SleeperFeed().get_drafts("L25"))
    assert draft.season == 2025
    assert draft.start_time == datetime(2024, 8, 25, 18)
    assert [(p.pick_no, p.is_keeper) for p in draft.picks] == [(1, True), (2, False)]


def test_transactions_keep_completed_moves_only():
    records = asyncio.run(SleeperFeed().get_transactions("L25"))
    assert [r.transaction_id for r in records] == ["t1", "t3"]

    trade, pickup = records
    assert trade.type == TransactionType.TRADE
    assert trade.timestamp == datetime(2024, 10, 15, 12)
    assert [(m.player_id, m.from_roster, m.to_roster) for m in trade.movements] == [("p1", 1, 2)]
    assert [(m.player_id, m.from_roster, m.to_roster) for m in pickup.movements] == [
        ("p8", None, 1), ("p3", 1, None),
    ]


def test_traded_picks_map_original_and_current_rosters():
    [pick] = asyncio.run(SleeperFeed().get_traded_picks("L25"))
    assert (pick.season, pick.round) == (2026, 2)
    assert (pick.original_roster, pick.current_roster, pick.previous_roster) == (1, 2, 1)
