import asyncio
from datetime import datetime

import pytest

from keeper_engine import database
from keeper_engine.errors import ExternalFetchError
from keeper_engine.models.keepers import (
    DraftEvent,
    DraftPick,
    PlayerMovement,
    RosterIdentity,
    SeasonLeague,
    TradedPickRecord,
    TransactionRecord,
    TransactionType,
)


# ── Two-season league used by the service and endpoint tests ─────────
#
# 2024 (L24): A is roster 1, B is roster 2.
# 2025 (L25): roster ids swap, B is roster 1, A is roster 2.
# p1 drafted R4 by A in 2024, p2 drafted R2 by B in 2024.
# A traded its 2025 round 3 to B.


def _make_league_data():
    return {
        "leagues": {
            "L24": SeasonLeague(league_id="L24", external_id="L24", season=2024, total_rounds=6),
            "L25": SeasonLeague(
                league_id="L25", external_id="L25", season=2025,
                previous_external_id="L24", total_rounds=6,
            ),
        },
        "rosters": {
            "L24": [
                RosterIdentity(league_id="L24", roster_id=1, owner_id="A", team_name="Team A"),
                RosterIdentity(league_id="L24", roster_id=2, owner_id="B", team_name="Team B"),
            ],
            "L25": [
                RosterIdentity(league_id="L25", roster_id=1, owner_id="B", team_name="Team B", players=["p2", "p3"]),
                RosterIdentity(league_id="L25", roster_id=2, owner_id="A", team_name="Team A", players=["p1"]),
            ],
        },
        "drafts": {
            "L24": [
                DraftEvent(
                    draft_id="D24", league_id="L24", season=2024, start_time=datetime(2024, 8, 25, 18),
                    picks=[
                        DraftPick(draft_id="D24", round=2, pick_no=4, player_id="p2", roster_id=2),
                        DraftPick(draft_id="D24", round=4, pick_no=7, player_id="p1", roster_id=1),
                    ],
                ),
            ],
            "L25": [],
        },
        "transactions": {
            "L24": [
                TransactionRecord(
                    transaction_id="t1", league_id="L24", type=TransactionType.WAIVER,
                    timestamp=datetime(2024, 10, 2, 9),
                    movements=[PlayerMovement(player_id="p3", to_roster=2)],
                ),
            ],
            "L25": [],
        },
        "traded_picks": {
            "L24": [],
            "L25": [
                TradedPickRecord(
                    league_id="L25", season=2025, round=3,
                    original_roster=2, current_roster=1, previous_roster=2,
                ),
            ],
        },
    }


class FakeFeed:
    """
    In-memory LeagueSyncFeed. League ids in `failing` raise on every ledger
    read; ids in `unreachable` raise on the league lookup.
    """

    def __init__(self, data):
        self.data = data
        self.failing = set()
        self.unreachable = set()

    def _check(self, league_id):
        if league_id in self.failing:
            raise ExternalFetchError(f"fake://{league_id}", "HTTP 503", league_id=league_id)

    async def get_league(self, league_id):
        if league_id in self.unreachable:
            raise ExternalFetchError(f"fake://{league_id}", "HTTP 503")
        return self.data["leagues"].get(league_id)

    async def get_rosters(self, league_id):
        self._check(league_id)
        return list(self.data["rosters"].get(league_id, []))

    async def get_drafts(self, league_id):
        self._check(league_id)
        return list(self.data["drafts"].get(league_id, []))

    async def get_transactions(self, league_id):
        self._check(league_id)
        return list(self.data["transactions"].get(league_id, []))

    async def get_traded_picks(self, league_id):
        self._check(league_id)
        return list(self.data["traded_picks"].get(league_id, []))


@pytest.fixture
def league_data():
    return _make_league_data()


@pytest.fixture
def feed(league_data):
    return FakeFeed(league_data)


@pytest.fixture
def tmp_db(tmp_path, monkeypatch):
    path = str(tmp_path / "keeper_engine.db")
    monkeypatch.setattr(database, "DATABASE_URL", path)
    asyncio.run(database.create_tables())
    return path
