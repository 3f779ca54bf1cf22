
import aiosqlite
import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .config import DATABASE_URL
from .models.keepers import KeeperComputation, KeeperDesignation, KeeperSelection

async def get_db_connection():
    db = await aiosqlite.connect(DATABASE_URL)
    db.row_factory = aiosqlite.Row
    return db

async def create_tables():
    async with aiosqlite.connect(DATABASE_URL) as db:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS api_cache (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT UNIQUE NOT NULL,
                data TEXT NOT NULL,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS league_settings (
                league_id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS keeper_designations (
                league_id TEXT NOT NULL,
                season INTEGER NOT NULL,
                owner_id TEXT NOT NULL,
                player_id TEXT NOT NULL,
                requested_type TEXT,
                locked INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (league_id, season, owner_id, player_id)
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS keeper_selections (
                league_id TEXT NOT NULL,
                season INTEGER NOT NULL,
                owner_id TEXT NOT NULL,
                player_id TEXT NOT NULL,
                roster_id INTEGER,
                keeper_type TEXT NOT NULL,
                years_kept INTEGER NOT NULL,
                base_cost INTEGER NOT NULL,
                original_cost INTEGER NOT NULL,
                final_cost INTEGER NOT NULL,
                cascaded INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (league_id, season, owner_id, player_id)
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS keeper_results (
                league_id TEXT NOT NULL,
                season INTEGER NOT NULL,
                data TEXT NOT NULL,
                computed_at DATETIME NOT NULL,
                PRIMARY KEY (league_id, season)
            )
        """)
        await db.commit()


async def get_league_settings(league_id: str) -> Dict[str, Any]:
    """Stored per-league rule overrides ({} when none are stored)."""
    db = await get_db_connection()
    try:
        cursor = await db.execute("SELECT data FROM league_settings WHERE league_id = ?", (league_id,))
        row = await cursor.fetchone()
        return json.loads(row["data"]) if row else {}
    finally:
        await db.close()


async def save_league_settings(league_id: str, overrides: Dict[str, Any]):
    db = await get_db_connection()
    try:
        await db.execute(
            "INSERT OR REPLACE INTO league_settings (league_id, data, updated_at) VALUES (?, ?, ?)",
            (league_id, json.dumps(overrides), datetime.now(timezone.utc).isoformat()),
        )
        await db.commit()
    finally:
        await db.close()


async def get_designations(league_id: str, season: int) -> List[KeeperDesignation]:
    db = await get_db_connection()
    try:
        cursor = await db.execute(
            "SELECT owner_id, player_id, requested_type, locked FROM keeper_designations "
            "WHERE league_id = ? AND season = ? ORDER BY owner_id, player_id",
            (league_id, season),
        )
        rows = await cursor.fetchall()
        return [
            KeeperDesignation(
                season=season,
                owner_id=row["owner_id"],
                player_id=row["player_id"],
                requested_type=row["requested_type"],
                locked=bool(row["locked"]),
            )
            for row in rows
        ]
    finally:
        await db.close()


async def replace_designations(league_id: str, season: int, owner_id: str, designations: Iterable[KeeperDesignation]):
    """Swap one owner's designations for a season in a single transaction."""
    db = await get_db_connection()
    try:
        await db.execute(
            "DELETE FROM keeper_designations WHERE league_id = ? AND season = ? AND owner_id = ?",
            (league_id, season, owner_id),
        )
        await db.executemany(
            "INSERT OR REPLACE INTO keeper_designations "
            "(league_id, season, owner_id, player_id, requested_type, locked) VALUES (?, ?, ?, ?, ?, ?)",
            [
                (league_id, season, owner_id, d.player_id,
                 d.requested_type.value if d.requested_type else None, int(d.locked))
                for d in designations
            ],
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    finally:
        await db.close()


async def replace_keeper_results(computation: KeeperComputation):
    """
    Replace everything stored for (league, season) with `computation`.

    DELETE and INSERT share one transaction, so a reader sees either the old
    result or the new one, and racing recomputations end up identical.
    """
    league_id, season = computation.league_id, computation.season
    db = await get_db_connection()
    try:
        await db.execute(
            "DELETE FROM keeper_selections WHERE league_id = ? AND season = ?",
            (league_id, season),
        )
        await db.executemany(
            "INSERT INTO keeper_selections "
            "(league_id, season, owner_id, player_id, roster_id, keeper_type, years_kept, "
            "base_cost, original_cost, final_cost, cascaded) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (league_id, season, k.owner_id, k.player_id, k.roster_id, k.keeper_type.value,
                 k.years_kept, k.base_cost, k.original_cost, k.final_cost, int(k.cascaded))
                for roster in computation.per_roster
                for k in roster.keepers
            ],
        )
        await db.execute(
            "DELETE FROM keeper_results WHERE league_id = ? AND season = ?",
            (league_id, season),
        )
        await db.execute(
            "INSERT INTO keeper_results (league_id, season, data, computed_at) VALUES (?, ?, ?, ?)",
            (league_id, season, computation.model_dump_json(), datetime.now(timezone.utc).isoformat()),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    finally:
        await db.close()


async def get_keeper_result(league_id: str, season: int) -> Optional[KeeperComputation]:
    db = await get_db_connection()
    try:
        cursor = await db.execute(
            "SELECT data FROM keeper_results WHERE league_id = ? AND season = ?",
            (league_id, season),
        )
        row = await cursor.fetchone()
        return KeeperComputation.model_validate_json(row["data"]) if row else None
    finally:
        await db.close()


async def get_keeper_selections(league_id: str, season: int, owner_id: Optional[str] = None) -> List[KeeperSelection]:
    """Stored keepers for a season, flattened one row per player."""
    query = (
        "SELECT owner_id, player_id, roster_id, keeper_type, years_kept, base_cost, "
        "original_cost, final_cost, cascaded FROM keeper_selections WHERE league_id = ? AND season = ?"
    )
    params: List[Any] = [league_id, season]
    if owner_id is not None:
        query += " AND owner_id = ?"
        params.append(owner_id)
    query += " ORDER BY owner_id, final_cost, player_id"

    db = await get_db_connection()
    try:
        cursor = await db.execute(query, params)
        rows = await cursor.fetchall()
        return [
            KeeperSelection(
                season=season,
                owner_id=row["owner_id"],
                player_id=row["player_id"],
                roster_id=row["roster_id"],
                keeper_type=row["keeper_type"],
                years_kept=row["years_kept"],
                base_cost=row["base_cost"],
                original_cost=row["original_cost"],
                final_cost=row["final_cost"],
                cascaded=bool(row["cascaded"]),
            )
            for row in rows
        ]
    finally:
        await db.close()

if __name__ == "__main__":
    asyncio.run(create_tables())
