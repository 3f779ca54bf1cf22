from typing import Optional


class KeeperEngineError(Exception):
    """Base class for errors raised outside the pure engine."""


class LeagueNotFoundError(KeeperEngineError):
    def __init__(self, league_id: str):
        super().__init__(f"League {league_id} not found")
        self.league_id = league_id


class ExternalFetchError(KeeperEngineError):
    """A provider request kept failing after the bounded retries."""

    def __init__(self, url: str, detail: str, league_id: Optional[str] = None, season: Optional[int] = None):
        message = f"{detail} ({url})"
        if league_id is not None:
            where = f"league {league_id}" if season is None else f"league {league_id} ({season})"
            message = f"{where}: {message}"
        super().__init__(message)
        self.url = url
        self.detail = detail
        self.league_id = league_id
        self.season = season

    def for_league(self, league_id: str, season: Optional[int] = None) -> "ExternalFetchError":
        return ExternalFetchError(self.url, self.detail, league_id=league_id, season=season)
