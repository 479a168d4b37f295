# proclubs/sources/proclubs_source.py

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import httpx
from loguru import logger

from proclubs.config.settings import AppSettings
from .base_source import BaseSource, MalformedResponse, SourceUnavailable

# The EA endpoints reject requests without browser-like headers
EA_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": "https://www.ea.com/",
    "Origin": "https://www.ea.com",
    "Connection": "keep-alive",
}


def _flatten_matches(payload: Any) -> List[Dict[str, Any]]:
    """Accepts a list of matches or an object whose list values are concatenated."""
    if isinstance(payload, list):
        groups: Iterable[Any] = [payload]
    elif isinstance(payload, dict):
        groups = [value for value in payload.values() if isinstance(value, list)]
        if not groups and payload:
            raise MalformedResponse("Match payload object holds no match lists")
    else:
        raise MalformedResponse(
            f"Unexpected match payload type: {type(payload).__name__}"
        )
    return [match for group in groups for match in group if isinstance(match, dict)]


def _flatten_members(payload: Any) -> List[Dict[str, Any]]:
    """Accepts a member list, a {"members": [...]} wrapper, or a map of players."""
    if isinstance(payload, dict) and "members" in payload:
        payload = payload["members"]
    if isinstance(payload, list):
        return [member for member in payload if isinstance(member, dict)]
    if isinstance(payload, dict):
        return [member for member in payload.values() if isinstance(member, dict)]
    raise MalformedResponse(f"Unexpected member payload type: {type(payload).__name__}")


class ProClubsSource(BaseSource):
    """Client for the EA Sports FC Pro Clubs stats API."""

    name = "proclubs"

    def __init__(
        self,
        base_url: str = "https://proclubs.ea.com/api/fc",
        platform: str = "common-gen5",
        match_types: Optional[List[str]] = None,
        **kwargs,
    ):
        kwargs.setdefault("headers", EA_HEADERS)
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self.platform = platform
        self.match_types = match_types or ["leagueMatch"]
        logger.info(
            f"ProClubsSource initialized for {self.base_url} ({', '.join(self.match_types)})"
        )

    @classmethod
    def from_settings(
        cls, settings: AppSettings, client: Optional[httpx.AsyncClient] = None
    ) -> "ProClubsSource":
        return cls(
            base_url=settings.source_base_url,
            platform=settings.source_platform,
            match_types=settings.source_match_types,
            client=client,
            timeout=settings.request_timeout,
            max_concurrency=settings.max_concurrency,
            max_attempts=settings.max_attempts,
            retry_backoff=settings.retry_backoff,
            cache_ttl=settings.cache_ttl,
        )

    async def fetch_matches(self, club_id: str) -> List[Dict[str, Any]]:
        """Fetch every configured match type for one club.

        A failing match type is logged and contributes nothing; the other
        types for the club are still returned.
        """
        url = f"{self.base_url}/clubs/matches"
        matches: List[Dict[str, Any]] = []
        for match_type in self.match_types:
            params = {
                "platform": self.platform,
                "clubIds": club_id,
                "matchType": match_type,
            }
            try:
                payload = await self._get_json(url, params=params)
                matches.extend(_flatten_matches(payload))
            except SourceUnavailable as e:
                logger.error(f"Club {club_id} {match_type} unavailable: {e}")
            except MalformedResponse as e:
                logger.error(f"Club {club_id} {match_type} malformed response: {e}")
        logger.info(f"Club {club_id} -> {len(matches)} matches")
        return matches

    async def fetch_members(self, club_id: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/members/stats"
        params = {"platform": self.platform, "clubId": club_id}
        try:
            payload = await self._get_json(url, params=params)
            members = _flatten_members(payload)
        except SourceUnavailable as e:
            logger.error(f"Members for club {club_id} unavailable: {e}")
            return []
        except MalformedResponse as e:
            logger.error(f"Members for club {club_id} malformed response: {e}")
            return []
        logger.info(f"Club {club_id} -> {len(members)} players")
        return members

    async def fetch_all_matches(
        self, club_ids: List[str]
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch matches for every club concurrently, bounded by the semaphore."""
        results = await asyncio.gather(
            *(self.fetch_matches(club_id) for club_id in club_ids),
            return_exceptions=True,
        )
        by_club: Dict[str, List[Dict[str, Any]]] = {}
        for club_id, result in zip(club_ids, results):
            if isinstance(result, BaseException):
                logger.opt(exception=result).error(
                    f"Unexpected error fetching matches for club {club_id}: {result}"
                )
                by_club[club_id] = []
            else:
                by_club[club_id] = result
        return by_club

    async def fetch_all_members(
        self, club_ids: List[str]
    ) -> Dict[str, List[Dict[str, Any]]]:
        results = await asyncio.gather(
            *(self.fetch_members(club_id) for club_id in club_ids),
            return_exceptions=True,
        )
        by_club: Dict[str, List[Dict[str, Any]]] = {}
        for club_id, result in zip(club_ids, results):
            if isinstance(result, BaseException):
                logger.opt(exception=result).error(
                    f"Unexpected error fetching members for club {club_id}: {result}"
                )
                by_club[club_id] = []
            else:
                by_club[club_id] = result
        return by_club
