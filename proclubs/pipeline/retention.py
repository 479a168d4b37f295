from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from loguru import logger

from proclubs.config.settings import LeagueConfig
from proclubs.models.match import match_timestamp, participant_ids
from proclubs.storage.base_store import MatchDocument, MatchStore
from proclubs.utils.misc_utils import normalize_match_id


def select_excess(
    documents: Iterable[MatchDocument], cap: int, season_start: int
) -> Set[str]:
    """Ids of matches beyond the newest ``cap`` for any of their clubs.

    Matches before ``season_start`` are not considered. A match without a
    timestamp sorts as the oldest.
    """
    by_club: Dict[str, List[Tuple[int, str]]] = defaultdict(list)
    for document in documents:
        match_id = normalize_match_id(document.get("matchId"))
        if not match_id:
            continue
        timestamp = match_timestamp(document)
        if timestamp is not None and timestamp < season_start:
            continue
        for club_id in participant_ids(document):
            by_club[club_id].append((timestamp if timestamp is not None else 0, match_id))

    excess: Set[str] = set()
    for club_id, entries in by_club.items():
        if len(entries) <= cap:
            continue
        # Stable on ties; keep the newest `cap`
        entries.sort(key=lambda entry: entry[0])
        dropped = entries[: len(entries) - cap]
        logger.debug(f"Club {club_id}: {len(dropped)} excess of {len(entries)} matches")
        excess.update(match_id for _, match_id in dropped)
    return excess


class RetentionTrimmer:
    """Deletes matches that fall outside the per-club retention window."""

    def __init__(self, config: LeagueConfig, store: MatchStore):
        self.config = config
        self.store = store

    async def trim(self, cap: Optional[int] = None) -> int:
        """Deletes every match that is excess for any of its clubs. Idempotent."""
        cap = self.config.retention_cap if cap is None else cap
        documents = await self.store.get_all()
        excess = select_excess(documents, cap, self.config.season_start)
        if not excess:
            logger.info(f"Trim (cap {cap}): nothing to delete.")
            return 0
        deleted = await self.store.delete_all(sorted(excess))
        logger.success(f"Trim (cap {cap}): deleted {deleted} excess matches.")
        return deleted

    async def clean_old(self) -> int:
        """Deletes matches timestamped strictly before the season start.

        Matches without a timestamp are kept.
        """
        documents = await self.store.get_all()
        old_ids = []
        for document in documents:
            match_id = normalize_match_id(document.get("matchId"))
            timestamp = match_timestamp(document)
            if match_id and timestamp is not None and timestamp < self.config.season_start:
                old_ids.append(match_id)
        if not old_ids:
            logger.info("No pre-season matches to clean.")
            return 0
        deleted = await self.store.delete_all(old_ids)
        logger.success(f"Cleaned {deleted} pre-season matches.")
        return deleted

    async def delete_before(self, club_id: str, cutoff: int) -> int:
        """Deletes the club's matches timestamped strictly before ``cutoff``."""
        club_id = str(club_id)
        documents = await self.store.get_all()
        doomed = []
        for document in documents:
            match_id = normalize_match_id(document.get("matchId"))
            timestamp = match_timestamp(document)
            if (
                match_id
                and timestamp is not None
                and timestamp < cutoff
                and club_id in participant_ids(document)
            ):
                doomed.append(match_id)
        if not doomed:
            logger.info(f"No matches for club {club_id} before {cutoff}.")
            return 0
        deleted = await self.store.delete_all(doomed)
        logger.success(f"Deleted {deleted} matches for club {club_id} before {cutoff}.")
        return deleted
