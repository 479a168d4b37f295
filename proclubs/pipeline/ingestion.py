import copy
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Set, Tuple

from loguru import logger

from proclubs.config.settings import LeagueConfig
from proclubs.models.match import (
    MalformedRecord,
    match_timestamp,
    parse_match,
    participant_ids,
)
from proclubs.storage.base_store import MatchDocument, MatchStore
from proclubs.utils.misc_utils import normalize_match_id

# Skip reasons, reported per run
MISSING_ID = "missing_id"
DUPLICATE = "duplicate"
BEFORE_SEASON = "before_season"
CLUB_OVERRIDE = "club_override"
MALFORMED = "malformed"
UNKNOWN_CLUBS = "unknown_clubs"
CAP_REACHED = "cap_reached"


class IngestionPipeline:
    """Merges freshly fetched matches into the match store.

    A match is written at most once (by normalized id), only if it is not
    older than the season start or a club's skip-before override, only if
    at least one side is a league club, and only while both sides are
    below the retention cap. The cap is a gate here, not a trim target.
    """

    def __init__(self, config: LeagueConfig, store: MatchStore):
        self.config = config
        self.store = store

    async def load_state(self) -> Tuple[Set[str], Counter]:
        """Reads stored ids and per-club counts of season-eligible matches."""
        documents = await self.store.get_all()
        existing_ids: Set[str] = set()
        counts: Counter = Counter()
        for document in documents:
            match_id = normalize_match_id(document.get("matchId"))
            if match_id:
                existing_ids.add(match_id)
            timestamp = match_timestamp(document)
            if timestamp is not None and timestamp < self.config.season_start:
                continue
            for club_id in participant_ids(document):
                counts[club_id] += 1
        logger.debug(
            f"Loaded ingestion state: {len(existing_ids)} stored ids, "
            f"{len(counts)} clubs counted."
        )
        return existing_ids, counts

    def _predates_override(self, timestamp: Any, clubs: Iterable[str]) -> bool:
        if timestamp is None:
            return False
        for club_id in clubs:
            cutoff = self.config.club_skip_before.get(club_id)
            if cutoff is not None and timestamp < cutoff:
                return True
        return False

    def _backfill_names(self, document: MatchDocument) -> None:
        for club_id, club in document["clubs"].items():
            name = self.config.club_name(club_id)
            if name is None or not isinstance(club, dict):
                continue
            details = club.get("details")
            if not isinstance(details, dict):
                details = {}
                club["details"] = details
            if not details.get("name"):
                details["name"] = name

    def stage(
        self,
        new_matches: Iterable[Dict[str, Any]],
        existing_match_ids: Iterable[str],
        per_club_counts: Mapping[str, int],
    ) -> Tuple[Dict[str, MatchDocument], Counter]:
        """Decides which raw matches to write. No I/O.

        Returns:
            (documents to write keyed by match id, skip-reason tallies)
        """
        seen: Set[str] = set(existing_match_ids)
        counts: Counter = Counter(per_club_counts)
        cap = self.config.retention_cap
        staged: Dict[str, MatchDocument] = {}
        skipped: Counter = Counter()

        for raw_match in new_matches:
            if not isinstance(raw_match, dict):
                skipped[MALFORMED] += 1
                continue

            match_id = normalize_match_id(raw_match.get("matchId"))
            if not match_id:
                skipped[MISSING_ID] += 1
                continue
            if match_id in seen:
                skipped[DUPLICATE] += 1
                continue

            timestamp = match_timestamp(raw_match)
            if timestamp is not None and timestamp < self.config.season_start:
                skipped[BEFORE_SEASON] += 1
                continue

            if self._predates_override(timestamp, participant_ids(raw_match)):
                skipped[CLUB_OVERRIDE] += 1
                continue

            try:
                match = parse_match(raw_match)
            except MalformedRecord as e:
                logger.debug(f"Dropping malformed match: {e}")
                skipped[MALFORMED] += 1
                continue

            clubs = match.participants
            if not any(self.config.is_known(club_id) for club_id in clubs):
                skipped[UNKNOWN_CLUBS] += 1
                continue

            if any(counts[club_id] >= cap for club_id in clubs):
                skipped[CAP_REACHED] += 1
                continue

            document = copy.deepcopy(raw_match)
            document["matchId"] = match_id
            self._backfill_names(document)

            staged[match_id] = document
            seen.add(match_id)
            for club_id in clubs:
                counts[club_id] += 1

        return staged, skipped

    async def ingest(
        self,
        new_matches: Iterable[Dict[str, Any]],
        existing_match_ids: Iterable[str],
        per_club_counts: Mapping[str, int],
    ) -> int:
        """Stages and commits new matches in bounded batches.

        Returns:
            Number of matches saved.

        Raises:
            StoreWriteFailure: a batch failed; earlier batches stay committed.
        """
        staged, skipped = self.stage(new_matches, existing_match_ids, per_club_counts)
        if skipped:
            logger.info(f"Skipped matches by reason: {dict(skipped)}")
        if not staged:
            logger.info("No new matches to save.")
            return 0

        saved = await self.store.write_all(staged)
        logger.success(f"Saved {saved} new matches.")
        return saved

    async def ingest_fetched(self, by_club: Mapping[str, List[Dict[str, Any]]]) -> int:
        """Runs ``ingest`` over per-club fetch results against current store state."""
        existing_ids, counts = await self.load_state()
        new_matches = [match for matches in by_club.values() for match in matches]
        logger.info(
            f"Ingesting {len(new_matches)} fetched records from {len(by_club)} clubs."
        )
        return await self.ingest(new_matches, existing_ids, counts)
