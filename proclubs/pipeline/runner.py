import asyncio
from typing import Any, Dict, List, Optional

from loguru import logger

from proclubs.aggregation.season import aggregate_season
from proclubs.aggregation.standings import aggregate
from proclubs.config.settings import LeagueConfig
from proclubs.models.enums import SnapshotId
from proclubs.models.snapshot import SeasonSnapshot, Snapshot
from proclubs.pipeline.ingestion import IngestionPipeline
from proclubs.pipeline.retention import RetentionTrimmer
from proclubs.sources.proclubs_source import ProClubsSource
from proclubs.storage.base_store import MatchDocument, MatchStore, SnapshotStore


class LeagueRunner:
    """Entry point for every scheduled trigger and request-surface call.

    Ingestion sweeps, trims, pre-season cleanup and corrective deletes all
    take ``self._lock``, so no two of them interleave their read of store
    state with another's writes. Snapshot rebuilds only read matches and
    run without the lock.
    """

    def __init__(
        self,
        config: LeagueConfig,
        source: ProClubsSource,
        match_store: MatchStore,
        snapshot_store: SnapshotStore,
    ):
        self.config = config
        self.source = source
        self.match_store = match_store
        self.snapshot_store = snapshot_store
        self.ingestion = IngestionPipeline(config, match_store)
        self.trimmer = RetentionTrimmer(config, match_store)
        self._lock = asyncio.Lock()

    async def run_ingestion(self) -> Dict[str, int]:
        """Clean old -> fetch all clubs -> ingest -> trim.

        Raises:
            StoreWriteFailure: a write batch failed mid-run.
        """
        async with self._lock:
            logger.info("Starting ingestion sweep...")
            cleaned = await self.trimmer.clean_old()
            by_club = await self.source.fetch_all_matches(self.config.club_ids)
            saved = await self.ingestion.ingest_fetched(by_club)
            trimmed = await self.trimmer.trim(self.config.retention_cap)
        summary = {"cleaned": cleaned, "saved": saved, "trimmed": trimmed}
        logger.success(f"Ingestion sweep finished: {summary}")
        return summary

    async def trim(self, cap: Optional[int] = None) -> int:
        async with self._lock:
            return await self.trimmer.trim(cap)

    async def clean_old(self) -> int:
        async with self._lock:
            return await self.trimmer.clean_old()

    async def delete_before(self, club_id: str, cutoff: int) -> int:
        async with self._lock:
            return await self.trimmer.delete_before(club_id, cutoff)

    async def rebuild_league_snapshot(self) -> Snapshot:
        documents = await self.match_store.get_all()
        snapshot = aggregate(documents, self.config)
        await self.snapshot_store.set(SnapshotId.LEAGUE.value, snapshot.to_document())
        return snapshot

    async def rebuild_season_snapshot(self) -> SeasonSnapshot:
        documents = await self.match_store.get_recent(self.config.season_match_limit)
        snapshot = aggregate_season(documents, self.config)
        await self.snapshot_store.set(SnapshotId.SEASON.value, snapshot.to_document())
        return snapshot

    async def current_snapshot(
        self, snapshot_id: SnapshotId = SnapshotId.LEAGUE
    ) -> Optional[Dict[str, Any]]:
        return await self.snapshot_store.get(snapshot_id.value)

    async def recent_matches(self, limit: int = 50) -> List[MatchDocument]:
        return await self.match_store.get_recent(limit)

    async def club_members(self) -> List[Dict[str, Any]]:
        """Member lists of every roster club, concatenated."""
        by_club = await self.source.fetch_all_members(self.config.club_ids)
        return [member for club_id in self.config.club_ids for member in by_club[club_id]]

    # --- Scheduled entry points: never raise ---

    async def scheduled_ingestion(self) -> None:
        try:
            await self.run_ingestion()
        except Exception as e:
            logger.exception(f"Ingestion sweep failed: {e}")

    async def scheduled_league_snapshot(self) -> None:
        try:
            snapshot = await self.rebuild_league_snapshot()
            logger.success(
                f"League snapshot updated ({len(snapshot.standings)} clubs)."
            )
        except Exception as e:
            logger.exception(f"League snapshot rebuild failed: {e}")

    async def scheduled_season_snapshot(self) -> None:
        try:
            snapshot = await self.rebuild_season_snapshot()
            logger.success(
                f"Season snapshot updated ({len(snapshot.semi_finals)} semi-finals)."
            )
        except Exception as e:
            logger.exception(f"Season snapshot rebuild failed: {e}")
