# proclubs/storage/supabase_client.py
from typing import Any, Dict, List, Optional

from loguru import logger
from postgrest import APIResponse
from postgrest.exceptions import APIError
from supabase import AsyncClient, create_async_client

from proclubs.config.settings import AppSettings, ConfigurationError
from proclubs.storage.base_store import (
    MatchDocument,
    MatchStore,
    SnapshotStore,
    StoreError,
    StoreWriteFailure,
    WriteBatch,
)
from proclubs.utils.misc_utils import parse_int

# PostgREST caps a single select at 1000 rows by default
PAGE_SIZE = 1000


async def initialize_supabase(settings: AppSettings) -> Optional[AsyncClient]:
    """Creates the async Supabase client used by both stores."""
    key = settings.supabase_service_key or settings.supabase_key
    if not settings.supabase_url or not key:
        logger.critical("Supabase URL or Key not configured in settings.")
        raise ConfigurationError("Supabase configuration missing.")

    url = str(settings.supabase_url)
    logger.debug(f"Attempting to initialize Async Supabase client with URL: {url}")
    key_snippet = f"{key[:5]}...{key[-5:]}" if len(key) > 10 else "****"
    logger.debug(f"Using Supabase Key (snippet): {key_snippet}")

    try:
        client: AsyncClient = await create_async_client(url, key)
        logger.success("Async Supabase client initialized successfully.")
        return client
    except Exception as e:
        logger.exception(f"Failed to initialize Async Supabase client: {e}")
        return None


def _row_for(match_id: str, document: MatchDocument) -> Dict[str, Any]:
    return {
        "match_id": match_id,
        "timestamp": parse_int(document.get("timestamp")),
        "data": document,
    }


class SupabaseMatchStore(MatchStore):
    """Match documents in a `matches` table (match_id pk, timestamp, data jsonb).

    Each batch is sent as one PostgREST request, which runs as a single
    statement and is therefore applied all-or-nothing.
    """

    def __init__(self, client: AsyncClient, table: str = "matches", batch_limit: int = 400):
        super().__init__(batch_limit=batch_limit)
        self.client = client
        self.table = table

    async def get_all(self) -> List[MatchDocument]:
        documents: List[MatchDocument] = []
        start = 0
        try:
            while True:
                response: APIResponse = (
                    await self.client.table(self.table)
                    .select("data")
                    .order("match_id")
                    .range(start, start + PAGE_SIZE - 1)
                    .execute()
                )
                rows = response.data or []
                documents.extend(row["data"] for row in rows if row.get("data"))
                if len(rows) < PAGE_SIZE:
                    break
                start += PAGE_SIZE
        except APIError as e:
            logger.error(f"Error loading matches from {self.table}: {e.message}")
            raise StoreError(f"Failed to load matches: {e.message}") from e
        logger.debug(f"Loaded {len(documents)} matches from {self.table}.")
        return documents

    async def get_recent(self, limit: int) -> List[MatchDocument]:
        try:
            response: APIResponse = (
                await self.client.table(self.table)
                .select("data")
                .order("timestamp", desc=True, nullsfirst=False)
                .limit(limit)
                .execute()
            )
        except APIError as e:
            logger.error(f"Error loading recent matches: {e.message}")
            raise StoreError(f"Failed to load recent matches: {e.message}") from e
        return [row["data"] for row in response.data or [] if row.get("data")]

    async def exists(self, match_id: str) -> bool:
        try:
            response: APIResponse = (
                await self.client.table(self.table)
                .select("match_id")
                .eq("match_id", match_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise StoreError(f"Failed to look up match {match_id}: {e.message}") from e
        return bool(response.data)

    async def _apply(self, batch: WriteBatch) -> None:
        sets = batch.sets
        deletes = batch.deletes
        try:
            if sets:
                rows = [_row_for(match_id, doc) for match_id, doc in sets.items()]
                await self.client.table(self.table).upsert(rows).execute()
                logger.success(f"Upserted {len(rows)} matches to {self.table}.")
            if deletes:
                await (
                    self.client.table(self.table)
                    .delete()
                    .in_("match_id", deletes)
                    .execute()
                )
                logger.success(f"Deleted {len(deletes)} matches from {self.table}.")
        except APIError as e:
            logger.error(f"Error committing batch to {self.table}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            raise StoreWriteFailure(f"Batch commit failed: {e.message}") from e


class SupabaseSnapshotStore(SnapshotStore):
    """Snapshot documents in a `snapshots` table (id pk, data jsonb, updated_at)."""

    def __init__(self, client: AsyncClient, table: str = "snapshots"):
        self.client = client
        self.table = table

    async def get(self, snapshot_id: str) -> Optional[Dict[str, Any]]:
        try:
            response: APIResponse = (
                await self.client.table(self.table)
                .select("data")
                .eq("id", snapshot_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            raise StoreError(f"Failed to read snapshot {snapshot_id}: {e.message}") from e
        if not response.data:
            return None
        return response.data[0].get("data")

    async def set(self, snapshot_id: str, document: Dict[str, Any]) -> None:
        row = {
            "id": snapshot_id,
            "data": document,
            "updated_at": document.get("updatedAt"),
        }
        try:
            await self.client.table(self.table).upsert(row).execute()
        except APIError as e:
            logger.error(f"Error writing snapshot {snapshot_id}: {e.message}")
            raise StoreWriteFailure(f"Snapshot {snapshot_id} write failed: {e.message}") from e
        logger.success(f"Snapshot '{snapshot_id}' replaced.")
