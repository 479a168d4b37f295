from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from proclubs.utils.misc_utils import chunked

MatchDocument = Dict[str, Any]


class StoreError(Exception):
    """Base exception for persistent store failures."""

    pass


class StoreWriteFailure(StoreError):
    """A batch commit failed. Batches committed before it stay durable."""

    def __init__(self, message: str, committed: int = 0):
        super().__init__(message)
        self.committed = committed


class BatchFullError(StoreError):
    pass


class WriteBatch:
    """Collects set/delete operations for one atomic commit.

    The batch refuses operations past ``limit`` so every commit stays
    within the store's atomic-batch size.
    """

    def __init__(self, limit: int = 400):
        self.limit = limit
        self._sets: Dict[str, MatchDocument] = {}
        self._deletes: List[str] = []

    @property
    def op_count(self) -> int:
        return len(self._sets) + len(self._deletes)

    def __len__(self) -> int:
        return self.op_count

    @property
    def is_full(self) -> bool:
        return self.op_count >= self.limit

    @property
    def sets(self) -> Mapping[str, MatchDocument]:
        return dict(self._sets)

    @property
    def deletes(self) -> List[str]:
        return list(self._deletes)

    def set(self, match_id: str, document: MatchDocument) -> "WriteBatch":
        if match_id not in self._sets and self.is_full:
            raise BatchFullError(f"Batch already holds {self.limit} operations")
        self._sets[match_id] = document
        return self

    def delete(self, match_id: str) -> "WriteBatch":
        if match_id in self._deletes:
            return self
        if self.is_full:
            raise BatchFullError(f"Batch already holds {self.limit} operations")
        self._deletes.append(match_id)
        return self


class MatchStore(ABC):
    """Keyed collection of match documents (key = normalized match id)."""

    def __init__(self, batch_limit: int = 400):
        self.batch_limit = batch_limit

    @abstractmethod
    async def get_all(self) -> List[MatchDocument]:
        pass

    @abstractmethod
    async def get_recent(self, limit: int) -> List[MatchDocument]:
        """Most recent matches first, by timestamp; un-timestamped ones last."""
        pass

    @abstractmethod
    async def exists(self, match_id: str) -> bool:
        pass

    @abstractmethod
    async def _apply(self, batch: WriteBatch) -> None:
        """Apply one batch atomically; raise on failure."""
        pass

    def new_batch(self) -> WriteBatch:
        return WriteBatch(limit=self.batch_limit)

    async def commit(self, batch: WriteBatch) -> bool:
        """Commits a batch if it holds any operations.

        Returns:
            True if something was written.

        Raises:
            StoreWriteFailure: the batch was not applied.
        """
        if batch.op_count == 0:
            logger.debug("Skipping commit of empty batch.")
            return False
        try:
            await self._apply(batch)
        except StoreWriteFailure:
            raise
        except Exception as e:
            raise StoreWriteFailure(f"Batch of {batch.op_count} ops failed: {e}") from e
        logger.debug(f"Committed batch of {batch.op_count} operations.")
        return True

    async def write_all(self, documents: Mapping[str, MatchDocument]) -> int:
        """Writes documents in batches of at most ``batch_limit``.

        Raises:
            StoreWriteFailure: with ``committed`` set to the number of
                documents durable from earlier batches.
        """
        committed = 0
        for ids in chunked(documents.keys(), self.batch_limit):
            batch = self.new_batch()
            for match_id in ids:
                batch.set(match_id, documents[match_id])
            try:
                await self.commit(batch)
            except StoreWriteFailure as e:
                e.committed = committed
                raise
            committed += len(ids)
        return committed

    async def delete_all(self, match_ids: Iterable[str]) -> int:
        """Deletes ids in batches of at most ``batch_limit``; returns the count."""
        deleted = 0
        for ids in chunked(dict.fromkeys(match_ids), self.batch_limit):
            batch = self.new_batch()
            for match_id in ids:
                batch.delete(match_id)
            try:
                await self.commit(batch)
            except StoreWriteFailure as e:
                e.committed = deleted
                raise
            deleted += len(ids)
        return deleted


class SnapshotStore(ABC):
    """Single-document store keyed by snapshot id."""

    @abstractmethod
    async def get(self, snapshot_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def set(self, snapshot_id: str, document: Dict[str, Any]) -> None:
        """Replace the document wholesale."""
        pass
