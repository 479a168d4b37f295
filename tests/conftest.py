"""Shared pytest fixtures for the league pipeline tests."""
import copy
from typing import Any, Dict, List, Optional

import pytest

from proclubs.config.settings import LeagueConfig
from proclubs.models.club import Club
from proclubs.storage.base_store import MatchStore, SnapshotStore, WriteBatch

SEASON_START = 1_700_000_000

ROSTER = {"X": "Club X", "Y": "Club Y", "Z": "Club Z", "W": "Club W"}


def make_config(roster: Optional[Dict[str, str]] = None, **overrides) -> LeagueConfig:
    roster = ROSTER if roster is None else roster
    values = {
        "clubs": tuple(Club(club_id=cid, name=name) for cid, name in roster.items()),
        "season_start": SEASON_START,
        "retention_cap": 10,
        "batch_limit": 400,
    }
    values.update(overrides)
    return LeagueConfig(**values)


def make_match(
    match_id: Any,
    home: str = "X",
    away: str = "Y",
    home_goals: Any = 1,
    away_goals: Any = 0,
    timestamp: Optional[int] = SEASON_START + 100,
    players: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None,
) -> Dict[str, Any]:
    """Raw match record shaped like the EA API returns it."""
    match: Dict[str, Any] = {
        "matchId": match_id,
        "clubs": {
            home: {"goals": str(home_goals), "details": {}},
            away: {"goals": str(away_goals), "details": {}},
        },
    }
    if timestamp is not None:
        match["timestamp"] = timestamp
    if players is not None:
        match["players"] = players
    return match


def player(name: str, goals: int = 0, assists: int = 0, **extra) -> Dict[str, Any]:
    record = {"playername": name, "goals": str(goals), "assists": str(assists)}
    record.update({key: str(value) for key, value in extra.items()})
    return record


class InMemoryMatchStore(MatchStore):
    """Dict-backed MatchStore. ``fail_on_commit`` is the 1-based commit to fail."""

    def __init__(
        self,
        documents: Optional[List[Dict[str, Any]]] = None,
        batch_limit: int = 400,
        fail_on_commit: Optional[int] = None,
    ):
        super().__init__(batch_limit=batch_limit)
        self.documents: Dict[str, Dict[str, Any]] = {}
        for document in documents or []:
            self.documents[str(document["matchId"])] = copy.deepcopy(document)
        self.fail_on_commit = fail_on_commit
        self.commit_attempts = 0
        self.commits: List[int] = []

    async def get_all(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(document) for document in self.documents.values()]

    async def get_recent(self, limit: int) -> List[Dict[str, Any]]:
        ordered = sorted(
            self.documents.values(),
            key=lambda document: document.get("timestamp") or 0,
            reverse=True,
        )
        return [copy.deepcopy(document) for document in ordered[:limit]]

    async def exists(self, match_id: str) -> bool:
        return match_id in self.documents

    async def _apply(self, batch: WriteBatch) -> None:
        self.commit_attempts += 1
        if self.fail_on_commit == self.commit_attempts:
            raise RuntimeError("simulated commit failure")
        for match_id, document in batch.sets.items():
            self.documents[match_id] = copy.deepcopy(document)
        for match_id in batch.deletes:
            self.documents.pop(match_id, None)
        self.commits.append(batch.op_count)


class InMemorySnapshotStore(SnapshotStore):
    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}

    async def get(self, snapshot_id: str) -> Optional[Dict[str, Any]]:
        return self.documents.get(snapshot_id)

    async def set(self, snapshot_id: str, document: Dict[str, Any]) -> None:
        self.documents[snapshot_id] = document


@pytest.fixture
def league_config() -> LeagueConfig:
    return make_config()


@pytest.fixture
def match_store() -> InMemoryMatchStore:
    return InMemoryMatchStore()


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()
