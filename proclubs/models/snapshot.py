from typing import ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class _Document(BaseModel):
    """Base for models persisted as camelCase JSON documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StandingRow(_Document):
    """One club's line in a standings table."""

    club_id: str = Field(..., alias="id")
    name: str
    gp: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0

    @computed_field  # type: ignore[misc]
    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    # Older readers of the league document use these names.
    @computed_field  # type: ignore[misc]
    @property
    def pts(self) -> int:
        return self.points

    @computed_field  # type: ignore[misc]
    @property
    def ties(self) -> int:
        return self.draws

    @computed_field  # type: ignore[misc]
    @property
    def goals(self) -> int:
        return self.goals_for


class SeasonStandingRow(StandingRow):
    win_percent: float = 0.0

    @computed_field  # type: ignore[misc]
    @property
    def played(self) -> int:
        return self.gp


class LeaderboardEntry(_Document):
    """Cumulative stat for one player, keyed by (name, player_id).

    Subclasses name the stat field after the board, so a scorer entry
    serializes as ``{name, playerId, goals}``.
    """

    stat: ClassVar[str]

    name: str
    player_id: str

    @property
    def value(self) -> int:
        return getattr(self, self.stat)


class ScorerEntry(LeaderboardEntry):
    stat: ClassVar[str] = "goals"

    goals: int


class AssisterEntry(LeaderboardEntry):
    stat: ClassVar[str] = "assists"

    assists: int


class Snapshot(_Document):
    """Rolling league view; replaces the stored one wholesale."""

    model_config = ConfigDict(frozen=True)

    updated_at: int  # epoch milliseconds
    standings: List[StandingRow] = Field(default_factory=list)
    top_scorers: List[ScorerEntry] = Field(default_factory=list)
    top_assisters: List[AssisterEntry] = Field(default_factory=list)


class Fixture(_Document):
    home: str
    away: str
    home_id: Optional[str] = None
    away_id: Optional[str] = None
    score: str = "TBD"


class PlayerSeasonStats(_Document):
    name: str
    club: str
    team: str  # club id
    goals: int = 0
    assists: int = 0
    saves: int = 0
    clean_sheets: int = 0
    matches: int = 0
    win_count: int = 0
    roles: Dict[str, int] = Field(default_factory=dict)


class SeasonSnapshot(_Document):
    """Full-season view with the playoff bracket derived from the top four."""

    model_config = ConfigDict(frozen=True)

    updated_at: int
    standings: List[SeasonStandingRow] = Field(default_factory=list)
    semi_finals: List[Fixture] = Field(default_factory=list)
    final: List[Fixture] = Field(default_factory=list)
    player_stats: Dict[str, PlayerSeasonStats] = Field(default_factory=dict)
