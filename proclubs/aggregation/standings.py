import time
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

from loguru import logger

from proclubs.config.settings import LeagueConfig
from proclubs.models.enums import MatchOutcome
from proclubs.models.match import MalformedRecord, Match, PlayerStats, parse_match
from proclubs.models.snapshot import (
    AssisterEntry,
    LeaderboardEntry,
    ScorerEntry,
    Snapshot,
    StandingRow,
)
from proclubs.storage.base_store import MatchDocument

LEADERBOARD_SIZE = 10
POINTS = {MatchOutcome.WIN: 3, MatchOutcome.DRAW: 1, MatchOutcome.LOSS: 0}

Row = TypeVar("Row", bound=StandingRow)
RankingPolicy = Callable[[Iterable[Row]], List[Row]]
PlayerKey = Tuple[str, str]  # (player name, player id)
Entry = TypeVar("Entry", bound=LeaderboardEntry)


def rank_league(rows: Iterable[Row]) -> List[Row]:
    """Rolling league order: points, then wins. Goal difference is not used."""
    return sorted(rows, key=lambda row: (-row.points, -row.wins))


def rank_season(rows: Iterable[Row]) -> List[Row]:
    """Full-season order: points, then goal difference, then goals for."""
    return sorted(
        rows, key=lambda row: (-row.points, -row.goal_difference, -row.goals_for)
    )


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_documents(documents: Iterable[MatchDocument]) -> Tuple[List[Match], int]:
    """Parses stored documents, dropping malformed ones.

    Returns:
        (parsed matches, number dropped)
    """
    matches: List[Match] = []
    dropped = 0
    for document in documents:
        try:
            matches.append(parse_match(document))
        except MalformedRecord as e:
            logger.warning(f"Skipping invalid match: {e}")
            dropped += 1
    return matches, dropped


def apply_result(
    row: StandingRow, outcome: MatchOutcome, goals_for: int, goals_against: int
) -> None:
    row.gp += 1
    row.goals_for += goals_for
    row.goals_against += goals_against
    row.points += POINTS[outcome]
    if outcome is MatchOutcome.WIN:
        row.wins += 1
    elif outcome is MatchOutcome.DRAW:
        row.draws += 1
    else:
        row.losses += 1


def _record(
    players: Dict[str, PlayerStats], board: Dict[PlayerKey, int], stat: str
) -> None:
    for player in players.values():
        if not player.name:
            continue
        amount = getattr(player, stat)
        if amount > 0:
            key = (player.name, player.player_id)
            board[key] = board.get(key, 0) + amount


def top_entries(
    board: Dict[PlayerKey, int],
    entry_type: Type[Entry],
    limit: int = LEADERBOARD_SIZE,
) -> List[Entry]:
    """Highest values first; ties keep first-seen order."""
    ranked = sorted(board.items(), key=lambda item: -item[1])
    return [
        entry_type(name=name, player_id=player_id, **{entry_type.stat: value})
        for (name, player_id), value in ranked[:limit]
    ]


def aggregate(
    documents: Iterable[MatchDocument],
    config: LeagueConfig,
    updated_at: Optional[int] = None,
    ranking: RankingPolicy = rank_league,
) -> Snapshot:
    """Builds a league snapshot from scratch out of stored match documents."""
    matches, dropped = parse_documents(documents)

    rows: Dict[str, StandingRow] = {}
    scorers: Dict[PlayerKey, int] = {}
    assisters: Dict[PlayerKey, int] = {}

    for match in matches:
        home_outcome, away_outcome = match.outcomes()
        sides: Sequence = (
            (match.home, match.away, home_outcome),
            (match.away, match.home, away_outcome),
        )
        for side, opponent, outcome in sides:
            if config.is_known(side.club_id):
                row = rows.get(side.club_id)
                if row is None:
                    row = StandingRow(
                        club_id=side.club_id, name=config.club_name(side.club_id)
                    )
                    rows[side.club_id] = row
                apply_result(row, outcome, side.goals, opponent.goals)

            club_players = match.players.get(side.club_id, {})
            _record(club_players, scorers, "goals")
            _record(club_players, assisters, "assists")

    standings = ranking(rows.values())
    logger.info(
        f"Aggregated {len(matches)} matches ({dropped} dropped) into "
        f"{len(standings)} standings rows."
    )
    return Snapshot(
        updated_at=updated_at if updated_at is not None else now_ms(),
        standings=standings,
        top_scorers=top_entries(scorers, ScorerEntry),
        top_assisters=top_entries(assisters, AssisterEntry),
    )
