from typing import Dict, Iterable, List, Optional

from loguru import logger

from proclubs.aggregation.standings import (
    RankingPolicy,
    apply_result,
    now_ms,
    parse_documents,
    rank_season,
)
from proclubs.config.settings import LeagueConfig
from proclubs.models.enums import Role
from proclubs.models.match import Match
from proclubs.models.snapshot import (
    Fixture,
    PlayerSeasonStats,
    SeasonSnapshot,
    SeasonStandingRow,
)
from proclubs.storage.base_store import MatchDocument
from proclubs.utils.roles import normalize_role

UNKNOWN_CLUB = "Unknown"


def build_bracket(standings: List[SeasonStandingRow]) -> Dict[str, List[Fixture]]:
    """Semi-finals 1v4 and 2v3 from the top four; the final is a placeholder."""
    if len(standings) < 4:
        return {"semi_finals": [], "final": []}
    first, second, third, fourth = standings[:4]
    semi_finals = [
        Fixture(home=first.name, away=fourth.name, home_id=first.club_id, away_id=fourth.club_id),
        Fixture(home=second.name, away=third.name, home_id=second.club_id, away_id=third.club_id),
    ]
    final = [Fixture(home="Winner SF1", away="Winner SF2")]
    return {"semi_finals": semi_finals, "final": final}


def _record_players(
    match: Match, config: LeagueConfig, stats: Dict[str, PlayerSeasonStats]
) -> None:
    for club_id, players in match.players.items():
        club_name = config.club_name(club_id) or UNKNOWN_CLUB
        own = match.clubs.get(club_id)
        opponent = match.opponent_of(club_id)
        team_goals = own.goals if own else 0
        opponent_goals = opponent.goals if opponent else 0

        for player in players.values():
            name = player.name or "Unknown"
            role = normalize_role(player.position)
            entry = stats.get(name)
            if entry is None:
                entry = PlayerSeasonStats(name=name, club=club_name, team=club_id)
                stats[name] = entry

            entry.goals += player.goals
            entry.assists += player.assists
            entry.saves += player.saves
            entry.matches += 1
            entry.roles[role.value] = entry.roles.get(role.value, 0) + 1
            if team_goals > opponent_goals:
                entry.win_count += 1
            if role is Role.GOALKEEPER and opponent_goals == 0:
                entry.clean_sheets += 1


def aggregate_season(
    documents: Iterable[MatchDocument],
    config: LeagueConfig,
    updated_at: Optional[int] = None,
    ranking: RankingPolicy = rank_season,
) -> SeasonSnapshot:
    """Full-season table, playoff bracket and per-player season stats.

    Every roster club gets a row, even without games played. Player stats
    cover every match; players of clubs outside the roster get club
    "Unknown".
    """
    matches, dropped = parse_documents(documents)

    table: Dict[str, SeasonStandingRow] = {
        club.club_id: SeasonStandingRow(club_id=club.club_id, name=club.name)
        for club in config.clubs
    }
    player_stats: Dict[str, PlayerSeasonStats] = {}
    counted = 0

    for match in matches:
        _record_players(match, config, player_stats)
        if not any(config.is_known(club_id) for club_id in match.participants):
            continue
        counted += 1
        home_outcome, away_outcome = match.outcomes()
        for side, opponent, outcome in (
            (match.home, match.away, home_outcome),
            (match.away, match.home, away_outcome),
        ):
            row = table.get(side.club_id)
            if row is not None:
                apply_result(row, outcome, side.goals, opponent.goals)

    for row in table.values():
        row.win_percent = row.wins / row.gp if row.gp else 0.0

    standings = ranking(table.values())
    bracket = build_bracket(standings)
    logger.info(
        f"Season aggregation: {counted} league matches of {len(matches)} "
        f"({dropped} dropped), {len(player_stats)} players."
    )
    return SeasonSnapshot(
        updated_at=updated_at if updated_at is not None else now_ms(),
        standings=standings,
        semi_finals=bracket["semi_finals"],
        final=bracket["final"],
        player_stats=player_stats,
    )
