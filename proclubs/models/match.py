from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from proclubs.models.enums import MatchOutcome
from proclubs.utils.misc_utils import normalize_match_id, parse_int


class MalformedRecord(Exception):
    """Raised when a raw match record cannot be turned into a Match."""

    pass


class PlayerStats(BaseModel):
    """Per-match statistics for one player of one club."""

    player_id: str
    name: Optional[str] = None  # EA 'playername'
    goals: int = 0
    assists: int = 0
    saves: int = 0
    position: Optional[str] = None  # raw EA 'pos'
    rating: Optional[float] = None


class ClubResult(BaseModel):
    """One participant's side of a match."""

    club_id: str
    goals: int
    name: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class Match(BaseModel):
    """A completed fixture between exactly two clubs."""

    match_id: str
    timestamp: Optional[int] = None  # epoch seconds
    clubs: Dict[str, ClubResult]
    players: Dict[str, Dict[str, PlayerStats]] = Field(default_factory=dict)

    @property
    def participants(self) -> List[str]:
        return list(self.clubs.keys())

    @property
    def home(self) -> ClubResult:
        return self.clubs[self.participants[0]]

    @property
    def away(self) -> ClubResult:
        return self.clubs[self.participants[1]]

    def opponent_of(self, club_id: str) -> Optional[ClubResult]:
        for other_id, result in self.clubs.items():
            if other_id != club_id:
                return result
        return None

    def outcomes(self) -> Tuple[MatchOutcome, MatchOutcome]:
        """Returns (home outcome, away outcome) from the final score."""
        home_goals, away_goals = self.home.goals, self.away.goals
        if home_goals > away_goals:
            return MatchOutcome.WIN, MatchOutcome.LOSS
        if home_goals < away_goals:
            return MatchOutcome.LOSS, MatchOutcome.WIN
        return MatchOutcome.DRAW, MatchOutcome.DRAW


def participant_ids(raw_match: Dict[str, Any]) -> List[str]:
    """Club ids of a raw record, in record order. Does not validate the count."""
    clubs = raw_match.get("clubs")
    if not isinstance(clubs, dict):
        return []
    return [str(club_id) for club_id in clubs.keys()]


def match_timestamp(raw_match: Dict[str, Any]) -> Optional[int]:
    return parse_int(raw_match.get("timestamp"))


def _parse_player(player_id: str, raw_player: Any) -> PlayerStats:
    if not isinstance(raw_player, dict):
        return PlayerStats(player_id=player_id)
    rating = raw_player.get("rating")
    try:
        rating = float(rating) if rating not in (None, "") else None
    except (TypeError, ValueError):
        rating = None
    name = raw_player.get("playername")
    return PlayerStats(
        player_id=player_id,
        name=str(name) if name else None,
        goals=parse_int(raw_player.get("goals"), default=0),
        assists=parse_int(raw_player.get("assists"), default=0),
        saves=parse_int(raw_player.get("saves"), default=0),
        position=str(raw_player["pos"]) if raw_player.get("pos") is not None else None,
        rating=rating,
    )


def parse_match(raw_match: Any) -> Match:
    """Validates a raw EA match record and converts it to a Match.

    Raises:
        MalformedRecord: missing id, a participant count other than two,
            or missing/unparseable goals.
    """
    if not isinstance(raw_match, dict):
        raise MalformedRecord(f"Match record is not an object: {type(raw_match).__name__}")

    match_id = normalize_match_id(raw_match.get("matchId"))
    if not match_id:
        raise MalformedRecord("Match record has no matchId")

    raw_clubs = raw_match.get("clubs")
    if not isinstance(raw_clubs, dict) or len(raw_clubs) != 2:
        count = len(raw_clubs) if isinstance(raw_clubs, dict) else 0
        raise MalformedRecord(f"Match {match_id} has {count} participants, expected 2")

    clubs: Dict[str, ClubResult] = {}
    for club_id, raw_club in raw_clubs.items():
        club_id = str(club_id)
        if not isinstance(raw_club, dict):
            raise MalformedRecord(f"Match {match_id} club {club_id} is not an object")
        goals = parse_int(raw_club.get("goals"))
        if goals is None:
            raise MalformedRecord(f"Match {match_id} club {club_id} has no valid goals")
        details = raw_club.get("details")
        details = details if isinstance(details, dict) else {}
        clubs[club_id] = ClubResult(
            club_id=club_id,
            goals=goals,
            name=details.get("name") or raw_club.get("name"),
            details=details,
        )

    players: Dict[str, Dict[str, PlayerStats]] = {}
    raw_players = raw_match.get("players")
    if isinstance(raw_players, dict):
        for club_id, club_players in raw_players.items():
            if not isinstance(club_players, dict):
                continue
            players[str(club_id)] = {
                str(player_id): _parse_player(str(player_id), raw_player)
                for player_id, raw_player in club_players.items()
            }

    return Match(
        match_id=match_id,
        timestamp=match_timestamp(raw_match),
        clubs=clubs,
        players=players,
    )
