from enum import Enum


class Role(str, Enum):
    GOALKEEPER = "Goalkeeper"
    DEFENDER = "Defender"
    MIDFIELDER = "Midfielder"
    FORWARD = "Forward"
    UNKNOWN = "Unknown"


class MatchOutcome(str, Enum):
    WIN = "win"
    DRAW = "draw"
    LOSS = "loss"


class SnapshotId(str, Enum):
    LEAGUE = "league"
    SEASON = "season"
