# proclubs/models/club.py
from pydantic import BaseModel, ConfigDict


class Club(BaseModel):
    """A league club with its EA club id and display name."""

    model_config = ConfigDict(frozen=True)

    club_id: str
    name: str
