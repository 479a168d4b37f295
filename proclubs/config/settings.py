import json
import logging
from datetime import datetime, timezone
from functools import cached_property
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from proclubs.config.roster import DEFAULT_ROSTER
from proclubs.models.club import Club


class ConfigurationError(Exception):
    """Raised when required credentials or the club roster are missing."""

    pass


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Supabase Configuration
    supabase_url: HttpUrl = Field(..., description="URL for the Supabase project.")
    supabase_key: str = Field(..., description="Anon key for the Supabase project.")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key for Supabase (use with caution!)."
    )

    # Stats Source
    source_base_url: str = Field(
        "https://proclubs.ea.com/api/fc",
        description="Base URL of the Pro Clubs stats API.",
    )
    source_platform: str = Field("common-gen5", description="Platform query value.")
    source_match_types: List[str] = Field(
        default_factory=lambda: ["leagueMatch", "playoffMatch"],
        description="Match types requested per club.",
    )
    request_timeout: float = Field(10.0, gt=0, description="Per-request timeout (s).")
    max_concurrency: int = Field(3, ge=1, description="Max in-flight source requests.")
    max_attempts: int = Field(3, ge=1, description="Attempts per source request.")
    retry_backoff: float = Field(
        1.0, ge=0, description="Backoff base; attempt n waits base * n seconds."
    )
    cache_ttl: float = Field(60.0, ge=0, description="Per-club result cache TTL (s).")

    # League Rules
    season_start: datetime = Field(
        datetime(2025, 7, 1, tzinfo=timezone.utc),
        description="Matches before this instant are ineligible and purged.",
    )
    retention_cap: int = Field(10, ge=1, description="Max stored matches per club.")
    batch_limit: int = Field(400, ge=1, le=500, description="Max ops per write batch.")
    roster_file: Optional[Path] = Field(
        None, description='JSON file of {"club_id": "name"}; built-in roster if unset.'
    )
    club_skip_before: Dict[str, datetime] = Field(
        default_factory=dict,
        description="Per-club override: ignore matches before this instant.",
    )
    season_match_limit: int = Field(
        1000, ge=1, description="Most recent matches read for the season snapshot."
    )

    # Scheduling
    ingest_interval_minutes: int = Field(10, ge=1)
    league_snapshot_interval_minutes: int = Field(60, ge=1)
    season_snapshot_interval_hours: int = Field(6, ge=1)
    scheduler_timezone: str = Field("UTC")

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


class LeagueConfig(BaseModel):
    """Immutable league rules shared by every pipeline component."""

    model_config = ConfigDict(frozen=True)

    clubs: Tuple[Club, ...]
    season_start: int  # epoch seconds
    retention_cap: int = 10
    batch_limit: int = 400
    club_skip_before: Dict[str, int] = Field(default_factory=dict)
    season_match_limit: int = 1000

    @cached_property
    def club_names(self) -> Dict[str, str]:
        """Club id -> display name, built once per config."""
        return {club.club_id: club.name for club in self.clubs}

    @property
    def club_ids(self) -> List[str]:
        return [club.club_id for club in self.clubs]

    def is_known(self, club_id: str) -> bool:
        return str(club_id) in self.club_names

    def club_name(self, club_id: str) -> Optional[str]:
        return self.club_names.get(str(club_id))


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
    except ValidationError as e:
        logging.error(f"Invalid application settings: {e}")
        raise ConfigurationError(f"Failed to load application settings: {e}") from e

    log_level_upper = settings.log_level.upper()
    # Validate log_level even if loaded from .env
    if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        logging.warning(
            f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
        )
        settings.log_level = "INFO"
    else:
        settings.log_level = log_level_upper
    return settings


def load_roster(roster_file: Optional[Path] = None) -> Tuple[Club, ...]:
    """Reads the club roster from a JSON map, or falls back to the built-in one."""
    if roster_file is None:
        raw_roster = DEFAULT_ROSTER
    else:
        try:
            raw_roster = json.loads(Path(roster_file).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read roster file {roster_file}: {e}") from e
        if not isinstance(raw_roster, dict):
            raise ConfigurationError(
                f"Roster file {roster_file} must hold an object of club_id -> name."
            )

    clubs = tuple(
        Club(club_id=str(club_id).strip(), name=str(name))
        for club_id, name in raw_roster.items()
        if str(club_id).strip()
    )
    if not clubs:
        raise ConfigurationError("Club roster is empty.")
    return clubs


def _to_epoch(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def build_league_config(settings: AppSettings) -> LeagueConfig:
    """Builds the frozen league configuration once at process start."""
    clubs = load_roster(settings.roster_file)
    return LeagueConfig(
        clubs=clubs,
        season_start=_to_epoch(settings.season_start),
        retention_cap=settings.retention_cap,
        batch_limit=settings.batch_limit,
        club_skip_before={
            str(club_id): _to_epoch(cutoff)
            for club_id, cutoff in settings.club_skip_before.items()
        },
        season_match_limit=settings.season_match_limit,
    )
