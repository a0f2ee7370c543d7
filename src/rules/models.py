from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class CalendarRules(BaseModel):
    utc_offset_hours: int = -5
    retention_days: int = Field(default=366, ge=1)
    daily_seed_days: int = Field(default=7, ge=0)


class DurationRules(BaseModel):
    max_duration_ms: int = Field(default=24 * 60 * 60 * 1000, gt=0)


class RangeRules(BaseModel):
    default: str = "week"
    presets: dict[str, int] = Field(
        default_factory=lambda: {"week": 7, "30d": 30, "year": 365}
    )
    aliases: dict[str, str] = Field(default_factory=dict)


class SiteRules(BaseModel):
    default: str = "main"
    aliases: dict[str, list[str]] = Field(default_factory=dict)


class MigrationRules(BaseModel):
    legacy_route: str = "general"


class PersistenceRules(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=0.05, ge=0)


class Rules(BaseModel):
    project: ProjectRules
    calendar: CalendarRules = Field(default_factory=CalendarRules)
    durations: DurationRules = Field(default_factory=DurationRules)
    ranges: RangeRules = Field(default_factory=RangeRules)
    sites: SiteRules = Field(default_factory=SiteRules)
    migration: MigrationRules = Field(default_factory=MigrationRules)
    persistence: PersistenceRules = Field(default_factory=PersistenceRules)
