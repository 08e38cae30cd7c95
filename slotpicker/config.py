"""
Configuration management using Pydantic models.

``SlotQuery`` describes a single slot search; ``AppConfig`` is the YAML-backed
application configuration the CLI builds queries from.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import pendulum
import yaml
from pendulum import DateTime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain.models import ALL_DAYS, DailyWindow, TimeOfDay
from .domain.sampler import SamplingConfig
from .domain.strategies import Strategy


def _coerce_datetime(value: Any) -> Any:
    """Turn ISO strings and stdlib datetimes into pendulum DateTimes."""
    if isinstance(value, DateTime):
        return value
    if isinstance(value, datetime):
        return pendulum.instance(value)
    if isinstance(value, str):
        parsed = pendulum.parse(value)
        if not isinstance(parsed, DateTime):
            raise ValueError(f"Expected a date-time, got {value!r}")
        return parsed
    return value


def _validate_timezone(value: str) -> str:
    try:
        pendulum.timezone(value)
    except Exception as exc:
        raise ValueError(f"Unknown timezone: {value!r}") from exc
    return value


def _validate_days(value: Sequence[int]) -> Tuple[int, ...]:
    invalid_days = [day for day in value if day not in range(7)]
    if invalid_days:
        raise ValueError(f"days must be between 0 (Sunday) and 6 (Saturday), got {invalid_days}")
    return tuple(value)


def _validate_time_parts(value: List[int]) -> List[int]:
    if not 1 <= len(value) <= 3:
        raise ValueError(f"Time of day must be [hour], [hour, minute] or [hour, minute, second], got {value}")
    hour, minute, second = (list(value) + [0, 0])[:3]
    if not 0 <= hour <= 23:
        raise ValueError(f"Hour must be between 0 and 23, got {hour}")
    if not 0 <= minute <= 59 or not 0 <= second <= 59:
        raise ValueError(f"Minute and second must be between 0 and 59, got {value}")
    return value


class DailyConfig(BaseModel):
    """Daily window as written in queries: ``{timezone, from: [h, m?, s?], to: [...]}``."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timezone: str
    from_time: List[int] = Field(alias="from")
    to_time: List[int] = Field(alias="to")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        return _validate_timezone(value)

    @field_validator("from_time", "to_time")
    @classmethod
    def validate_time_parts(cls, value: List[int]) -> List[int]:
        """Validate [hour, minute?, second?] ranges."""
        return _validate_time_parts(value)

    def to_window(self) -> DailyWindow:
        """Convert to the domain window."""
        return DailyWindow(
            timezone=self.timezone,
            from_time=TimeOfDay.from_parts(self.from_time),
            to_time=TimeOfDay.from_parts(self.to_time),
        )


class SlotQuery(BaseModel):
    """
    Parameters for a single slot search.

    ``slot_duration`` and the ordering of ``from``/``to`` are checked by the
    domain when generation starts, so those failures surface as
    ``InvalidDuration`` and ``InvalidRange``.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True, frozen=True)

    start: DateTime = Field(alias="from")
    end: DateTime = Field(alias="to")
    slot_duration: int = 30
    days: Tuple[int, ...] = ALL_DAYS
    daily: Optional[DailyConfig] = None
    padding: int = Field(default=0, ge=0)
    count: Optional[int] = Field(default=None, ge=0)
    strategies: Tuple[Strategy, ...] = (Strategy.LINEAR,)
    weight_multiplier: float = Field(default=2, ge=0)

    @field_validator("start", "end", mode="before")
    @classmethod
    def coerce_bounds(cls, value: Any) -> Any:
        """Accept ISO strings and stdlib datetimes."""
        return _coerce_datetime(value)

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        """Ensure weekdays are numbered 0 (Sunday) to 6 (Saturday)."""
        return _validate_days(value)

    @property
    def window(self) -> Optional[DailyWindow]:
        """Domain daily window, if one is configured."""
        return self.daily.to_window() if self.daily else None

    @property
    def timezone(self) -> Optional[str]:
        """Timezone of the daily window, used by weekday and hour strategies."""
        return self.daily.timezone if self.daily else None

    @property
    def sampling(self) -> SamplingConfig:
        return SamplingConfig(
            count=self.count,
            strategies=self.strategies,
            weight_multiplier=self.weight_multiplier,
        )


class DefaultsConfig(BaseModel):
    """Default settings for search."""
    slot_duration: int = 30
    daily_from: List[int] = Field(default_factory=lambda: [9])
    daily_to: List[int] = Field(default_factory=lambda: [17])
    days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])  # Monday-Friday
    padding: int = Field(default=0, ge=0)
    count: Optional[int] = Field(default=None, ge=0)
    strategies: List[Strategy] = Field(default_factory=lambda: [Strategy.LINEAR])
    weight_multiplier: float = Field(default=2, ge=0)

    @field_validator("slot_duration")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure slot duration is positive."""
        if value <= 0:
            raise ValueError("slot_duration must be greater than zero")
        return value

    @field_validator("daily_from", "daily_to")
    @classmethod
    def validate_time_parts(cls, value: List[int]) -> List[int]:
        """Validate [hour, minute?, second?] ranges."""
        return _validate_time_parts(value)

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        _validate_days(value)
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped


class Colleague(BaseModel):
    """Colleague whose calendars can be searched by alias."""
    name: str  # Used as alias
    email: str


class AppConfig(BaseModel):
    """Application configuration."""
    client_id: str = ""
    tenant_id: str = ""
    timezone: str = "Europe/Berlin"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    calendars: List[str] = Field(default_factory=list)  # Empty: all calendars of the identity
    ics_url: Optional[str] = None
    colleagues: List[Colleague] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        return _validate_timezone(value)

    @field_validator("colleagues")
    @classmethod
    def validate_colleagues(cls, value: List[Colleague]) -> List[Colleague]:
        """Ensure colleague aliases and emails are unique."""
        seen_names: set[str] = set()
        seen_emails: set[str] = set()
        for colleague in value:
            name_key = colleague.name.lower()
            email_key = colleague.email.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate colleague name detected: {colleague.name}")
            if email_key in seen_emails:
                raise ValueError(f"Duplicate colleague email detected: {colleague.email}")
            seen_names.add(name_key)
            seen_emails.add(email_key)
        return value

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def resolve_identity(self, identifier: Optional[str]) -> Optional[str]:
        """
        Resolve an alias or email to the identity whose calendars are read.

        ``None`` means the signed-in user.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        if identifier is None or identifier.lower() in ("me", "ich"):
            return None

        if "@" in identifier:
            return identifier.lower()

        for colleague in self.colleagues:
            if colleague.name.lower() == identifier.lower():
                return colleague.email.lower()

        raise ValueError(
            f"Unknown identity: '{identifier}'. "
            f"Use an email address or a configured colleague name."
        )

    def build_query(self, start: DateTime, end: DateTime, **overrides: Any) -> SlotQuery:
        """Create a query from the configured defaults, applying any non-None overrides."""
        defaults = self.defaults
        values = {
            "from": start,
            "to": end,
            "slot_duration": defaults.slot_duration,
            "days": defaults.days,
            "daily": {
                "timezone": self.timezone,
                "from": defaults.daily_from,
                "to": defaults.daily_to,
            },
            "padding": defaults.padding,
            "count": defaults.count,
            "strategies": defaults.strategies,
            "weight_multiplier": defaults.weight_multiplier,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return SlotQuery.model_validate(values)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
