"""Typed records shared by the calculators, the scheduler and the seeding generator.

Wire shapes (``to_dict``) use the camelCase field names other components
already parse; Python attributes stay snake_case.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import UnknownDisciplineError
from .timecodec import format_clock, format_seed_time

logger = logging.getLogger(__name__)

# Version written into serialised seeding / target blobs.
SCHEMA_VERSION = 1


class AgeCategory(Enum):
    U9 = "U9"
    U11 = "U11"
    U13 = "U13"
    U15 = "U15"
    U17 = "U17"
    U19 = "U19"
    JUNIOR = "Junior"
    SENIOR = "Senior"
    MASTERS = "Masters"

    @classmethod
    def parse(cls, value: Any) -> "AgeCategory":
        """Return the category named by ``value``.

        Unknown or missing values fail closed to ``SENIOR`` and are logged;
        this never raises.
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        logger.warning("Unknown age category %r; using %s", value, cls.SENIOR.value)
        return cls.SENIOR


_GENDER_ALIASES = {
    "m": "M",
    "male": "M",
    "men": "M",
    "f": "F",
    "female": "F",
    "women": "F",
    "w": "F",
}


class Gender(Enum):
    MALE = "M"
    FEMALE = "F"

    @classmethod
    def parse(cls, value: Any) -> "Gender":
        """Return the gender for ``value``; anything unrecognised is ``MALE``."""
        if isinstance(value, cls):
            return value
        code = _GENDER_ALIASES.get(str(value or "").strip().lower())
        return cls(code) if code else cls.MALE


class Discipline(Enum):
    FENCING_RANKING = "fencing_ranking"
    FENCING_DE = "fencing_de"
    OBSTACLE = "obstacle"
    SWIMMING = "swimming"
    LASER_RUN = "laser_run"
    RIDING = "riding"

    @property
    def display_name(self) -> str:
        return DISCIPLINE_NAMES[self]

    @classmethod
    def parse(cls, value: Any) -> "Discipline":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise UnknownDisciplineError(value) from None


DISCIPLINE_NAMES = {
    Discipline.FENCING_RANKING: "Fencing - Ranking",
    Discipline.FENCING_DE: "Fencing - DE",
    Discipline.OBSTACLE: "Obstacle",
    Discipline.SWIMMING: "Swimming",
    Discipline.LASER_RUN: "Laser Run",
    Discipline.RIDING: "Riding",
}

DISCIPLINE_ORDER = list(Discipline)


# ---------------------------------------------------------------------------
# Discipline configuration records
# ---------------------------------------------------------------------------


def _require_positive(owner: str, name: str, value: float) -> None:
    if not value or value <= 0:
        raise ValueError(f"{owner}.{name} must be positive, got {value!r}")


@dataclass(frozen=True)
class SwimmingConfig:
    distance_meters: int
    base_time_hundredths: int
    increment_hundredths: int
    base_points: int = 250

    def __post_init__(self) -> None:
        _require_positive("SwimmingConfig", "increment_hundredths", self.increment_hundredths)


@dataclass(frozen=True)
class LaserRunConfig:
    age_group: str
    total_distance_meters: int
    running_sequences: str
    shooting_sequences: str
    target_time_seconds: int
    base_points: int = 500
    points_per_second: float = 1.0
    # Upper bound on points for very fast finishes; None means uncapped.
    max_points: Optional[int] = None

    def __post_init__(self) -> None:
        _require_positive("LaserRunConfig", "points_per_second", self.points_per_second)


@dataclass(frozen=True)
class ObstacleConfig:
    base_time_seconds: float
    base_points: int
    seconds_per_point: float

    def __post_init__(self) -> None:
        _require_positive("ObstacleConfig", "seconds_per_point", self.seconds_per_point)


@dataclass(frozen=True)
class RidingConfig:
    base_points: int = 300
    knockdown_penalty: int = 7
    disobedience_penalty: int = 10
    time_over_penalty_per_second: int = 1
    other_penalty: int = 10


@dataclass(frozen=True)
class FencingRankingEntry:
    victories_for_250: int
    value_per_victory: int


# ---------------------------------------------------------------------------
# Raw measurements
# ---------------------------------------------------------------------------


@dataclass
class SwimmingMeasurement:
    time_hundredths: int
    penalty_points: int = 0


@dataclass
class FencingRankingMeasurement:
    victories: int
    total_bouts: int


@dataclass
class FencingDEMeasurement:
    # 0 means eliminated without a final placement.
    placement: int


@dataclass
class ObstacleMeasurement:
    time_seconds: float
    penalty_points: int = 0


@dataclass
class LaserRunMeasurement:
    finish_time_seconds: float
    overall_time_seconds: Optional[float] = None
    penalty_seconds: float = 0

    @property
    def effective_time_seconds(self) -> float:
        if self.overall_time_seconds is not None:
            return self.overall_time_seconds
        return self.finish_time_seconds


@dataclass
class RidingMeasurement:
    knockdowns: int = 0
    disobediences: int = 0
    time_over_seconds: float = 0
    other_penalties: int = 0


# ---------------------------------------------------------------------------
# Handicap start
# ---------------------------------------------------------------------------


@dataclass
class HandicapAthleteInput:
    athlete_id: str
    athlete_name: str
    cumulative_points: int


@dataclass
class HandicapStart:
    athlete_id: str
    athlete_name: str
    cumulative_points: int
    raw_delay_seconds: int
    start_delay_seconds: int
    is_pack_start: bool
    gate_assignment: str
    shooting_station: int

    @property
    def start_time_formatted(self) -> str:
        return format_clock(self.start_delay_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "athleteId": self.athlete_id,
            "athleteName": self.athlete_name,
            "cumulativePoints": self.cumulative_points,
            "rawDelay": self.raw_delay_seconds,
            "startDelay": self.start_delay_seconds,
            "isPackStart": self.is_pack_start,
            "gateAssignment": self.gate_assignment,
            "shootingStation": self.shooting_station,
            "startTimeFormatted": self.start_time_formatted,
        }


# ---------------------------------------------------------------------------
# Swim seeding
# ---------------------------------------------------------------------------


@dataclass
class SwimmerHistory:
    """Historical swim times (hundredths) for one entrant."""

    athlete_id: str
    gender: Gender
    times: List[int] = field(default_factory=list)
    first_name: str = ""
    last_name: str = ""
    country: str = ""
    age_category: str = ""

    def __post_init__(self) -> None:
        self.gender = Gender.parse(self.gender)

    @property
    def best_time(self) -> int:
        timed = [int(t) for t in self.times if t and t > 0]
        return min(timed) if timed else 0

    @property
    def average_time(self) -> float:
        timed = [int(t) for t in self.times if t and t > 0]
        return sum(timed) / len(timed) if timed else 0.0


def _check_version(data: Dict[str, Any], kind: str) -> int:
    raw = data.get("version", SCHEMA_VERSION)
    try:
        version = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {kind} version: {raw!r}") from None
    if version > SCHEMA_VERSION:
        raise ValueError(f"Unsupported {kind} version {version}; expected <= {SCHEMA_VERSION}")
    return version


@dataclass
class SeedingAssignment:
    lane: int
    athlete_id: str
    seed_hundredths: int
    seed_time: str = ""
    first_name: str = ""
    last_name: str = ""
    country: str = ""
    age_category: str = ""
    gender: str = ""

    def __post_init__(self) -> None:
        if not self.seed_time:
            self.seed_time = format_seed_time(self.seed_hundredths)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lane": self.lane,
            "athleteId": self.athlete_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "country": self.country,
            "ageCategory": self.age_category,
            "gender": self.gender,
            "seedTime": self.seed_time,
            "seedHundredths": self.seed_hundredths,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SeedingAssignment":
        return cls(
            lane=int(data["lane"]),
            athlete_id=str(data["athleteId"]),
            seed_hundredths=int(data.get("seedHundredths") or 0),
            seed_time=data.get("seedTime") or "",
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            country=data.get("country") or "",
            age_category=data.get("ageCategory") or "",
            gender=data.get("gender") or "",
        )


@dataclass
class SeedingHeat:
    heat_number: int
    gender: str
    assignments: List[SeedingAssignment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heatNumber": self.heat_number,
            "gender": self.gender,
            "assignments": [a.to_dict() for a in self.assignments],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SeedingHeat":
        return cls(
            heat_number=int(data["heatNumber"]),
            gender=data.get("gender") or "",
            assignments=[SeedingAssignment.from_dict(a) for a in data.get("assignments") or []],
        )


@dataclass
class SeedingConfig:
    """Swim seeding stored on the swimming event."""

    published: bool = False
    heats: List[SeedingHeat] = field(default_factory=list)
    version: int = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "published": self.published,
            "heats": [h.to_dict() for h in self.heats],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SeedingConfig":
        version = _check_version(data, "seeding")
        return cls(
            published=bool(data.get("published", False)),
            heats=[SeedingHeat.from_dict(h) for h in data.get("heats") or []],
            version=version,
        )


# ---------------------------------------------------------------------------
# Laser run targets
# ---------------------------------------------------------------------------


@dataclass
class LaserRunTargetAssignment:
    target_position: int
    athlete_id: str
    wave: int
    rank: int
    points: int
    athlete_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "targetPosition": self.target_position,
            "athleteId": self.athlete_id,
            "athleteName": self.athlete_name,
            "wave": self.wave,
            "rank": self.rank,
            "points": self.points,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LaserRunTargetAssignment":
        return cls(
            target_position=int(data["targetPosition"]),
            athlete_id=str(data["athleteId"]),
            wave=int(data["wave"]),
            rank=int(data["rank"]),
            points=int(data.get("points") or 0),
            athlete_name=data.get("athleteName") or "",
        )


@dataclass
class LaserRunTargetConfig:
    """Shooting target / wave plan stored on the laser run event."""

    target_count: int
    assignments: List[LaserRunTargetAssignment] = field(default_factory=list)
    released: bool = False
    start_mode: Optional[str] = None
    total_laps: Optional[int] = None
    released_at: Optional[str] = None
    version: int = SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "version": self.version,
            "targetCount": self.target_count,
            "assignments": [a.to_dict() for a in self.assignments],
            "released": self.released,
        }
        if self.start_mode is not None:
            out["startMode"] = self.start_mode
        if self.total_laps is not None:
            out["totalLaps"] = self.total_laps
        if self.released_at is not None:
            out["releasedAt"] = self.released_at
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LaserRunTargetConfig":
        version = _check_version(data, "laser run target")
        total_laps = data.get("totalLaps")
        return cls(
            target_count=int(data.get("targetCount") or 0),
            assignments=[LaserRunTargetAssignment.from_dict(a) for a in data.get("assignments") or []],
            released=bool(data.get("released", False)),
            start_mode=data.get("startMode"),
            total_laps=int(total_laps) if total_laps is not None else None,
            released_at=data.get("releasedAt"),
            version=version,
        )
