"""Laser run start planning: handicap (Gundersen) starts and shooting targets."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from . import tables
from .models import (
    HandicapAthleteInput,
    HandicapStart,
    LaserRunTargetAssignment,
    LaserRunTargetConfig,
)
from .scoring import round_half_up

DEFAULT_GATES: Tuple[str, ...] = ("A", "B", "P")
START_MODES = ("staggered", "mass")


@dataclass(frozen=True)
class HandicapConfig:
    """Parameters for one handicap start list.

    ``shooting_stations`` of ``None`` gives every athlete their own station
    (station number = start position); a count rotates through the stations.
    """

    points_per_second: float
    gates: Tuple[str, ...] = DEFAULT_GATES
    shooting_stations: Optional[int] = None
    pack_threshold_seconds: int = tables.HANDICAP_PACK_START_THRESHOLD_SECONDS
    pack_start_seconds: int = tables.HANDICAP_PACK_START_TIME_SECONDS

    def __post_init__(self) -> None:
        if not self.points_per_second or self.points_per_second <= 0:
            raise ValueError(f"points_per_second must be positive, got {self.points_per_second!r}")
        if not self.gates:
            raise ValueError("at least one gate is required")
        if self.shooting_stations is not None and self.shooting_stations < 1:
            raise ValueError(f"shooting_stations must be >= 1, got {self.shooting_stations!r}")

    @classmethod
    def for_age_category(cls, age_category: Any, relay: bool = False, **kwargs: Any) -> "HandicapConfig":
        """Build a config using the laser run conversion rate for ``age_category``."""
        rate = tables.laser_run_config(age_category, relay=relay).points_per_second
        return cls(points_per_second=rate, **kwargs)


def _rank_key(athlete: HandicapAthleteInput):
    return (-athlete.cumulative_points, str(athlete.athlete_id))


def compute_handicap_starts(
    athletes: Iterable[HandicapAthleteInput], config: HandicapConfig
) -> List[HandicapStart]:
    """Compute the laser run staggered start list.

    The leader starts at 0:00. Everyone else starts ``deficit /
    points_per_second`` seconds later, capped at the pack start time;
    athletes whose raw delay exceeds the threshold go off together in the
    pack. Gates and shooting stations are dealt round-robin in rank order.

    Returns:
        Staggered starters in ascending delay order followed by pack starters.
    """
    ranked = sorted(athletes, key=_rank_key)
    if not ranked:
        return []

    leader_points = ranked[0].cumulative_points
    starts: List[HandicapStart] = []
    for position, athlete in enumerate(ranked):
        deficit = leader_points - athlete.cumulative_points
        raw_delay = round_half_up(deficit / config.points_per_second)
        is_pack = raw_delay > config.pack_threshold_seconds
        start_delay = config.pack_start_seconds if is_pack else raw_delay
        if config.shooting_stations is None:
            station = position + 1
        else:
            station = position % config.shooting_stations + 1
        starts.append(
            HandicapStart(
                athlete_id=athlete.athlete_id,
                athlete_name=athlete.athlete_name,
                cumulative_points=athlete.cumulative_points,
                raw_delay_seconds=raw_delay,
                start_delay_seconds=min(start_delay, config.pack_start_seconds),
                is_pack_start=is_pack,
                gate_assignment=config.gates[position % len(config.gates)],
                shooting_station=station,
            )
        )

    # Rank order already gives ascending delay; keep the pack as a trailing group.
    staggered = [s for s in starts if not s.is_pack_start]
    pack = [s for s in starts if s.is_pack_start]
    return staggered + pack


def assign_laser_run_targets(
    athletes: Sequence[HandicapAthleteInput], target_count: int
) -> LaserRunTargetConfig:
    """Deal athletes onto shooting targets in waves, best cumulative points first."""
    if target_count is None or int(target_count) < 1:
        raise ValueError("targetCount must be >= 1")
    target_count = int(target_count)
    ranked = sorted(athletes, key=_rank_key)
    assignments = [
        LaserRunTargetAssignment(
            target_position=idx % target_count + 1,
            athlete_id=athlete.athlete_id,
            athlete_name=athlete.athlete_name,
            wave=idx // target_count + 1,
            rank=idx + 1,
            points=athlete.cumulative_points,
        )
        for idx, athlete in enumerate(ranked)
    ]
    return LaserRunTargetConfig(target_count=target_count, assignments=assignments)


def release_laser_run_targets(
    config: LaserRunTargetConfig,
    start_mode: str,
    total_laps: int,
    now: Optional[datetime] = None,
) -> LaserRunTargetConfig:
    """Mark a target plan as released to volunteers with its start mode and lap count."""
    if start_mode not in START_MODES:
        raise ValueError("startMode must be 'staggered' or 'mass'")
    if not total_laps or int(total_laps) < 1:
        raise ValueError("totalLaps must be >= 1")
    if not config.assignments:
        raise ValueError("No target assignments to release")
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    config.start_mode = start_mode
    config.total_laps = int(total_laps)
    config.released = True
    config.released_at = stamp
    return config


__all__ = [
    "HandicapConfig",
    "compute_handicap_starts",
    "assign_laser_run_targets",
    "release_laser_run_targets",
]
