"""Scoring utilities converting raw performances into UIPM points."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from . import tables
from .errors import InvalidMeasurementError
from .models import (
    Discipline,
    FencingDEMeasurement,
    FencingRankingEntry,
    FencingRankingMeasurement,
    LaserRunConfig,
    LaserRunMeasurement,
    ObstacleConfig,
    ObstacleMeasurement,
    RidingConfig,
    RidingMeasurement,
    SwimmingConfig,
    SwimmingMeasurement,
)

TEAM_SIZE = 3


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Discipline calculators
# ---------------------------------------------------------------------------


def calculate_swimming(measurement: SwimmingMeasurement, config: Optional[SwimmingConfig] = None) -> int:
    """Return swimming points.

    ``base_points - floor((time - base_time) / increment) - penalty``, so
    every started band of ``increment`` hundredths over the base time costs a
    point and every full band under it earns one.
    """
    cfg = config or tables.swimming_config()
    time_diff = int(measurement.time_hundredths) - cfg.base_time_hundredths
    points = cfg.base_points - time_diff // cfg.increment_hundredths - int(measurement.penalty_points or 0)
    return max(0, points)


def fencing_ranking_params(total_bouts: int) -> FencingRankingEntry:
    """Return the victory value row for a pool of ``total_bouts`` bouts.

    Pools outside the official table use 70% of bouts as the 250 point mark.
    """
    entry = tables.FENCING_VICTORY_VALUE_TABLE.get(int(total_bouts))
    if entry is not None:
        return entry
    victories_for_250 = round_half_up(total_bouts * 0.7)
    value_per_victory = round_half_up(250 / victories_for_250) if victories_for_250 > 0 else 0
    return FencingRankingEntry(victories_for_250=victories_for_250, value_per_victory=value_per_victory)


def fencing_ranking_params_for_field(num_competitors: int) -> Tuple[int, FencingRankingEntry]:
    """Return ``(total_bouts, params)`` for a one-pool ranking round of ``num_competitors``."""
    total_bouts = num_competitors - 1
    return total_bouts, fencing_ranking_params(total_bouts)


def calculate_fencing_ranking(measurement: FencingRankingMeasurement) -> int:
    """Return ranking round points: ``250 + (victories - v250) * value_per_victory``."""
    if measurement.total_bouts <= 0:
        return 0
    params = fencing_ranking_params(measurement.total_bouts)
    points = 250 + (int(measurement.victories) - params.victories_for_250) * params.value_per_victory
    return max(0, points)


def calculate_fencing_de(measurement: FencingDEMeasurement) -> int:
    """Return direct elimination points for a final placement; 0 placement is eliminated."""
    placement = int(measurement.placement or 0)
    if placement <= 0:
        return max(0, tables.FENCING_DE_DEFAULT)
    return max(0, tables.FENCING_DE_POINTS.get(placement, tables.FENCING_DE_DEFAULT))


def calculate_obstacle(measurement: ObstacleMeasurement, config: Optional[ObstacleConfig] = None) -> int:
    cfg = config or tables.obstacle_config()
    time_diff = float(measurement.time_seconds) - cfg.base_time_seconds
    points = cfg.base_points - round_half_up(time_diff / cfg.seconds_per_point) - int(measurement.penalty_points or 0)
    return max(0, points)


def calculate_laser_run(measurement: LaserRunMeasurement, config: Optional[LaserRunConfig] = None) -> int:
    """Return laser run points.

    Each second under the target time earns ``points_per_second`` and each
    second over it (or of penalty) costs the same, so the handicap scheduler
    can turn a points gap back into seconds with the same rate.
    """
    cfg = config or tables.laser_run_config()
    rate = cfg.points_per_second
    delta = cfg.target_time_seconds - float(measurement.effective_time_seconds)
    penalty = float(measurement.penalty_seconds or 0)
    points = round_half_up(cfg.base_points + delta * rate - penalty * rate)
    if cfg.max_points is not None:
        points = min(points, cfg.max_points)
    return max(0, points)


def calculate_riding(measurement: RidingMeasurement, config: Optional[RidingConfig] = None) -> int:
    cfg = config or tables.riding_config()
    penalty = (
        int(measurement.knockdowns or 0) * cfg.knockdown_penalty
        + int(measurement.disobediences or 0) * cfg.disobedience_penalty
        + float(measurement.time_over_seconds or 0) * cfg.time_over_penalty_per_second
        + int(measurement.other_penalties or 0) * cfg.other_penalty
    )
    return max(0, int(math.floor(cfg.base_points - penalty)))


CALCULATORS: Dict[Discipline, Callable[..., int]] = {
    Discipline.SWIMMING: calculate_swimming,
    Discipline.FENCING_RANKING: calculate_fencing_ranking,
    Discipline.FENCING_DE: calculate_fencing_de,
    Discipline.OBSTACLE: calculate_obstacle,
    Discipline.LASER_RUN: calculate_laser_run,
    Discipline.RIDING: calculate_riding,
}


# ---------------------------------------------------------------------------
# Measurement validation
# ---------------------------------------------------------------------------


def _non_negative(discipline: Discipline, measurement: Any, *names: str) -> None:
    for name in names:
        value = getattr(measurement, name)
        if value is None:
            continue
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
            raise InvalidMeasurementError(discipline.value, f"{name} must be a number", field=name)
        if value < 0:
            raise InvalidMeasurementError(discipline.value, f"{name} must not be negative", field=name)


def validate_measurement(discipline: Discipline, measurement: Any) -> None:
    """Reject out-of-range measurements before they reach a calculator."""
    if discipline is Discipline.SWIMMING:
        _non_negative(discipline, measurement, "time_hundredths", "penalty_points")
    elif discipline is Discipline.FENCING_RANKING:
        _non_negative(discipline, measurement, "victories", "total_bouts")
        if measurement.total_bouts <= 0:
            raise InvalidMeasurementError(discipline.value, "total_bouts must be at least 1", field="total_bouts")
        if measurement.victories > measurement.total_bouts:
            raise InvalidMeasurementError(discipline.value, "victories exceed total_bouts", field="victories")
    elif discipline is Discipline.FENCING_DE:
        _non_negative(discipline, measurement, "placement")
    elif discipline is Discipline.OBSTACLE:
        _non_negative(discipline, measurement, "time_seconds", "penalty_points")
    elif discipline is Discipline.LASER_RUN:
        _non_negative(discipline, measurement, "finish_time_seconds", "overall_time_seconds", "penalty_seconds")
    elif discipline is Discipline.RIDING:
        _non_negative(discipline, measurement, "knockdowns", "disobediences", "time_over_seconds", "other_penalties")


# ---------------------------------------------------------------------------
# Masters handicap
# ---------------------------------------------------------------------------


def masters_bonus(age: int) -> int:
    """Return the masters age bonus; 0 at 40, rising faster past 50 and 60."""
    if age <= 30:
        return -50 + (age - 30) * 5
    if age <= 50:
        return (age - tables.MASTERS_HANDICAP_BASE_AGE) * 5
    if age <= 60:
        return 50 + (age - 50) * 10
    return 150 + (age - 60) * 15


def apply_masters_handicap(total_points: int, age: int) -> Tuple[int, int]:
    """Return ``(adjusted_total, bonus)`` for a masters athlete."""
    bonus = masters_bonus(age)
    return total_points + bonus, bonus


def calculate_age(date_of_birth: date | str, today: Optional[date] = None) -> int:
    """Return completed years between ``date_of_birth`` (date or ISO string) and ``today``."""
    if isinstance(date_of_birth, str):
        dob = datetime.fromisoformat(date_of_birth[:10]).date()
    elif isinstance(date_of_birth, datetime):
        dob = date_of_birth.date()
    else:
        dob = date_of_birth
    ref = today or date.today()
    age = ref.year - dob.year
    if (ref.month, ref.day) < (dob.month, dob.day):
        age -= 1
    return age


# ---------------------------------------------------------------------------
# Team classification
# ---------------------------------------------------------------------------


def compute_team_standings(athletes: Iterable[Dict]) -> List[Dict]:
    """Aggregate athlete totals into nation team standings.

    Each row needs ``athlete_id``, ``athlete_name``, ``country`` and
    ``total_points``. A team is the best three athletes of a country;
    countries with fewer than three are not ranked.

    Returns:
        List of team dictionaries sorted by team total (high points wins),
        ties ordered by country name.
    """
    by_country: Dict[str, List[Dict]] = {}
    for row in athletes:
        by_country.setdefault(row.get("country") or "", []).append(row)

    teams: List[Dict] = []
    for country, rows in by_country.items():
        if len(rows) < TEAM_SIZE:
            continue
        best = sorted(rows, key=lambda r: (-r.get("total_points", 0), str(r.get("athlete_id"))))[:TEAM_SIZE]
        teams.append(
            {
                "country": country,
                "athletes": [
                    {
                        "athlete_id": r.get("athlete_id"),
                        "athlete_name": r.get("athlete_name"),
                        "total_points": r.get("total_points", 0),
                    }
                    for r in best
                ],
                "team_total": sum(r.get("total_points", 0) for r in best),
            }
        )

    teams.sort(key=lambda t: (-t["team_total"], t["country"]))
    for rank, team in enumerate(teams, start=1):
        team["rank"] = rank
    return teams


# ---------------------------------------------------------------------------
# Laser run timer aggregation
# ---------------------------------------------------------------------------


def aggregate_laser_run(data: Dict[str, Any]) -> Dict[str, Any]:
    """Split a laser run timer record into shooting and running time.

    ``data`` is the volunteer timer payload: ``overallTimeSeconds``,
    ``startMode`` (``staggered`` or ``mass``), ``handicapStartDelay``,
    ``laps`` (``lap``, ``splitTimestamp``, ``type``) and ``shootTimes``
    (``shootTimeSeconds`` per range visit, in order). For a mass start the
    handicap delay is removed to give ``adjustedTimeSeconds``.
    """
    overall = float(data.get("overallTimeSeconds") or 0)
    shoot_times = [float(s.get("shootTimeSeconds") or 0) for s in data.get("shootTimes") or []]
    total_shoot = sum(shoot_times)
    start_mode = data.get("startMode") or "staggered"
    delay = float(data.get("handicapStartDelay") or 0)
    adjusted = overall - delay if start_mode == "mass" else None

    laps: List[Dict[str, Any]] = []
    previous_split = 0.0
    shoot_visit = 0
    for lap in data.get("laps") or []:
        split = float(lap.get("splitTimestamp") or 0)
        lap_time = split - previous_split
        previous_split = split
        shoot_time: Optional[float] = None
        if lap.get("type") == "shoot":
            if shoot_visit < len(shoot_times):
                shoot_time = shoot_times[shoot_visit]
            shoot_visit += 1
        laps.append(
            {
                "lap": lap.get("lap"),
                "splitTimestamp": split,
                "lapTimeSeconds": lap_time,
                "type": lap.get("type"),
                "shootTimeSeconds": shoot_time,
                "runTimeSeconds": lap_time - shoot_time if shoot_time is not None else lap_time,
            }
        )

    return {
        "overallTimeSeconds": overall,
        "adjustedTimeSeconds": adjusted,
        "totalShootTimeSeconds": total_shoot,
        "totalRunTimeSeconds": overall - total_shoot,
        "penaltySeconds": float(data.get("penaltySeconds") or 0),
        "startMode": start_mode,
        "totalLaps": data.get("totalLaps") or len(laps),
        "laps": laps,
        "handicapStartDelay": delay,
        "isPackStart": bool(data.get("isPackStart", False)),
        "gateAssignment": data.get("gateAssignment") or "",
        "targetPosition": data.get("targetPosition"),
        "wave": data.get("wave"),
    }


__all__ = [
    "round_half_up",
    "calculate_swimming",
    "calculate_fencing_ranking",
    "calculate_fencing_de",
    "calculate_obstacle",
    "calculate_laser_run",
    "calculate_riding",
    "fencing_ranking_params",
    "fencing_ranking_params_for_field",
    "CALCULATORS",
    "validate_measurement",
    "masters_bonus",
    "apply_masters_handicap",
    "calculate_age",
    "compute_team_standings",
    "aggregate_laser_run",
]
