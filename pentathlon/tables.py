"""UIPM scoring tables keyed by age category and gender.

Every per-category table must have a row for each ``AgeCategory``; the
coverage check at the bottom of this module fails the import otherwise.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from .models import (
    AgeCategory,
    FencingRankingEntry,
    Gender,
    LaserRunConfig,
    ObstacleConfig,
    RidingConfig,
    SwimmingConfig,
)


def _build_lookup(entries: List[Dict[str, Any]], key_field: str, value_field: str) -> Tuple[Dict[int, int], int]:
    """Build lookup dict and default value from settings-style entries."""
    lookup: Dict[int, int] = {}
    default = 0
    for item in entries:
        key = item[key_field]
        value = item[value_field]
        if isinstance(key, int):
            lookup[int(key)] = value
        elif key == "default_or_higher":
            default = value
    return lookup, default


# ---------------------------------------------------------------------------
# Swimming
# ---------------------------------------------------------------------------

# Senior down to U13: 100m, 1:10.00 = 250, 1 point per 0.20s
SWIM_STANDARD = SwimmingConfig(distance_meters=100, base_time_hundredths=7000, increment_hundredths=20)
# U11 and U9: 50m, 0:45.00 = 250, 1 point per 0.50s
SWIM_YOUTH = SwimmingConfig(distance_meters=50, base_time_hundredths=4500, increment_hundredths=50)
SWIM_MASTERS_MEN = SwimmingConfig(distance_meters=100, base_time_hundredths=7800, increment_hundredths=50)
SWIM_MASTERS_WOMEN = SwimmingConfig(distance_meters=100, base_time_hundredths=9000, increment_hundredths=50)


def _both(config: SwimmingConfig) -> Dict[Gender, SwimmingConfig]:
    return {Gender.MALE: config, Gender.FEMALE: config}


SWIMMING_TABLE: Dict[AgeCategory, Dict[Gender, SwimmingConfig]] = {
    AgeCategory.SENIOR: _both(SWIM_STANDARD),
    AgeCategory.JUNIOR: _both(SWIM_STANDARD),
    AgeCategory.U19: _both(SWIM_STANDARD),
    AgeCategory.U17: _both(SWIM_STANDARD),
    AgeCategory.U15: _both(SWIM_STANDARD),
    AgeCategory.U13: _both(SWIM_STANDARD),
    AgeCategory.U11: _both(SWIM_YOUTH),
    AgeCategory.U9: _both(SWIM_YOUTH),
    AgeCategory.MASTERS: {Gender.MALE: SWIM_MASTERS_MEN, Gender.FEMALE: SWIM_MASTERS_WOMEN},
}


def swimming_config(age_category: Any = AgeCategory.SENIOR, gender: Any = None) -> SwimmingConfig:
    """Return the swimming row for an age category and gender (missing gender is men's)."""
    return SWIMMING_TABLE[AgeCategory.parse(age_category)][Gender.parse(gender)]


# ---------------------------------------------------------------------------
# Laser run
# ---------------------------------------------------------------------------

_LR_SENIOR = LaserRunConfig("Senior, Junior, U19", 3000, "4 x 600m", "4 x 5 hits", 800)  # 13:20
_LR_U17 = LaserRunConfig("U17", 2400, "3 x 600m", "3 x 5 hits", 630)  # 10:30
_LR_U15 = LaserRunConfig("U15", 1800, "3 x 600m", "3 x 5 hits", 460)  # 7:40
_LR_U13 = LaserRunConfig("U13", 900, "2 x 300m", "2 x 5 hits", 320)  # 5:20
_LR_U11 = LaserRunConfig("U11", 600, "2 x 300m", "2 x 5 hits", 240)  # 4:00
_LR_U9 = LaserRunConfig("U9", 600, "2 x 300m", "2 x 5 hits", 240)

_LR_RELAY_SENIOR = LaserRunConfig("Senior, Junior, U19", 3600, "2 x 3 x 600m", "2 x 3 x 5 hits", 800)
_LR_RELAY_U17 = LaserRunConfig("U17", 2400, "2 x 2 x 600m", "2 x 2 x 5 hits", 460)
_LR_RELAY_U15 = LaserRunConfig("U15", 2400, "2 x 2 x 600m", "2 x 2 x 5 hits", 460)
_LR_RELAY_U13 = LaserRunConfig("U13", 1200, "2 x 2 x 300m", "2 x 2 x 5 hits", 320)
_LR_RELAY_U11 = LaserRunConfig("U11", 1200, "2 x 2 x 300m", "2 x 2 x 5 hits", 320)
_LR_RELAY_U9 = LaserRunConfig("U9", 1200, "2 x 2 x 300m", "2 x 2 x 5 hits", 320)

LASER_RUN_INDIVIDUAL: Dict[AgeCategory, LaserRunConfig] = {
    AgeCategory.SENIOR: _LR_SENIOR,
    AgeCategory.JUNIOR: _LR_SENIOR,
    AgeCategory.U19: _LR_SENIOR,
    AgeCategory.U17: _LR_U17,
    AgeCategory.U15: _LR_U15,
    AgeCategory.U13: _LR_U13,
    AgeCategory.U11: _LR_U11,
    AgeCategory.U9: _LR_U9,
    # Masters run the senior course
    AgeCategory.MASTERS: _LR_SENIOR,
}

LASER_RUN_RELAY: Dict[AgeCategory, LaserRunConfig] = {
    AgeCategory.SENIOR: _LR_RELAY_SENIOR,
    AgeCategory.JUNIOR: _LR_RELAY_SENIOR,
    AgeCategory.U19: _LR_RELAY_SENIOR,
    AgeCategory.U17: _LR_RELAY_U17,
    AgeCategory.U15: _LR_RELAY_U15,
    AgeCategory.U13: _LR_RELAY_U13,
    AgeCategory.U11: _LR_RELAY_U11,
    AgeCategory.U9: _LR_RELAY_U9,
    AgeCategory.MASTERS: _LR_RELAY_SENIOR,
}


def laser_run_config(age_category: Any = AgeCategory.SENIOR, relay: bool = False) -> LaserRunConfig:
    """Return the laser run target row shared by the calculator and the handicap scheduler."""
    table = LASER_RUN_RELAY if relay else LASER_RUN_INDIVIDUAL
    return table[AgeCategory.parse(age_category)]


# ---------------------------------------------------------------------------
# Obstacle, riding
# ---------------------------------------------------------------------------

OBSTACLE_INDIVIDUAL = ObstacleConfig(base_time_seconds=15.0, base_points=400, seconds_per_point=0.33)
OBSTACLE_RELAY = ObstacleConfig(base_time_seconds=35.0, base_points=400, seconds_per_point=0.33)


def obstacle_config(relay: bool = False) -> ObstacleConfig:
    return OBSTACLE_RELAY if relay else OBSTACLE_INDIVIDUAL


# Masters only
RIDING = RidingConfig(
    base_points=300,
    knockdown_penalty=7,
    disobedience_penalty=10,
    time_over_penalty_per_second=1,
    other_penalty=10,
)


def riding_config() -> RidingConfig:
    return RIDING


# ---------------------------------------------------------------------------
# Fencing
# ---------------------------------------------------------------------------

# total bouts -> (victories worth 250 points, points per victory above/below)
_VICTORY_VALUE_ROWS = [
    (60, 42, 3), (59, 41, 3), (58, 41, 3), (57, 40, 3), (56, 39, 3),
    (55, 39, 3), (54, 38, 3), (53, 37, 3), (52, 36, 3), (51, 36, 3),
    (50, 35, 3), (49, 34, 3), (48, 34, 3), (47, 33, 4), (46, 32, 4),
    (45, 32, 4), (44, 31, 4), (43, 30, 4), (42, 29, 4), (41, 29, 4),
    (40, 28, 4), (39, 27, 5), (38, 27, 5), (37, 26, 5), (36, 25, 5),
    (35, 25, 5), (34, 24, 5), (33, 23, 6), (32, 22, 6), (31, 22, 6),
    (30, 21, 6), (29, 20, 7), (28, 20, 7), (27, 19, 7), (26, 18, 7),
    (25, 18, 7), (24, 17, 7), (23, 16, 7), (22, 15, 8), (21, 15, 8),
    (20, 14, 8), (19, 13, 8),
]

FENCING_VICTORY_VALUE_TABLE: Dict[int, FencingRankingEntry] = {
    bouts: FencingRankingEntry(victories_for_250=v250, value_per_victory=value)
    for bouts, v250, value in _VICTORY_VALUE_ROWS
}

FENCING_DE_PLACEMENT_ENTRIES = [
    {"place": 1, "points": 250},
    {"place": 2, "points": 244},
    {"place": 3, "points": 238},
    {"place": 4, "points": 236},
    {"place": 5, "points": 230},
    {"place": 6, "points": 228},
    {"place": 7, "points": 226},
    {"place": 8, "points": 224},
    {"place": 9, "points": 218},
    {"place": 10, "points": 216},
    {"place": 11, "points": 214},
    {"place": 12, "points": 212},
    {"place": 13, "points": 210},
    {"place": 14, "points": 208},
    {"place": 15, "points": 206},
    {"place": 16, "points": 204},
    {"place": 17, "points": 198},
    {"place": 18, "points": 196},
    # Eliminated in the initial bout
    {"place": "default_or_higher", "points": 0},
]

FENCING_DE_POINTS, FENCING_DE_DEFAULT = _build_lookup(FENCING_DE_PLACEMENT_ENTRIES, "place", "points")


def fencing_de_placements() -> List[Dict[str, int]]:
    """Return every scored DE placement in order, for display."""
    return [{"place": place, "points": FENCING_DE_POINTS[place]} for place in sorted(FENCING_DE_POINTS)]


# ---------------------------------------------------------------------------
# Handicap start, masters
# ---------------------------------------------------------------------------

HANDICAP_PACK_START_THRESHOLD_SECONDS = 90
HANDICAP_PACK_START_TIME_SECONDS = 90

MASTERS_HANDICAP_BASE_AGE = 40


def _check_coverage(name: str, table: Dict[AgeCategory, Any]) -> None:
    missing = [c.value for c in AgeCategory if c not in table]
    if missing:
        raise RuntimeError(f"{name} has no row for age categories: {', '.join(missing)}")


_check_coverage("SWIMMING_TABLE", SWIMMING_TABLE)
for _category, _by_gender in SWIMMING_TABLE.items():
    if set(_by_gender) != set(Gender):
        raise RuntimeError(f"SWIMMING_TABLE[{_category.value}] must define every gender")
_check_coverage("LASER_RUN_INDIVIDUAL", LASER_RUN_INDIVIDUAL)
_check_coverage("LASER_RUN_RELAY", LASER_RUN_RELAY)
