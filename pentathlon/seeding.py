"""Swim heat and lane seeding from historical times."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import Gender, SeedingAssignment, SeedingConfig, SeedingHeat, SwimmerHistory

LANES = 8
# Fastest swimmer in a heat takes lane 4, then 5, 3, 6, 2, 7, 1, 8.
LANE_ORDER = (4, 5, 3, 6, 2, 7, 1, 8)
# Women's heats are swum before men's.
GENDER_ORDER = (Gender.FEMALE, Gender.MALE)

# (athlete, seed hundredths, average hundredths)
_Seed = Tuple[SwimmerHistory, int, float]


def _speed_key(seed: _Seed):
    """Fastest first; NT (0) after every timed swimmer."""
    swimmer, best, average = seed
    return (best <= 0, best, average, str(swimmer.athlete_id))


def _heats_for_group(seeds: List[_Seed], gender: Gender, first_heat: int) -> List[SeedingHeat]:
    timed = sorted((s for s in seeds if s[1] > 0), key=_speed_key)
    untimed = sorted((s for s in seeds if s[1] <= 0), key=lambda s: str(s[0].athlete_id))
    # Slow heats first: NT swimmers, then timed swimmers slowest to fastest.
    heat_order = untimed + list(reversed(timed))

    heats: List[SeedingHeat] = []
    for offset, start in enumerate(range(0, len(heat_order), LANES)):
        group = sorted(heat_order[start:start + LANES], key=_speed_key)
        assignments = [
            SeedingAssignment(
                lane=LANE_ORDER[idx],
                athlete_id=swimmer.athlete_id,
                seed_hundredths=best,
                first_name=swimmer.first_name,
                last_name=swimmer.last_name,
                country=swimmer.country,
                age_category=swimmer.age_category,
                gender=swimmer.gender.value,
            )
            for idx, (swimmer, best, _avg) in enumerate(group)
        ]
        assignments.sort(key=lambda a: a.lane)
        heats.append(SeedingHeat(heat_number=first_heat + offset, gender=gender.value, assignments=assignments))
    return heats


def generate_heats(
    swimmers: Iterable[SwimmerHistory],
    manual_overrides: Optional[Mapping[str, int]] = None,
) -> List[SeedingHeat]:
    """Seed swimmers into heats of eight, women first, lanes center-out.

    ``manual_overrides`` maps athlete id to a seed time in hundredths and
    replaces the best historical time for that athlete. The average time
    used as a tie-break always comes from history.
    """
    overrides = dict(manual_overrides or {})
    groups: Dict[Gender, List[_Seed]] = {g: [] for g in GENDER_ORDER}
    for swimmer in swimmers:
        if swimmer.athlete_id in overrides and overrides[swimmer.athlete_id] is not None:
            best = int(overrides[swimmer.athlete_id])
        else:
            best = swimmer.best_time
        groups[swimmer.gender].append((swimmer, best, swimmer.average_time))

    heats: List[SeedingHeat] = []
    for gender in GENDER_ORDER:
        heats.extend(_heats_for_group(groups[gender], gender, len(heats) + 1))
    return heats


def generate_swim_seeding(
    swimmers: Iterable[SwimmerHistory],
    manual_overrides: Optional[Mapping[str, int]] = None,
    published: bool = False,
) -> SeedingConfig:
    """Return a full :class:`SeedingConfig`, keeping the caller's ``published`` flag."""
    return SeedingConfig(published=published, heats=generate_heats(swimmers, manual_overrides))


__all__ = ["LANES", "LANE_ORDER", "generate_heats", "generate_swim_seeding"]
