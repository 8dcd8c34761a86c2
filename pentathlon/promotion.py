"""Turn volunteer score submissions into official scores."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from . import tables
from .errors import InvalidMeasurementError
from .models import (
    AgeCategory,
    Discipline,
    FencingDEMeasurement,
    FencingRankingMeasurement,
    LaserRunMeasurement,
    ObstacleMeasurement,
    RidingMeasurement,
    SwimmingMeasurement,
)
from .scoring import CALCULATORS, aggregate_laser_run, validate_measurement
from .timecodec import parse_clock, parse_time

logger = logging.getLogger(__name__)


def _default_store():
    from . import datastore

    return datastore


def _pick(data: Dict[str, Any], camel: str, snake: str) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake)


def _number(discipline: Discipline, field: str, value: Any, default: Any = 0, clock: bool = False) -> Any:
    """Coerce a payload value to a number; ``None`` and ``""`` take ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidMeasurementError(discipline.value, f"{field} must be a number", field=field)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            pass
        if clock and ":" in text:
            return parse_clock(text)
    raise InvalidMeasurementError(discipline.value, f"{field} must be a number", field=field)


def measurement_from_payload(discipline: Any, data: Optional[Dict[str, Any]]):
    """Build the typed measurement for ``discipline`` from a camelCase payload.

    snake_case keys are accepted too. A swim time given as text (``"1:05.32"``)
    goes through the time codec.
    """
    disc = Discipline.parse(discipline)
    data = data or {}

    if disc is Discipline.SWIMMING:
        raw_time = _pick(data, "timeHundredths", "time_hundredths")
        if isinstance(raw_time, str):
            time_hundredths = parse_time(raw_time)
        else:
            time_hundredths = _number(disc, "time_hundredths", raw_time)
        # 0 is the codec's "no time": never score it as a 0:00.00 swim
        if not time_hundredths or time_hundredths <= 0:
            raise InvalidMeasurementError(disc.value, "timeHundredths is not a valid time", field="time_hundredths")
        return SwimmingMeasurement(
            time_hundredths=time_hundredths,
            penalty_points=_number(disc, "penalty_points", _pick(data, "penaltyPoints", "penalty_points")),
        )
    if disc is Discipline.FENCING_RANKING:
        return FencingRankingMeasurement(
            victories=_number(disc, "victories", data.get("victories")),
            total_bouts=_number(disc, "total_bouts", _pick(data, "totalBouts", "total_bouts")),
        )
    if disc is Discipline.FENCING_DE:
        return FencingDEMeasurement(placement=_number(disc, "placement", data.get("placement")))
    if disc is Discipline.OBSTACLE:
        return ObstacleMeasurement(
            time_seconds=_number(disc, "time_seconds", _pick(data, "timeSeconds", "time_seconds"), clock=True),
            penalty_points=_number(disc, "penalty_points", _pick(data, "penaltyPoints", "penalty_points")),
        )
    if disc is Discipline.LASER_RUN:
        overall = _number(
            disc, "overall_time_seconds", _pick(data, "overallTimeSeconds", "overall_time_seconds"),
            default=None, clock=True,
        )
        finish = _number(
            disc, "finish_time_seconds", _pick(data, "finishTimeSeconds", "finish_time_seconds"),
            default=None, clock=True,
        )
        if finish is None:
            finish = overall
        effective = overall if overall is not None else finish
        if not effective or effective <= 0:
            raise InvalidMeasurementError(
                disc.value, "finishTimeSeconds is not a valid time", field="finish_time_seconds"
            )
        return LaserRunMeasurement(
            finish_time_seconds=finish,
            overall_time_seconds=overall,
            penalty_seconds=_number(disc, "penalty_seconds", _pick(data, "penaltySeconds", "penalty_seconds")),
        )
    return RidingMeasurement(
        knockdowns=_number(disc, "knockdowns", data.get("knockdowns")),
        disobediences=_number(disc, "disobediences", data.get("disobediences")),
        time_over_seconds=_number(disc, "time_over_seconds", _pick(data, "timeOverSeconds", "time_over_seconds")),
        other_penalties=_number(disc, "other_penalties", _pick(data, "otherPenalties", "other_penalties")),
    )


def _config_for(disc: Discipline, age_category: Any, gender: Any, relay: bool):
    if disc is Discipline.SWIMMING:
        return tables.swimming_config(age_category, gender)
    if disc is Discipline.LASER_RUN:
        return tables.laser_run_config(age_category, relay=relay)
    if disc is Discipline.OBSTACLE:
        return tables.obstacle_config(relay=relay)
    if disc is Discipline.RIDING:
        return tables.riding_config()
    return None


def score_payload(
    discipline: Any,
    data: Optional[Dict[str, Any]],
    age_category: Any = AgeCategory.SENIOR,
    gender: Any = None,
    relay: bool = False,
) -> Tuple[Any, int]:
    """Validate a payload and return ``(measurement, points)``."""
    disc = Discipline.parse(discipline)
    measurement = measurement_from_payload(disc, data)
    validate_measurement(disc, measurement)
    config = _config_for(disc, age_category, gender, relay)
    calculator = CALCULATORS[disc]
    points = calculator(measurement) if config is None else calculator(measurement, config)
    return measurement, points


def _promote(discipline, event_id, athlete_id, raw_data, age_category, store, relay=False) -> Tuple[str, int]:
    disc = Discipline.parse(discipline)
    gender = store.get_athlete_gender(athlete_id) if disc is Discipline.SWIMMING else None
    measurement, points = score_payload(disc, raw_data, age_category, gender, relay=relay)
    score_id = store.upsert_official_score(disc.value, event_id, athlete_id, asdict(measurement), points)
    logger.info(
        "Promoted %s score for athlete %s in event %s: %d points (%s)",
        disc.value, athlete_id, event_id, points, score_id,
    )
    return score_id, points


def promote_score(
    discipline: Any,
    event_id: str,
    athlete_id: str,
    raw_data: Optional[Dict[str, Any]],
    age_category: Any = AgeCategory.SENIOR,
    store=None,
    relay: bool = False,
) -> str:
    """Score a submission and upsert it as the official score for ``(event_id, athlete_id)``.

    Promoting the same athlete and event again replaces the measurement and
    points and returns the existing official score id. ``relay`` selects the
    relay laser run and obstacle tables.
    """
    score_id, _points = _promote(
        discipline, event_id, athlete_id, raw_data, age_category, store or _default_store(), relay=relay
    )
    return score_id


def _attempt(item_id: Any, discipline, event_id, athlete_id, raw_data, age_category, store, relay=False):
    """Promote one item and return ``(result, error)``; exactly one is set."""
    try:
        score_id, points = _promote(discipline, event_id, athlete_id, raw_data, age_category, store, relay=relay)
    except ValueError as exc:
        logger.warning("Rejected score %s for athlete %s: %s", item_id, athlete_id, exc)
        return None, {"id": item_id, "athleteId": athlete_id, "error": str(exc)}
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Failed to promote score %s for athlete %s", item_id, athlete_id)
        return None, {"id": item_id, "athleteId": athlete_id, "error": str(exc) or exc.__class__.__name__}
    return {"id": item_id, "athleteId": athlete_id, "officialScoreId": score_id, "points": points}, None


def promote_many(items: Iterable[Dict[str, Any]], store=None) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Promote several submissions; one failure does not stop the rest.

    Each item needs ``discipline``, ``eventId``, ``athleteId`` and ``data``
    and may carry ``id``, ``ageCategory`` and ``relay``.
    """
    store = store or _default_store()
    results: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    for index, item in enumerate(items):
        result, error = _attempt(
            item.get("id", index),
            item.get("discipline"),
            item.get("eventId"),
            item.get("athleteId"),
            item.get("data"),
            item.get("ageCategory"),
            store,
            relay=bool(item.get("relay", False)),
        )
        if error:
            errors.append(error)
        else:
            results.append(result)
    return results, errors


def _is_relay(competition_type: Any) -> bool:
    return str(competition_type or "").strip().lower() == "relay"


def verify_preliminary_scores(
    competition_id: str,
    ids: Iterable[str],
    verified_by: Optional[str] = None,
    store=None,
) -> Dict[str, Any]:
    """Verify preliminary submissions in bulk and promote each to an official score.

    Ids that are unknown, already verified or belong to another competition
    are reported in ``errors``.
    """
    store = store or _default_store()
    wanted: List[str] = []
    for score_id in ids:
        if score_id not in wanted:
            wanted.append(score_id)

    rows = {row["id"]: row for row in store.list_preliminary_scores(competition_id, wanted)}
    results: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    for score_id in wanted:
        row = rows.get(score_id)
        if row is None:
            errors.append({"id": score_id, "error": "Preliminary score not found or already verified"})
            continue
        result, error = _attempt(
            score_id,
            row["discipline"],
            row["event_id"],
            row["athlete_id"],
            row.get("data"),
            row.get("age_category"),
            store,
            relay=_is_relay(row.get("competition_type")),
        )
        if error:
            errors.append(error)
            continue
        store.mark_preliminary_verified(score_id, result["officialScoreId"], verified_by)
        results.append(result)

    logger.info(
        "Bulk verify for competition %s: %d verified, %d failed",
        competition_id, len(results), len(errors),
    )
    return {"verified": len(results), "failed": len(errors), "results": results, "errors": errors}


def aggregate_laser_run_scores(
    event_id: str,
    age_category: Any = AgeCategory.SENIOR,
    relay: bool = False,
    store=None,
) -> Dict[str, Any]:
    """Re-score every verified laser run timer record of an event.

    Each timer payload is split into shooting and running time; a mass
    start is scored on its adjusted time (handicap delay removed), any other
    start on the overall time. Official scores are upserted as in
    :func:`promote_score`.
    """
    store = store or _default_store()
    results: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    for row in store.list_verified_scores(event_id, Discipline.LASER_RUN.value):
        summary = aggregate_laser_run(row.get("data") or {})
        finish = summary["adjustedTimeSeconds"]
        if finish is None:
            finish = summary["overallTimeSeconds"]
        payload = {"finishTimeSeconds": finish, "penaltySeconds": summary["penaltySeconds"]}
        result, error = _attempt(
            row["id"], Discipline.LASER_RUN, event_id, row["athlete_id"], payload, age_category, store, relay=relay
        )
        if error:
            errors.append(error)
            continue
        result["summary"] = summary
        results.append(result)

    logger.info(
        "Aggregated laser run event %s: %d scored, %d failed",
        event_id, len(results), len(errors),
    )
    return {"aggregated": len(results), "failed": len(errors), "results": results, "errors": errors}


__all__ = [
    "measurement_from_payload",
    "score_payload",
    "promote_score",
    "promote_many",
    "verify_preliminary_scores",
    "aggregate_laser_run_scores",
]
