from typing import Any, Dict, Iterable, List, Optional

# PostgreSQL datastore proxy
# Routes and the promotion pipeline call through this module so tests can
# monkeypatch datastore_pg with an in-memory store.

from . import datastore_pg as _pg


def create_tables() -> None:
    _pg.create_tables()


def get_competition(competition_id: str) -> Optional[Dict[str, Any]]:
    return _pg.get_competition(competition_id)


def find_event(competition_id: str, discipline: str) -> Optional[Dict[str, Any]]:
    return _pg.find_event(competition_id, discipline)


def get_event_config(competition_id: str, discipline: str) -> Optional[Dict[str, Any]]:
    """Return the stored JSON config of a competition's event, or None."""
    event = _pg.find_event(competition_id, discipline)
    if not event:
        return None
    return event.get("config")


def set_event_config(event_id: str, config: Optional[Dict[str, Any]]) -> None:
    _pg.set_event_config(event_id, config)


def list_competition_athletes(competition_id: str) -> List[Dict[str, Any]]:
    return _pg.list_competition_athletes(competition_id)


def get_athlete_gender(athlete_id: str) -> Optional[str]:
    return _pg.get_athlete_gender(athlete_id)


def list_swim_times(athlete_ids: Iterable[str]) -> Dict[str, List[int]]:
    return _pg.list_swim_times(athlete_ids)


def cumulative_points(competition_id: str, exclude_disciplines: Iterable[str] = ("laser_run",)) -> Dict[str, int]:
    return _pg.cumulative_points(competition_id, exclude_disciplines)


def upsert_official_score(
    discipline: str,
    event_id: str,
    athlete_id: str,
    measurement: Dict[str, Any],
    calculated_points: int,
) -> str:
    return _pg.upsert_official_score(discipline, event_id, athlete_id, measurement, calculated_points)


def list_preliminary_scores(competition_id: str, ids: Iterable[str]) -> List[Dict[str, Any]]:
    return _pg.list_preliminary_scores(competition_id, ids)


def mark_preliminary_verified(score_id: str, official_score_id: str, verified_by: Optional[str] = None) -> None:
    _pg.mark_preliminary_verified(score_id, official_score_id, verified_by)


def list_verified_scores(event_id: str, discipline: str) -> List[Dict[str, Any]]:
    return _pg.list_verified_scores(event_id, discipline)
