from flask import Blueprint, abort, current_app, request
from dataclasses import asdict
import os

from . import datastore as ds
from .handicap import (
    HandicapConfig,
    assign_laser_run_targets,
    compute_handicap_starts,
    release_laser_run_targets,
)
from .models import (
    AgeCategory,
    Discipline,
    HandicapAthleteInput,
    LaserRunTargetAssignment,
    LaserRunTargetConfig,
    SeedingConfig,
    SeedingHeat,
    SwimmerHistory,
)
from .promotion import aggregate_laser_run_scores, score_payload, verify_preliminary_scores
from .scoring import apply_masters_handicap, calculate_age, compute_team_standings
from .seeding import generate_swim_seeding
from .timecodec import parse_time


bp = Blueprint('main', __name__)


@bp.route('/health/db')
def health_db():
    """Database connectivity health check.

    Attempts to connect using the ``DATABASE_URL`` environment variable and
    returns basic server/user info. Always returns HTTP 200 with a JSON body
    describing connection status.
    """
    url = os.environ.get('DATABASE_URL')
    if not url:
        return {
            'connected': False,
            'status': 'no_database_url',
            'message': 'DATABASE_URL is not set.'
        }
    try:
        from .datastore_pg import _get_conn
        with _get_conn() as conn, conn.cursor() as cur:
            cur.execute('SELECT current_user, current_database(), version()')
            user, db, ver = cur.fetchone()
        return {
            'connected': True,
            'status': 'ok',
            'user': user,
            'database': db,
            'server_version': (ver or '').split('\n')[0],
        }
    except Exception as e:  # pragma: no cover - best-effort health output
        return {
            'connected': False,
            'status': 'error',
            'error': str(e),
        }


def _json_body() -> dict:
    """Return the request JSON object; a body that is not a JSON object is a 400."""
    if not request.get_data():
        return {}
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description='Request body must be a JSON object')
    return payload


def _competition_or_404(competition_id: str) -> dict:
    competition = ds.get_competition(competition_id)
    if not competition:
        abort(404, description=f'Competition {competition_id} not found')
    return competition


def _event_or_404(competition_id: str, discipline: Discipline) -> dict:
    _competition_or_404(competition_id)
    event = ds.find_event(competition_id, discipline.value)
    if not event:
        abort(404, description=f'No {discipline.display_name} event in competition {competition_id}')
    return event


def _is_relay(competition: dict) -> bool:
    return (competition.get('competition_type') or '').strip().lower() == 'relay'


def _athlete_name(row: dict) -> str:
    return f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()


def _ranked_inputs(competition_id: str) -> list[HandicapAthleteInput]:
    """Athletes of a competition with their points from every event before the laser run."""
    totals = ds.cumulative_points(competition_id)
    return [
        HandicapAthleteInput(
            athlete_id=row['athlete_id'],
            athlete_name=_athlete_name(row),
            cumulative_points=int(totals.get(row['athlete_id'], 0)),
        )
        for row in ds.list_competition_athletes(competition_id)
    ]


def _shooting_stations():
    value = current_app.config.get('SHOOTING_STATIONS')
    return int(value) if value else None


# ---------------------------------------------------------------------------
# Handicap start
# ---------------------------------------------------------------------------


@bp.route('/api/competitions/<competition_id>/handicap')
def handicap_starts(competition_id):
    """Laser run start list computed from current cumulative points."""
    competition = _competition_or_404(competition_id)
    relay = _is_relay(competition)
    try:
        config = HandicapConfig.for_age_category(
            competition.get('age_category'),
            relay=relay,
            shooting_stations=_shooting_stations(),
        )
    except ValueError as exc:
        abort(400, description=str(exc))
    starts = compute_handicap_starts(_ranked_inputs(competition_id), config)
    current_app.logger.info(
        "Computed handicap starts for competition %s: %d athletes, %d in pack",
        competition_id, len(starts), sum(1 for s in starts if s.is_pack_start),
    )
    return {
        'competitionId': competition_id,
        'pointsPerSecond': config.points_per_second,
        'packStartSeconds': config.pack_start_seconds,
        'starts': [s.to_dict() for s in starts],
    }


# ---------------------------------------------------------------------------
# Swim seeding
# ---------------------------------------------------------------------------


def _stored_seeding(event: dict) -> SeedingConfig:
    blob = event.get('config')
    if not blob:
        return SeedingConfig()
    try:
        return SeedingConfig.from_dict(blob)
    except (TypeError, KeyError, ValueError) as exc:
        abort(400, description=f'Stored swim seeding is unreadable: {exc}')


def _manual_seed_times(raw) -> dict:
    """Map ``{athleteId: "1:05.32" | hundredths}`` to hundredths; NT/blank entries are dropped."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        abort(400, description='manualSeedTimes must be an object keyed by athlete id')
    out = {}
    for athlete_id, value in raw.items():
        if isinstance(value, str):
            hundredths = parse_time(value)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            hundredths = int(value)
        else:
            hundredths = 0
        if hundredths > 0:
            out[athlete_id] = hundredths
    return out


@bp.route('/api/competitions/<competition_id>/swim-seeding', methods=['GET'])
def get_swim_seeding(competition_id):
    event = _event_or_404(competition_id, Discipline.SWIMMING)
    return _stored_seeding(event).to_dict()


@bp.route('/api/competitions/<competition_id>/swim-seeding', methods=['POST'])
def generate_seeding(competition_id):
    """Generate heats from every swim time on record, keeping the published flag."""
    event = _event_or_404(competition_id, Discipline.SWIMMING)
    payload = _json_body()
    overrides = _manual_seed_times(payload.get('manualSeedTimes'))
    existing = _stored_seeding(event)

    athletes = ds.list_competition_athletes(competition_id)
    history = ds.list_swim_times([row['athlete_id'] for row in athletes])
    swimmers = [
        SwimmerHistory(
            athlete_id=row['athlete_id'],
            gender=row.get('gender'),
            times=history.get(row['athlete_id'], []),
            first_name=row.get('first_name') or '',
            last_name=row.get('last_name') or '',
            country=row.get('country') or '',
            age_category=row.get('age_category') or '',
        )
        for row in athletes
    ]
    seeding = generate_swim_seeding(swimmers, overrides, published=existing.published)
    ds.set_event_config(event['id'], seeding.to_dict())
    current_app.logger.info(
        "Generated swim seeding for competition %s: %d swimmers in %d heats (%d manual)",
        competition_id, len(swimmers), len(seeding.heats), len(overrides),
    )
    return seeding.to_dict()


@bp.route('/api/competitions/<competition_id>/swim-seeding', methods=['PATCH'])
def update_seeding(competition_id):
    """Save hand-edited heats and/or toggle ``published``."""
    event = _event_or_404(competition_id, Discipline.SWIMMING)
    payload = _json_body()
    seeding = _stored_seeding(event)
    try:
        if 'heats' in payload:
            seeding.heats = [SeedingHeat.from_dict(h) for h in payload.get('heats') or []]
        if 'published' in payload:
            seeding.published = bool(payload.get('published'))
    except (TypeError, KeyError, ValueError) as exc:
        abort(400, description=f'Invalid heats: {exc}')
    ds.set_event_config(event['id'], seeding.to_dict())
    return seeding.to_dict()


@bp.route('/api/competitions/<competition_id>/swim-seeding', methods=['DELETE'])
def clear_seeding(competition_id):
    event = _event_or_404(competition_id, Discipline.SWIMMING)
    ds.set_event_config(event['id'], None)
    current_app.logger.info("Cleared swim seeding for competition %s", competition_id)
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Laser run targets
# ---------------------------------------------------------------------------


def _stored_targets(event: dict):
    blob = event.get('config')
    if not blob:
        return None
    try:
        return LaserRunTargetConfig.from_dict(blob)
    except (TypeError, KeyError, ValueError) as exc:
        abort(400, description=f'Stored target assignments are unreadable: {exc}')


@bp.route('/api/competitions/<competition_id>/laser-run-targets', methods=['GET'])
def get_laser_run_targets(competition_id):
    event = _event_or_404(competition_id, Discipline.LASER_RUN)
    targets = _stored_targets(event)
    if targets is None:
        return LaserRunTargetConfig(target_count=0, assignments=[]).to_dict()
    return targets.to_dict()


@bp.route('/api/competitions/<competition_id>/laser-run-targets', methods=['POST'])
def generate_laser_run_targets(competition_id):
    """Assign targets in waves by cumulative points; a new plan is unreleased."""
    event = _event_or_404(competition_id, Discipline.LASER_RUN)
    payload = _json_body()
    try:
        target_count = int(payload.get('targetCount'))
    except (TypeError, ValueError):
        abort(400, description='targetCount must be >= 1')
    try:
        targets = assign_laser_run_targets(_ranked_inputs(competition_id), target_count)
    except ValueError as exc:
        abort(400, description=str(exc))
    ds.set_event_config(event['id'], targets.to_dict())
    current_app.logger.info(
        "Assigned %d athletes to %d laser run targets for competition %s",
        len(targets.assignments), target_count, competition_id,
    )
    return targets.to_dict()


@bp.route('/api/competitions/<competition_id>/laser-run-targets', methods=['PATCH'])
def update_laser_run_targets(competition_id):
    """Save manually edited assignments; the release state is kept."""
    event = _event_or_404(competition_id, Discipline.LASER_RUN)
    targets = _stored_targets(event)
    if targets is None:
        abort(404, description='No target assignments to update')
    payload = _json_body()
    try:
        if 'assignments' in payload:
            targets.assignments = [LaserRunTargetAssignment.from_dict(a) for a in payload.get('assignments') or []]
        if 'targetCount' in payload:
            target_count = int(payload.get('targetCount'))
            if target_count < 1:
                raise ValueError('targetCount must be >= 1')
            targets.target_count = target_count
    except (TypeError, KeyError, ValueError) as exc:
        abort(400, description=f'Invalid target assignments: {exc}')
    ds.set_event_config(event['id'], targets.to_dict())
    return targets.to_dict()


@bp.route('/api/competitions/<competition_id>/laser-run-targets/release', methods=['POST'])
def release_targets(competition_id):
    event = _event_or_404(competition_id, Discipline.LASER_RUN)
    targets = _stored_targets(event)
    if targets is None:
        abort(404, description='No target assignments to release')
    payload = _json_body()
    try:
        released = release_laser_run_targets(targets, payload.get('startMode'), payload.get('totalLaps'))
    except (TypeError, ValueError) as exc:
        abort(400, description=str(exc))
    ds.set_event_config(event['id'], released.to_dict())
    current_app.logger.info(
        "Released laser run targets for competition %s (%s start, %d laps)",
        competition_id, released.start_mode, released.total_laps,
    )
    return released.to_dict()


@bp.route('/api/competitions/<competition_id>/laser-run/aggregate', methods=['POST'])
def aggregate_laser_run_route(competition_id):
    """Score every verified laser run timer record from its shooting and running splits."""
    competition = _competition_or_404(competition_id)
    event = _event_or_404(competition_id, Discipline.LASER_RUN)
    result = aggregate_laser_run_scores(
        event['id'], competition.get('age_category'), relay=_is_relay(competition)
    )
    if not result['aggregated'] and not result['failed']:
        abort(400, description='No verified laser run results to aggregate')
    if result['failed']:
        current_app.logger.warning(
            "Laser run aggregation for competition %s: %d of %d failed",
            competition_id, result['failed'], result['aggregated'] + result['failed'],
        )
    return result


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@bp.route('/api/competitions/<competition_id>/preliminary-scores/bulk-verify', methods=['POST'])
def bulk_verify(competition_id):
    """Verify preliminary scores and promote them; failures are reported per id."""
    _competition_or_404(competition_id)
    payload = _json_body()
    ids = payload.get('ids')
    if not isinstance(ids, list) or not ids:
        abort(400, description='ids must be a non-empty list')
    result = verify_preliminary_scores(competition_id, [str(i) for i in ids], payload.get('verifiedBy'))
    if result['failed']:
        current_app.logger.warning(
            "Bulk verify for competition %s: %d of %d failed",
            competition_id, result['failed'], len(ids),
        )
    return result


@bp.route('/api/scores/<discipline>/preview', methods=['POST'])
def preview_score(discipline):
    """Calculate points for a submission without saving anything."""
    payload = _json_body()
    try:
        measurement, points = score_payload(
            discipline,
            payload.get('data') or {},
            payload.get('ageCategory'),
            payload.get('gender'),
            relay=bool(payload.get('relay', False)),
        )
    except ValueError as exc:
        abort(400, description=str(exc))
    return {
        'discipline': Discipline.parse(discipline).value,
        'points': points,
        'measurement': asdict(measurement),
    }


# ---------------------------------------------------------------------------
# Standings
# ---------------------------------------------------------------------------


def _standing_row(row: dict, total: int, masters: bool) -> dict:
    standing = {
        'athlete_id': row['athlete_id'],
        'athlete_name': _athlete_name(row),
        'country': row.get('country') or '',
        'points': total,
        'total_points': total,
    }
    if masters and row.get('date_of_birth'):
        age = calculate_age(row['date_of_birth'])
        standing['total_points'], standing['masters_bonus'] = apply_masters_handicap(total, age)
        standing['age'] = age
    return standing


@bp.route('/api/competitions/<competition_id>/standings')
def standings(competition_id):
    """Overall individual ranking over every discipline plus the nation teams.

    Masters athletes with a date of birth on file get the age bonus added to
    their total before ranking.
    """
    competition = _competition_or_404(competition_id)
    masters = AgeCategory.parse(competition.get('age_category')) is AgeCategory.MASTERS
    totals = ds.cumulative_points(competition_id, exclude_disciplines=())
    rows = [
        _standing_row(row, int(totals.get(row['athlete_id'], 0)), masters)
        for row in ds.list_competition_athletes(competition_id)
    ]
    rows.sort(key=lambda r: (-r['total_points'], str(r['athlete_id'])))
    for rank, row in enumerate(rows, start=1):
        row['rank'] = rank
    return {
        'competitionId': competition_id,
        'individual': rows,
        'teams': compute_team_standings(rows),
    }
