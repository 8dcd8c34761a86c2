import logging

import pytest

from pentathlon import tables
from pentathlon.errors import UnknownDisciplineError
from pentathlon.models import (
    AgeCategory,
    Discipline,
    Gender,
    LaserRunTargetAssignment,
    LaserRunTargetConfig,
    SeedingAssignment,
    SeedingConfig,
    SeedingHeat,
    SwimmerHistory,
    SwimmingConfig,
)


def test_age_category_parse_is_case_insensitive():
    assert AgeCategory.parse("u17") is AgeCategory.U17
    assert AgeCategory.parse("MASTERS") is AgeCategory.MASTERS
    assert AgeCategory.parse(AgeCategory.U9) is AgeCategory.U9


def test_unknown_age_category_fails_closed_to_senior(caplog):
    caplog.set_level(logging.WARNING, logger="pentathlon.models")
    assert AgeCategory.parse("Veteran") is AgeCategory.SENIOR
    assert AgeCategory.parse(None) is AgeCategory.SENIOR
    assert any("Unknown age category 'Veteran'" in r.getMessage() for r in caplog.records)


def test_gender_parse_aliases():
    assert Gender.parse("female") is Gender.FEMALE
    assert Gender.parse("W") is Gender.FEMALE
    assert Gender.parse("m") is Gender.MALE
    assert Gender.parse("x") is Gender.MALE
    assert Gender.parse(None) is Gender.MALE


def test_discipline_parse():
    assert Discipline.parse("Laser_Run") is Discipline.LASER_RUN
    assert Discipline.SWIMMING.display_name == "Swimming"
    with pytest.raises(UnknownDisciplineError) as exc:
        Discipline.parse("curling")
    assert str(exc.value) == "Unknown discipline: curling"


def test_every_category_has_a_config_row():
    for category in AgeCategory:
        for gender in Gender:
            assert tables.swimming_config(category, gender).base_points == 250
        assert tables.laser_run_config(category).target_time_seconds > 0
        assert tables.laser_run_config(category, relay=True).target_time_seconds > 0


def test_table_rows():
    assert tables.swimming_config("U11", "F").distance_meters == 50
    assert tables.swimming_config("Masters", "F").base_time_hundredths == 9000
    assert tables.laser_run_config("U15").target_time_seconds == 460
    assert tables.laser_run_config("U17", relay=True).target_time_seconds == 460
    assert tables.laser_run_config("Masters") == tables.laser_run_config("Senior")
    assert tables.fencing_de_placements()[0] == {"place": 1, "points": 250}


def test_config_rejects_zero_increment():
    with pytest.raises(ValueError):
        SwimmingConfig(distance_meters=100, base_time_hundredths=7000, increment_hundredths=0)


def test_swimmer_history_ignores_missing_times():
    swimmer = SwimmerHistory("a1", "F", times=[7100, 0, 6900, 7300])
    assert swimmer.gender is Gender.FEMALE
    assert swimmer.best_time == 6900
    assert swimmer.average_time == pytest.approx(7100.0)
    assert SwimmerHistory("a2", "M").best_time == 0


def test_seeding_assignment_fills_seed_time():
    assert SeedingAssignment(lane=4, athlete_id="a1", seed_hundredths=6532).seed_time == "1:05.32"
    assert SeedingAssignment(lane=5, athlete_id="a2", seed_hundredths=0).seed_time == "NT"


def test_seeding_config_dict_shape():
    config = SeedingConfig(
        published=True,
        heats=[SeedingHeat(1, "F", [SeedingAssignment(lane=4, athlete_id="a1", seed_hundredths=6532, first_name="Ann")])],
    )
    data = config.to_dict()
    assert data["version"] == 1
    assert data["published"] is True
    assert data["heats"][0]["heatNumber"] == 1
    assert data["heats"][0]["assignments"][0] == {
        "lane": 4,
        "athleteId": "a1",
        "firstName": "Ann",
        "lastName": "",
        "country": "",
        "ageCategory": "",
        "gender": "",
        "seedTime": "1:05.32",
        "seedHundredths": 6532,
    }
    assert SeedingConfig.from_dict(data) == config


def test_seeding_config_versions():
    legacy = SeedingConfig.from_dict({"published": False, "heats": []})
    assert legacy.version == 1
    with pytest.raises(ValueError):
        SeedingConfig.from_dict({"version": 2, "heats": []})
    with pytest.raises(ValueError):
        SeedingConfig.from_dict({"version": "two", "heats": []})


def test_target_config_omits_unset_release_fields():
    config = LaserRunTargetConfig(
        target_count=2,
        assignments=[LaserRunTargetAssignment(1, "a1", wave=1, rank=1, points=900, athlete_name="Ann")],
    )
    data = config.to_dict()
    assert "startMode" not in data
    assert "totalLaps" not in data
    assert "releasedAt" not in data
    assert data["assignments"][0]["athleteName"] == "Ann"

    config.start_mode = "mass"
    config.total_laps = 4
    restored = LaserRunTargetConfig.from_dict(config.to_dict())
    assert restored.start_mode == "mass"
    assert restored.total_laps == 4
    assert restored.released_at is None


def test_target_config_rejects_newer_version():
    with pytest.raises(ValueError):
        LaserRunTargetConfig.from_dict({"version": 3, "targetCount": 1, "assignments": []})
