import json
import logging

import pytest

from lifechart.bazi import Direction, Sex
from lifechart.life_chart import (
    CHILDHOOD_LABEL, BirthInput, InvalidBirthInput, build_life_chart,
    build_request_context, decade_progression, first_decade_label,
    year_pillar_matches,
)


def _form(**overrides) -> dict:
    form = {
        "name": "Alex",
        "sex": "male",
        "birth_year": "1990",
        "year_pillar": "庚午",
        "month_pillar": "己卯",
        "day_pillar": "己酉",
        "hour_pillar": "己巳",
        "start_age": "7",
    }
    form.update(overrides)
    return form


def test_from_form_parses_fields() -> None:
    birth = BirthInput.from_form(_form(year_pillar=" 庚午 ", sex="M"))

    assert birth.sex is Sex.MALE
    assert birth.birth_year == 1990
    assert birth.year_pillar == "庚午"
    assert birth.start_age == 7
    assert birth.first_decade is None
    assert birth.pillars == {"year": "庚午", "month": "己卯", "day": "己酉", "hour": "己巳"}


@pytest.mark.parametrize("value, expected", [("female", Sex.FEMALE), ("F", Sex.FEMALE), ("女", Sex.FEMALE),
                                             ("男", Sex.MALE), (Sex.MALE, Sex.MALE)])
def test_from_form_sex_aliases(value, expected: Sex) -> None:
    assert BirthInput.from_form(_form(sex=value)).sex is expected


def test_from_form_accepts_gender_key() -> None:
    form = _form()
    del form["sex"]
    form["gender"] = "Female"
    assert BirthInput.from_form(form).sex is Sex.FEMALE


@pytest.mark.parametrize("value", ["", "  ", None, "abc", "0"])
def test_from_form_rejects_missing_or_zero_start_age(value) -> None:
    with pytest.raises(InvalidBirthInput) as excinfo:
        BirthInput.from_form(_form(start_age=value))
    assert excinfo.value.field_name == "start_age"


@pytest.mark.parametrize("value, expected", [("7.5", 7), (" 12 ", 12), ("3岁", 3), (5, 5)])
def test_from_form_reads_leading_integer_start_age(value, expected: int) -> None:
    assert BirthInput.from_form(_form(start_age=value)).start_age == expected


def test_from_form_missing_pillar() -> None:
    form = _form()
    del form["day_pillar"]
    with pytest.raises(InvalidBirthInput) as excinfo:
        BirthInput.from_form(form)
    assert excinfo.value.field_name == "day_pillar"


def test_from_form_blank_first_decade_and_name_are_none() -> None:
    birth = BirthInput.from_form(_form(first_decade=" ", name=""))
    assert birth.first_decade is None
    assert birth.name is None


@pytest.mark.parametrize(
    "overrides, field_name",
    [
        ({"sex": "x"}, "sex"),
        ({"birth_year": "19x0"}, "birth_year"),
        ({"birth_year": "1800"}, "birth_year"),
        ({"month_pillar": "甲丑"}, "month_pillar"),
        ({"hour_pillar": ""}, "hour_pillar"),
        ({"start_age": "101"}, "start_age"),
        ({"start_age": "-3"}, "start_age"),
        ({"first_decade": "乙子"}, "first_decade"),
    ],
)
def test_from_form_rejects_bad_fields(overrides: dict, field_name: str) -> None:
    with pytest.raises(InvalidBirthInput) as excinfo:
        BirthInput.from_form(_form(**overrides))
    assert excinfo.value.field_name == field_name


def test_first_decade_label_neighbours_month_pillar() -> None:
    assert first_decade_label("己卯", Direction.FORWARD) == "庚辰"
    assert first_decade_label("己卯", Direction.BACKWARD) == "戊寅"
    assert first_decade_label("甲子", Direction.BACKWARD) == "癸亥"


def test_decade_progression_forward_from_month_pillar() -> None:
    steps = decade_progression(BirthInput.from_form(_form()))

    assert [s.label for s in steps[:3]] == ["庚辰", "辛巳", "壬午"]
    assert steps[0].age_start == 7
    assert steps[0].age_end == 16
    assert steps[-1].age_start <= 100 <= steps[-1].age_end
    assert len(steps) == 10


def test_decade_progression_backward_for_yang_year_female() -> None:
    steps = decade_progression(BirthInput.from_form(_form(sex="female")))
    assert [s.label for s in steps[:3]] == ["戊寅", "丁丑", "丙子"]


def test_decade_progression_uses_supplied_first_decade() -> None:
    steps = decade_progression(BirthInput.from_form(_form(first_decade="戊申", start_age="1")))
    assert [s.label for s in steps[:2]] == ["戊申", "己酉"]
    assert len(steps) == 10
    assert steps[-1].age_end == 100


def test_build_life_chart_rows() -> None:
    rows = build_life_chart(BirthInput.from_form(_form()))

    assert len(rows) == 100
    assert rows[0].age == 1
    assert rows[0].year == 1990
    assert rows[0].gan_zhi == "庚午"
    assert rows[0].da_yun == CHILDHOOD_LABEL
    assert rows[5].da_yun == CHILDHOOD_LABEL
    assert rows[6].age == 7
    assert rows[6].da_yun == "庚辰"
    assert rows[15].da_yun == "庚辰"
    assert rows[16].da_yun == "辛巳"
    assert rows[34].year == 2024
    assert rows[34].gan_zhi == "甲辰"
    assert rows[99].year == 2089
    assert rows[99].gan_zhi == "己酉"


def test_build_life_chart_no_childhood_when_start_age_is_one() -> None:
    rows = build_life_chart(BirthInput.from_form(_form(start_age="1")))
    assert all(row.da_yun != CHILDHOOD_LABEL for row in rows)


def test_year_pillar_matches_birth_year() -> None:
    assert year_pillar_matches(BirthInput.from_form(_form()))
    # Born in January 1990, before Li Chun: still a 己巳 year
    assert year_pillar_matches(BirthInput.from_form(_form(year_pillar="己巳")))
    assert not year_pillar_matches(BirthInput.from_form(_form(year_pillar="甲子")))


def test_mismatched_year_pillar_logs_warning(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="lifechart.life_chart"):
        build_life_chart(BirthInput.from_form(_form(year_pillar="甲子")))
    assert "does not match birth year 1990" in caplog.text


def test_build_request_context_is_json_serializable() -> None:
    context = build_request_context(BirthInput.from_form(_form()))

    assert context["subject"] == {"name": "Alex", "sex": "male", "birth_year": 1990}
    assert context["pillars"]["year"]["label"] == "庚午"
    assert context["pillars"]["day"]["stem"]["pinyin"] == "Ji"
    assert context["year_stem_polarity"] == "yang"
    assert context["year_pillar_matches_birth_year"] is True
    assert context["decade"]["direction"] == "forward"
    assert context["decade"]["start_age"] == 7
    assert context["decade"]["steps"][0]["label"] == "庚辰"
    assert context["chart"][0] == {"age": 1, "year": 1990, "ganZhi": "庚午", "daYun": CHILDHOOD_LABEL}

    text = json.dumps(context, ensure_ascii=False)
    assert "庚辰" in text


def test_build_request_context_computes_progression_once(caplog) -> None:
    with caplog.at_level(logging.DEBUG, logger="lifechart.life_chart"):
        build_request_context(BirthInput.from_form(_form()))
    progression_logs = [r for r in caplog.records if r.getMessage().startswith("decade progression")]
    assert len(progression_logs) == 1


def test_build_life_chart_uses_supplied_steps() -> None:
    birth = BirthInput.from_form(_form(start_age="1"))
    steps = decade_progression(birth)
    assert build_life_chart(birth, steps=steps) == build_life_chart(birth)
