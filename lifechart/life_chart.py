"""
Life chart assembly.

Turns validated birth data into the decade progression (大运), a
100-year skeleton of annual pillars, and a single JSON payload for the
LLM interpretation layer. Nothing here generates text or talks to the
network; it only supplies correctly computed labels.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from lifechart.bazi import (
    CycleLabel, Direction, Sex,
    generate_sequence, index_of, label, polarity_of,
    resolve_direction, year_label,
)

logger = logging.getLogger(__name__)

CHART_MAX_AGE = 100
DECADE_LENGTH = 10
MIN_BIRTH_YEAR = 1900
MAX_BIRTH_YEAR = 2100

# Label for the years before the first decade pillar starts
CHILDHOOD_LABEL = "童限"

PILLAR_POSITIONS = ("year", "month", "day", "hour")

_SEX_ALIASES = {
    "male": Sex.MALE, "m": Sex.MALE, "男": Sex.MALE, "乾": Sex.MALE,
    "female": Sex.FEMALE, "f": Sex.FEMALE, "女": Sex.FEMALE, "坤": Sex.FEMALE,
}

# Leading integer, the way the browser form reads "7.5" as 7
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class InvalidBirthInput(ValueError):
    """Raised when a form field cannot be turned into birth data."""

    def __init__(self, field_name: str, message: str):
        self.field_name = field_name
        super().__init__(f"{field_name}: {message}")


# ============================================================
# BIRTH INPUT
# ============================================================

class BirthForm(BaseModel):
    """Birth data as submitted by the web form."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    sex: Sex = Field(validation_alias=AliasChoices("sex", "gender"))
    birth_year: int = Field(ge=MIN_BIRTH_YEAR, le=MAX_BIRTH_YEAR)
    year_pillar: str
    month_pillar: str
    day_pillar: str
    hour_pillar: str
    start_age: int = Field(ge=1, le=CHART_MAX_AGE, description="virtual age (虚岁)")
    first_decade: Optional[str] = None
    name: Optional[str] = None

    @field_validator("sex", mode="before")
    @classmethod
    def sex_alias(cls, value):
        if isinstance(value, Sex):
            return value
        key = str(value or "").strip().lower()
        if key not in _SEX_ALIASES:
            raise ValueError(f"expected male or female, got {value!r}")
        return _SEX_ALIASES[key]

    @field_validator("birth_year", "start_age", mode="before")
    @classmethod
    def leading_integer(cls, value):
        if isinstance(value, int):
            return value
        match = _LEADING_INT.match(value) if isinstance(value, str) else None
        if match is None:
            raise ValueError(f"not an integer: {value!r}")
        return int(match.group(1))

    @field_validator("year_pillar", "month_pillar", "day_pillar", "hour_pillar")
    @classmethod
    def canonical_pillar(cls, value: str) -> str:
        return label(index_of(value))

    @field_validator("first_decade", "name", mode="before")
    @classmethod
    def blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("first_decade")
    @classmethod
    def canonical_first_decade(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else label(index_of(value))


@dataclass(frozen=True)
class BirthInput:
    sex: Sex
    birth_year: int
    year_pillar: str
    month_pillar: str
    day_pillar: str
    hour_pillar: str
    start_age: int = 1  # virtual age (虚岁)
    first_decade: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_form(cls, form: dict) -> "BirthInput":
        """
        Build birth data from raw form fields.

        Raises:
            InvalidBirthInput: naming the first field that failed
                validation (pillars must each be one of the 60 labels,
                the start age must be an integer from 1 to 100).
        """
        try:
            fields = BirthForm.model_validate(form)
        except ValidationError as e:
            error = e.errors()[0]
            field_name = str(error["loc"][0]) if error["loc"] else "form"
            raise InvalidBirthInput(field_name, error["msg"]) from None
        return cls(**fields.model_dump())

    @property
    def pillars(self) -> dict:
        return {
            "year": self.year_pillar,
            "month": self.month_pillar,
            "day": self.day_pillar,
            "hour": self.hour_pillar,
        }


# ============================================================
# DECADE PROGRESSION (大运)
# ============================================================

@dataclass(frozen=True)
class DecadeStep:
    number: int
    label: str
    age_start: int
    age_end: int

    def to_dict(self):
        return {
            "number": self.number,
            "label": self.label,
            "age_start": self.age_start,
            "age_end": self.age_end,
            "description": f"大运{self.number}: {self.label} ages {self.age_start}-{self.age_end}",
        }


def first_decade_label(month_pillar: str, direction: Direction) -> str:
    """
    The first decade pillar is the month pillar's neighbour in the
    direction of travel (next for forward, previous for backward).
    """
    return generate_sequence(month_pillar, direction, 2)[1]


def decade_progression(birth: BirthInput, max_age: int = CHART_MAX_AGE) -> list[DecadeStep]:
    """
    Compute the decade pillars from the start age up to ``max_age``.

    Each step covers DECADE_LENGTH years; there are as many steps as
    needed for the last one to reach ``max_age``.
    """
    direction = resolve_direction(birth.sex, birth.year_pillar)
    first = birth.first_decade or first_decade_label(birth.month_pillar, direction)

    span = max_age - birth.start_age + 1
    count = max(0, -(-span // DECADE_LENGTH))

    steps = []
    for i, lbl in enumerate(generate_sequence(first, direction, count)):
        age_start = birth.start_age + i * DECADE_LENGTH
        steps.append(DecadeStep(
            number=i + 1,
            label=lbl,
            age_start=age_start,
            age_end=age_start + DECADE_LENGTH - 1,
        ))

    logger.debug("decade progression %s from %s: %s",
                 direction.value, first, [s.label for s in steps])
    return steps


# ============================================================
# LIFE CHART SKELETON
# ============================================================

@dataclass(frozen=True)
class ChartRow:
    age: int
    year: int
    gan_zhi: str  # annual pillar (流年)
    da_yun: str  # decade pillar (大运), or 童限 before the start age

    def to_dict(self):
        return {"age": self.age, "year": self.year, "ganZhi": self.gan_zhi, "daYun": self.da_yun}


def year_pillar_matches(birth: BirthInput) -> bool:
    """
    True when the year pillar fits the birth year.

    Births before Li Chun (around Feb 4) carry the previous year's
    pillar, so either year is accepted.
    """
    return birth.year_pillar in (year_label(birth.birth_year), year_label(birth.birth_year - 1))


def build_life_chart(birth: BirthInput, max_age: int = CHART_MAX_AGE,
                     steps: Optional[list[DecadeStep]] = None) -> list[ChartRow]:
    """
    One row per virtual age 1..max_age; age 1 is the birth year.

    Pass ``steps`` when the decade progression is already computed.
    """
    if not year_pillar_matches(birth):
        logger.warning(
            "year pillar %s does not match birth year %d (expected %s or %s)",
            birth.year_pillar, birth.birth_year,
            year_label(birth.birth_year), year_label(birth.birth_year - 1),
        )

    if steps is None:
        steps = decade_progression(birth, max_age)
    rows = []
    for age in range(1, max_age + 1):
        year = birth.birth_year + age - 1
        if age < birth.start_age:
            da_yun = CHILDHOOD_LABEL
        else:
            da_yun = steps[(age - birth.start_age) // DECADE_LENGTH].label
        rows.append(ChartRow(age=age, year=year, gan_zhi=year_label(year), da_yun=da_yun))
    return rows


# ============================================================
# REQUEST CONTEXT
# ============================================================

def build_request_context(birth: BirthInput, max_age: int = CHART_MAX_AGE) -> dict:
    """
    Assemble the data payload sent alongside the interpretation prompt.

    This is what gets passed to the LLM: the pillars, the decade
    progression and the annual pillar for every year of the chart.
    """
    year_polarity = polarity_of(birth.year_pillar)
    direction = resolve_direction(birth.sex, year_polarity)
    steps = decade_progression(birth, max_age)

    return {
        "subject": {
            "name": birth.name,
            "sex": birth.sex.value,
            "birth_year": birth.birth_year,
        },
        "pillars": {pos: CycleLabel.parse(lbl).to_dict() for pos, lbl in birth.pillars.items()},
        "year_stem_polarity": year_polarity.value,
        "year_pillar_matches_birth_year": year_pillar_matches(birth),
        "decade": {
            "direction": direction.value,
            "start_age": birth.start_age,
            "steps": [s.to_dict() for s in steps],
        },
        "chart": [row.to_dict() for row in build_life_chart(birth, max_age, steps)],
    }
