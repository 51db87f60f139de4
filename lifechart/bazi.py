"""
Sexagenary (Gan-Zhi 干支) cycle engine.

Handles:
- The 60-entry Jia-Zi table and index lookups with wraparound
- Stem polarity classification (yang / yin)
- Decade progression (大运 Da Yun) direction from sex + year stem polarity
- Forward/backward label sequences through the cycle
- Calendar year to annual pillar (流年 Liu Nian) mapping

Design principle: This module COMPUTES. It does not interpret.
Everything here is a pure function over immutable tables.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Sex(Enum):
    MALE = "male"
    FEMALE = "female"


class Direction(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"

    @property
    def step(self) -> int:
        return 1 if self is Direction.FORWARD else -1


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.polarity.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    index: int  # 0-11 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.animal})"


class InvalidLabel(ValueError):
    """Raised when a string is not one of the 60 canonical stem-branch labels."""

    def __init__(self, label):
        self.label = label
        super().__init__(f"Not a valid sexagenary label: {label!r}")


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = (
    HeavenlyStem("甲", "Jia", Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Polarity.YIN, 9),
)

EARTHLY_BRANCHES = (
    EarthlyBranch("子", "Zi", "Rat", 0),
    EarthlyBranch("丑", "Chou", "Ox", 1),
    EarthlyBranch("寅", "Yin", "Tiger", 2),
    EarthlyBranch("卯", "Mao", "Rabbit", 3),
    EarthlyBranch("辰", "Chen", "Dragon", 4),
    EarthlyBranch("巳", "Si", "Snake", 5),
    EarthlyBranch("午", "Wu", "Horse", 6),
    EarthlyBranch("未", "Wei", "Goat", 7),
    EarthlyBranch("申", "Shen", "Monkey", 8),
    EarthlyBranch("酉", "You", "Rooster", 9),
    EarthlyBranch("戌", "Xu", "Dog", 10),
    EarthlyBranch("亥", "Hai", "Pig", 11),
)

# Lookup helpers
STEM_BY_CHINESE = {s.chinese: s for s in HEAVENLY_STEMS}


# ============================================================
# THE SIXTY JIA-ZI (六十甲子)
# ============================================================
#
# Entry i pairs stem i % 10 with branch i % 12. Only 60 of the 120
# stem/branch combinations exist because stems and branches always
# share parity (甲丑 or 乙子 never occur).

SEXAGENARY_CYCLE = (
    "甲子", "乙丑", "丙寅", "丁卯", "戊辰", "己巳", "庚午", "辛未", "壬申", "癸酉",
    "甲戌", "乙亥", "丙子", "丁丑", "戊寅", "己卯", "庚辰", "辛巳", "壬午", "癸未",
    "甲申", "乙酉", "丙戌", "丁亥", "戊子", "己丑", "庚寅", "辛卯", "壬辰", "癸巳",
    "甲午", "乙未", "丙申", "丁酉", "戊戌", "己亥", "庚子", "辛丑", "壬寅", "癸卯",
    "甲辰", "乙巳", "丙午", "丁未", "戊申", "己酉", "庚戌", "辛亥", "壬子", "癸丑",
    "甲寅", "乙卯", "丙辰", "丁巳", "戊午", "己未", "庚申", "辛酉", "壬戌", "癸亥",
)

CYCLE_LENGTH = len(SEXAGENARY_CYCLE)

# 1984 was a Jia-Zi year.
EPOCH_YEAR = 1984
EPOCH_LABEL = "甲子"

_INDEX_BY_LABEL = {lbl: i for i, lbl in enumerate(SEXAGENARY_CYCLE)}


@dataclass(frozen=True)
class CycleLabel:
    """A validated stem-branch pair, e.g. 甲子."""

    stem: HeavenlyStem
    branch: EarthlyBranch

    @classmethod
    def parse(cls, text: str) -> "CycleLabel":
        idx = index_of(text)
        return cls(stem=HEAVENLY_STEMS[idx % 10], branch=EARTHLY_BRANCHES[idx % 12])

    @property
    def index(self) -> int:
        return _INDEX_BY_LABEL[str(self)]

    @property
    def polarity(self) -> Polarity:
        return self.stem.polarity

    def __str__(self):
        return self.stem.chinese + self.branch.chinese

    def to_dict(self):
        return {
            "label": str(self),
            "index": self.index,
            "stem": {
                "chinese": self.stem.chinese,
                "pinyin": self.stem.pinyin,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "chinese": self.branch.chinese,
                "pinyin": self.branch.pinyin,
                "animal": self.branch.animal,
            },
            "combined": f"{self.stem.pinyin} {self.branch.pinyin}",
        }


# ============================================================
# TABLE ACCESS
# ============================================================

def label(i: int) -> str:
    """Return the cycle label at ``i`` modulo 60 (negative indices wrap)."""
    return SEXAGENARY_CYCLE[i % CYCLE_LENGTH]


def index_of(text: str) -> int:
    """
    Return the 0-59 table position of a stem-branch label.

    Raises:
        InvalidLabel: if ``text`` is not one of the 60 canonical labels
            (invalid pairing, unknown characters, wrong length, empty).
    """
    if not isinstance(text, str):
        raise InvalidLabel(text)
    try:
        return _INDEX_BY_LABEL[text.strip()]
    except KeyError:
        raise InvalidLabel(text) from None


# ============================================================
# POLARITY AND DIRECTION
# ============================================================

def polarity_of(text: Optional[str]) -> Polarity:
    """
    Classify a label by the polarity of its stem (first character).

    Empty or unrecognized input falls back to YANG. This never raises;
    validate with index_of() first when an unknown stem must be an error.
    """
    if not isinstance(text, str) or not text:
        return Polarity.YANG
    stem = STEM_BY_CHINESE.get(text.strip()[:1])
    if stem is None:
        return Polarity.YANG
    return stem.polarity


# Yang year + Male OR Yin year + Female -> count FORWARD
# Yin year + Male OR Yang year + Female -> count BACKWARD
_DIRECTION_RULES = {
    (Sex.MALE, Polarity.YANG): Direction.FORWARD,
    (Sex.MALE, Polarity.YIN): Direction.BACKWARD,
    (Sex.FEMALE, Polarity.YANG): Direction.BACKWARD,
    (Sex.FEMALE, Polarity.YIN): Direction.FORWARD,
}


def resolve_direction(sex: Sex, year_pillar: Union[str, Polarity]) -> Direction:
    """
    Decide which way the decade progression walks the cycle.

    Args:
        sex: subject's sex
        year_pillar: the year pillar label, or its stem polarity if
            already known
    """
    polarity = year_pillar if isinstance(year_pillar, Polarity) else polarity_of(year_pillar)
    return _DIRECTION_RULES[(Sex(sex), polarity)]


# ============================================================
# SEQUENCES
# ============================================================

def generate_sequence(start_label: str, direction: Direction, count: int) -> list[str]:
    """
    Walk the cycle from ``start_label`` for ``count`` steps.

    Step 0 is the start label itself; every following step is the table
    successor (FORWARD) or predecessor (BACKWARD) of the one before,
    wrapping from 癸亥 to 甲子 and back.

    Raises:
        InvalidLabel: if ``start_label`` is not a canonical label
        ValueError: if ``count`` is negative
    """
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    start = index_of(start_label)
    step = Direction(direction).step
    return [label(start + k * step) for k in range(count)]


# ============================================================
# ANNUAL PILLAR
# ============================================================

def year_label(year: int) -> str:
    """Return the annual pillar label for a Gregorian year (e.g. 2024 -> 甲辰)."""
    offset = ((year - EPOCH_YEAR) % CYCLE_LENGTH + CYCLE_LENGTH) % CYCLE_LENGTH
    return label(_INDEX_BY_LABEL[EPOCH_LABEL] + offset)
