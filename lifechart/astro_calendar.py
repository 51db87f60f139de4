"""
Solar term utilities for the decade progression.

The first decade pillar starts at an age fixed by how far birth lies
from the nearest Jie (节) solar term, counted in the direction the
progression travels.
"""

import os
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Union

import swisseph as swe

from lifechart.bazi import Direction

# Without data files Swiss Ephemeris falls back to the built-in
# Moshier ephemeris, which is plenty for solar terms.
_ephe_path = os.environ.get("SE_EPHE_PATH", str(Path(__file__).parent.parent / "ephe"))
swe.set_ephe_path(_ephe_path)

# Traditional rule: 3 days between birth and the nearest Jie = 1 year
DAYS_PER_YEAR_OF_LUCK = 3

# Consecutive Jie are at most ~31.5 days apart (Sun near aphelion)
_MAX_JIE_GAP_DAYS = 33

# Sun's ecliptic longitude at each Jie, with the month branch it opens.
# (longitude, name, branch)
JIE_TERMS = (
    (285, "小寒", "丑"),
    (315, "立春", "寅"),
    (345, "惊蛰", "卯"),
    (15, "清明", "辰"),
    (45, "立夏", "巳"),
    (75, "芒种", "午"),
    (105, "小暑", "未"),
    (135, "立秋", "申"),
    (165, "白露", "酉"),
    (195, "寒露", "戌"),
    (225, "立冬", "亥"),
    (255, "大雪", "子"),
)


def _crossings_after(jd: float) -> list[tuple[float, str, str]]:
    """First crossing of every Jie longitude at or after ``jd``."""
    return [(swe.solcross_ut(float(lon), jd, 0), name, branch) for lon, name, branch in JIE_TERMS]


def find_jie_dates(year: int) -> list[dict]:
    """
    List the Jie that fall inside a Gregorian year, in date order.

    Each entry has name, branch, month, day, hour_utc and jd.
    """
    terms = []
    for jd, name, branch in _crossings_after(swe.julday(year, 1, 1, 0)):
        y, m, d, h = swe.revjul(jd)
        if y != year:
            continue
        terms.append({"name": name, "branch": branch, "month": m, "day": d,
                      "hour_utc": round(h, 2), "jd": jd})
    return sorted(terms, key=lambda t: t["jd"])


def next_jie(jd: float) -> float:
    """Julian Day of the first Jie after ``jd``."""
    return min(cross for cross, _, _ in _crossings_after(jd) if cross > jd)


def previous_jie(jd: float) -> float:
    """Julian Day of the last Jie before ``jd``."""
    earlier = [cross for cross, _, _ in _crossings_after(jd - _MAX_JIE_GAP_DAYS) if cross < jd]
    if not earlier:
        raise ValueError(f"No Jie found in the {_MAX_JIE_GAP_DAYS} days before JD {jd}")
    return max(earlier)


def _to_julian_day(birth: Union[date, datetime]) -> float:
    hour = 0.0
    if isinstance(birth, datetime):
        if birth.tzinfo is not None:
            birth = birth.astimezone(timezone.utc)
        hour = birth.hour + birth.minute / 60.0 + birth.second / 3600.0
    return swe.julday(birth.year, birth.month, birth.day, hour)


def estimate_start_age(birth: Union[date, datetime, str], direction: Direction) -> int:
    """
    Estimate the virtual age at which the first decade pillar begins.

    Counts the days from birth to the next Jie (forward) or the previous
    Jie (backward) and divides by 3. Never returns less than 1.

    Args:
        birth: birth date, datetime or ISO format string. Aware
            datetimes are converted to UTC; naive ones are taken as UTC.
        direction: decade progression direction
    """
    if isinstance(birth, str):
        birth = datetime.fromisoformat(birth)
    birth_jd = _to_julian_day(birth)

    if Direction(direction) is Direction.FORWARD:
        days_to_jie = next_jie(birth_jd) - birth_jd
    else:
        days_to_jie = birth_jd - previous_jie(birth_jd)
    return max(1, round(days_to_jie / DAYS_PER_YEAR_OF_LUCK))
