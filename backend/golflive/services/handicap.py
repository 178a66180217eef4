"""Handicap allowance and Stableford points.

Course handicap follows the WHS formula:

    Index x (Slope / 113) + (Course Rating - Par)

rounded half-up and floored at zero (plus handicaps are not supported, a
scratch-or-better player simply receives no strokes). Allowance strokes are
spread over the holes by stroke index (1 = hardest): every hole gets
``received // 18`` and the ``received % 18`` hardest holes get one more.
"""
import math
import re
from typing import Optional, Sequence, Tuple

from golflive.errors import ValidationError

STANDARD_PAR = [4, 4, 5, 3, 5, 4, 4, 4, 3, 4, 5, 3, 4, 4, 5, 4, 3, 4]
STANDARD_STROKE_INDEX = [8, 14, 4, 16, 2, 6, 12, 10, 18, 11, 3, 17, 13, 9, 1, 5, 15, 7]

DEFAULT_COURSE_RATING = 72.0
DEFAULT_SLOPE_RATING = 113.0

_TRAILING_NUMBER = re.compile(r'^(.+?)\s+([\d.]+)$')
_TRAILING_RATING_SLOPE = re.compile(r'^(.+?)\s+([\d.]+)\s+([\d.]+)$')


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def course_handicap(index: float, slope: float, course_rating: float, total_par: int) -> int:
    """Whole strokes a player with handicap ``index`` receives on this course."""
    if index is None or index < 0:
        raise ValidationError('Handicap index must be a non-negative number')
    if slope is None or slope <= 0:
        raise ValidationError('Slope rating must be positive')
    raw = index * slope / 113 + (course_rating - total_par)
    return max(0, round_half_up(raw))


def strokes_on_hole(received: int, stroke_index: int) -> int:
    return received // 18 + (1 if stroke_index <= received % 18 else 0)


def stableford_points(strokes: int, par: int, received: int, stroke_index: int) -> int:
    diff = strokes - (par + strokes_on_hole(received, stroke_index))
    if diff <= -2:
        return 4
    if diff == -1:
        return 3
    if diff == 0:
        return 2
    if diff == 1:
        return 1
    return 0


def hole_stableford(strokes: int, par: int, received: int, hole: int,
                    stroke_indexes: Sequence[int] = STANDARD_STROKE_INDEX) -> int:
    return stableford_points(strokes, par, received, stroke_indexes[hole - 1])


def parse_player_spec(spec: str) -> Tuple[str, Optional[float]]:
    """Split "Christer Smedshammar 4.9" into name and handicap index."""
    spec = (spec or '').strip()
    m = _TRAILING_NUMBER.match(spec)
    if not m:
        return spec, None
    try:
        return m.group(1).strip(), float(m.group(2))
    except ValueError:
        return spec, None


def parse_course_spec(spec: str) -> Tuple[str, float, float]:
    """Split "El Saler 72.7 133" into course name, course rating and slope."""
    spec = (spec or '').strip()
    m = _TRAILING_RATING_SLOPE.match(spec)
    if not m:
        return spec, DEFAULT_COURSE_RATING, DEFAULT_SLOPE_RATING
    try:
        return m.group(1).strip(), float(m.group(2)), float(m.group(3))
    except ValueError:
        return spec, DEFAULT_COURSE_RATING, DEFAULT_SLOPE_RATING
