# catalog/coordinates.py
"""Latitude/longitude parsing.

Accepted notations for a single value, tried in order:

  1. degrees-minutes-seconds   44°25'36.6"N, N 44 25 36.6, -26 6 35, 44°25'
  2. decimal with hemisphere   44.4268N, S 12.5, 26.1097°
  3. bare float                40.7128, -74.006

A pair may come as two separate strings or as one combined string. The
combined form is split on whitespace, commas or semicolons, and the split must
be unambiguous: exactly one separator position may yield a valid latitude on
the left and a valid longitude on the right.
"""
import math
import re
from typing import NamedTuple, Optional


class CoordinateError(ValueError):
    pass


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


LATITUDE = "latitude"
LONGITUDE = "longitude"

_LIMITS = {LATITUDE: 90.0, LONGITUDE: 180.0}
_HEMISPHERES = {LATITUDE: "NS", LONGITUDE: "EW"}

_DMS_RE = re.compile(
    r"""^
    (?P<lead>[NSEW])?\s*
    (?P<deg>[+-]?\d{1,3})
    (?:\s*[°º]|(?=\s|$|[NSEW]))
    (?:
        \s*(?P<min>\d{1,2})
        (?:\s*['’′]|(?=\s|$|[NSEW]))
        (?:
            \s*(?P<sec>\d{1,2}(?:\.\d+)?)
            (?:\s*(?:["”″]|''))?
        )?
    )?
    \s*(?P<trail>[NSEW])?
    $""",
    re.VERBOSE | re.IGNORECASE,
)

_DECIMAL_RE = re.compile(
    r"^(?P<lead>[NSEW])?\s*(?P<num>[+-]?\d+(?:\.\d+)?)\s*[°º]?\s*(?P<trail>[NSEW])?$",
    re.IGNORECASE,
)

_SEPARATOR_RE = re.compile(r"[\s,;]+")


def _hemisphere(m, kind: str) -> str:
    lead = (m.group("lead") or "").upper()
    trail = (m.group("trail") or "").upper()
    if lead and trail and lead != trail:
        raise CoordinateError(f"Invalid {kind} value")
    letter = trail or lead
    if letter and letter not in _HEMISPHERES[kind]:
        raise CoordinateError(f"Invalid {kind} value")
    return letter


def _apply_sign(value: float, negative: bool, letter: str) -> float:
    if letter in ("S", "W"):
        return -abs(value)
    if letter in ("N", "E"):
        return abs(value)
    return -value if negative else value


def _from_dms(m, kind: str) -> float:
    letter = _hemisphere(m, kind)
    deg_raw = m.group("deg")
    minutes = int(m.group("min")) if m.group("min") is not None else 0
    seconds = float(m.group("sec")) if m.group("sec") is not None else 0.0
    if minutes >= 60 or seconds >= 60:
        raise CoordinateError(f"Invalid {kind} value")
    value = abs(int(deg_raw)) + minutes / 60 + seconds / 3600
    return _apply_sign(value, deg_raw.startswith("-"), letter)


def _from_decimal(m, kind: str) -> float:
    letter = _hemisphere(m, kind)
    num = float(m.group("num"))
    return _apply_sign(abs(num), num < 0, letter)


def _from_float(s: str, kind: str) -> float:
    try:
        value = float(s)
    except ValueError:
        raise CoordinateError(f"Invalid {kind} value") from None
    if not math.isfinite(value):
        raise CoordinateError(f"Invalid {kind} value")
    return value


def parse_coordinate(raw, kind: str) -> float:
    """Parse one latitude or longitude into decimal degrees."""
    if kind not in _LIMITS:
        raise ValueError(f"unknown coordinate kind: {kind}")
    s = str(raw).strip().replace(",", ".") if raw is not None else ""
    if not s:
        raise CoordinateError(f"Invalid {kind} value")

    m = _DMS_RE.match(s)
    if m:
        value = _from_dms(m, kind)
    else:
        m = _DECIMAL_RE.match(s)
        value = _from_decimal(m, kind) if m else _from_float(s, kind)

    if abs(value) > _LIMITS[kind]:
        raise CoordinateError(f"Invalid {kind} value")
    return value


def _try(raw, kind: str) -> Optional[float]:
    try:
        return parse_coordinate(raw, kind)
    except CoordinateError:
        return None


def split_combined(combined: str) -> Coordinates:
    s = combined.strip()
    found = []
    for sep in _SEPARATOR_RE.finditer(s):
        left, right = s[:sep.start()], s[sep.end():]
        if not left or not right:
            continue
        lat, lon = _try(left, LATITUDE), _try(right, LONGITUDE)
        if lat is not None and lon is not None:
            found.append(Coordinates(lat, lon))
    if not found:
        raise CoordinateError("Invalid coordinates value")
    if len(set(found)) > 1:
        raise CoordinateError("Ambiguous coordinates value")
    return found[0]


def _blank(v) -> bool:
    return v is None or not str(v).strip()


def parse_coordinates(latitude=None, longitude=None, combined=None, partial=False) -> Optional[Coordinates]:
    """Resolve a coordinate payload.

    Returns None when nothing was supplied, or, with `partial=True` (update
    flows), when only one half of a separate pair was supplied. Raises
    CoordinateError for anything malformed or out of range.
    """
    has_lat, has_lon, has_combined = not _blank(latitude), not _blank(longitude), not _blank(combined)
    if not (has_lat or has_lon or has_combined):
        return None

    if has_lat and has_lon:
        return Coordinates(parse_coordinate(latitude, LATITUDE), parse_coordinate(longitude, LONGITUDE))

    if has_combined:
        pair = split_combined(str(combined))
        return Coordinates(
            parse_coordinate(latitude, LATITUDE) if has_lat else pair.latitude,
            parse_coordinate(longitude, LONGITUDE) if has_lon else pair.longitude,
        )

    if partial:
        return None
    if has_lat:
        raise CoordinateError("Longitude is required when latitude is provided")
    raise CoordinateError("Latitude is required when longitude is provided")


def format_coordinates(c: Coordinates) -> str:
    return f"{c.latitude!r}, {c.longitude!r}"
