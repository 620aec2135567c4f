# catalog/attributes.py
"""Closed set of resource attributes ("features") and their typed values.

Every attribute is a (name, value) pair where the name comes from a fixed
enumeration and the value has a type bound to that name. Values are stored
as strings so that numeric ones can still be range-filtered in the store.
"""
import math
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, conint
from typing_extensions import Annotated


class AttributeName(str, Enum):
    SURFACE = "surface"
    LEVEL = "level"
    ROOMS = "rooms"
    NEW = "new"


class SurfaceAttribute(BaseModel):
    name: Literal["surface"]
    value: conint(ge=0)


class LevelAttribute(BaseModel):
    name: Literal["level"]
    value: int


class RoomsAttribute(BaseModel):
    name: Literal["rooms"]
    value: conint(ge=0)


class NewAttribute(BaseModel):
    name: Literal["new"]
    value: bool


Attribute = Annotated[
    Union[SurfaceAttribute, LevelAttribute, RoomsAttribute, NewAttribute],
    Field(discriminator="name"),
]


def lower_names(items):
    """Lower-case the `name` of raw attribute payloads before tag dispatch."""
    if not isinstance(items, list):
        return items
    out = []
    for it in items:
        if isinstance(it, dict) and isinstance(it.get("name"), str):
            it = {**it, "name": it["name"].strip().lower()}
        out.append(it)
    return out


def encode_value(attr) -> str:
    if isinstance(attr.value, bool):
        return "true" if attr.value else "false"
    return str(attr.value)


def dedupe(attrs: List) -> dict:
    """Map of AttributeName -> stored string; later entries win."""
    out = {}
    for a in attrs:
        out[AttributeName(a.name)] = encode_value(a)
    return out


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_int(raw) -> Optional[int]:
    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        pass
    try:
        f = float(s)
    except ValueError:
        return None
    return int(f) if math.isfinite(f) else None


def normalize_exact_value(name: AttributeName, raw) -> Optional[str]:
    """Canonical stored form of a filter value, or None when it cannot be read."""
    if name is AttributeName.NEW:
        s = str(raw).strip().lower() if raw is not None else ""
        if s in _TRUE:
            return "true"
        if s in _FALSE:
            return "false"
        return None
    n = parse_int(raw)
    return None if n is None else str(n)
