# catalog/features.py
"""Attribute filters resolved to a set of permitted resource ids.

The search index only carries free text, price and dates natively, so
attribute criteria are answered by the relational store and handed to the
query as an id allow-list.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from sqlalchemy import Integer, String, case, cast
from sqlalchemy.orm import Session

from .attributes import AttributeName, normalize_exact_value, parse_int
from .models import ResourceAttribute
from .utils import logger


@dataclass(frozen=True)
class ExactAttributeFilter:
    name: AttributeName
    value: str

    def matching_ids(self, db: Session) -> Set[int]:
        rows = (
            db.query(ResourceAttribute.resource_id)
            .filter(ResourceAttribute.name == self.name, ResourceAttribute.value == self.value)
            .distinct()
        )
        return {r.resource_id for r in rows}


@dataclass(frozen=True)
class RangeAttributeFilter:
    name: AttributeName
    minimum: Optional[int] = None
    maximum: Optional[int] = None

    def matching_ids(self, db: Session) -> Set[int]:
        number = _integer_value(db.get_bind().dialect.name)
        q = db.query(ResourceAttribute.resource_id).filter(ResourceAttribute.name == self.name, number.isnot(None))
        if self.minimum is not None:
            q = q.filter(number >= self.minimum)
        if self.maximum is not None:
            q = q.filter(number <= self.maximum)
        return {r.resource_id for r in q.distinct()}


def _integer_value(dialect: str):
    """`value` as an integer, NULL when it is not an integer literal."""
    value = ResourceAttribute.value
    if dialect == "postgresql":
        is_int = value.op("~")(r"^-?\d+$")
    else:
        # round-trip through INTEGER; SQLite casts junk to 0 instead of failing
        is_int = cast(cast(value, Integer), String) == value
    return case((is_int, cast(value, Integer)), else_=None)


def resolve_id_constraint(db: Session, filters: Iterable) -> Optional[Set[int]]:
    """Intersect the id sets of all filters.

    None means no attribute filter applied (every id permitted). An empty set
    means nothing can match; evaluation stops as soon as that happens.
    """
    constraint = None
    for f in filters:
        ids = f.matching_ids(db)
        constraint = ids if constraint is None else constraint & ids
        if not constraint:
            logger.debug("Attribute filter %s emptied the id constraint", f)
            return set()
    return constraint


def filters_from_params(
    exact: Optional[dict] = None,
    ranges: Optional[dict] = None,
) -> List:
    """Build filters from raw query-string values.

    `exact` maps AttributeName -> raw value; `ranges` maps AttributeName ->
    (raw_min, raw_max). Values that cannot be read are dropped.
    """
    out = []
    for name, raw in (exact or {}).items():
        if raw is None or not str(raw).strip():
            continue
        value = normalize_exact_value(name, raw)
        if value is not None:
            out.append(ExactAttributeFilter(name, value))
    for name, (raw_min, raw_max) in (ranges or {}).items():
        lo, hi = parse_int(raw_min), parse_int(raw_max)
        if lo is None and hi is None:
            continue
        out.append(RangeAttributeFilter(name, lo, hi))
    return out
