"""
Product Inventory API — List Query Construction
==================================================

What:  Turns raw query-string values into a MongoDB filter, sort spec and
       page window.
How:   Pure functions; no I/O. The product service executes the result.

Parameter rules:
    page, limit      int ≥ 1; anything else falls back to 1 / 10
    category         exact match
    minPrice         price ≥ value   ┐ combinable into one range
    maxPrice         price ≤ value   ┘
    name             case-insensitive substring (matched literally)
    stock            stock ≥ value
    sort             "-price,name" → price desc, then name asc

Unparseable numeric filters are skipped rather than rejected. Integers beyond
the 64-bit range saturate at its bounds.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

# Largest integer BSON can encode
MAX_INT64 = 2**63 - 1

# Public field name → document field name
_FIELD_ALIASES = {"id": "_id"}


@dataclass
class ProductQuery:
    """A fully-resolved list request."""

    filter: Dict[str, Any] = field(default_factory=dict)
    sort: List[Tuple[str, int]] = field(default_factory=list)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return min((self.page - 1) * self.limit, MAX_INT64)

    def pages_for(self, total: int) -> int:
        return math.ceil(total / self.limit)

    def applied_filters(self) -> Optional[Dict[str, Any]]:
        return dict(self.filter) if self.filter else None

    def applied_sort(self) -> Optional[Dict[str, int]]:
        if not self.sort:
            return None
        reverse_aliases = {v: k for k, v in _FIELD_ALIASES.items()}
        return {reverse_aliases.get(name, name): order for name, order in self.sort}


def build_product_query(params: Mapping[str, Optional[str]]) -> ProductQuery:
    """Build a ProductQuery from the list endpoint's query parameters."""
    return ProductQuery(
        filter=build_filter(params),
        sort=parse_sort(params.get("sort")),
        page=_positive_int(params.get("page"), DEFAULT_PAGE),
        limit=_positive_int(params.get("limit"), DEFAULT_LIMIT),
    )


def build_filter(params: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    """Conjunction of every supplied criterion; absent ones don't constrain."""
    criteria: Dict[str, Any] = {}

    category = params.get("category")
    if category:
        criteria["category"] = category

    price: Dict[str, float] = {}
    min_price = _finite_float(params.get("minPrice"))
    if min_price is not None:
        price["$gte"] = min_price
    max_price = _finite_float(params.get("maxPrice"))
    if max_price is not None:
        price["$lte"] = max_price
    if price:
        criteria["price"] = price

    name = params.get("name")
    if name:
        criteria["name"] = {"$regex": re.escape(name), "$options": "i"}

    stock = _int(params.get("stock"))
    if stock is not None:
        criteria["stock"] = {"$gte": stock}

    return criteria


def parse_sort(raw: Optional[str]) -> List[Tuple[str, int]]:
    """
    Parse a comma-separated sort list. Order is preserved so later fields
    break ties among earlier ones; a repeated field keeps its first position.
    """
    if not raw:
        return []

    spec: Dict[str, int] = {}
    for token in raw.split(","):
        token = token.strip()
        order = ASCENDING
        if token.startswith("-"):
            order = DESCENDING
            token = token[1:].strip()
        elif token.startswith("+"):
            token = token[1:].strip()
        if not token:
            continue
        name = _FIELD_ALIASES.get(token, token)
        if name not in spec:
            spec[name] = order
    return list(spec.items())


def _positive_int(raw: Optional[str], default: int) -> int:
    value = _int(raw)
    if value is None or value < 1:
        return default
    return value


def _int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    # Out-of-range values saturate so the filter still encodes
    return max(-MAX_INT64 - 1, min(value, MAX_INT64))


def _finite_float(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None
