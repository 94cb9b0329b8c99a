"""Query-string driven filtering, sorting, field limiting and pagination.

A list endpoint hands the raw query string to ``APIFeatures`` together with a
base SQLAlchemy query and the response schema, then chains the steps it wants:

    features = APIFeatures(db.query(Tour), params, Tour, TourResponse).filter().sort().limit_fields().paginate()
    tours = features.all()

``price[gte]=500&difficulty=easy&sort=-price,ratingsAverage&fields=name,price&page=2&limit=10``
becomes ``WHERE price >= 500 AND difficulty = 'easy' ORDER BY price DESC, ratings_average ASC
LIMIT 10 OFFSET 10`` with only ``id``, ``name`` and ``price`` serialized.

Field names may be given in camelCase (as they appear on the wire) or snake_case.
Only fields exposed by the response schema can be addressed. Nothing in here
raises for bad input: unknown fields, unknown operators and operands that do not
fit the column type are dropped, and unparseable or out-of-range page/limit values
fall back to their defaults.
"""

import logging
import operator
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Union

from pydantic import BaseModel
from pydantic.alias_generators import to_snake
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Query

from app.schemas.common import INTERNAL_FIELDS

logger = logging.getLogger("tourbook")

RESERVED_PARAMS = ("page", "sort", "limit", "fields")
RANGE_OPERATORS = {"gte": operator.ge, "gt": operator.gt, "lte": operator.le, "lt": operator.lt}
DEFAULT_SORT = "-createdAt"
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 100
# Largest value a 64-bit signed INTEGER column or LIMIT/OFFSET can bind.
MAX_SQL_INT = 2**63 - 1

ASC = "asc"
DESC = "desc"

_NESTED_KEY = re.compile(r"^(\w+)\[(\w+)\]$")


@dataclass(frozen=True)
class Equality:
    field: str
    value: Any


@dataclass(frozen=True)
class Range:
    field: str
    op: str
    operand: Any


FilterTerm = Union[Equality, Range]


def parse_query_string(pairs: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """Nest bracketed keys: ``[("price[gte]", "5")]`` -> ``{"price": {"gte": "5"}}``.

    Plain keys keep their last value.
    """
    parsed: dict[str, Any] = {}
    for key, value in pairs:
        match = _NESTED_KEY.match(key)
        if match is None:
            parsed[key] = value
            continue
        field, op = match.groups()
        nested = parsed.get(field)
        if not isinstance(nested, dict):
            nested = parsed[field] = {}
        nested[op] = value
    return parsed


def _positive_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if 0 < value <= MAX_SQL_INT else default


def _coerce(column_type: Any, raw: Any) -> Any:
    """Convert a query-string operand to the column's Python type. Raises ValueError if it doesn't fit."""
    if not isinstance(raw, str):
        return raw
    try:
        python_type = column_type.python_type
    except NotImplementedError:
        raise ValueError(f"cannot compare against {column_type!r}") from None

    if python_type is bool:
        lowered = raw.lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    if python_type is datetime:
        return datetime.fromisoformat(raw)
    if python_type is date:
        return date.fromisoformat(raw)
    if python_type is int:
        number = float(raw)
        if not number.is_integer():
            return number
        if abs(number) > MAX_SQL_INT:
            raise ValueError(f"out of range for an integer column: {raw!r}")
        return int(number)
    if python_type is float:
        return float(raw)
    if python_type in (dict, list):
        raise ValueError("structured columns are not filterable")
    return raw


class APIFeatures:
    """Chainable builder turning query-string parameters into a bounded read."""

    def __init__(
        self,
        query: Query,
        query_string: Mapping[str, Any],
        model: type,
        schema: type[BaseModel],
    ) -> None:
        self.query = query
        self.query_string = query_string
        self.model = model
        self.schema = schema
        self.columns = sa_inspect(model).columns
        self.fields = frozenset(schema.model_fields)

        self.filter_terms: list[FilterTerm] = []
        self.sort_keys: list[tuple[str, str]] = []
        self.projected_fields: frozenset[str] | None = None
        self.page = DEFAULT_PAGE
        self.page_size = DEFAULT_PAGE_SIZE
        self.skip = 0

    def _resolve(self, name: str, *, column: bool = True) -> str | None:
        field = to_snake(name.strip())
        if field not in self.fields:
            return None
        if column and field not in self.columns:
            return None
        return field

    def filter(self) -> "APIFeatures":
        terms: list[FilterTerm] = []
        for key, value in self.query_string.items():
            if key in RESERVED_PARAMS:
                continue
            field = self._resolve(key)
            if field is None:
                logger.debug("Ignoring filter on unknown field %r", key)
                continue
            column_type = self.columns[field].type
            try:
                if isinstance(value, Mapping):
                    for op, operand in value.items():
                        if op not in RANGE_OPERATORS:
                            logger.debug("Ignoring unsupported operator %r on %r", op, key)
                            continue
                        terms.append(Range(field, op, _coerce(column_type, operand)))
                else:
                    terms.append(Equality(field, _coerce(column_type, value)))
            except ValueError as e:
                logger.debug("Ignoring filter %r=%r: %s", key, value, e)

        for term in terms:
            attribute = getattr(self.model, term.field)
            if isinstance(term, Range):
                self.query = self.query.filter(RANGE_OPERATORS[term.op](attribute, term.operand))
            else:
                self.query = self.query.filter(attribute == term.value)
        self.filter_terms = terms
        return self

    def sort(self) -> "APIFeatures":
        raw = self.query_string.get("sort") or DEFAULT_SORT
        keys: list[tuple[str, str]] = []
        for part in str(raw).split(","):
            part = part.strip()
            direction = DESC if part.startswith("-") else ASC
            field = self._resolve(part.lstrip("-+")) if part else None
            if field is None:
                continue
            keys.append((field, direction))

        for field, direction in keys:
            attribute = getattr(self.model, field)
            self.query = self.query.order_by(attribute.desc() if direction == DESC else attribute.asc())
        self.sort_keys = keys
        return self

    def limit_fields(self) -> "APIFeatures":
        raw = self.query_string.get("fields")
        if raw:
            requested = {self._resolve(part, column=False) for part in str(raw).split(",")}
            requested.discard(None)
            if requested:
                self.projected_fields = frozenset(requested | {"id"})
        return self

    def paginate(self) -> "APIFeatures":
        self.page = _positive_int(self.query_string.get("page"), DEFAULT_PAGE)
        self.page_size = _positive_int(self.query_string.get("limit"), DEFAULT_PAGE_SIZE)
        if (self.page - 1) * self.page_size > MAX_SQL_INT:
            self.page = DEFAULT_PAGE
        self.skip = (self.page - 1) * self.page_size
        self.query = self.query.offset(self.skip).limit(self.page_size)
        return self

    @property
    def projection(self) -> frozenset[str]:
        """Fields each record is serialized with."""
        if self.projected_fields is not None:
            return self.projected_fields
        return self.fields - INTERNAL_FIELDS

    def serialize(self, record: Any) -> dict[str, Any]:
        return self.schema.model_validate(record).model_dump(include=set(self.projection), by_alias=True, mode="json")

    def all(self) -> list[dict[str, Any]]:
        """Run the query and serialize every record with the projection applied."""
        return [self.serialize(record) for record in self.query.all()]
