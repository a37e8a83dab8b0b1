"""Translate flat HTTP query parameters into a document query.

``?jobType=full-time&salaryRange.min[gte]=40000&q=nurse&sort=-createdAt,title
&fields=title,companyName&page=2&limit=20`` becomes a filter, a case-insensitive
search across title/description/skills, a sort, a projection and a skip/limit
window. Malformed parameters never fail the request; they fall back to the
defaults below.
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from jobboard.core.database import DocumentQuery

logger = logging.getLogger(__name__)

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields", "q"})
COMPARISON_OPERATORS = frozenset({"gt", "gte", "lt", "lte"})
SEARCH_FIELDS = ("title", "description", "skills")

DEFAULT_SORT = [("createdAt", -1)]
DEFAULT_PROJECTION = {"__v": 0}
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
# Keeps skip far below the 64-bit limit of the storage wire format
MAX_PAGE = 100_000

ASCENDING = 1
DESCENDING = -1

# Stored types a filter value is cast to. Fields not listed compare as strings.
STRING = "string"
NUMBER = "number"
BOOLEAN = "boolean"
DATE = "date"

_BRACKET_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>[^\[\]]+)\]$")
_NUMBER = re.compile(r"^-?\d+(?P<fraction>\.\d+)?$")
_TRUE = frozenset({"true", "1", "yes"})
_FALSE = frozenset({"false", "0", "no"})


class InvalidQueryParamError(ValueError):
    """A query parameter could not be parsed. Never leaves this module."""


@dataclass(frozen=True)
class BuiltQuery:
    """The composed query plus the effective pagination to report to clients."""

    query: DocumentQuery
    page: int
    limit: int


def _cast_number(value: str) -> int | float:
    match = _NUMBER.match(value.strip())
    if match is None:
        raise InvalidQueryParamError(f"expected a number, got {value!r}")
    return float(match.group(0)) if match.group("fraction") else int(match.group(0))


def _cast_boolean(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise InvalidQueryParamError(f"expected true or false, got {value!r}")


def _cast_date(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise InvalidQueryParamError(f"expected an ISO 8601 date, got {value!r}") from e
    # BSON dates are UTC; a naive value is read as UTC by the driver
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


_CASTS: dict[str, Callable[[str], Any]] = {
    STRING: str,
    NUMBER: _cast_number,
    BOOLEAN: _cast_boolean,
    DATE: _cast_date,
}


def _parse_positive_int(name: str, raw: str | None) -> int:
    if raw is None:
        raise InvalidQueryParamError(f"{name} is missing")
    try:
        value = int(raw.strip())
    except ValueError as e:
        raise InvalidQueryParamError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise InvalidQueryParamError(f"{name} must be at least 1, got {value}")
    return value


def _split_list(raw: str) -> list[str]:
    return [segment.strip() for segment in raw.split(",") if segment.strip()]


class QueryFeatureBuilder:
    """Chainable builder; every step records its part and ``build()`` composes them.

    Steps that are never called contribute their defaults, so the order and
    number of calls does not change the resulting query.

    ``field_types`` maps dotted field names to ``NUMBER``, ``BOOLEAN``,
    ``DATE`` or ``STRING`` so filter values compare against what is stored.
    A value that cannot be cast drops its condition.
    """

    def __init__(
        self,
        params: Mapping[str, Any],
        base_filter: Mapping[str, Any] | None = None,
        field_types: Mapping[str, str] | None = None,
    ):
        self.params = {str(key): value for key, value in params.items()}
        self.base_filter = dict(base_filter or {})
        self.field_types = dict(field_types or {})
        self._filter: dict[str, Any] = {}
        self._search: dict[str, Any] = {}
        self._sort: list[tuple[str, int]] = list(DEFAULT_SORT)
        self._projection: dict[str, int] = dict(DEFAULT_PROJECTION)
        self._page = DEFAULT_PAGE
        self._limit = DEFAULT_PAGE_SIZE

    def _param(self, name: str) -> str | None:
        value = self.params.get(name)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    def _cast(self, field: str, value: Any) -> Any:
        """Cast a raw value to the stored type of ``field``."""
        cast = _CASTS.get(self.field_types.get(field, STRING), str)
        return cast(str(value))

    def filter(self) -> "QueryFeatureBuilder":
        """Copy non-reserved params into the filter, translating ``field[op]`` keys."""
        query_filter: dict[str, Any] = {}
        for key, value in self.params.items():
            if key in RESERVED_PARAMS:
                continue
            if key.startswith("$"):
                logger.debug(f"Dropping operator-like query key {key!r}")
                continue

            try:
                # Already-nested input, e.g. {"age": {"gt": "10"}}
                if isinstance(value, Mapping):
                    operators = {
                        f"${op}": self._cast(key, operand)
                        for op, operand in value.items()
                        if op in COMPARISON_OPERATORS
                    }
                    if operators:
                        query_filter[key] = operators
                    continue

                match = _BRACKET_KEY.match(key)
                if match and match.group("op") in COMPARISON_OPERATORS:
                    field = match.group("field")
                    if field.startswith("$") or field in RESERVED_PARAMS:
                        continue
                    operand = self._cast(field, value)
                    existing = query_filter.get(field)
                    operators = dict(existing) if isinstance(existing, dict) else {}
                    operators[f"${match.group('op')}"] = operand
                    query_filter[field] = operators
                    continue

                if key in query_filter and isinstance(query_filter[key], dict):
                    # A range on the same field was given; the range wins
                    continue
                query_filter[key] = self._cast(key, value)
            except InvalidQueryParamError as e:
                logger.debug(f"Ignoring filter {key!r}: {e}")

        self._filter = query_filter
        return self

    def sort(self) -> "QueryFeatureBuilder":
        """``sort=-createdAt,title`` → createdAt descending, then title ascending."""
        raw = self._param("sort")
        sort_keys: list[tuple[str, int]] = []
        if raw is not None:
            for segment in _split_list(raw):
                direction = ASCENDING
                if segment[0] in "-+":
                    direction = DESCENDING if segment[0] == "-" else ASCENDING
                    segment = segment[1:].strip()
                if not segment or segment.startswith("$"):
                    continue
                sort_keys.append((segment, direction))
        self._sort = sort_keys or list(DEFAULT_SORT)
        return self

    def limit_fields(self) -> "QueryFeatureBuilder":
        """``fields=title,companyName`` → inclusion projection."""
        raw = self._param("fields")
        projection: dict[str, int] = {}
        if raw is not None:
            for segment in _split_list(raw):
                if segment.startswith(("-", "$")):
                    continue
                projection[segment] = 1
        self._projection = projection or dict(DEFAULT_PROJECTION)
        return self

    def search(self) -> "QueryFeatureBuilder":
        """``q=nurse`` → case-insensitive substring match on title/description/skills."""
        term = (self._param("q") or "").strip()
        if term:
            pattern = re.escape(term)
            self._search = {
                "$or": [
                    {field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS
                ]
            }
        else:
            self._search = {}
        return self

    def paginate(self) -> "QueryFeatureBuilder":
        """Parse page/limit, falling back to page 1 and 10 per page.

        Pages past ``MAX_PAGE`` are clamped to it; they are empty either way.
        """
        try:
            self._page = min(_parse_positive_int("page", self._param("page")), MAX_PAGE)
        except InvalidQueryParamError as e:
            if self._param("page") is not None:
                logger.debug(f"Ignoring page parameter: {e}")
            self._page = DEFAULT_PAGE

        try:
            self._limit = min(_parse_positive_int("limit", self._param("limit")), MAX_PAGE_SIZE)
        except InvalidQueryParamError as e:
            if self._param("limit") is not None:
                logger.debug(f"Ignoring limit parameter: {e}")
            self._limit = DEFAULT_PAGE_SIZE
        return self

    def _composed_filter(self) -> dict[str, Any]:
        parts = [part for part in (self.base_filter, self._filter, self._search) if part]
        if not parts:
            return {}
        if len(parts) == 1:
            return dict(parts[0])
        return {"$and": parts}

    def build(self) -> BuiltQuery:
        query = DocumentQuery(
            filter=self._composed_filter(),
            sort=list(self._sort),
            projection=dict(self._projection),
            skip=(self._page - 1) * self._limit,
            limit=self._limit,
        )
        return BuiltQuery(query=query, page=self._page, limit=self._limit)


def build_query(
    params: Mapping[str, Any],
    base_filter: Mapping[str, Any] | None = None,
    field_types: Mapping[str, str] | None = None,
) -> BuiltQuery:
    """Run every step of the builder over the params."""
    return (
        QueryFeatureBuilder(params, base_filter=base_filter, field_types=field_types)
        .filter()
        .sort()
        .limit_fields()
        .search()
        .paginate()
        .build()
    )
