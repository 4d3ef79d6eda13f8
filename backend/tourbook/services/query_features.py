"""
Query feature-chain: turns a flat query string into a composed SELECT.

    features = (
        QueryFeatures(Tour, select(Tour), request.query_params)
        .filter()
        .sort()
        .limit_fields()
        .paginate()
    )

Filtering only ever targets mapped columns through SQLAlchemy operators, so
arbitrary operators or expressions cannot be injected from the query string.
Every step returns the same wrapper; the application order is fixed by the
caller (filter narrows before pagination, projection happens after loading so
sort fields are always available).
"""

import operator
import re
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import Select, inspect

from tourbook.core.errors import AppError

EXCLUDED_PARAMS = ("page", "sort", "limit", "fields")
OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}
DEFAULT_SORT = "-created_at"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
VERSION_FIELD = "version"

_BRACKET_KEY = re.compile(r"^(?P<field>\w+)\[(?P<op>\w+)\]$")


def _to_multi(params: Mapping[str, Any]) -> dict[str, list[str]]:
    items = params.multi_items() if hasattr(params, "multi_items") else params.items()
    result: dict[str, list[str]] = {}
    for key, value in items:
        values = value if isinstance(value, (list, tuple)) else [value]
        result.setdefault(key, []).extend(str(v) for v in values)
    return result


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


class QueryFeatures:
    def __init__(
        self,
        model,
        statement: Select,
        params: Mapping[str, Any],
        hidden: Iterable[str] = (),
    ):
        self.model = model
        self.statement = statement
        self.params = _to_multi(params)
        self.hidden = set(hidden)
        self.fields: Optional[list[str]] = None
        self.page = DEFAULT_PAGE
        self.limit = DEFAULT_LIMIT

        mapper = inspect(model)
        self._columns = {prop.key: prop.columns[0] for prop in mapper.column_attrs}

    def _first(self, key: str) -> Optional[str]:
        values = self.params.get(key)
        return values[0] if values else None

    def _attribute(self, field: str, purpose: str):
        if field not in self._columns or field in self.hidden:
            raise AppError(f"Invalid {purpose} field: {field}.", 400)
        return getattr(self.model, field)

    def coerce(self, field: str, raw: str) -> Any:
        column = self._columns[field]
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            python_type = str

        if python_type in (list, dict):
            raise AppError(f"Invalid filter field: {field}.", 400)
        try:
            if python_type is bool:
                lowered = raw.lower()
                if lowered in ("true", "1"):
                    return True
                if lowered in ("false", "0"):
                    return False
                raise ValueError(raw)
            if python_type is datetime:
                return datetime.fromisoformat(raw)
            return python_type(raw)
        except (TypeError, ValueError):
            raise AppError(f"Invalid {field}: {raw}.", 400)

    def filter(self) -> "QueryFeatures":
        for key, values in self.params.items():
            if key in EXCLUDED_PARAMS:
                continue

            match = _BRACKET_KEY.match(key)
            if match:
                field, op_name = match.group("field"), match.group("op")
                if op_name not in OPERATORS:
                    raise AppError(f"Invalid filter operator: {op_name}.", 400)
                attribute = self._attribute(field, "filter")
                for raw in values:
                    self.statement = self.statement.where(OPERATORS[op_name](attribute, self.coerce(field, raw)))
                continue

            attribute = self._attribute(key, "filter")
            coerced = [self.coerce(key, raw) for raw in values]
            if len(coerced) == 1:
                self.statement = self.statement.where(attribute == coerced[0])
            else:
                self.statement = self.statement.where(attribute.in_(coerced))
        return self

    def sort(self) -> "QueryFeatures":
        raw = self._first("sort") or DEFAULT_SORT
        clauses = []
        for token in raw.split(","):
            token = token.strip()
            if not token:
                continue
            descending = token.startswith("-")
            field = token.lstrip("-")
            attribute = self._attribute(field, "sort")
            clauses.append(attribute.desc() if descending else attribute.asc())

        # Primary key as tie-breaker keeps pages stable
        clauses.append(inspect(self.model).primary_key[0].asc())
        self.statement = self.statement.order_by(*clauses)
        return self

    def limit_fields(self) -> "QueryFeatures":
        raw = self._first("fields")
        if raw:
            self.fields = [field.strip() for field in raw.split(",") if field.strip()]
        return self

    def paginate(self) -> "QueryFeatures":
        self.page = _positive_int(self._first("page"), DEFAULT_PAGE)
        self.limit = _positive_int(self._first("limit"), DEFAULT_LIMIT)
        skip = (self.page - 1) * self.limit
        self.statement = self.statement.offset(skip).limit(self.limit)
        return self

    def project(self, document: dict) -> dict:
        """Apply the requested projection to one serialized document."""
        if self.fields:
            wanted = set(self.fields) | {"id"}
            return {key: value for key, value in document.items() if key in wanted}
        return {key: value for key, value in document.items() if key != VERSION_FIELD}
