# fastapi_querybuilder/operators.py

from sqlalchemy import String, cast, or_
from sqlalchemy.sql import operators

from .utils import is_enum_column, is_string_column


def _text(column):
    if is_string_column(column) and not is_enum_column(column):
        return column
    return cast(column, String)


def _eq_operator(column, value):
    if value == "":
        return column.is_(None)
    return column == value


def _ne_operator(column, value):
    if value == "":
        return column.is_not(None)
    return column != value


def _isanyof_operator(column, value):
    return or_(*[column == v for v in value])


def _escape_like(value) -> str:
    return str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains_operator(column, value):
    return _text(column).ilike(f"%{_escape_like(value)}%", escape="\\")


def _ncontains_operator(column, value):
    return ~_contains_operator(column, value)


def _startswith_operator(column, value):
    return _text(column).ilike(f"{_escape_like(value)}%", escape="\\")


def _endswith_operator(column, value):
    return _text(column).ilike(f"%{_escape_like(value)}", escape="\\")


COMPARISON_OPERATORS = {
    "$eq": _eq_operator,
    "$ne": _ne_operator,
    "$gt": operators.gt,
    "$gte": operators.ge,
    "$lt": operators.lt,
    "$lte": operators.le,
    "$in": lambda col, v: col.in_(v),
    "$contains": _contains_operator,
    "$ncontains": _ncontains_operator,
    "$startswith": _startswith_operator,
    "$endswith": _endswith_operator,
    "$isnotempty": lambda col: col.is_not(None),
    "$isempty": lambda col: col.is_(None),
    "$isanyof": _isanyof_operator,
}

# operators that take no operand
UNARY_OPERATORS = frozenset({"$isempty", "$isnotempty"})

# operators whose operand is a list of values
LIST_OPERATORS = frozenset({"$in", "$isanyof"})
