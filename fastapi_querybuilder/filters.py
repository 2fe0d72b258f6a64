"""
Filter strategies.

Every filter a client may use is declared with an :class:`AllowedFilter`
that binds one public property name to one strategy::

    AllowedFilter.exact("id")
    AllowedFilter.partial("title")
    AllowedFilter.operator("age", operators=("$gte", "$lte"))
    AllowedFilter.custom("popular", lambda query, value, property: ...)

A strategy receives the current ``Select`` and returns the filtered one.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterable

from sqlalchemy import and_, or_
from sqlalchemy.sql import Select

from .core import decode_operand, entity_of, parse_operator_value, resolve_and_join_column
from .exceptions import InvalidFilterValue
from .operators import COMPARISON_OPERATORS, LIST_OPERATORS, UNARY_OPERATORS
from .utils import is_boolean_column, split_list

FilterCallback = Callable[[Select, Any, str], Select]


def _values(value: Any) -> Any:
    """Comma separated strings, repeated parameters and nested mappings become lists."""
    if isinstance(value, Mapping):
        return list(value.values())
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str) and "," in value:
        return split_list(value)
    return value


def _check_scalars(value: Any, property: str) -> None:
    values = value if isinstance(value, list) else [value]
    if any(isinstance(v, (Mapping, list, tuple)) for v in values):
        raise InvalidFilterValue(property, "expected a value or a list of values")


def _to_boolean(value: Any) -> Any:
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


class FilterStrategy:
    """Base for strategies that filter on a mapped (possibly related) column."""

    def __call__(self, query: Select, value: Any, property: str, joins: dict | None = None) -> Select:
        joins = {} if joins is None else joins
        column, query = resolve_and_join_column(entity_of(query), property.split("."), query, joins)
        condition = self.condition(column, value, property)
        if condition is None:
            return query
        return query.where(condition)

    def condition(self, column, value: Any, property: str):
        raise NotImplementedError


class FiltersExact(FilterStrategy):
    def condition(self, column, value, property):
        value = _values(value)
        _check_scalars(value, property)
        if is_boolean_column(column):
            value = [_to_boolean(v) for v in value] if isinstance(value, list) else _to_boolean(value)
        if isinstance(value, list):
            return column.in_(value)
        return column == value


class FiltersPartial(FilterStrategy):
    def condition(self, column, value, property):
        value = _values(value)
        _check_scalars(value, property)
        if isinstance(value, list):
            if not value:
                return None
            return or_(*[COMPARISON_OPERATORS["$contains"](column, v) for v in value])
        return COMPARISON_OPERATORS["$contains"](column, value)


class FiltersOperator(FilterStrategy):
    def __init__(self, operators: Iterable[str] | None = None) -> None:
        self.operators = frozenset(operators or COMPARISON_OPERATORS)
        unknown = self.operators - COMPARISON_OPERATORS.keys()
        if unknown:
            raise ValueError(f"Unknown operators: {', '.join(sorted(unknown))}")

    def condition(self, column, value, property):
        if isinstance(value, (list, tuple)):
            conditions = [self.condition(column, v, property) for v in value]
            return conditions[0] if len(conditions) == 1 else and_(*conditions)

        # filter[age][$gte]=5 arrives as {"$gte": "5"}
        if isinstance(value, Mapping):
            conditions = [
                self._condition_for(column, str(operator), decode_operand(operand), property)
                for operator, operand in value.items()
            ]
            if not conditions:
                return None
            return conditions[0] if len(conditions) == 1 else and_(*conditions)

        operator, operand = parse_operator_value(value)
        return self._condition_for(column, operator, operand, property)

    def _condition_for(self, column, operator, operand, property):
        if operator not in self.operators:
            raise InvalidFilterValue(
                property,
                f"operator `{operator}` is not allowed, use one of "
                f"`{', '.join(sorted(self.operators))}`",
            )

        if operator in UNARY_OPERATORS:
            return COMPARISON_OPERATORS[operator](column)
        if operator in LIST_OPERATORS and not isinstance(operand, list):
            operand = split_list(str(operand))
        if isinstance(operand, list) and operator not in LIST_OPERATORS:
            raise InvalidFilterValue(property, f"operator `{operator}` takes a single value")
        _check_scalars(operand, property)
        if is_boolean_column(column):
            operand = [_to_boolean(v) for v in operand] if isinstance(operand, list) else _to_boolean(operand)
        try:
            return COMPARISON_OPERATORS[operator](column, operand)
        except (TypeError, ValueError) as e:
            raise InvalidFilterValue(property, str(e))


class FiltersCallback(FilterStrategy):
    def __init__(self, callback: FilterCallback) -> None:
        if not callable(callback):
            raise TypeError("a custom filter needs a callable")
        self.callback = callback

    def __call__(self, query, value, property, joins=None):
        return self.callback(query, value, property)


class AllowedFilter:
    def __init__(self, property: str, strategy: FilterStrategy) -> None:
        self.property = property
        self.strategy = strategy

    @classmethod
    def exact(cls, property: str) -> AllowedFilter:
        return cls(property, FiltersExact())

    @classmethod
    def partial(cls, property: str) -> AllowedFilter:
        return cls(property, FiltersPartial())

    @classmethod
    def operator(cls, property: str, operators: Iterable[str] | None = None) -> AllowedFilter:
        return cls(property, FiltersOperator(operators))

    @classmethod
    def custom(cls, property: str, callback: FilterCallback) -> AllowedFilter:
        return cls(property, FiltersCallback(callback))

    def is_for_property(self, property: str) -> bool:
        return self.property == property

    def apply(self, query: Select, value: Any, joins: dict | None = None) -> Select:
        return self.strategy(query, value, self.property, joins)

    def __repr__(self) -> str:
        return f"AllowedFilter({self.property!r}, {type(self.strategy).__name__})"


def as_allowed_filter(filter: AllowedFilter | str) -> AllowedFilter:
    """Plain property names are allowed as partial filters."""
    if isinstance(filter, AllowedFilter):
        return filter
    return AllowedFilter.partial(filter)
