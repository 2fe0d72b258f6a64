"""
QueryBuilder: applies client directives onto a SQLAlchemy ``Select``, but
only the ones the route explicitly allows.

    query = (
        QueryBuilder.for_(Post, directives)
        .allowed_filters(AllowedFilter.exact("id"), "title")
        .default_sort("-created_at")
        .allowed_sorts("created_at", "title")
        .allowed_includes("author", "comments")
        .query
    )

Every declaration validates its category against the request and applies it
right away. A rejected directive raises before anything of that category is
applied and stops the rest of the chain.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy import column as sa_column, select
from sqlalchemy.orm import load_only, selectinload
from sqlalchemy.sql import Select

from .core import (
    entity_of,
    mapped_column,
    relationship_attribute,
    resolve_and_join_column,
    table_name_of,
)
from .directives import DirectiveSet
from .filters import AllowedFilter, as_allowed_filter
from .guards import (
    guard_against_unknown_filters,
    guard_against_unknown_includes,
    guard_against_unknown_sorts,
)
from .utils import kebab_case, map_path

_logger = logging.getLogger(__name__)


def _listify(values: tuple) -> list:
    if len(values) == 1 and isinstance(values[0], (list, tuple, set, frozenset)):
        return list(values[0])
    return list(values)


class QueryBuilder:
    def __init__(self, query: Select, directives: DirectiveSet | None = None) -> None:
        # Select is generative: the caller's statement, with its where
        # criteria and loader options, is never modified by the builder.
        self.model = entity_of(query)
        self.query = query
        self.directives = directives if directives is not None else DirectiveSet()

        self._allowed_filters: list[AllowedFilter] = []
        self._allowed_sorts: list[str] = []
        self._allowed_includes: list[str] = []
        self._default_sort: list[str] = []
        self._joins: dict = {}

        if self.directives.fields:
            self._add_selected_fields()

    @classmethod
    def for_(cls, base_query: Any, directives: DirectiveSet | None = None) -> QueryBuilder:
        """Create a builder for a mapped class or an existing ``select()``."""
        if not isinstance(base_query, Select):
            base_query = select(base_query)
        return cls(base_query, directives)

    def allowed_filters(self, *filters: AllowedFilter | str) -> QueryBuilder:
        self._allowed_filters = [as_allowed_filter(f) for f in _listify(filters)]

        guard_against_unknown_filters(self.directives, self._allowed_filters)

        self._add_filters_to_query(self.directives.filters)

        return self

    def default_sort(self, *sorts: str) -> QueryBuilder:
        self._default_sort = _listify(sorts)

        if self.directives.sorts:
            return self

        self._add_sorts_to_query(self.directives.sorts_or(*self._default_sort), trusted=True)

        return self

    def allowed_sorts(self, *sorts: str) -> QueryBuilder:
        if not self.directives.sorts:
            return self

        self._allowed_sorts = _listify(sorts)

        guard_against_unknown_sorts(self.directives, self._allowed_sorts)

        self._add_sorts_to_query(self.directives.sorts)

        return self

    def allowed_includes(self, *includes: str) -> QueryBuilder:
        self._allowed_includes = _listify(includes)

        guard_against_unknown_includes(self.directives, self._allowed_includes)

        self._add_includes_to_query(self.directives.includes)

        return self

    def _add_selected_fields(self) -> None:
        fields = self.directives.fields_for(table_name_of(self.model))
        if fields is None:
            return

        columns = self._columns_for(self.model, fields)
        if columns:
            self.query = self.query.options(load_only(*columns))

    def _columns_for(self, model, fields: Iterable[str]) -> list:
        columns = []
        for name in fields:
            column = mapped_column(model, name)
            if column is None:
                _logger.warning("Ignoring unknown field %r on %s", name, model.__name__)
                continue
            columns.append(column)
        return columns

    def _add_filters_to_query(self, filters: dict[str, Any]) -> None:
        for property, value in filters.items():
            allowed_filter = self._find_filter(property)
            if allowed_filter is None:
                raise RuntimeError(f"No filter strategy for allowed filter {property!r}")

            _logger.debug("Applying filter %r with %r", allowed_filter, value)
            self.query = allowed_filter.apply(self.query, value, self._joins)

    def _find_filter(self, property: str) -> AllowedFilter | None:
        return next((f for f in self._allowed_filters if f.is_for_property(property)), None)

    def _add_sorts_to_query(self, sorts: Iterable[str], trusted: bool = False) -> None:
        for key, descending in self.directives.parsed_sorts(sorts):
            column = self._sort_column(key, trusted or key in self._allowed_sorts)

            _logger.debug("Applying sort %s %s", key, "desc" if descending else "asc")
            self.query = self.query.order_by(column.desc() if descending else column.asc())

    def _sort_column(self, key: str, traverse_relations: bool):
        column = mapped_column(self.model, key)
        if column is not None:
            return column

        # relations are only joined for keys the route named itself
        if "." in key and traverse_relations:
            column, self.query = resolve_and_join_column(self.model, key.split("."), self.query, self._joins)
            return column

        return sa_column(key)

    def _add_includes_to_query(self, includes: Iterable[str]) -> None:
        for include in includes:
            loader, related_model = self._loader_for(include)

            fields = self.directives.fields_for(map_path(include, kebab_case))
            if fields is not None:
                columns = self._columns_for(related_model, fields)
                if columns:
                    loader = loader.load_only(*columns)

            _logger.debug("Including relation %s", include)
            self.query = self.query.options(loader)

    def _loader_for(self, include: str):
        current_model = self.model
        loader = None
        for segment in include.split("."):
            attribute = relationship_attribute(current_model, segment)
            loader = selectinload(attribute) if loader is None else loader.selectinload(attribute)
            current_model = attribute.property.mapper.class_
        return loader, current_model
