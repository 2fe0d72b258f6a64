"""
Request directives: the normalized, immutable form of the ``filter``,
``sort``, ``include`` and ``fields`` query parameters.

Parsing never raises. A directive that can not be understood (an empty
``sort=``, a ``fields[]`` without a relation name, ...) is dropped, so the
rest of the pipeline only ever has to deal with "present" or "absent".
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable

from .config import QueryBuilderSettings, settings as default_settings
from .utils import camel_case, map_path, split_list

_BRACKETED = re.compile(r"^(?P<parameter>[^\[\]]+)(?P<path>(?:\[[^\[\]]*\])+)$")
_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


def parse_sort(sort: str, marker: str = "-") -> tuple[str, bool]:
    """Return ``(key, descending)`` for a raw sort key such as ``-created_at``."""
    descending = sort.startswith(marker)
    key = sort
    while marker and key.startswith(marker):
        key = key[len(marker):]
    return key, descending


def canonical_include(name: str) -> str:
    """``author-profile.post_comments`` -> ``authorProfile.postComments``"""
    return map_path(name, camel_case)


@dataclass(frozen=True)
class DirectiveSet:
    filters: Mapping[str, Any] = field(default_factory=dict)
    sorts: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    descending_marker: str = field(default="-", compare=False)
    delimiter: str = field(default=",", compare=False)

    def __post_init__(self) -> None:
        filters = {}
        for name, value in (self.filters or {}).items():
            name = str(name).strip()
            if name:
                filters[name] = value

        sorts = tuple(s for s in split_list(list(self.sorts or ()), self.delimiter) if s.lstrip(self.descending_marker))

        includes: list[str] = []
        for name in split_list(list(self.includes or ()), self.delimiter):
            canonical = canonical_include(name)
            if canonical and canonical not in includes:
                includes.append(canonical)

        fields = {}
        for key, columns in (self.fields or {}).items():
            columns = tuple(split_list(columns if isinstance(columns, (list, tuple)) else [columns], self.delimiter))
            if key and columns:
                fields[key] = columns

        object.__setattr__(self, "filters", MappingProxyType(filters))
        object.__setattr__(self, "sorts", sorts)
        object.__setattr__(self, "includes", tuple(includes))
        object.__setattr__(self, "fields", MappingProxyType(fields))

    def __hash__(self) -> int:
        # filter values may be lists or mappings, only their names are hashed
        return hash((frozenset(self.filters), self.sorts, self.includes, tuple(self.fields.items())))

    @classmethod
    def from_query_params(
        cls,
        params: Any,
        settings: QueryBuilderSettings | None = None,
    ) -> DirectiveSet:
        """
        Build the directives from raw query parameters.

        ``params`` is a Starlette ``QueryParams`` (or any object exposing
        ``multi_items()``) or a plain mapping. Bracketed keys such as
        ``filter[title]`` and ``fields[posts]`` are unfolded; already
        structured mappings (``{"filter": {"title": "x"}}``) are accepted too.
        """
        settings = settings or default_settings

        filters: dict[str, Any] = {}
        fields: dict[str, list[str]] = {}
        sorts: list[str] = []
        includes: list[str] = []

        for key, value in _items(params):
            if key == settings.filter_parameter and isinstance(value, Mapping):
                for name, filter_value in value.items():
                    filters[str(name).strip()] = filter_value
                continue
            if key == settings.fields_parameter and isinstance(value, Mapping):
                for table, columns in value.items():
                    fields.setdefault(str(table), []).extend(split_list(columns, settings.delimiter))
                continue
            if key == settings.sort_parameter:
                sorts.extend(split_list(value, settings.delimiter))
                continue
            if key == settings.include_parameter:
                includes.extend(split_list(value, settings.delimiter))
                continue

            match = _BRACKETED.match(key)
            if match is None:
                continue
            parameter = match.group("parameter")
            path = _SEGMENT.findall(match.group("path"))

            if parameter == settings.filter_parameter:
                _assign(filters, [segment.strip() for segment in path], value)
            elif parameter == settings.fields_parameter and len(path) == 1 and path[0]:
                fields.setdefault(path[0], []).extend(split_list(value, settings.delimiter))

        return cls(
            filters=filters,
            sorts=tuple(sorts),
            includes=tuple(includes),
            fields={table: tuple(columns) for table, columns in fields.items()},
            descending_marker=settings.descending_marker,
            delimiter=settings.delimiter,
        )

    def sorts_or(self, *default: str) -> tuple[str, ...]:
        """The client sorts, or ``default`` when the client sent none."""
        if self.sorts:
            return self.sorts
        return tuple(s for s in default if s)

    def parsed_sorts(self, sorts: Iterable[str] | None = None) -> list[tuple[str, bool]]:
        return [parse_sort(s, self.descending_marker) for s in (self.sorts if sorts is None else sorts)]

    def sort_keys(self) -> set[str]:
        return {key for key, _ in self.parsed_sorts()}

    def fields_for(self, key: str) -> tuple[str, ...] | None:
        return self.fields.get(key)


def _items(params: Any) -> Iterable[tuple[str, Any]]:
    if params is None:
        return []
    if hasattr(params, "multi_items"):
        return params.multi_items()
    items = []
    for key, value in params.items():
        if isinstance(value, list):
            items.extend((key, v) for v in value)
        else:
            items.append((key, value))
    return items


def _assign(target: dict[str, Any], path: list[str], value: Any) -> None:
    name, rest = path[0], path[1:]
    if not name:
        return
    if not rest:
        existing = target.get(name)
        if existing is None:
            target[name] = value
        elif isinstance(existing, list):
            existing.append(value)
        elif not isinstance(existing, dict):
            target[name] = [existing, value]
        return
    nested = target.get(name)
    if not isinstance(nested, dict):
        nested = target[name] = {}
    _assign(nested, rest, value)
