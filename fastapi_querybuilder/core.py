# fastapi_querybuilder/core.py

import json
from typing import Any, Optional, Tuple

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import ColumnProperty, RelationshipProperty, aliased
from sqlalchemy.sql import Select

from .exceptions import UnknownAttribute
from .operators import COMPARISON_OPERATORS
from .utils import snake_case


def entity_of(query: Select) -> Any:
    """Return the mapped class a ``select(Model)`` statement is bound to."""
    for description in query.column_descriptions:
        entity = description.get("entity")
        if entity is not None:
            return entity
    raise TypeError("QueryBuilder needs a select() bound to a mapped class")


def table_name_of(model) -> str:
    return getattr(model, "__tablename__", None) or sa_inspect(model).local_table.name


def mapped_property(model, name: str):
    """
    Look up ``name`` among the mapper's properties of ``model`` (a mapped
    class or an alias of one). Plain Python attributes are never returned.
    """
    mapper = sa_inspect(model).mapper
    if name not in mapper.attrs:
        return None
    return mapper.attrs[name]


def mapped_column(model, name: str):
    prop = mapped_property(model, name)
    if isinstance(prop, ColumnProperty):
        return getattr(model, name)
    return None


def relationship_attribute(model, name: str):
    """
    Resolve a canonical relation name to the relationship attribute on
    ``model``: the name as given first, then its snake_case form.
    """
    for candidate in (name, snake_case(name)):
        prop = mapped_property(model, candidate)
        if isinstance(prop, RelationshipProperty):
            return getattr(model, candidate)
    raise UnknownAttribute(model, name)


def resolve_and_join_column(model, nested_keys: list[str], query: Select, joins: dict) -> Tuple[Any, Select]:
    current_model = model

    # one alias per relationship path, so two relationships to the same
    # class are joined separately
    for i, attr in enumerate(nested_keys):
        prop = mapped_property(current_model, attr)
        is_last = i == len(nested_keys) - 1

        if isinstance(prop, RelationshipProperty) and not is_last:
            path = tuple(nested_keys[: i + 1])
            if path not in joins:
                alias = aliased(prop.mapper.class_)
                joins[path] = alias
                query = query.outerjoin(alias, getattr(current_model, attr))
            current_model = joins[path]
        elif isinstance(prop, ColumnProperty) and is_last:
            return getattr(current_model, attr), query
        else:
            raise UnknownAttribute(current_model, ".".join(nested_keys))
    raise UnknownAttribute(model, ".".join(nested_keys))


def parse_operator_value(value: Any) -> Tuple[str, Optional[Any]]:
    """
    Split a ``$op:operand`` filter value. A value that does not start with ``$``
    is an equality check on the whole value. JSON operands are decoded,
    anything else stays a string.
    """
    if not isinstance(value, str) or not value.startswith("$"):
        return "$eq", value

    operator, _, operand = value.partition(":")
    if operator not in COMPARISON_OPERATORS:
        return operator, operand
    return operator, decode_operand(operand)


def decode_operand(operand: Any) -> Any:
    if not isinstance(operand, str):
        return operand
    try:
        return json.loads(operand)
    except ValueError:
        return operand
