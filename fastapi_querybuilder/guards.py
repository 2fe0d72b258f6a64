# fastapi_querybuilder/guards.py

import logging
from typing import Iterable

from .directives import DirectiveSet
from .exceptions import FilterNotAllowed, IncludeNotAllowed, SortNotAllowed
from .filters import AllowedFilter

_logger = logging.getLogger(__name__)

WILDCARD = "*"


def guard_against_unknown_filters(directives: DirectiveSet, allowed_filters: Iterable[AllowedFilter]) -> None:
    allowed = {f.property for f in allowed_filters}
    diff = set(directives.filters) - allowed
    if diff:
        _logger.warning("Rejected filters %s, allowed %s", sorted(diff), sorted(allowed))
        raise FilterNotAllowed(diff, allowed)


def guard_against_unknown_sorts(directives: DirectiveSet, allowed_sorts: Iterable[str]) -> None:
    allowed = set(allowed_sorts)
    if WILDCARD in allowed:
        return
    diff = directives.sort_keys() - allowed
    if diff:
        _logger.warning("Rejected sorts %s, allowed %s", sorted(diff), sorted(allowed))
        raise SortNotAllowed(diff, allowed)


def guard_against_unknown_includes(directives: DirectiveSet, allowed_includes: Iterable[str]) -> None:
    allowed = set(allowed_includes)
    diff = set(directives.includes) - allowed
    if diff:
        _logger.warning("Rejected includes %s, allowed %s", sorted(diff), sorted(allowed))
        raise IncludeNotAllowed(diff, allowed)
