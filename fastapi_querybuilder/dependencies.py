# fastapi_querybuilder/dependencies.py

from typing import Callable, Optional, Type

from fastapi import Depends, Request

from .builder import QueryBuilder
from .config import settings
from .directives import DirectiveSet
from .params import QueryParams


def get_directives(request: Request) -> DirectiveSet:
    return DirectiveSet.from_query_params(request.query_params, settings)


def query_builder(model: Type, configure: Optional[Callable[[QueryBuilder], QueryBuilder]] = None):
    """
    Route dependency yielding a ``QueryBuilder`` for ``model``.

    ``configure`` receives the builder and declares what the route allows;
    a rejected directive becomes a 400 response.
    """
    def wrapper(
        directives: DirectiveSet = Depends(get_directives),
        params: QueryParams = Depends(),
    ) -> QueryBuilder:
        builder = QueryBuilder.for_(model, directives)
        if configure is not None:
            configure(builder)
        return builder
    return Depends(wrapper)
