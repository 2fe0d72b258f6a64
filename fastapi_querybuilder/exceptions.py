# fastapi_querybuilder/exceptions.py

from typing import Any, Iterable

from fastapi import HTTPException


class InvalidQuery(HTTPException):
    """Base class for client query parameters that were rejected."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(status_code=400, detail=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
        }


class _NotAllowed(InvalidQuery):
    kind = "directive"

    def __init__(self, offending: Iterable[str], allowed: Iterable[str]) -> None:
        self.offending = frozenset(offending)
        self.allowed = frozenset(allowed)

        message = (
            f"Requested {self.kind}(s) `{', '.join(sorted(self.offending))}` "
            f"are not allowed."
        )
        if self.allowed:
            message += f" Allowed {self.kind}(s) are `{', '.join(sorted(self.allowed))}`."
        else:
            message += f" No {self.kind}s are allowed."
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "offending": sorted(self.offending),
            "allowed": sorted(self.allowed),
        }


class FilterNotAllowed(_NotAllowed):
    kind = "filter"


class SortNotAllowed(_NotAllowed):
    kind = "sort"


class IncludeNotAllowed(_NotAllowed):
    kind = "include"


class InvalidFilterValue(InvalidQuery):
    """The value given to an allowed filter can not be applied."""

    def __init__(self, property: str, detail: str) -> None:
        self.property = property
        super().__init__(f"Invalid value for filter `{property}`: {detail}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "property": self.property}


class UnknownAttribute(AttributeError):
    """
    A declared property or relation does not exist on the mapped model.

    This is a programming error in the allow-list declaration, never the
    result of client input.
    """

    def __init__(self, model: Any, name: str) -> None:
        self.model = model
        self.name = name
        model_name = getattr(model, "__name__", repr(model))
        super().__init__(f"Could not resolve attribute '{name}' in model '{model_name}'.")
