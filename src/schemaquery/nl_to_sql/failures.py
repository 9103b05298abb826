"""Exceptions raised inside the translation pipeline and converted to failure results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(eq=False)
class NLToSQLError(Exception):
    """Base class of pipeline errors that map onto a typed failure result."""

    message: str
    suggestions: List[str] = field(default_factory=list)

    error_code = "PARSER_ERROR"

    def __post_init__(self):
        super().__init__(self.message)


@dataclass(eq=False)
class EntityNotFoundError(NLToSQLError):
    """No main entity could be resolved from the request."""

    error_code = "ENTITY_NOT_FOUND"


@dataclass(eq=False)
class NoPathFoundError(NLToSQLError):
    """A mentioned entity is not reachable from the main entity."""

    source: str = ""
    target: str = ""

    error_code = "NO_PATH_FOUND"


@dataclass(eq=False)
class ResponseParsingError(NLToSQLError):
    """A remote generator answered with something that is not the expected JSON object."""
