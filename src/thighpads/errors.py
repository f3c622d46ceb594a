"""Typed failures raised by the store and the portable-file codec.

The controller converts any ThighpadsError into an on-screen message; the CLI
converts it into a click.ClickException.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from thighpads.models import Table


class ThighpadsError(Exception):
    """Base class for every recoverable thighpads failure."""


class NotFound(ThighpadsError):
    pass


class TableNotFound(NotFound):
    def __init__(self, ref: object) -> None:
        super().__init__(f"Table not found: {ref}")
        self.ref = ref


class EntryNotFound(NotFound):
    def __init__(self, ref: object) -> None:
        super().__init__(f"Entry not found: {ref}")
        self.ref = ref


class DuplicateName(ThighpadsError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Table already exists: {name}")
        self.name = name


class InvalidInput(ThighpadsError):
    pass


class InvalidName(InvalidInput):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"Invalid table name: {name!r} (use letters, digits and underscores only)"
        )
        self.name = name


class EmptyTitle(InvalidInput):
    def __init__(self) -> None:
        super().__init__("Entry title must not be empty")


class FormatMismatch(ThighpadsError):
    pass


class IOFailure(ThighpadsError):
    pass


class PartialFailure(ThighpadsError):
    """Some part of a multi-step operation failed after other parts succeeded."""

    def __init__(self, message: str, *, table: Table | None = None) -> None:
        super().__init__(message)
        self.table = table
