"""
exceptions.py
=============
Error taxonomy for the report pipeline.

``DataLoadError`` and ``DomainError`` abort a run.  ``EmptyGroupError`` is
recoverable: the caller decides whether to render an empty table or skip it.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by :mod:`nys_schools`."""


class DataLoadError(PipelineError, IOError):
    """A source file is unreadable or is not a delimited table."""


class DomainError(PipelineError):
    """A column required by a derivation is absent from the table schema."""

    def __init__(self, column: str, table: str = "table") -> None:
        self.column = column
        self.table = table
        super().__init__(f"Required column {column!r} missing from {table}")


class EmptyGroupError(PipelineError):
    """A requested aggregation group has no contributing rows."""
