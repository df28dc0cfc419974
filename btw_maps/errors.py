"""
Exception hierarchy for the Bundestag map pipeline.

Every stage fails fast with one of these, except JoinError, which the
spatial join records and logs so the remaining states still render.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class LoadError(PipelineError):
    """Input file missing, unreadable, or not shaped like the expected layout."""


class CoercionError(PipelineError):
    """A vote-count cell is neither numeric nor a recognized missing marker."""

    def __init__(self, column: str, row: str, value: object):
        self.column = column
        self.row = row
        self.value = value
        super().__init__(f"Non-numeric value {value!r} in column '{column}' (row '{row}')")


class DerivationError(PipelineError):
    """A state has no recorded votes, so its percentages are undefined."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Total vote count is zero for state '{state}'")


class RecodeError(PipelineError):
    """A state id is not present in the id recode table."""

    def __init__(self, state_id: str, message: Optional[str] = None):
        self.state_id = state_id
        super().__init__(message or f"State id '{state_id}' is not in the recode table")


class JoinError(PipelineError):
    """A geometry record has no matching state result."""

    def __init__(self, name: str, state_id: str, reason: Optional[str] = None):
        self.name = name
        self.state_id = state_id
        self.reason = reason or "no state result with this name"
        super().__init__(f"Geometry '{name}' (state_id={state_id}): {self.reason}")
