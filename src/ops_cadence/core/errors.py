# src/ops_cadence/core/errors.py

"""
Error taxonomy.

Exceptions are raised for failures of the engine or its collaborators.
Authorization outcomes (finalized, not yet open, expired, wrong status) are NOT
exceptions: they are returned as Denied decisions (see windows/validator.py).
"""

from __future__ import annotations


class CadenceError(Exception):
    """Base class for all engine errors."""


class UnsupportedFrequency(CadenceError):
    """A recurrence pattern carries a frequency tag the evaluator does not know."""

    def __init__(self, frequency: str) -> None:
        super().__init__(f"unsupported recurrence frequency: {frequency!r}")
        self.frequency = frequency


class DataAccessFailure(CadenceError):
    """The data-access collaborator could not complete a read that the whole run depends on."""


class ConflictError(CadenceError):
    """
    An atomic write lost a race (or was already applied).

    Raised by create-and-advance style operations when the row was advanced by
    someone else, or when a uniqueness constraint reports the item already exists.
    """


class MalformedRecord(CadenceError):
    """A loosely-typed external row failed validation at the data-access boundary."""

    def __init__(self, kind: str, record_id: object, problem: str) -> None:
        super().__init__(f"malformed {kind} id={record_id!r}: {problem}")
        self.kind = kind
        self.record_id = record_id
        self.problem = problem


class InstanceNotFound(CadenceError):
    def __init__(self, instance_id: object) -> None:
        super().__init__(f"scheduled instance not found: {instance_id!r}")
        self.instance_id = instance_id
