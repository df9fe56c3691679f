"""Exceptions raised by the academic lifecycle engine."""


class EngineError(Exception):
    """Base exception for engine errors."""


class CourseNotFoundError(EngineError):
    """Course is not present in the catalog mirror."""


class NotEnrolledError(EngineError):
    """Student has no active enrollment in the course."""


class AlreadyEnrolledError(EngineError):
    """Student already holds an active enrollment in the course."""


class CertificateExistsError(EngineError):
    """Student already holds a certificate of this type for the course."""


class NoPolicyDefinedError(EngineError):
    """No semester prerequisite matches the requested course and semester."""


class InvariantViolationError(EngineError):
    """A derived value fell outside its valid range.

    Indicates a logic or data-corruption bug. The surrounding transaction is
    aborted so the invalid value is never persisted.
    """


class ConcurrencyConflictError(EngineError):
    """The database could not grant the lock in time. Safe to retry."""
