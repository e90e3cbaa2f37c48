"""Exception hierarchy for savings jar operations."""


class SavingsJarError(Exception):
    """Base class for all errors raised by the savings jar core."""


class NotFoundError(SavingsJarError):
    """A jar id was not present in the active collection."""


class ValidationError(SavingsJarError):
    """A field failed validation on create or update; prior state is unchanged."""


class InsufficientFundsError(SavingsJarError):
    """A withdrawal exceeded the jar's current balance."""


class PersistenceError(SavingsJarError):
    """Reading or writing durable storage failed."""


class ImportFormatError(SavingsJarError):
    """An import payload was unrecognised or produced no valid records."""
