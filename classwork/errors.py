"""
Exception types shared across Classwork services.
"""


class ClassworkError(Exception):
    """Base class for all Classwork errors."""


class InvalidIdentifierError(ClassworkError, ValueError):
    """An assignment, page or question id cannot be used in a cache key."""


class DefinitionError(ClassworkError):
    """An assignment definition is malformed."""


class DefinitionFetchError(ClassworkError):
    """An assignment definition could not be fetched (other than 404)."""


class SubmissionError(ClassworkError):
    """The legacy submission endpoint rejected a request."""


class StoreError(ClassworkError):
    """The remote document store failed or is not configured."""
