"""Exception classes raised while sampling PostgreSQL statistics."""
from __future__ import annotations


class PgStatError(Exception):
    """Base for all errors raised by pgstat_collectd."""


class ConnectionFailure(PgStatError):
    """A connection to the database could not be opened."""


class QueryFailure(PgStatError):
    """A statistics statement failed to execute."""

    def __init__(self, message: str, statement: str | None = None):
        super().__init__(message)
        self.statement = statement


class SchemaMismatch(QueryFailure):
    """A statement returned rows of an unexpected shape."""


class ReportFailure(PgStatError):
    """A metric could not be handed to the reporting sink."""
