from __future__ import annotations

import logging
from typing import Any
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import TYPE_CHECKING

from sqlalchemy import exc as sa_exc

from .exc import QueryFailure
from .exc import SchemaMismatch

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection
    from sqlalchemy.engine import RowMapping
    from sqlalchemy.sql.elements import TextClause

    from .queries import QueryKind

log = logging.getLogger(__name__)


def execute(
    connection: Connection,
    statement: TextClause,
    params: Optional[Mapping[str, Any]] = None,
) -> Sequence[RowMapping]:
    """Run a statement and return all of its rows as mappings.

    An empty result is returned as an empty list.  Any database error
    is raised as :class:`.QueryFailure`.

    """
    log.debug("execute: %s %r", statement, params)
    try:
        result = connection.execute(statement, params or {})
        return result.mappings().all()
    except sa_exc.SQLAlchemyError as err:
        raise QueryFailure(
            "statement failed: %s" % err, statement=str(statement)
        ) from err


def execute_one(
    connection: Connection,
    statement: TextClause,
    params: Optional[Mapping[str, Any]] = None,
) -> RowMapping:
    rows = execute(connection, statement, params)
    if not rows:
        raise SchemaMismatch(
            "statement returned no rows", statement=str(statement)
        )
    return rows[0]


def column(row: Mapping[str, Any], name: str) -> int:
    """Return a numeric column from a row as an int.

    NULL, as returned by SUM() over no rows, is read as zero.

    """
    try:
        value = row[name]
    except KeyError as err:
        raise SchemaMismatch("row has no column %r" % name) from err

    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as err:
        raise SchemaMismatch(
            "column %r has non-numeric value %r" % (name, value)
        ) from err


class Sampler:
    """Executes catalog statements for one dialect on one connection."""

    def __init__(
        self,
        connection: Connection,
        catalog: Mapping[QueryKind, TextClause],
    ):
        self.connection = connection
        self.catalog = catalog

    def rows(self, kind: QueryKind) -> Sequence[RowMapping]:
        return execute(self.connection, self.catalog[kind])

    def one(self, kind: QueryKind) -> RowMapping:
        return execute_one(self.connection, self.catalog[kind])
