"""The fixed battery of statistics statements run on each cycle.

Statements are built once, at import time, into a table keyed on
``(Dialect, QueryKind)``.  Only :attr:`.QueryKind.BACKEND_ACTIVITY`
varies by dialect; PostgreSQL 9.2 replaced the ``current_query = '<IDLE>'``
sentinel in ``pg_stat_activity`` with the ``state`` column.

"""
from __future__ import annotations

import enum
from typing import Dict
from typing import Mapping
from typing import Tuple

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

from .dialect import Dialect


class QueryKind(enum.Enum):
    BACKEND_ACTIVITY = "backend activity"
    DATABASE_COUNTERS = "database counters"
    BACKGROUND_WRITER = "background writer"
    INDEX_COUNT = "index count"
    INDEX_SIZE = "index size"
    INDEX_HIT_RATIO_SOURCE = "index hit ratio source"
    CACHE_HIT_RATIO_SOURCE = "cache hit ratio source"
    STATEMENT_COUNT = "statement count"


STATEMENTS_EXTENSION = "pg_stat_statements"

EXTENSION_EXISTS = text(
    "SELECT count(*) AS count FROM pg_extension WHERE extname = :extname"
)

_activity_predicates = {
    # (active, idle)
    Dialect.MODERN: ("state <> 'idle'", "state = 'idle'"),
    Dialect.LEGACY: ("current_query <> '<IDLE>'", "current_query = '<IDLE>'"),
}

_backend_activity = (
    "SELECT "
    "(SELECT count(*) FROM pg_stat_activity WHERE %s) AS backends_active, "
    "(SELECT count(*) FROM pg_stat_activity WHERE %s) AS backends_idle"
)

_common = {
    QueryKind.DATABASE_COUNTERS: (
        "SELECT * FROM pg_stat_database WHERE datname = current_database()"
    ),
    QueryKind.BACKGROUND_WRITER: "SELECT * FROM pg_stat_bgwriter",
    QueryKind.INDEX_COUNT: (
        "SELECT count(1) AS indexes FROM pg_class WHERE relkind = 'i'"
    ),
    QueryKind.INDEX_SIZE: (
        "SELECT sum(relpages::bigint * 8192) AS size "
        "FROM pg_class WHERE reltype = 0"
    ),
    QueryKind.INDEX_HIT_RATIO_SOURCE: (
        "SELECT sum(idx_blks_hit) AS hits, sum(idx_blks_read) AS reads "
        "FROM pg_statio_user_indexes"
    ),
    QueryKind.CACHE_HIT_RATIO_SOURCE: (
        "SELECT sum(heap_blks_hit) AS hits, sum(heap_blks_read) AS reads "
        "FROM pg_statio_user_tables"
    ),
    QueryKind.STATEMENT_COUNT: (
        "SELECT sum(calls) AS calls FROM pg_stat_statements"
    ),
}


def _build_catalog() -> Dict[Tuple[Dialect, QueryKind], TextClause]:
    catalog = {}
    for dialect, predicates in _activity_predicates.items():
        catalog[(dialect, QueryKind.BACKEND_ACTIVITY)] = text(
            _backend_activity % predicates
        )
        for kind, sql in _common.items():
            catalog[(dialect, kind)] = text(sql)
    return catalog


_catalog = _build_catalog()


def get_query(dialect: Dialect, kind: QueryKind) -> TextClause:
    try:
        return _catalog[(dialect, kind)]
    except KeyError as err:
        raise ValueError(
            "no statement for dialect %r, query kind %r" % (dialect, kind)
        ) from err


def catalog_for(dialect: Dialect) -> Mapping[QueryKind, TextClause]:
    """Return the statements for one dialect, keyed on :class:`.QueryKind`."""
    return {
        kind: statement
        for (dialect_, kind), statement in _catalog.items()
        if dialect_ is dialect
    }
