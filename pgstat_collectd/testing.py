from __future__ import annotations

from typing import Any
from typing import List
from typing import Sequence
from typing import Tuple
from typing import Union


class TestBase:
    def assertEqual(self, a, b):
        assert a == b, "%r != %r" % (a, b)

    def assertIs(self, a, b):
        assert a is b, "%r is not %r" % (a, b)

    def assertRaises(self, exc_cls, fn, *arg, **kw):
        try:
            fn(*arg, **kw)
        except exc_cls as err:
            return err
        else:
            assert False, "Callable did not raise an exception"


class FakeResult:
    def __init__(self, rows):
        self.rows = rows

    def mappings(self):
        return self

    def all(self):
        return [dict(row) for row in self.rows]


_Response = Union[Sequence[dict], BaseException]


class FakeConnection:
    """Stands in for a SQLAlchemy Connection.

    Each statement is matched against ``responses`` in order; the first
    fragment found in the statement's SQL decides the rows returned, or
    the exception raised.

    """

    def __init__(self, responses: Sequence[Tuple[str, _Response]]):
        self.responses = list(responses)
        self.statements: List[Tuple[str, Any]] = []
        self.closed = False

    def execute(self, statement, parameters=None):
        sql = str(statement)
        self.statements.append((sql, parameters))
        for fragment, response in self.responses:
            if fragment in sql:
                if isinstance(response, BaseException):
                    raise response
                return FakeResult(response)
        raise AssertionError("no response set up for %r" % sql)

    def close(self):
        self.closed = True

    def set_response(self, fragment: str, response: _Response):
        self.responses = [
            (f, r) for f, r in self.responses if f != fragment
        ] + [(fragment, response)]


def postgresql_responses(
    version_num=140005,
    extension_count=1,
    **overrides: _Response,
) -> List[Tuple[str, _Response]]:
    """Responses for one full cycle against a quiet PostgreSQL server.

    Keyword arguments replace the rows for a fragment; use the fragment
    names below, e.g. ``pg_stat_bgwriter=[...]``.

    """
    responses = {
        "server_version_num": [{"server_version_num": version_num}],
        "pg_stat_activity": [{"backends_active": 3, "backends_idle": 7}],
        "pg_stat_bgwriter": [
            {
                "checkpoints_timed": 100,
                "checkpoints_req": 4,
                "buffers_checkpoint": 5000,
                "buffers_clean": 200,
                "buffers_backend": 300,
                "buffers_alloc": 9000,
            }
        ],
        "pg_stat_database": [
            {
                "datname": "test",
                "numbackends": 10,
                "xact_commit": 1000,
                "xact_rollback": 10,
                "tup_returned": 50000,
                "tup_fetched": 20000,
                "tup_inserted": 300,
                "tup_updated": 200,
                "tup_deleted": 100,
            }
        ],
        "relkind = 'i'": [{"indexes": 42}],
        "reltype = 0": [{"size": 8192 * 1024}],
        "pg_statio_user_indexes": [{"hits": 900, "reads": 100}],
        "pg_statio_user_tables": [{"hits": 9000, "reads": 1000}],
        "pg_extension": [{"count": extension_count}],
        "FROM pg_stat_statements": [{"calls": 12345}],
    }
    responses.update(overrides)
    return list(responses.items())
