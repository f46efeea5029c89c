from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from sqlalchemy import text

from . import sampler

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

log = logging.getLogger(__name__)

# server_version_num of PostgreSQL 9.2, where pg_stat_activity gained
# the "state" column
MODERN_VERSION_NUM = 90200

SERVER_VERSION = text(
    "SELECT current_setting('server_version_num')::integer "
    "AS server_version_num"
)


class Dialect(enum.Enum):
    LEGACY = "legacy"
    MODERN = "modern"

    @classmethod
    def for_version_num(cls, version_num: int) -> Dialect:
        if version_num >= MODERN_VERSION_NUM:
            return cls.MODERN
        else:
            return cls.LEGACY


def server_version_num(connection: Connection) -> int:
    row = sampler.execute_one(connection, SERVER_VERSION)
    return sampler.column(row, "server_version_num")


def detect_dialect(connection: Connection) -> Dialect:
    """Return the statistics view dialect for a live connection.

    Errors from the version query propagate to the caller.

    """
    version_num = server_version_num(connection)
    dialect = Dialect.for_version_num(version_num)
    log.debug("server_version_num %s, using %s dialect", version_num, dialect)
    return dialect
