from __future__ import annotations

import logging
from typing import Any
from typing import Dict
from typing import Optional
from typing import Tuple

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine import make_url
from sqlalchemy.engine import URL
from sqlalchemy.pool import NullPool

DEFAULT_PORT = 5432

# LogLevel names accepted by the collectd plugin and the poller
LOGLEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARN,
    "warning": logging.WARN,
    "error": logging.ERROR,
}


class Settings:
    """Connection and logging settings for one monitored database."""

    __slots__ = (
        "host",
        "port",
        "user",
        "password",
        "dbname",
        "sslmode",
        "label",
        "url",
        "loglevel",
    )

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        user: Optional[str] = None,
        password: Optional[str] = None,
        dbname: Optional[str] = None,
        sslmode: Optional[str] = None,
        label: Optional[str] = None,
        url: Optional[str] = None,
        loglevel: str = "info",
    ):
        if loglevel not in LOGLEVELS:
            raise ValueError(
                "unknown loglevel %r; expected one of %s"
                % (loglevel, ", ".join(LOGLEVELS))
            )
        self.host = host
        # collectd hands over numbers as floats
        self.port = int(port)
        self.user = user
        self.password = password
        self.dbname = dbname
        self.sslmode = sslmode
        self.label = label
        self.url = url
        self.loglevel = loglevel

    @classmethod
    def from_config_dict(cls, config_dict: Dict[str, Tuple[Any, ...]]):
        """Build settings from a collectd style configuration, where each
        key maps to a tuple of values, e.g. ``{"Port": (5433,)}``.

        """
        kw = {}
        for key, values in config_dict.items():
            name = key.lower()
            if name not in cls.__slots__:
                raise ValueError("unknown configuration option %r" % key)
            if len(values) != 1:
                raise ValueError(
                    "configuration option %r takes exactly one value" % key
                )
            kw[name] = values[0]
        return cls(**kw)

    @property
    def display_name(self) -> str:
        if self.label:
            return self.label
        elif self.url:
            return make_url(self.url).host or "localhost"
        else:
            return self.host

    def make_url(self) -> URL:
        if self.url:
            return make_url(self.url)

        query = {}
        if self.sslmode:
            query["sslmode"] = self.sslmode
        return URL.create(
            "postgresql",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.dbname,
            query=query,
        )

    def __repr__(self):
        return "pgstat_collectd.Settings(%s)" % (
            ", ".join(
                "%s=%r"
                % (k, "***" if k == "password" and v is not None else v)
                for k, v in ((k, getattr(self, k)) for k in self.__slots__)
            ),
        )


def create_engine(settings: Settings) -> Engine:
    """Return an Engine that opens a new connection on every checkout
    and closes it on return, without a transaction."""

    return sa_create_engine(
        settings.make_url(),
        poolclass=NullPool,
        isolation_level="AUTOCOMMIT",
    )
