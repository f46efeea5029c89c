from __future__ import annotations

import logging
import sys

from .. import __version__
from ..config import LOGLEVELS

if True:
    import collectd  # type: ignore[import]

_the_handler: CollectdHandler | None = None


class CollectdHandler(logging.Handler):
    """Route Python logging into collectd's own log.

    collectd.debug() only does something in a debug build of collectd,
    so debug records are sent to collectd.info().

    """

    levels = {
        logging.DEBUG: collectd.info,
        logging.INFO: collectd.info,
        logging.WARN: collectd.warning,
        logging.ERROR: collectd.error,
        logging.CRITICAL: collectd.error,
    }

    def emit(self, record):
        fn = self.levels.get(record.levelno, collectd.info)
        fn("[%s] %s" % (record.name, self.format(record)))

    @classmethod
    def setup(cls, name, config_loglevel):
        global _the_handler
        if _the_handler is None:
            _the_handler = CollectdHandler()
            collectd.info(
                "[pgstat-collectd] pgstat_collectd version: %s" % __version__
            )
            collectd.info("[pgstat-collectd] Python version: %s" % sys.version)

        log = logging.getLogger(name)
        if _the_handler not in log.handlers:
            log.addHandler(_the_handler)
        log.setLevel(LOGLEVELS[config_loglevel])
