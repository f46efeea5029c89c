"""collectd Python plugin reporting PostgreSQL statistics.

Configure in collectd.conf::

    <Plugin python>
        Import "pgstat_collectd.server.plugin"

        <Module "pgstat_collectd.server.plugin">
            Host "localhost"
            Port 5432
            User "monitor"
            Password "secret"
            DBName "app"
            SSLMode "prefer"
            Label "app-primary"
            LogLevel "info"
        </Module>
    </Plugin>

A complete SQLAlchemy URL may be given with ``URL`` in place of the
individual connection options.

"""
from __future__ import annotations

import logging

from .logging import CollectdHandler
from .. import config as config_
from .. import cycle
from .. import metrics

if True:
    import collectd  # type: ignore[import]

log = logging.getLogger("pgstat_collectd")

orchestrator_: cycle.CycleOrchestrator | None = None
_warned_unconfigured = False


def start_plugin(config):
    global orchestrator_

    config_dict = {elem.key: tuple(elem.values) for elem in config.children}
    settings = config_.Settings.from_config_dict(config_dict)

    CollectdHandler.setup("pgstat_collectd", settings.loglevel)

    sink = metrics.CollectdSink(collectd, settings.display_name, log)
    orchestrator_ = cycle.CycleOrchestrator(
        config_.create_engine(settings), sink
    )

    log.info(
        "pgstat_collectd reporting statistics for %s as %r",
        settings.make_url().render_as_string(hide_password=True),
        settings.display_name,
    )


def read(data=None):
    """Run one statistics cycle and dispatch its metrics into collectd.

    collectd calls this once per configured interval, and won't call it
    again for this plugin until the previous call returns.

    """
    global _warned_unconfigured

    if orchestrator_ is None:
        # no <Module> block, so start_plugin() was never called
        if not _warned_unconfigured:
            CollectdHandler.setup("pgstat_collectd", "info")
            log.warning(
                "pgstat_collectd has no database configured; "
                "no statistics will be reported"
            )
            _warned_unconfigured = True
        return

    orchestrator_.run_cycle()


collectd.register_config(start_plugin)
collectd.register_read(read)
