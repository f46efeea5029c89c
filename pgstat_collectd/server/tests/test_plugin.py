import importlib
import logging
import sys
from unittest import mock

import pytest

from ... import testing


class PluginTest(testing.TestBase):
    @pytest.fixture
    def plugin_fixture(self):
        collectd = mock.Mock()
        with mock.patch.dict(sys.modules, {"collectd": collectd}):
            sys.modules.pop("pgstat_collectd.server.plugin", None)
            sys.modules.pop("pgstat_collectd.server.logging", None)
            plugin = importlib.import_module("pgstat_collectd.server.plugin")

            yield plugin, collectd

        log = logging.getLogger("pgstat_collectd")
        for handler in list(log.handlers):
            log.removeHandler(handler)
        log.setLevel(logging.NOTSET)

    def _config(self, **kw):
        return mock.Mock(
            children=[
                mock.Mock(key=key, values=[value]) for key, value in kw.items()
            ]
        )

    def test_registers_callbacks(self, plugin_fixture):
        plugin, collectd = plugin_fixture

        self.assertEqual(
            collectd.register_config.mock_calls,
            [mock.call(plugin.start_plugin)],
        )
        self.assertEqual(
            collectd.register_read.mock_calls, [mock.call(plugin.read)]
        )

    def test_start_and_read(self, plugin_fixture):
        plugin, collectd = plugin_fixture

        conn = testing.FakeConnection(testing.postgresql_responses())
        sqla_engine = mock.Mock(connect=mock.Mock(return_value=conn))

        with mock.patch.object(
            plugin.config_, "create_engine", return_value=sqla_engine
        ) as create_engine:
            plugin.start_plugin(
                self._config(
                    Host="db1", Port=5433.0, DBName="app", LogLevel="warn"
                )
            )

        settings = create_engine.mock_calls[0][1][0]
        self.assertEqual(settings.host, "db1")
        self.assertEqual(settings.port, 5433)
        self.assertEqual(
            logging.getLogger("pgstat_collectd").level, logging.WARN
        )

        plugin.read()

        assert conn.closed
        dispatched = collectd.Values.call_args_list
        self.assertEqual(len(dispatched), 20)
        self.assertEqual(
            dispatched[0],
            mock.call(
                type="gauge",
                type_instance="backends.active",
                plugin="postgresql_stats",
                plugin_instance="db1",
                interval=0,
                values=[3],
                meta={"metric": "Backends/Active", "unit": "connections"},
            ),
        )

    def test_read_without_config(self, plugin_fixture):
        plugin, collectd = plugin_fixture

        with mock.patch.object(plugin, "log") as mock_logger:
            plugin.read()
            plugin.read()

        self.assertEqual(
            mock_logger.warning.mock_calls,
            [
                mock.call(
                    "pgstat_collectd has no database configured; "
                    "no statistics will be reported"
                )
            ],
        )
        self.assertEqual(collectd.Values.mock_calls, [])

    def test_read_without_config_logs_to_collectd(self, plugin_fixture):
        plugin, collectd = plugin_fixture

        plugin.read()

        self.assertEqual(
            collectd.warning.mock_calls,
            [
                mock.call(
                    "[pgstat_collectd] pgstat_collectd has no database "
                    "configured; no statistics will be reported"
                )
            ],
        )

    def test_logging_handler(self, plugin_fixture):
        plugin, collectd = plugin_fixture
        from pgstat_collectd.server.logging import CollectdHandler

        CollectdHandler.setup("pgstat_collectd.test", "info")
        log = logging.getLogger("pgstat_collectd.test")

        log.info("hello %s", "world")
        log.debug("not shown")
        log.error("bad things")

        self.assertEqual(
            collectd.info.mock_calls[-1],
            mock.call("[pgstat_collectd.test] hello world"),
        )
        self.assertEqual(
            collectd.error.mock_calls,
            [mock.call("[pgstat_collectd.test] bad things")],
        )

        for handler in list(log.handlers):
            log.removeHandler(handler)
        log.setLevel(logging.NOTSET)
