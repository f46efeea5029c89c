"""Metric samples and their delivery to collectd."""
from __future__ import annotations

import re
from typing import Any
from typing import Dict
from typing import NamedTuple
from typing import Sequence
from typing import TYPE_CHECKING
from typing import Union

if TYPE_CHECKING:
    from logging import Logger

COLLECTD_PLUGIN_NAME = "postgresql_stats"

# collectd types.db names for the units we report; anything else
# goes out as a plain gauge
_collectd_types_by_unit = {
    "%": "percent",
    "bytes": "bytes",
}


class MetricSample(NamedTuple):
    name: str
    unit: str
    value: Union[int, float]


def type_instance_for(name: str) -> str:
    """Translate a metric name such as ``"Database/Rows/Rolled Back"``
    into a collectd type instance, ``"database.rows.rolled_back"``.

    collectd uses "/" to separate the parts of a value identifier, so it
    can't appear in the type instance.

    """
    return re.sub(r"\s+", "_", name.strip().lower()).replace("/", ".")


class Values:
    """A mirror object of collectd.Values"""

    __slots__ = (
        "type",
        "type_instance",
        "plugin",
        "plugin_instance",
        "host",
        "time",
        "interval",
        "values",
        "meta",
    )

    type: str
    type_instance: str
    plugin: str
    plugin_instance: str
    host: str
    time: float
    interval: int
    values: Sequence[Union[float, int]]
    meta: Dict[str, Any]

    def __init__(self, **kw: Any):
        for k in self.__slots__:
            setattr(self, k, kw[k] if k in kw else None)

    def _asdict(self, omit_none=False):
        return {
            k: getattr(self, k)
            for k in self.__slots__
            if not omit_none or getattr(self, k) is not None
        }

    def build(self, **kw: Any) -> Values:
        d = self._asdict()
        d.update(kw)
        return Values(**d)

    def __eq__(self, other):
        if not isinstance(other, Values):
            return False

        return [getattr(self, k) for k in self.__slots__] == [
            getattr(other, k) for k in self.__slots__
        ]

    def for_sample(self, sample: MetricSample) -> Values:
        """Return a copy of these values carrying ``sample``; every field
        not derived from the sample comes from this object."""

        return self.build(
            type=_collectd_types_by_unit.get(sample.unit, "gauge"),
            type_instance=type_instance_for(sample.name),
            values=[sample.value],
            meta={"metric": sample.name, "unit": sample.unit},
        )

    def send_to_collectd(self, collectd, log):
        data = self._asdict(omit_none=True)
        # a zero interval means collectd uses the interval from its
        # own configuration
        data.setdefault("interval", 0)
        v = collectd.Values(**data)
        log.debug("send[collectd process] -> %r", v)
        v.dispatch()

    def __repr__(self):
        return "pgstat_collectd.Values(%s)" % (
            ", ".join("%s=%r" % (k, getattr(self, k)) for k in self.__slots__),
        )


class CollectdSink:
    """Report metrics by dispatching them into the collectd process
    we're embedded in.

    Additional keyword arguments, e.g. ``host`` or ``interval``, become
    part of every value dispatched.

    """

    def __init__(
        self,
        collectd,
        plugin_instance: str,
        log: Logger,
        plugin: str = COLLECTD_PLUGIN_NAME,
        **kw: Any,
    ):
        self.collectd = collectd
        self.log = log
        self.values = Values(
            plugin=plugin, plugin_instance=plugin_instance, **kw
        )

    def __call__(self, name: str, unit: str, value: Union[int, float]):
        values_obj = self.values.for_sample(MetricSample(name, unit, value))
        values_obj.send_to_collectd(self.collectd, self.log)


class PrintSink:
    """Report metrics as lines of text, for the standalone poller."""

    def __init__(self, label: str, file_=None):
        self.label = label
        self.file_ = file_

    def __call__(self, name: str, unit: str, value: Union[int, float]):
        if isinstance(value, float):
            formatted = "%.2f" % value
        else:
            formatted = str(value)
        if unit:
            formatted += " %s" % unit
        print("[%s] %s: %s" % (self.label, name, formatted), file=self.file_)
