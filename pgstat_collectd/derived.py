"""Convert cumulative statistics counters into per-interval values.

PostgreSQL's statistics views report totals accumulated since the last
statistics reset.  A :class:`.DerivedMetricEngine` remembers the previous
cycle's totals so that each cycle reports only what happened during the
interval.  One engine is kept for the lifetime of the collector; creating
a new engine starts over with no baselines.

"""
from __future__ import annotations

import logging
from typing import Callable
from typing import Dict
from typing import Hashable
from typing import NamedTuple
from typing import Optional
from typing import Union

from .metrics import MetricSample

log = logging.getLogger(__name__)

Number = Union[int, float]

ReportMetric = Callable[[str, str, Number], None]


class RatioSample(NamedTuple):
    hits: int
    reads: int

    def decreased_from(self, previous: RatioSample) -> bool:
        return self.hits < previous.hits or self.reads < previous.reads


class DerivedMetricEngine:
    counter_state: Dict[str, Number]
    ratio_state: Dict[Hashable, RatioSample]

    def __init__(self, sink: Optional[ReportMetric] = None):
        self.sink = sink
        self.counter_state = {}
        self.ratio_state = {}

    def report_metric(self, name: str, unit: str, value: Number) -> Number:
        """Report a point-in-time value unchanged."""
        sample = MetricSample(name, unit, value)
        log.debug("report %r", sample)
        if self.sink is not None:
            self.sink(sample.name, sample.unit, sample.value)
        return value

    def report_derived(self, name: str, unit: str, value: Number) -> Number:
        """Report the change in a cumulative counter since the last cycle.

        The first observation of a name reports zero.  A counter that went
        down, e.g. after pg_stat_reset(), is reported as a negative delta.

        """
        previous = self.counter_state.get(name)
        if previous is None:
            delta = 0
        else:
            delta = value - previous
        self.counter_state[name] = value
        return self.report_metric(name, unit, delta)

    def miss_ratio(self, query_id: Hashable, hits: int, reads: int) -> float:
        """Return the percentage of block accesses that were reads over
        the interval since the last sample for ``query_id``.

        Returns 0.0 when there's no baseline yet, when either counter went
        down since the last sample, or when there was no activity.

        """
        current = RatioSample(hits, reads)
        previous = self.ratio_state.get(query_id)
        self.ratio_state[query_id] = current

        if previous is None:
            return 0.0

        if current.decreased_from(previous):
            log.info(
                "counters for %s went down from %s to %s; "
                "statistics were reset, skipping this interval",
                query_id,
                previous,
                current,
            )
            return 0.0

        delta_hits = current.hits - previous.hits
        delta_reads = current.reads - previous.reads
        accesses = delta_hits + delta_reads
        if accesses == 0:
            return 0.0
        return delta_reads / accesses * 100.0

    def report_miss_ratio(
        self, name: str, query_id: Hashable, hits: int, reads: int
    ) -> float:
        return self.report_metric(
            name, "%", self.miss_ratio(query_id, hits, reads)
        )
