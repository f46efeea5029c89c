"""Run the full battery of statistics queries once per poll.

A cycle opens a connection, determines the dialect, runs each query group
in turn, hands the rows to the :class:`.DerivedMetricEngine` and closes the
connection.  An error in any step ends the cycle; whatever was reported
before the error stands, and the connection is closed regardless.

"""
from __future__ import annotations

import enum
import logging
from typing import Callable
from typing import List
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import TYPE_CHECKING
from typing import Union

from sqlalchemy import exc as sa_exc

from . import dialect as dialect_
from . import queries
from . import sampler
from .derived import DerivedMetricEngine
from .exc import ConnectionFailure
from .exc import PgStatError
from .exc import ReportFailure
from .metrics import MetricSample
from .queries import QueryKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection
    from sqlalchemy.engine import Engine

    from .derived import ReportMetric

log = logging.getLogger(__name__)


class CycleState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    SAMPLING = "sampling"
    REPORTING = "reporting"
    CLOSING = "closing"


# group names used in CycleFailure for steps that aren't a QueryKind
CONNECT = "connect"
DIALECT = "dialect"
EXTENSION_CHECK = "extension check"


class CycleFailure(NamedTuple):
    group: Union[QueryKind, str]
    error: BaseException


class CycleResult(NamedTuple):
    samples: List[MetricSample]
    failure: Optional[CycleFailure]
    dialect: Optional[dialect_.Dialect]

    @property
    def ok(self) -> bool:
        return self.failure is None


# (metric name, unit, columns summed into the value)
_Columns = Sequence[Tuple[str, str, Tuple[str, ...]]]

_backend_gauges: _Columns = [
    ("Backends/Active", "connections", ("backends_active",)),
    ("Backends/Idle", "connections", ("backends_idle",)),
]

_bgwriter_counters: _Columns = [
    (
        "Background Writer/Checkpoints/Scheduled",
        "checkpoints",
        ("checkpoints_timed",),
    ),
    (
        "Background Writer/Checkpoints/Requested",
        "checkpoints",
        ("checkpoints_req",),
    ),
    (
        "Background Writer/Buffers/Checkpoint",
        "buffers",
        ("buffers_checkpoint",),
    ),
    ("Background Writer/Buffers/Clean", "buffers", ("buffers_clean",)),
    ("Background Writer/Buffers/Backend", "buffers", ("buffers_backend",)),
    ("Background Writer/Buffers/Allocated", "buffers", ("buffers_alloc",)),
]

_database_gauges: _Columns = [
    ("Database/Backends", "connections", ("numbackends",)),
]

_database_counters: _Columns = [
    ("Database/Transactions/Committed", "transactions", ("xact_commit",)),
    (
        "Database/Transactions/Rolled Back",
        "transactions",
        ("xact_rollback",),
    ),
    ("Database/Rows/Selected", "rows", ("tup_returned", "tup_fetched")),
    ("Database/Rows/Inserted", "rows", ("tup_inserted",)),
    ("Database/Rows/Updated", "rows", ("tup_updated",)),
    ("Database/Rows/Deleted", "rows", ("tup_deleted",)),
]

_miss_ratios = [
    ("Indexes/Miss Ratio", QueryKind.INDEX_HIT_RATIO_SOURCE),
    ("Cache/Miss Ratio", QueryKind.CACHE_HIT_RATIO_SOURCE),
]


def _sum_columns(row, columns):
    return sum(sampler.column(row, col) for col in columns)


class CycleOrchestrator:
    """Runs one sampling cycle per call to :meth:`.run_cycle`.

    The orchestrator is long lived; its :class:`.DerivedMetricEngine`
    carries counter baselines from one cycle to the next.  Cycles must
    not overlap.

    A ``metrics_engine`` passed in must not have a sink of its own; the
    orchestrator installs one that records each sample on the cycle
    result before passing it to ``sink``.  An exception raised by
    ``sink`` ends the cycle as a :class:`.ReportFailure`.

    """

    state: CycleState
    metrics_engine: DerivedMetricEngine

    def __init__(
        self,
        sqla_engine: Engine,
        sink: ReportMetric,
        metrics_engine: Optional[DerivedMetricEngine] = None,
        on_failure: Optional[Callable[[CycleFailure], None]] = None,
    ):
        self.sqla_engine = sqla_engine
        self.sink = sink
        if metrics_engine is None:
            metrics_engine = DerivedMetricEngine()
        elif metrics_engine.sink is not None:
            raise ValueError(
                "metrics_engine already reports to %r; pass reporting "
                "through the orchestrator's sink instead"
                % (metrics_engine.sink,)
            )
        metrics_engine.sink = self._dispatch
        self.metrics_engine = metrics_engine
        self.on_failure = on_failure
        self.state = CycleState.IDLE
        self._samples: List[MetricSample] = []
        self._group: Union[QueryKind, str] = CONNECT

    def _enter(self, state: CycleState) -> None:
        log.debug("cycle state %s -> %s", self.state.name, state.name)
        self.state = state

    def _dispatch(self, name, unit, value):
        try:
            self.sink(name, unit, value)
        except Exception as err:
            raise ReportFailure(
                "could not report %s: %s" % (name, err)
            ) from err
        self._samples.append(MetricSample(name, unit, value))

    def run_cycle(self) -> CycleResult:
        self._samples = samples = []
        dialect = None
        connection = None

        try:
            self._enter(CycleState.CONNECTING)
            self._group = CONNECT
            connection = self._connect()
            self._group = DIALECT
            dialect = dialect_.detect_dialect(connection)

            self._run_groups(connection, dialect)
        except (PgStatError, sa_exc.SQLAlchemyError) as err:
            failure = CycleFailure(self._group, err)
            self._report_failure(failure)
        else:
            failure = None
        finally:
            if connection is not None:
                self._enter(CycleState.CLOSING)
                self._close(connection)
            self._enter(CycleState.IDLE)

        return CycleResult(samples, failure, dialect)

    def _connect(self) -> Connection:
        try:
            return self.sqla_engine.connect()
        except sa_exc.SQLAlchemyError as err:
            raise ConnectionFailure(
                "could not connect to %s: %s" % (self.sqla_engine.url, err)
            ) from err

    def _close(self, connection: Connection) -> None:
        try:
            connection.close()
        except sa_exc.SQLAlchemyError:
            log.warning("error closing connection", exc_info=True)

    def _report_failure(self, failure: CycleFailure) -> None:
        group = failure.group
        if isinstance(group, QueryKind):
            group = group.value
        log.error(
            "statistics cycle failed during %s; %d metrics were reported "
            "before the failure",
            group,
            len(self._samples),
            exc_info=failure.error,
        )
        if self.on_failure is not None:
            self.on_failure(failure)

    def _run_groups(self, connection, dialect):
        sampler_ = sampler.Sampler(connection, queries.catalog_for(dialect))
        engine = self.metrics_engine

        row = self._sample_one(sampler_, QueryKind.BACKEND_ACTIVITY)
        for name, unit, columns in _backend_gauges:
            engine.report_metric(name, unit, _sum_columns(row, columns))

        rows = self._sample_rows(sampler_, QueryKind.DATABASE_COUNTERS)
        for row in rows:
            for name, unit, columns in _database_gauges:
                engine.report_metric(name, unit, _sum_columns(row, columns))
            for name, unit, columns in _database_counters:
                engine.report_derived(name, unit, _sum_columns(row, columns))

        row = self._sample_one(sampler_, QueryKind.INDEX_COUNT)
        engine.report_metric(
            "Database/Indexes/Count",
            "indexes",
            sampler.column(row, "indexes"),
        )

        row = self._sample_one(sampler_, QueryKind.INDEX_SIZE)
        engine.report_metric(
            "Database/Indexes/Size", "bytes", sampler.column(row, "size")
        )

        row = self._sample_one(sampler_, QueryKind.BACKGROUND_WRITER)
        for name, unit, columns in _bgwriter_counters:
            # PostgreSQL 17 moved the checkpoint columns to
            # pg_stat_checkpointer
            missing = [col for col in columns if col not in row]
            if missing:
                log.debug(
                    "%s has no column %s; not reporting %s",
                    QueryKind.BACKGROUND_WRITER.value,
                    ", ".join(missing),
                    name,
                )
                continue
            engine.report_derived(name, unit, _sum_columns(row, columns))

        for name, kind in _miss_ratios:
            row = self._sample_one(sampler_, kind)
            engine.report_miss_ratio(
                name,
                kind,
                sampler.column(row, "hits"),
                sampler.column(row, "reads"),
            )

        self._group = EXTENSION_CHECK
        self._enter(CycleState.SAMPLING)
        if not self._extension_loaded(
            connection, queries.STATEMENTS_EXTENSION
        ):
            log.info(
                "%s is not loaded; no Database/Queries/Count metric "
                "will be reported.",
                queries.STATEMENTS_EXTENSION,
            )
            return

        row = self._sample_one(sampler_, QueryKind.STATEMENT_COUNT)
        engine.report_derived(
            "Database/Queries/Count", "queries", sampler.column(row, "calls")
        )

    def _sample_one(self, sampler_, kind):
        self._group = kind
        self._enter(CycleState.SAMPLING)
        row = sampler_.one(kind)
        self._enter(CycleState.REPORTING)
        return row

    def _sample_rows(self, sampler_, kind):
        self._group = kind
        self._enter(CycleState.SAMPLING)
        rows = sampler_.rows(kind)
        self._enter(CycleState.REPORTING)
        return rows

    def _extension_loaded(self, connection, extname):
        row = sampler.execute_one(
            connection, queries.EXTENSION_EXISTS, {"extname": extname}
        )
        return sampler.column(row, "count") > 0
