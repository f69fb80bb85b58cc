"""Scheduler diagnostics collector for SLURM.

A straight copy of the ``sdiag`` statistics exposed by the diag endpoint.
Absent fields are reported as 0, so this collector never fails on data.
"""

from collections.abc import Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import slurmrestapi
from ..slurmrestapi.types import RawDiagStatistics


@dataclass
class SchedulerMetrics:
    """Scheduler statistics, one field per exported gauge."""

    threads: float = 0.0
    queue_size: float = 0.0
    dbd_queue_size: float = 0.0
    last_cycle: float = 0.0
    mean_cycle: float = 0.0
    cycle_per_minute: float = 0.0
    backfill_last_cycle: float = 0.0
    backfill_mean_cycle: float = 0.0
    backfill_depth_mean: float = 0.0
    total_backfilled_jobs_since_start: float = 0.0
    total_backfilled_jobs_since_cycle: float = 0.0
    total_backfilled_heterogeneous: float = 0.0


def _value_or_zero(value: int | None) -> float:
    return float(value) if value is not None else 0.0


def parse_scheduler_metrics(statistics: RawDiagStatistics) -> SchedulerMetrics:
    """Copy the diag statistics into scheduler metrics, zero-filling gaps."""
    s = statistics
    return SchedulerMetrics(
        threads=_value_or_zero(s.server_thread_count),
        queue_size=_value_or_zero(s.agent_queue_size),
        dbd_queue_size=_value_or_zero(s.dbd_agent_queue_size),
        last_cycle=_value_or_zero(s.schedule_cycle_last),
        mean_cycle=_value_or_zero(s.schedule_cycle_mean),
        cycle_per_minute=_value_or_zero(s.schedule_cycle_per_minute),
        backfill_last_cycle=_value_or_zero(s.bf_cycle_last),
        backfill_mean_cycle=_value_or_zero(s.bf_cycle_mean),
        backfill_depth_mean=_value_or_zero(s.bf_depth_mean),
        total_backfilled_jobs_since_cycle=_value_or_zero(s.bf_backfilled_jobs),
        # TODO: bf_last_backfilled_jobs counts the last backfill cycle only;
        # check whether a since-start counter exists in newer API versions.
        total_backfilled_jobs_since_start=_value_or_zero(s.bf_last_backfilled_jobs),
        total_backfilled_heterogeneous=_value_or_zero(s.bf_backfilled_het_jobs),
    )


def fetch(client: slurmrestapi.SlurmRestApiClient) -> RawDiagStatistics:
    return client.get_diag()


def generate_metrics(statistics: RawDiagStatistics) -> Iterator[Metric]:
    """Generate the scheduler gauges.

    Args:
        statistics: Diag statistics, as returned by ``fetch``.

    Yields:
        Prometheus Metric objects.
    """
    metrics = parse_scheduler_metrics(statistics)

    for name, description, value in [
        (
            "slurm_scheduler_threads",
            "sdiag: number of scheduler threads",
            metrics.threads,
        ),
        (
            "slurm_scheduler_queue_size",
            "sdiag: length of the scheduler queue",
            metrics.queue_size,
        ),
        (
            "slurm_scheduler_dbd_queue_size",
            "sdiag: length of the DBD agent queue",
            metrics.dbd_queue_size,
        ),
        (
            "slurm_scheduler_last_cycle",
            "sdiag: scheduler last cycle time in (microseconds)",
            metrics.last_cycle,
        ),
        (
            "slurm_scheduler_mean_cycle",
            "sdiag: scheduler mean cycle time in (microseconds)",
            metrics.mean_cycle,
        ),
        (
            "slurm_scheduler_cycle_per_minute",
            "sdiag: number scheduler cycles per minute",
            metrics.cycle_per_minute,
        ),
        (
            "slurm_scheduler_backfill_last_cycle",
            "sdiag: scheduler backfill last cycle time in (microseconds)",
            metrics.backfill_last_cycle,
        ),
        (
            "slurm_scheduler_backfill_mean_cycle",
            "sdiag: scheduler backfill mean cycle time in (microseconds)",
            metrics.backfill_mean_cycle,
        ),
        (
            "slurm_scheduler_backfill_depth_mean",
            "sdiag: scheduler backfill mean depth",
            metrics.backfill_depth_mean,
        ),
        (
            "slurm_scheduler_backfilled_jobs_since_start",
            "sdiag: jobs started by backfilling since last slurm start",
            metrics.total_backfilled_jobs_since_start,
        ),
        (
            "slurm_scheduler_backfilled_jobs_since_cycle",
            "sdiag: jobs started by backfilling since stats were reset",
            metrics.total_backfilled_jobs_since_cycle,
        ),
        (
            "slurm_scheduler_backfilled_heterogeneous",
            "sdiag: heterogeneous job components started by backfilling",
            metrics.total_backfilled_heterogeneous,
        ),
    ]:
        family = GaugeMetricFamily(name, description)
        family.add_metric([], value)
        yield family
