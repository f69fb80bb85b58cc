"""Shared job tally used by the account and user collectors.

Both collectors fold the job list into per-owner counters of pending,
running and suspended jobs; they differ only in which field names the
owner.
"""

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import fields, states
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawJobData


@dataclass
class JobMetrics:
    """Job counters for a single account or user."""

    pending: float = 0.0
    pending_cpus: float = 0.0
    running: float = 0.0
    running_cpus: float = 0.0
    suspended: float = 0.0


def tally_jobs(
    jobs: Iterable[RawJobData],
    key_getter: Callable[[RawJobData], str],
    policy: ErrorPolicy,
    aggregator: str,
) -> dict[str, JobMetrics]:
    """Tally pending, running and suspended jobs per owner.

    The owner, state and CPU count of a job are all resolved before its
    owner's entry is touched, so a record dropped under ``SKIP`` leaves no
    trace in the result. Jobs in any other state are not counted.

    Args:
        jobs: Raw job records.
        key_getter: Field accessor returning the owner name.
        policy: What to do with a job that cannot be resolved.
        aggregator: Name used in log events.

    Returns:
        Mapping of owner name to its job counters.
    """
    tallies: dict[str, JobMetrics] = {}
    for job in jobs:
        try:
            owner = key_getter(job)
            state = states.get_job_state(job)
            cpus = fields.get_job_cpus(job)
        except SlurmDataError as e:
            policy.handle(e, aggregator=aggregator, job_id=job.job_id)
            continue

        metrics = tallies.setdefault(owner, JobMetrics())
        if state is states.JobState.PENDING:
            metrics.pending += 1
            metrics.pending_cpus += cpus
        elif state is states.JobState.RUNNING:
            metrics.running += 1
            metrics.running_cpus += cpus
        elif state is states.JobState.SUSPENDED:
            metrics.suspended += 1
    return tallies


def generate_job_metrics(
    tallies: dict[str, JobMetrics],
    prefix: str,
    label: str,
) -> Iterator[Metric]:
    """Yield one gauge family per job counter, labelled by owner.

    Args:
        tallies: Output of ``tally_jobs``.
        prefix: Metric name prefix, e.g. "account" or "user".
        label: Label name carrying the owner.

    Yields:
        Prometheus Metric objects.
    """
    families = [
        ("jobs_pending", "pending", "Pending jobs"),
        ("cpus_pending", "pending_cpus", "Pending cpus"),
        ("jobs_running", "running", "Running jobs"),
        ("cpus_running", "running_cpus", "Running cpus"),
        ("jobs_suspended", "suspended", "Suspended jobs"),
    ]
    for suffix, attribute, description in families:
        family = GaugeMetricFamily(
            f"slurm_{prefix}_{suffix}",
            f"{description} for {label}",
            labels=[label],
        )
        for owner, metrics in tallies.items():
            family.add_metric([owner], getattr(metrics, attribute))
        yield family
