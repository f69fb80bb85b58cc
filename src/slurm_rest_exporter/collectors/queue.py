"""Job queue metrics collector for SLURM.

Counts jobs per state. Pending jobs are further split by whether they are
waiting on a dependency.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, fields as dataclass_fields

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi, states
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawJobData

DEFAULT_POLICY = ErrorPolicy.FAIL_FAST


@dataclass
class QueueMetrics:
    """Job counts per state.

    Apart from ``pending_dep``, field names match ``JobState`` values.
    """

    pending: float = 0.0
    pending_dep: float = 0.0
    running: float = 0.0
    suspended: float = 0.0
    cancelled: float = 0.0
    completing: float = 0.0
    completed: float = 0.0
    configuring: float = 0.0
    failed: float = 0.0
    timeout: float = 0.0
    preempted: float = 0.0
    node_fail: float = 0.0
    out_of_memory: float = 0.0


def parse_queue_metrics(
    jobs: Iterable[RawJobData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> QueueMetrics:
    """Count every job under exactly one queue counter.

    Args:
        jobs: Raw job records.
        policy: What to do with a job whose state cannot be classified.

    Returns:
        Queue metrics.
    """
    metrics = QueueMetrics()
    for job in jobs:
        try:
            state = states.get_job_state(job)
        except SlurmDataError as e:
            policy.handle(e, aggregator="queue", job_id=job.job_id)
            continue

        counter = state.value
        if state is states.JobState.PENDING and fields.get_job_dependency(job):
            counter = "pending_dep"
        setattr(metrics, counter, getattr(metrics, counter) + 1)
    return metrics


def fetch(client: slurmrestapi.SlurmRestApiClient) -> list[RawJobData]:
    return client.get_jobs()


def generate_metrics(
    jobs: list[RawJobData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    """Generate one ``slurm_queue_<counter>`` gauge per queue counter."""
    metrics = parse_queue_metrics(jobs, policy=policy)
    for field in dataclass_fields(QueueMetrics):
        if field.name == "pending_dep":
            name = "slurm_queue_pending_dependency"
            description = "Pending jobs because of dependency in queue"
        else:
            name = f"slurm_queue_{field.name}"
            description = f"{field.name.replace('_', ' ').capitalize()} jobs in queue"
        family = GaugeMetricFamily(name, description)
        family.add_metric([], getattr(metrics, field.name))
        yield family
