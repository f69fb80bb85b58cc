"""Cluster-wide CPU metrics collector for SLURM.

Combines the job and node listings: allocated CPUs come from running jobs,
total and idle CPUs from the nodes.
"""

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi, states
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawJobData, RawNodeData

DEFAULT_POLICY = ErrorPolicy.FAIL_FAST

NodePredicate = Callable[[RawNodeData], bool]

_IDLE_COUNTING_STATES = frozenset(
    {states.NodeState.MIX, states.NodeState.ALLOC, states.NodeState.IDLE},
)


@dataclass
class CPUsMetrics:
    """Aggregated CPU metrics across the cluster.

    ``other`` is derived as ``total - idle - alloc`` and may be negative.
    """

    alloc: float = 0.0
    idle: float = 0.0
    other: float = 0.0
    total: float = 0.0


def is_placeholder_node(node: RawNodeData) -> bool:
    """Return True for nodes reporting exactly one CPU.

    Hosts that are registered with SLURM only so they can run SLURM
    commands, without being assigned to a partition, show up with
    cpus=1. Sites that run real single-CPU nodes should not use this.
    """
    return fields.get_node_total_cpus(node) == 1


def exclude_no_nodes(node: RawNodeData) -> bool:  # noqa: ARG001
    """Predicate for sites without placeholder nodes: every node counts."""
    return False


def parse_cpus_metrics(
    nodes: Iterable[RawNodeData],
    jobs: Iterable[RawJobData],
    exclude_node: NodePredicate = is_placeholder_node,
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> CPUsMetrics:
    """Aggregate allocated, idle and total CPUs across the cluster.

    Args:
        nodes: Raw node records.
        jobs: Raw job records.
        exclude_node: Predicate selecting nodes left out of the totals.
        policy: What to do with a record that cannot be resolved.

    Returns:
        Cluster CPU metrics.
    """
    metrics = CPUsMetrics()

    for job in jobs:
        try:
            state = states.get_job_state(job)
            if state is not states.JobState.RUNNING:
                continue
            metrics.alloc += fields.get_job_cpus(job)
        except SlurmDataError as e:
            policy.handle(e, aggregator="cpus", job_id=job.job_id)

    for node in nodes:
        if exclude_node(node):
            continue
        try:
            node_states = states.get_node_states(node)
        except SlurmDataError as e:
            policy.handle(e, aggregator="cpus", node=node.name)
            continue
        metrics.total += fields.get_node_total_cpus(node)
        if _IDLE_COUNTING_STATES.intersection(node_states):
            metrics.idle += fields.get_node_idle_cpus(node)

    metrics.other = metrics.total - metrics.idle - metrics.alloc
    return metrics


def fetch(
    client: slurmrestapi.SlurmRestApiClient,
) -> tuple[list[RawNodeData], list[RawJobData]]:
    return client.get_nodes(), client.get_jobs()


def generate_metrics(
    snapshot: tuple[list[RawNodeData], list[RawJobData]],
    exclude_node: NodePredicate = is_placeholder_node,
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    """Generate the cluster CPU gauges.

    Args:
        snapshot: Node and job listings, as returned by ``fetch``.
        exclude_node: Predicate selecting nodes left out of the totals.
        policy: What to do with a record that cannot be resolved.

    Yields:
        Prometheus Metric objects.
    """
    nodes, jobs = snapshot
    metrics = parse_cpus_metrics(
        nodes,
        jobs,
        exclude_node=exclude_node,
        policy=policy,
    )

    for name, description, value in [
        ("slurm_cpus_alloc", "Allocated cpus", metrics.alloc),
        ("slurm_cpus_idle", "Idle cpus", metrics.idle),
        ("slurm_cpus_other", "Mix cpus", metrics.other),
        ("slurm_cpus_total", "Total cpus", metrics.total),
    ]:
        family = GaugeMetricFamily(name, description)
        family.add_metric([], value)
        yield family
