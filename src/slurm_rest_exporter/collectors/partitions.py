"""Partition metrics collector for SLURM.

Cross-references three independently keyed listings into one
partition-keyed result:

1. Partitions seed each entry with the partition's total CPU count.
2. Nodes add their allocated and idle CPUs to every partition they belong
   to. A node shared by several partitions is counted in full by each of
   them, so a job running in one partition shows up as allocated CPUs on
   the others too, and partition totals do not add up to the cluster.
3. ``cpus_other`` is derived as total minus allocated minus idle. It is not
   clamped and goes negative when shared nodes push the sums past the
   seeded total.
4. Jobs increment ``jobs_pending`` on every partition named in their
   (possibly comma-separated) partition field.

Partition names first seen on a node or a job are created on the fly. The
example data shipped with SLURM has node and job listings that do not
agree with the partition listing; real clusters should already have every
name in place after step 1.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawJobData, RawNodeData, RawPartitionData

DEFAULT_POLICY = ErrorPolicy.FAIL_FAST


@dataclass
class PartitionMetrics:
    cpus_allocated: float = 0.0
    cpus_idle: float = 0.0
    cpus_other: float = 0.0
    cpus_total: float = 0.0
    jobs_pending: float = 0.0


def _build_node_partitions(
    nodes: Iterable[RawNodeData],
    policy: ErrorPolicy,
) -> list[tuple[list[str], int, int]]:
    """List each node record's partitions with its allocated and idle CPUs.

    Records are kept one by one, so two records sharing a node name both
    contribute to their partitions.
    """
    adjacency: list[tuple[list[str], int, int]] = []
    for node in nodes:
        try:
            fields.get_node_name(node)
        except SlurmDataError as e:
            policy.handle(e, aggregator="partitions", node=node.hostname)
            continue
        adjacency.append(
            (
                fields.get_node_partitions(node),
                fields.get_node_alloc_cpus(node),
                fields.get_node_idle_cpus(node),
            ),
        )
    return adjacency


def parse_partitions_metrics(
    partitions: Iterable[RawPartitionData],
    nodes: Iterable[RawNodeData],
    jobs: Iterable[RawJobData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> dict[str, PartitionMetrics]:
    """Merge partition, node and job listings into per-partition metrics.

    Args:
        partitions: Raw partition records.
        nodes: Raw node records.
        jobs: Raw job records.
        policy: What to do with a record that cannot be resolved.

    Returns:
        Mapping of partition name to partition metrics.
    """
    result: dict[str, PartitionMetrics] = {}

    for partition in partitions:
        try:
            name = fields.get_partition_name(partition)
            total = fields.get_partition_total_cpus(partition)
        except SlurmDataError as e:
            policy.handle(e, aggregator="partitions", partition=partition.name)
            continue
        result.setdefault(name, PartitionMetrics()).cpus_total = total

    for node_partitions, alloc_cpus, idle_cpus in _build_node_partitions(
        nodes,
        policy,
    ):
        for name in node_partitions:
            metrics = result.setdefault(name, PartitionMetrics())
            metrics.cpus_allocated += alloc_cpus
            metrics.cpus_idle += idle_cpus

    for metrics in result.values():
        metrics.cpus_other = (
            metrics.cpus_total - metrics.cpus_allocated - metrics.cpus_idle
        )

    for job in jobs:
        try:
            partition_field = fields.get_job_partition_name(job)
        except SlurmDataError as e:
            policy.handle(e, aggregator="partitions", job_id=job.job_id)
            continue
        for name in partition_field.split(","):
            result.setdefault(name, PartitionMetrics()).jobs_pending += 1

    return result


def fetch(
    client: slurmrestapi.SlurmRestApiClient,
) -> tuple[list[RawPartitionData], list[RawNodeData], list[RawJobData]]:
    return client.get_partitions(), client.get_nodes(), client.get_jobs()


def generate_metrics(
    snapshot: tuple[list[RawPartitionData], list[RawNodeData], list[RawJobData]],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    """Generate per-partition gauges labelled by ``partition``.

    Args:
        snapshot: Partition, node and job listings, as returned by ``fetch``.
        policy: What to do with a record that cannot be resolved.

    Yields:
        Prometheus Metric objects.
    """
    partitions, nodes, jobs = snapshot
    result = parse_partitions_metrics(partitions, nodes, jobs, policy=policy)

    families = [
        ("cpus_allocated", "Allocated CPUs for partition"),
        ("cpus_idle", "Idle CPUs for partition"),
        ("cpus_other", "Other CPUs for partition"),
        ("cpus_total", "Total CPUs for partition"),
        ("jobs_pending", "Pending jobs for partition"),
    ]
    for attribute, description in families:
        family = GaugeMetricFamily(
            f"slurm_partition_{attribute}",
            description,
            labels=["partition"],
        )
        for name, metrics in result.items():
            family.add_metric([name], getattr(metrics, attribute))
        yield family
