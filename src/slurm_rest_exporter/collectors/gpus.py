"""Cluster-wide GPU metrics collector for SLURM.

GPU counts are read from the node TRES strings rather than GRES, which
only needs a single tag lookup per node::

    tres      => cpu=48,mem=1020522M,billing=48,gres/gpu=4   # 4 total gpus
    tres_used => cpu=48,mem=1020522M,billing=48,gres/gpu=4   # 4 used gpus
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawNodeData
from ..tres import GPU_TRES_NAME, extract_tres_count

DEFAULT_POLICY = ErrorPolicy.FAIL_FAST


@dataclass
class GPUsMetrics:
    """Aggregated GPU metrics across the cluster."""

    alloc: float = 0.0
    idle: float = 0.0
    other: float = 0.0
    total: float = 0.0
    utilization: float = 0.0


def parse_gpus_metrics(
    nodes: Iterable[RawNodeData],
    gpu_tres_name: str = GPU_TRES_NAME,
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> GPUsMetrics:
    """Tally total and allocated GPUs, then derive idle and utilization.

    Utilization is reported as 0.0 on a cluster without GPUs.

    Args:
        nodes: Raw node records.
        gpu_tres_name: TRES tag identifying GPUs.
        policy: What to do with a node whose TRES cannot be parsed.

    Returns:
        Cluster GPU metrics.
    """
    metrics = GPUsMetrics()

    for node in nodes:
        try:
            total = extract_tres_count(fields.get_node_tres(node), gpu_tres_name)
            alloc = extract_tres_count(fields.get_node_tres_used(node), gpu_tres_name)
        except SlurmDataError as e:
            policy.handle(e, aggregator="gpus", node=node.name)
            continue
        metrics.total += total
        metrics.alloc += alloc
        metrics.idle += total - alloc

    if metrics.total > 0:
        metrics.utilization = metrics.alloc / metrics.total
    return metrics


def fetch(client: slurmrestapi.SlurmRestApiClient) -> list[RawNodeData]:
    return client.get_nodes()


def generate_metrics(
    nodes: list[RawNodeData],
    gpu_tres_name: str = GPU_TRES_NAME,
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    """Generate the cluster GPU gauges."""
    metrics = parse_gpus_metrics(nodes, gpu_tres_name=gpu_tres_name, policy=policy)

    for name, description, value in [
        ("slurm_gpus_alloc", "Allocated gpus", metrics.alloc),
        ("slurm_gpus_idle", "Idle gpus", metrics.idle),
        ("slurm_gpus_other", "Other gpus", metrics.other),
        ("slurm_gpus_total", "Total gpus", metrics.total),
        ("slurm_gpus_utilization", "Total gpu utilization", metrics.utilization),
    ]:
        family = GaugeMetricFamily(name, description)
        family.add_metric([], value)
        yield family
