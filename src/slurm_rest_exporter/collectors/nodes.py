"""Per-node inventory collector for SLURM.

Exports memory and CPU figures for every node, labelled with the node's
hostname and its full state string (e.g. ``mix|drain``). Memory values
are passed through in MB as reported by the API.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi, states
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawNodeData

DEFAULT_POLICY = ErrorPolicy.FAIL_FAST
DEFAULT_STATE_DELIMITER = "|"


@dataclass
class NodeMetrics:
    """Resource figures for a single node."""

    mem_alloc: int = 0
    mem_total: int = 0
    cpu_alloc: int = 0
    cpu_idle: int = 0
    cpu_other: int = 0
    cpu_total: int = 0
    node_status: str = ""


def _transform_node(node: RawNodeData, delimiter: str) -> tuple[str, NodeMetrics]:
    """Build the keyed inventory entry for a node.

    Missing counters are reported as 0; only the hostname and the state
    flags are required.
    """
    hostname = fields.get_node_hostname(node)
    return hostname, NodeMetrics(
        mem_alloc=fields.get_node_alloc_memory(node),
        mem_total=fields.get_node_total_memory(node),
        cpu_alloc=fields.get_node_alloc_cpus(node),
        cpu_idle=fields.get_node_idle_cpus(node),
        cpu_other=fields.get_node_other_cpus(node),
        cpu_total=fields.get_node_total_cpus(node),
        node_status=states.get_node_states_string(node, delimiter),
    )


def parse_node_metrics(
    nodes: Iterable[RawNodeData],
    delimiter: str = DEFAULT_STATE_DELIMITER,
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> dict[str, NodeMetrics]:
    """Build the per-node inventory keyed by hostname.

    Args:
        nodes: Raw node records.
        delimiter: Separator used to join a node's states.
        policy: What to do with a node that cannot be resolved.

    Returns:
        Mapping of hostname to node metrics.
    """
    inventory: dict[str, NodeMetrics] = {}
    for node in nodes:
        try:
            hostname, metrics = _transform_node(node, delimiter)
        except SlurmDataError as e:
            policy.handle(e, aggregator="nodes", node=node.name)
            continue
        inventory[hostname] = metrics
    return inventory


def fetch(client: slurmrestapi.SlurmRestApiClient) -> list[RawNodeData]:
    return client.get_nodes()


def generate_metrics(
    nodes: list[RawNodeData],
    delimiter: str = DEFAULT_STATE_DELIMITER,
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    """Generate per-node gauges labelled by ``node`` and ``status``.

    Args:
        nodes: Raw node records.
        delimiter: Separator used to join a node's states.
        policy: What to do with a node that cannot be resolved.

    Yields:
        Prometheus Metric objects.
    """
    inventory = parse_node_metrics(nodes, delimiter=delimiter, policy=policy)

    families = [
        ("slurm_node_cpu_alloc", "Allocated CPUs per node", "cpu_alloc"),
        ("slurm_node_cpu_idle", "Idle CPUs per node", "cpu_idle"),
        ("slurm_node_cpu_other", "Other CPUs per node", "cpu_other"),
        ("slurm_node_cpu_total", "Total CPUs per node", "cpu_total"),
        ("slurm_node_mem_alloc", "Allocated memory per node", "mem_alloc"),
        ("slurm_node_mem_total", "Total memory per node", "mem_total"),
    ]
    for name, description, attribute in families:
        family = GaugeMetricFamily(name, description, labels=["node", "status"])
        for hostname, metrics in inventory.items():
            family.add_metric(
                [hostname, metrics.node_status],
                getattr(metrics, attribute),
            )
        yield family
