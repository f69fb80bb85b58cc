"""Cluster node-state tally collector for SLURM.

A node can hold several states at once (allocated and draining, say), so
the counters sum state occurrences rather than nodes.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, fields as dataclass_fields

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import slurmrestapi, states
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawNodeData

DEFAULT_POLICY = ErrorPolicy.FAIL_FAST


@dataclass
class NodesMetrics:
    """Occurrences of the ten most common node states.

    Field names match ``NodeState`` values; other states are classified
    but not tallied.
    """

    alloc: float = 0.0
    comp: float = 0.0
    down: float = 0.0
    drain: float = 0.0
    err: float = 0.0
    fail: float = 0.0
    idle: float = 0.0
    maint: float = 0.0
    mix: float = 0.0
    resv: float = 0.0


_TALLIED_STATES = frozenset(f.name for f in dataclass_fields(NodesMetrics))


def parse_nodes_metrics(
    nodes: Iterable[RawNodeData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> NodesMetrics:
    """Count every occurrence of each tallied state across all nodes."""
    metrics = NodesMetrics()
    for node in nodes:
        try:
            node_states = states.get_node_states(node)
        except SlurmDataError as e:
            policy.handle(e, aggregator="node_states", node=node.name)
            continue
        for state in node_states:
            if state.value in _TALLIED_STATES:
                setattr(metrics, state.value, getattr(metrics, state.value) + 1)
    return metrics


def fetch(client: slurmrestapi.SlurmRestApiClient) -> list[RawNodeData]:
    return client.get_nodes()


def generate_metrics(
    nodes: list[RawNodeData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    """Generate one ``slurm_nodes_<state>`` gauge per tallied state."""
    metrics = parse_nodes_metrics(nodes, policy=policy)
    for state in sorted(_TALLIED_STATES):
        family = GaugeMetricFamily(f"slurm_nodes_{state}", f"{state} nodes")
        family.add_metric([], getattr(metrics, state))
        yield family
