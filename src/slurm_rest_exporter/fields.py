"""Typed accessors for optional fields on raw SLURM records.

Required fields raise ``MissingFieldError`` naming the field when the API
left them out. Optional node counters and strings fall back to zero or an
empty value instead.
"""

from .errors import MissingFieldError
from .slurmrestapi.types import (
    RawJobData,
    RawNodeData,
    RawPartitionData,
    RawShareData,
)


def get_job_account_name(job: RawJobData) -> str:
    """Return the account the job is charged to."""
    if job.account is None:
        msg = "account name not found in job"
        raise MissingFieldError(msg, field="account")
    return job.account


def get_job_user_name(job: RawJobData) -> str:
    """Return the name of the user that owns the job."""
    if job.user_name is None:
        msg = "user name not found in job"
        raise MissingFieldError(msg, field="user_name")
    return job.user_name


def get_job_partition_name(job: RawJobData) -> str:
    """Return the raw partition field, possibly a comma-separated list."""
    if job.partition is None:
        msg = "partition name not found in job"
        raise MissingFieldError(msg, field="partition")
    return job.partition


def get_job_cpus(job: RawJobData) -> float:
    """Return the number of CPUs requested or allocated by the job."""
    if job.cpus is None:
        msg = "failed to find cpu count in job"
        raise MissingFieldError(msg, field="cpus")
    return float(job.cpus)


def get_job_dependency(job: RawJobData) -> str:
    """Return the job's dependency expression, empty when it has none."""
    return job.dependency or ""


def get_node_name(node: RawNodeData) -> str:
    """Return the SLURM node name."""
    if not node.name:
        msg = "node name not found in node information"
        raise MissingFieldError(msg, field="name")
    return node.name


def get_node_hostname(node: RawNodeData) -> str:
    """Return the node hostname, falling back to the node name."""
    if node.hostname:
        return node.hostname
    if node.name:
        return node.name
    msg = "hostname not found in node information"
    raise MissingFieldError(msg, field="hostname")


def get_node_partitions(node: RawNodeData) -> list[str]:
    """Return the partitions the node belongs to, empty when unassigned."""
    if node.partitions is None:
        return []
    return node.partitions


def get_node_alloc_memory(node: RawNodeData) -> int:
    return node.alloc_memory or 0


def get_node_total_memory(node: RawNodeData) -> int:
    return node.real_memory or 0


def get_node_alloc_cpus(node: RawNodeData) -> int:
    return node.alloc_cpus or 0


def get_node_idle_cpus(node: RawNodeData) -> int:
    return node.alloc_idle_cpus or 0


def get_node_other_cpus(node: RawNodeData) -> int:  # noqa: ARG001
    """Return CPUs in neither allocated nor idle state.

    The REST API has no such field, so this is always 0.
    """
    return 0


def get_node_total_cpus(node: RawNodeData) -> int:
    return node.cpus or 0


def get_node_tres(node: RawNodeData) -> str:
    return node.tres or ""


def get_node_tres_used(node: RawNodeData) -> str:
    return node.tres_used or ""


def get_partition_name(partition: RawPartitionData) -> str:
    """Return the partition name."""
    if not partition.name:
        msg = "failed to find name in partition"
        raise MissingFieldError(msg, field="name")
    return partition.name


def get_partition_total_cpus(partition: RawPartitionData) -> float:
    """Return the total CPU count configured for the partition."""
    if partition.cpus is None or partition.cpus.total is None:
        msg = "failed to find total cpus in partition"
        raise MissingFieldError(msg, field="cpus.total")
    return float(partition.cpus.total)


def get_share_name(share: RawShareData) -> str:
    """Return the association name of a share record."""
    if share.name is None:
        msg = "name not found in share"
        raise MissingFieldError(msg, field="name")
    return share.name


def get_share_fairshare_level(share: RawShareData) -> float:
    """Return the fair-share level of a share record."""
    if share.fairshare is None or share.fairshare.level is None:
        msg = "fairshare level not found in share"
        raise MissingFieldError(msg, field="fairshare.level")
    return share.fairshare.level
