"""Raw API response types for SLURM REST API.

Pydantic models representing the structure of data returned by the SLURM
REST API with minimal processing. Every field is optional: ``None`` means
the API did not send it, and it is up to the field accessors to decide
whether that is an error or a zero.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator


def _unwrap_no_val(value: Any) -> Any:
    """Unwrap SLURM's ``{"set", "infinite", "number"}`` number struct.

    Unset or infinite values become None; plain numbers pass through.
    """
    if isinstance(value, dict):
        if not value.get("set", True) or value.get("infinite", False):
            return None
        return value.get("number")
    return value


def _as_list(value: Any) -> Any:
    """Accept a bare state string where a list of state flags is expected."""
    if isinstance(value, str):
        return [value]
    return value


NoValInt = Annotated[int | None, BeforeValidator(_unwrap_no_val)]
NoValFloat = Annotated[float | None, BeforeValidator(_unwrap_no_val)]
StateFlags = Annotated[list[str] | None, BeforeValidator(_as_list)]


class RawJobData(BaseModel):
    """Raw job data from SLURM REST API."""

    job_id: NoValInt = None
    name: str | None = None

    # Ownership
    account: str | None = None
    user_name: str | None = None

    # Scheduling
    partition: str | None = None  # may be a comma-separated list
    job_state: StateFlags = None
    cpus: NoValInt = None
    dependency: str | None = None


class RawNodeData(BaseModel):
    """Raw node data from SLURM REST API.

    Memory values are in MB.
    """

    # Core identification
    name: str | None = None
    hostname: str | None = None

    # State information, one entry per simultaneous state flag
    state: StateFlags = None

    # CPU information
    cpus: int | None = None
    alloc_cpus: int | None = None
    alloc_idle_cpus: int | None = None

    # Memory information (in MB)
    real_memory: int | None = None
    alloc_memory: int | None = None

    # Trackable resources, e.g. "cpu=48,mem=1020522M,billing=48,gres/gpu=4"
    tres: str | None = None
    tres_used: str | None = None

    # Partitions
    partitions: list[str] | None = None


class RawPartitionCPUs(BaseModel):
    """CPU block of a partition record."""

    total: NoValInt = None


class RawPartitionData(BaseModel):
    """Raw partition data from SLURM REST API."""

    name: str | None = None
    cpus: RawPartitionCPUs | None = None


class RawDiagStatistics(BaseModel):
    """Scheduler statistics block of the diag endpoint."""

    server_thread_count: NoValInt = None
    agent_queue_size: NoValInt = None
    dbd_agent_queue_size: NoValInt = None
    schedule_cycle_last: NoValInt = None
    schedule_cycle_mean: NoValInt = None
    schedule_cycle_per_minute: NoValInt = None
    bf_cycle_last: NoValInt = None
    bf_cycle_mean: NoValInt = None
    bf_depth_mean: NoValInt = None
    bf_backfilled_jobs: NoValInt = None
    bf_last_backfilled_jobs: NoValInt = None
    bf_backfilled_het_jobs: NoValInt = None


class RawFairshare(BaseModel):
    """Fair-share block of a share record."""

    level: NoValFloat = None


class RawShareData(BaseModel):
    """Raw association share data from SLURM REST API."""

    name: str | None = None
    fairshare: RawFairshare | None = None
