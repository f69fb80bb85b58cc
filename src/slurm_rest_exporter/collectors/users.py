"""Per-user job metrics collector for SLURM."""

from collections.abc import Iterable, Iterator

from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi
from ..errors import ErrorPolicy
from ..slurmrestapi.types import RawJobData
from .jobs import JobMetrics, generate_job_metrics, tally_jobs

DEFAULT_POLICY = ErrorPolicy.SKIP


def parse_users_metrics(
    jobs: Iterable[RawJobData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> dict[str, JobMetrics]:
    """Fold the job list into job counters keyed by user name."""
    return tally_jobs(
        jobs,
        fields.get_job_user_name,
        policy=policy,
        aggregator="users",
    )


def fetch(client: slurmrestapi.SlurmRestApiClient) -> list[RawJobData]:
    return client.get_jobs()


def generate_metrics(
    jobs: list[RawJobData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    users = parse_users_metrics(jobs, policy=policy)
    yield from generate_job_metrics(users, prefix="user", label="user")
