"""Per-account job metrics collector for SLURM.

Counts pending, running and suspended jobs (and their CPUs) per account.
Jobs that cannot be attributed are dropped and logged by default rather
than failing the whole scrape.
"""

from collections.abc import Iterable, Iterator

from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi
from ..errors import ErrorPolicy
from ..slurmrestapi.types import RawJobData
from .jobs import JobMetrics, generate_job_metrics, tally_jobs

DEFAULT_POLICY = ErrorPolicy.SKIP


def parse_accounts_metrics(
    jobs: Iterable[RawJobData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> dict[str, JobMetrics]:
    """Fold the job list into job counters keyed by account name."""
    return tally_jobs(
        jobs,
        fields.get_job_account_name,
        policy=policy,
        aggregator="accounts",
    )


def fetch(client: slurmrestapi.SlurmRestApiClient) -> list[RawJobData]:
    return client.get_jobs()


def generate_metrics(
    jobs: list[RawJobData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    """Generate per-account job gauges labelled by ``account``."""
    accounts = parse_accounts_metrics(jobs, policy=policy)
    yield from generate_job_metrics(accounts, prefix="account", label="account")
