"""Fair-share collector for SLURM.

Exports the fair-share level of every association returned by the shares
endpoint, keyed by association name.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from .. import fields, slurmrestapi
from ..errors import ErrorPolicy, SlurmDataError
from ..slurmrestapi.types import RawShareData

DEFAULT_POLICY = ErrorPolicy.FAIL_FAST


@dataclass
class FairShareMetrics:
    fairshare: float = 0.0


def parse_fairshare_metrics(
    shares: Iterable[RawShareData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> dict[str, FairShareMetrics]:
    """Map each account to its fair-share level.

    When an account appears more than once, the last record wins.

    Args:
        shares: Raw share records.
        policy: What to do with a record lacking a name or level.

    Returns:
        Mapping of account name to fair-share metrics.
    """
    accounts: dict[str, FairShareMetrics] = {}
    for share in shares:
        try:
            account = fields.get_share_name(share)
            level = fields.get_share_fairshare_level(share)
        except SlurmDataError as e:
            policy.handle(e, aggregator="fairshare", share=share.name)
            continue
        accounts.setdefault(account, FairShareMetrics()).fairshare = level
    return accounts


def fetch(client: slurmrestapi.SlurmRestApiClient) -> list[RawShareData]:
    return client.get_shares()


def generate_metrics(
    shares: list[RawShareData],
    policy: ErrorPolicy = DEFAULT_POLICY,
) -> Iterator[Metric]:
    accounts = parse_fairshare_metrics(shares, policy=policy)
    fairshare = GaugeMetricFamily(
        "slurm_account_fairshare",
        "FairShare for account",
        labels=["account"],
    )
    for account, metrics in accounts.items():
        fairshare.add_metric([account], metrics.fairshare)
    yield fairshare
