"""Prometheus collector wrapping one fetch-then-aggregate pipeline.

A ``SlurmCollector`` pairs a fetcher, which pulls a raw snapshot through
the shared REST client, with a generator that aggregates it into metric
families. Snapshot caching lives in the client, so collectors reading the
same endpoint share one request per poll window.
"""

import time
from collections.abc import Callable, Iterator
from typing import Generic, TypeAlias, TypeVar

import structlog
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Fetcher: TypeAlias = Callable[[], T]
MetricsGenerator: TypeAlias = Callable[[T], Iterator[Metric]]

# Reported as the scrape duration when a scrape fails.
FAILED_SCRAPE_DURATION = -1.0


class SlurmCollector(Collector, Generic[T]):
    """Collector for one group of SLURM metric families.

    Each scrape yields ``slurm_<prefix>_scrape_duration`` and
    ``slurm_<prefix>_scrape_error`` followed by the domain families. The
    generator is drained before anything is yielded, so an aggregation
    that fails fast drops all of this collector's domain families for the
    scrape rather than emitting some of them. Other collectors are not
    affected.
    """

    def __init__(
        self,
        fetcher: Fetcher[T],
        generator: MetricsGenerator[T],
        metric_prefix: str,
        scraper_description: str,
    ):
        """Initialize the collector.

        Args:
            fetcher: Zero-argument function returning the raw snapshot.
            generator: Function aggregating a snapshot into metric families.
            metric_prefix: Prefix of the scrape metadata metrics, also used
                in log events (e.g. "node", "partition").
            scraper_description: Where the data comes from, used in the
                metadata help text (e.g. the API base URL).
        """
        self._fetcher = fetcher
        self._generator = generator
        self._metric_prefix = metric_prefix
        self._scraper_desc = scraper_description
        # Kept on the instance so the registry holds no global Counter.
        self._error_count = 0

    def fetch_metrics(self) -> tuple[list[Metric], float]:
        """Fetch a snapshot and aggregate it into domain metrics.

        Returns:
            The metric families and the seconds spent obtaining the
            snapshot, close to zero when the client served it from cache.

        Raises:
            Exception: Whatever the fetcher or the generator raised.
        """
        start = time.time()
        snapshot = self._fetcher()
        duration = time.time() - start
        return list(self._generator(snapshot)), duration

    def _scrape_metadata(self, duration: float) -> Iterator[Metric]:
        scrape_duration = GaugeMetricFamily(
            f"slurm_{self._metric_prefix}_scrape_duration",
            f"Time spent fetching from {self._scraper_desc} in seconds, "
            f"-1 when the scrape failed",
        )
        scrape_duration.add_metric([], duration)
        yield scrape_duration

        scrape_error = CounterMetricFamily(
            f"slurm_{self._metric_prefix}_scrape_error",
            f"Failed scrapes of the {self._metric_prefix} collector",
        )
        scrape_error.add_metric([], self._error_count)
        yield scrape_error

    def collect(self) -> Iterator[Metric]:
        """Run one scrape.

        Fetch and aggregation errors of any kind are logged and counted;
        the scrape itself never raises.

        Yields:
            Scrape metadata, then the domain metric families.
        """
        try:
            metrics, duration = self.fetch_metrics()
        except Exception:
            logger.exception("Scrape failed", collector=self._metric_prefix)
            self._error_count += 1
            metrics, duration = [], FAILED_SCRAPE_DURATION

        yield from self._scrape_metadata(duration)
        yield from metrics
