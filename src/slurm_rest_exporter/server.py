"""HTTP server for the Slurm REST Exporter."""

import functools
import logging
import os
import pathlib
import time

import prometheus_client
import prometheus_client.core
import pydantic
import starlette.applications
import starlette.requests
import starlette.responses
import starlette.routing
import structlog

from . import cache, collector, slurmrestapi
from .collectors import (
    accounts,
    cpus,
    fairshare,
    gpus,
    node_states,
    nodes,
    partitions,
    queue,
    scheduler,
    users,
)
from .errors import ErrorPolicy
from .tres import GPU_TRES_NAME

CONFIG_ENV_VAR = "SLURM_EXPORTER_CONFIG_PATH"
logger = structlog.get_logger(__name__)

# Collector name (also its metric prefix) -> collector module.
COLLECTORS = {
    "account": accounts,
    "cpu": cpus,
    "fairshare": fairshare,
    "gpu": gpus,
    "node": nodes,
    "nodes": node_states,
    "partition": partitions,
    "queue": queue,
    "scheduler": scheduler,
    "user": users,
}

# The scheduler passthrough never fails on data, so it takes no policy.
POLICY_COLLECTORS = frozenset(COLLECTORS) - {"scheduler"}


class ExporterConfig(pydantic.BaseModel):
    """Configuration for the Slurm REST Exporter."""

    rest_api_url: str = pydantic.Field(description="Base URL for SLURM REST API")
    rest_api_token_file: str = pydantic.Field(
        description="Path to file containing API auth token",
    )
    rest_api_version: str = pydantic.Field(
        slurmrestapi.DEFAULT_API_VERSION,
        description="SLURM REST API version",
    )
    rest_api_timeout: float = pydantic.Field(
        slurmrestapi.DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
    )
    port: int = pydantic.Field(9092, description="HTTP server port", gt=0, lt=65536)
    metrics_path: str = pydantic.Field(
        "/metrics",
        description="URL path for metrics endpoint",
    )
    poll_limit: float = pydantic.Field(
        120.0,
        description="Minimum seconds between refreshes of an endpoint snapshot",
        gt=0,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")
    disabled_collectors: list[str] = pydantic.Field(
        default_factory=list,
        description="Collectors that are not registered",
    )
    exclude_single_cpu_nodes: bool = pydantic.Field(
        True,
        description="Leave nodes reporting exactly one CPU out of cluster CPU totals",
    )
    gpu_tres_name: str = pydantic.Field(
        GPU_TRES_NAME,
        description="TRES name identifying GPUs",
    )
    node_state_delimiter: str = pydantic.Field(
        "|",
        description="Separator joining a node's states in the status label",
    )
    error_policies: dict[str, ErrorPolicy] = pydantic.Field(
        default_factory=dict,
        description="Per-collector override of the bad-record policy",
    )

    @pydantic.field_validator("disabled_collectors")
    @classmethod
    def _check_collector_names(cls, value: list[str]) -> list[str]:
        unknown = sorted(set(value) - set(COLLECTORS))
        if unknown:
            msg = f"Unknown collectors: {', '.join(unknown)}"
            raise ValueError(msg)
        return value

    @pydantic.field_validator("error_policies")
    @classmethod
    def _check_policy_names(
        cls,
        value: dict[str, ErrorPolicy],
    ) -> dict[str, ErrorPolicy]:
        unsupported = sorted(set(value) - POLICY_COLLECTORS)
        if unsupported:
            msg = f"Collectors without an error policy: {', '.join(unsupported)}"
            raise ValueError(msg)
        return value


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> ExporterConfig:
    """Load and validate the exporter configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the JSON is malformed or a setting is
            invalid.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)
    return ExporterConfig.model_validate_json(path.read_text())


def _generator_options(name: str, config: ExporterConfig) -> dict:
    """Collect the keyword arguments a collector's generator takes from config."""
    options: dict = {}
    if name in config.error_policies:
        options["policy"] = config.error_policies[name]
    if name == "cpu" and not config.exclude_single_cpu_nodes:
        options["exclude_node"] = cpus.exclude_no_nodes
    elif name == "gpu":
        options["gpu_tres_name"] = config.gpu_tres_name
    elif name == "node":
        options["delimiter"] = config.node_state_delimiter
    return options


def create_registry_with_collectors(
    rest_client: slurmrestapi.SlurmRestApiClient,
    config: ExporterConfig,
) -> prometheus_client.core.CollectorRegistry:
    """Create a Prometheus registry with SLURM collectors.

    Creates a custom registry (not the global one) and registers one
    collector per enabled metric family. The REST client is injected into
    each fetcher and config-driven options into each generator at build
    time.

    Args:
        rest_client: Shared REST API client for all collectors.
        config: Exporter configuration.

    Returns:
        Configured Prometheus registry with injected dependencies.
    """
    registry = prometheus_client.core.CollectorRegistry()

    for name, module in COLLECTORS.items():
        if name in config.disabled_collectors:
            logger.info("Skipping disabled collector", collector=name)
            continue

        # Default argument binds the current module, not the loop variable
        def fetcher(module=module):
            return module.fetch(rest_client)

        slurm_collector = collector.SlurmCollector(
            fetcher=fetcher,
            generator=functools.partial(
                module.generate_metrics,
                **_generator_options(name, config),
            ),
            metric_prefix=name,
            scraper_description=f"REST API {rest_client.base_url}",
        )
        registry.register(slurm_collector)
        logger.info("Registered collector", collector=name, metric_prefix=name)

    return registry


def create_starlette_app(
    metrics_path: str,
    registry: prometheus_client.core.CollectorRegistry,
) -> starlette.applications.Starlette:
    """Create the Starlette application serving the registry.

    Every GET on ``metrics_path`` runs all registered collectors; each one
    reads its snapshot through the shared client cache.

    Args:
        metrics_path: URL path for metrics endpoint (e.g., "/metrics").
        registry: Prometheus collector registry.

    Returns:
        Configured Starlette application.
    """

    def metrics_endpoint(
        request: starlette.requests.Request,
    ) -> starlette.responses.Response:
        start = time.time()
        body = prometheus_client.generate_latest(registry)
        logger.info(
            "Served metrics",
            client_ip=request.client.host if request.client else "unknown",
            path=request.url.path,
            duration_seconds=round(time.time() - start, 3),
        )
        return starlette.responses.Response(
            content=body,
            media_type=prometheus_client.CONTENT_TYPE_LATEST,
        )

    return starlette.applications.Starlette(
        routes=[
            starlette.routing.Route(metrics_path, metrics_endpoint, methods=["GET"]),
        ],
    )


def create_exporter(config: ExporterConfig) -> starlette.applications.Starlette:
    """Build the client, cache, registry and app from validated config."""
    rest_client = slurmrestapi.SlurmRestApiClient(
        base_url=config.rest_api_url,
        token_file=config.rest_api_token_file,
        api_version=config.rest_api_version,
        timeout=config.rest_api_timeout,
        cache=cache.AtomicThrottledCache(config.poll_limit),
    )
    logger.info(
        "Created shared REST client",
        base_url=rest_client.base_url,
        api_version=config.rest_api_version,
        poll_limit=config.poll_limit,
    )
    registry = create_registry_with_collectors(rest_client=rest_client, config=config)
    return create_starlette_app(metrics_path=config.metrics_path, registry=registry)


def create_app(config_path: str | None = None) -> starlette.applications.Starlette:
    """ASGI app factory.

    The config path defaults to ``$SLURM_EXPORTER_CONFIG_PATH``, then
    ``/config.json``.
    """
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, "/config.json")
    config = load_config(resolved_path)
    configure_logging(config.log_level)
    return create_exporter(config)
