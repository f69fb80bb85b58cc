"""SLURM REST API client.

Reads the job, node, partition, diag and shares endpoints and returns
Pydantic-validated records. Snapshot caching is optional and keyed per
endpoint, so one client can be shared by every collector.
"""

import base64
import json
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel

from ..cache import AtomicThrottledCache
from .types import (
    RawDiagStatistics,
    RawJobData,
    RawNodeData,
    RawPartitionData,
    RawShareData,
)

logger = structlog.get_logger(__name__)

# The response models follow the v0.0.41 schema (SLURM 24.05).
DEFAULT_API_VERSION = "v0.0.41"

DEFAULT_TIMEOUT = 30.0

TOKEN_HEADER = "X-SLURM-USER-TOKEN"

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


class ExpiredTokenError(Exception):
    """Raised when the Slurm JWT has expired."""


def validate_jwt_not_expired(token: str) -> None:
    """Reject a JWT whose ``exp`` claim is in the past.

    The signature is not verified; slurmrestd does that. Anything that
    cannot be read as a JWT with an ``exp`` claim is let through with a
    warning, since sites may use other token schemes.

    Raises:
        ExpiredTokenError: If the token has expired.
    """
    if token.count(".") != 2:  # noqa: PLR2004
        logger.warning("Token is not a JWT, expiry not checked")
        return

    encoded = token.split(".")[1]
    # base64url in JWTs drops the padding
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(padded))
    except ValueError:
        logger.warning("Unreadable JWT payload, expiry not checked")
        return

    exp = claims.get("exp") if isinstance(claims, dict) else None
    if exp is None:
        logger.warning("JWT carries no exp claim, expiry not checked")
        return

    now = time.time()
    if exp <= now:
        msg = f"Slurm JWT has expired (exp={exp}, now={int(now)})"
        raise ExpiredTokenError(msg)
    logger.info("Slurm JWT accepted", expires_in_seconds=int(exp - now))


def read_token(token_file: str | Path) -> str:
    """Read the API token from ``token_file`` and check its expiry.

    Raises:
        FileNotFoundError: If the file does not exist.
        ExpiredTokenError: If the token is a JWT past its expiry.
    """
    path = Path(token_file)
    if not path.exists():
        msg = f"Token file not found: {token_file}"
        raise FileNotFoundError(msg)
    token = path.read_text().strip()
    validate_jwt_not_expired(token)
    return token


class SlurmRestApiClient:
    """HTTP client for the SLURM REST API.

    Each thread gets its own ``httpx.Client``, created on first use. With a
    cache, unfiltered listings are served from it so that collectors reading
    the same endpoint within one poll window trigger a single request.
    Listings filtered by ``update_time`` always go to the API.

    Can be used as a context manager to close the HTTP client.
    """

    def __init__(
        self,
        base_url: str,
        token_file: str | Path | None = None,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        cache: AtomicThrottledCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the REST API client.

        Args:
            base_url: slurmrestd URL, e.g. "http://localhost:6820".
            token_file: Optional path to a file holding the user token.
            api_version: REST API version used in endpoint paths.
            timeout: Request timeout in seconds.
            cache: Optional snapshot cache shared by the getters.
            transport: Optional httpx transport, e.g. for tests.

        Raises:
            ValueError: If base_url is empty or timeout is not positive.
            FileNotFoundError: If token_file does not exist.
            ExpiredTokenError: If the token is a JWT past its expiry.
        """
        if not base_url:
            msg = "base_url cannot be empty"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self._timeout = timeout
        self._cache = cache
        self._transport = transport
        self._headers = {"Accept": "application/json"}
        if token_file:
            self._headers[TOKEN_HEADER] = read_token(token_file)
        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """This thread's httpx client, recreated if it was closed."""
        http = getattr(self._local, "client", None)
        if http is None or http.is_closed:
            http = httpx.Client(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
            self._local.client = http
        return http

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close this thread's HTTP client if open."""
        http = getattr(self._local, "client", None)
        if http is not None and not http.is_closed:
            http.close()

    def _endpoint(self, resource: str) -> str:
        return f"/slurm/{self.api_version}/{resource}"

    @staticmethod
    def _check_api_messages(endpoint: str, data: dict[str, Any]) -> None:
        """Log API warnings and raise on API errors.

        slurmrestd reports problems in ``warnings`` and ``errors`` lists on
        an otherwise successful HTTP response.

        Raises:
            RuntimeError: If the ``errors`` list is not empty.
        """
        for warning in data.get("warnings") or []:
            logger.warning(
                "slurmrestd warning",
                endpoint=endpoint,
                description=warning.get("description", str(warning)),
            )

        messages = [
            error.get("description") or error.get("error") or str(error)
            for error in data.get("errors") or []
        ]
        if messages:
            logger.error("slurmrestd error", endpoint=endpoint, errors=messages)
            msg = f"API returned errors: {'; '.join(messages)}"
            raise RuntimeError(msg)

    def _get_json(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """GET an endpoint and return its JSON body.

        Raises:
            httpx.HTTPError: If the request fails or returns a non-2xx status.
            RuntimeError: If the API reports errors in the body.
        """
        start = time.time()
        logger.debug("GET", endpoint=endpoint, params=params or {})
        try:
            response = self.client.get(endpoint, params=params or {})
            response.raise_for_status()
        except httpx.HTTPError:
            logger.exception(
                "Request to slurmrestd failed",
                endpoint=endpoint,
                duration_seconds=round(time.time() - start, 3),
            )
            raise
        logger.debug(
            "Response received",
            endpoint=endpoint,
            duration_seconds=round(time.time() - start, 3),
        )

        data = response.json()
        self._check_api_messages(endpoint, data)
        return data

    def _cached(self, key: str, fetch_func: Callable[[], T]) -> T:
        if self._cache is None:
            return fetch_func()
        data, _ = self._cache.fetch_or_throttle(key, fetch_func)
        return data

    def _get_list(
        self,
        resource: str,
        model: type[M],
        update_time: int | None = None,
    ) -> list[M]:
        """Fetch a listing endpoint and validate each entry.

        Args:
            resource: Endpoint name, which is also the response key.
            model: Pydantic model for a single entry.
            update_time: Optional Unix timestamp to only list entries
                changed since then.

        Returns:
            List of validated entries.
        """

        def fetch() -> list[M]:
            params = {} if update_time is None else {"update_time": update_time}
            data = self._get_json(self._endpoint(resource), params)
            return [model.model_validate(item) for item in data.get(resource) or []]

        if update_time is not None:
            return fetch()
        return self._cached(resource, fetch)

    def get_jobs(self, update_time: int | None = None) -> list[RawJobData]:
        """List jobs.

        Raises:
            httpx.HTTPError: If HTTP request fails.
            RuntimeError: If API returns errors.
        """
        return self._get_list("jobs", RawJobData, update_time)

    def get_nodes(self, update_time: int | None = None) -> list[RawNodeData]:
        """List nodes.

        Raises:
            httpx.HTTPError: If HTTP request fails.
            RuntimeError: If API returns errors.
        """
        return self._get_list("nodes", RawNodeData, update_time)

    def get_partitions(
        self,
        update_time: int | None = None,
    ) -> list[RawPartitionData]:
        """List partitions.

        Raises:
            httpx.HTTPError: If HTTP request fails.
            RuntimeError: If API returns errors.
        """
        return self._get_list("partitions", RawPartitionData, update_time)

    def get_diag(self) -> RawDiagStatistics:
        """Fetch scheduler statistics (as reported by ``sdiag``)."""

        def fetch() -> RawDiagStatistics:
            data = self._get_json(self._endpoint("diag"))
            return RawDiagStatistics.model_validate(data.get("statistics") or {})

        return self._cached("diag", fetch)

    def get_shares(self) -> list[RawShareData]:
        """Fetch fair-share information for every association."""

        def fetch() -> list[RawShareData]:
            data = self._get_json(self._endpoint("shares"))
            shares = (data.get("shares") or {}).get("shares") or []
            return [RawShareData.model_validate(share) for share in shares]

        return self._cached("shares", fetch)
