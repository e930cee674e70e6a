"""
Shared HTTP plumbing for the ticketing backend clients
"""

from typing import Any, Optional

import httpx
import structlog

from shared.errors import UpstreamRequestError
from shared.resilience import check_response, create_rate_limit_retry

logger = structlog.get_logger()


class BaseRestClient:
    """
    Synchronous REST client with rate-limit retry.

    - HTTP 429 is retried with exponential backoff
    - HTTP 401/403 and other failures raise UpstreamRequestError
    """

    service_name = "backend"

    def __init__(
        self,
        base_url: str,
        auth: Optional[httpx.Auth] = None,
        headers: Optional[dict] = None,
        timeout: float = 30.0,
        max_attempts: int = 5,
        backoff_multiplier: float = 1,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=timeout,
            transport=transport,
        )
        retry_policy = create_rate_limit_retry(
            max_attempts=max_attempts,
            min_wait=backoff_multiplier,
            max_wait=30 * backoff_multiplier,
            multiplier=backoff_multiplier,
        )
        self._send = retry_policy(self._send_once)

    def _send_once(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamRequestError(f"{self.service_name} request failed: {e}") from e
        check_response(response, self.service_name)
        return response

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body"""
        response = self._send(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamRequestError(
                f"{self.service_name} returned a non-JSON body", status_code=response.status_code
            ) from e

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
