"""
Retry policy and HTTP status mapping for upstream calls.

Only HTTP 429 is retried. Authentication failures (401/403) and every other
error surface immediately as UpstreamRequestError.
"""

from typing import Callable, TypeVar

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.errors import RateLimitedError, UpstreamRequestError

logger = structlog.get_logger()

T = TypeVar("T")


def _log_retry(retry_state) -> None:
    logger.warning(
        "Rate limited, retrying",
        attempt=retry_state.attempt_number,
        function=retry_state.fn.__name__ if retry_state.fn else None,
    )


def create_rate_limit_retry(
    max_attempts: int = 5,
    min_wait: float = 1,
    max_wait: float = 30,
    multiplier: float = 1,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Retry decorator for rate-limited requests.

    The final RateLimitedError is re-raised once attempts are exhausted.
    """
    return retry(
        retry=retry_if_exception_type(RateLimitedError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        before_sleep=_log_retry,
        reraise=True,
    )


def check_response(response: httpx.Response, service: str) -> None:
    """Map an HTTP response status onto the error taxonomy"""
    status = response.status_code
    if status < 400:
        return
    if status == 429:
        raise RateLimitedError(f"{service} rate limit exceeded", status_code=status)
    if status in (401, 403):
        raise UpstreamRequestError(
            f"{service} rejected credentials (HTTP {status})", status_code=status
        )
    raise UpstreamRequestError(
        f"{service} request failed (HTTP {status}): {response.text[:200]}",
        status_code=status,
    )
