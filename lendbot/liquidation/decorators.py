"""
Decorators and API request utilities.
"""

import functools
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple, Type

import requests

from .exceptions import RateLimitedError, TransportError
from .logging_config import LOGGER_NAME

HTTP_TOO_MANY_REQUESTS = 429


def retry_request(
    logger: logging.Logger,
    max_retries: int = 3,
    delay: float = 2,
    retry_on: Tuple[Type[BaseException], ...] = (requests.ConnectionError, requests.Timeout),
) -> Callable:
    """
    Decorator to retry a function on connection-level request failures.

    Rate-limit and HTTP status errors are not retried here; they propagate so
    the caller can apply its own backoff policy.

    Args:
        logger: Logger instance for retry logging.
        max_retries: Maximum number of attempts.
        delay: Delay between retries in seconds.
        retry_on: Exception types that trigger a retry.

    Returns:
        Decorated function with retry logic.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    logger.warning(
                        "Error in API request, waiting %s seconds before retrying. Attempt %s/%s: %s",
                        delay, attempt, max_retries, e,
                    )

                    if attempt == max_retries:
                        logger.error("Failed after %s attempts.", max_retries)
                        raise TransportError(f"Request failed after {max_retries} attempts: {e}") from e

                    time.sleep(delay)

        return wrapper

    return decorator


def _retry_after(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


@retry_request(logging.getLogger(LOGGER_NAME))
def make_api_request(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    method: str = "GET",
    timeout: float = 10,
) -> Any:
    """
    Make an API request with retry functionality.

    Args:
        url: The URL for the API request.
        headers: Headers for the request.
        params: Query parameters for the request.
        json_body: JSON body for POST requests.
        method: HTTP method.
        timeout: Request timeout in seconds.

    Returns:
        Decoded JSON response.

    Raises:
        RateLimitedError: if the server answered 429.
        TransportError: for any other HTTP error status.
    """
    response = requests.request(method, url, headers=headers, params=params, json=json_body, timeout=timeout)
    if response.status_code == HTTP_TOO_MANY_REQUESTS:
        raise RateLimitedError(f"Rate limited by {url}", endpoint=url, retry_after=_retry_after(response))
    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        raise TransportError(f"HTTP {response.status_code} from {url}", endpoint=url) from e
    return response.json()
