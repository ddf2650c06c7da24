"""Retry utilities with exponential backoff for supplier HTTP requests."""

import logging

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)
import httpx


# tenacity logs through a stdlib logger with a numeric level
logger = logging.getLogger(__name__)


# Transport-level failures only (connect, read timeout, protocol errors).
# HTTP status codes are handled by the adapters themselves: 429 has its own
# cooldown and 401 must abort the run instead of being retried.
transport_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(httpx.TransportError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
