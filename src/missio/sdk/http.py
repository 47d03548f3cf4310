"""Shared HTTP client factory.

All outgoing HTTP in the SDK goes through ``create_http_client`` so that tests
can swap the transport in one place.
"""

import httpx

DEFAULT_TIMEOUT = 15.0


def create_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create an AsyncClient with the SDK defaults."""
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=False)
