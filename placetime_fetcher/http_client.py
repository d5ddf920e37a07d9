"""Shared HTTP client construction.

Every outbound request made by a job goes through a client built here, so
each one carries the configured timeout and user agent.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

import httpx


def build_client(timeout: float, user_agent: str) -> httpx.Client:
    """Create a synchronous HTTP client.

    Args:
        timeout: Timeout in seconds applied to connect, read and write
        user_agent: User-Agent header value

    Returns:
        Configured httpx client
    """
    return httpx.Client(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": user_agent},
    )


@contextmanager
def client_scope(
    client: Optional[httpx.Client],
    timeout: float,
    user_agent: str,
) -> Generator[httpx.Client, None, None]:
    """Yield the injected client, or a fresh one closed on exit."""
    if client is not None:
        yield client
        return

    with build_client(timeout, user_agent) as fresh:
        yield fresh
