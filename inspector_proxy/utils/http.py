"""HTTP utility functions for making upstream requests."""

import os
from functools import lru_cache
from typing import Optional, Union

import httpx

# Default custom certificate path for corporate/enterprise environments
DEFAULT_CUSTOM_CERT_PATH = "/etc/ssl/certs/ca-custom.pem"


@lru_cache(maxsize=1)
def get_ssl_verify() -> Union[str, bool]:
    """
    Get SSL verification setting for HTTP clients.

    Returns:
        Path to custom CA certificate if it exists, otherwise True for default verification.

    Note:
        Result is cached since the certificate path doesn't change at runtime.
    """
    if os.path.exists(DEFAULT_CUSTOM_CERT_PATH):
        return DEFAULT_CUSTOM_CERT_PATH
    return True


def create_http_client(
    timeout: float = 30.0,
    read_timeout: Optional[float] = None,
    **kwargs
) -> httpx.AsyncClient:
    """
    Create an httpx AsyncClient with standard configuration.

    Args:
        timeout: Connect, write and pool timeout in seconds (default: 30.0)
        read_timeout: Read timeout in seconds; None disables it, which
            long-lived event streams need
        **kwargs: Additional arguments passed to AsyncClient

    Returns:
        Configured AsyncClient instance

    Usage:
        async with create_http_client(timeout=10.0) as client:
            async with client.stream("GET", url) as response:
                ...
    """
    return httpx.AsyncClient(
        verify=get_ssl_verify(),
        timeout=httpx.Timeout(timeout, read=read_timeout),
        **kwargs
    )
