"""URL validation helpers for remote service requests."""

from __future__ import annotations

from urllib.parse import urlparse


def validate_ddns_target(value: str) -> None:
    """Check a ``host[/path]`` DDNS target; the scheme is added by the agent."""
    if "://" in value:
        raise ValueError("must be a host or host/path without a scheme")
    if any(char.isspace() for char in value):
        raise ValueError("must not contain whitespace")

    host = urlparse(f"https://{value}").hostname
    if not host:
        raise ValueError("must include a hostname")
