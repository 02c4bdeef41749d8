from __future__ import annotations

import urllib.parse

LOOPBACK_HOSTS = {"127.0.0.1", "::1", "localhost"}


def is_allowed_redirect_uri(uri: str) -> bool:
    parsed = urllib.parse.urlparse(uri)
    if not parsed.hostname:
        return False
    if parsed.scheme == "https":
        return True
    if parsed.scheme != "http":
        return False
    return parsed.hostname in LOOPBACK_HOSTS


def redirect_path(uri: str) -> str:
    """Return the local route path the provider redirects back to."""
    path = urllib.parse.urlparse(uri).path
    return path or "/callback"
