"""Cookie header parsing."""

from __future__ import annotations


def parse_cookies(raw_header: str | None) -> dict[str, str]:
    """Parse a raw ``Cookie`` header into a name -> value mapping.

    Each ``;``-separated part is trimmed and split on the first ``=``; any
    further ``=`` characters are kept in the value verbatim. Parts without a
    name are skipped. Never raises.

    Args:
        raw_header: Value of the ``Cookie`` request header, or None.

    Returns:
        Mapping of cookie names to raw (undecoded) values.

    Example:
        >>> parse_cookies("a=1; b=x=y")
        {'a': '1', 'b': 'x=y'}
    """
    if not raw_header:
        return {}

    cookies: dict[str, str] = {}
    for part in raw_header.split(";"):
        key, _, value = part.strip().partition("=")
        if key:
            cookies[key] = value
    return cookies
