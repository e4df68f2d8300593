"""Deterministic request fingerprints used as cache keys.

A fingerprint is the SHA-256 of ``METHOD|URL|sorted_params|sorted_body`` so
semantically identical requests always map to the same entry regardless of
the order in which parameters or body fields were supplied.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Optional


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def make_key(
    method: str,
    url: str,
    params: Optional[dict[str, Any]] = None,
    body: Any = None,
) -> str:
    """Return the cache key for a logical request.

    Args:
        method: HTTP method; case-insensitive.
        url: Absolute request URL, without the query string.
        params: Query parameters. Empty and ``None`` are equivalent.
        body: JSON body for POST-style reads such as ARM batch calls.

    Returns:
        A 64-character hex digest.

    Example::

        >>> make_key("get", "https://graph.microsoft.com/v1.0/users", {"b": 1, "a": 2}) == \\
        ...     make_key("GET", "https://graph.microsoft.com/v1.0/users", {"a": 2, "b": 1})
        True
    """
    parts = [method.upper(), url]
    if params:
        parts.append(_canonical(params))
    if body is not None:
        parts.append(_canonical(body))
    raw = "|".join(parts)
    return hashlib.sha256(raw.encode()).hexdigest()
