"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to an error category and is referenced by the matching
:class:`~blackcat.exceptions.BlackCatError` subclass, so wrapper scripts can
branch on ``$?`` without scraping stderr.

Example::

    $ blackcat graph get /users
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments (empty cache key, non-positive TTL, malformed filter)."""

EXIT_AUTH_FAILURE = 3
"""The access token was missing, expired or lacked permissions."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_THROTTLED = 8
"""Every retry of a throttled (HTTP 429) request was exhausted."""
