"""Exception hierarchy for blackcat.

All exceptions inherit from :class:`BlackCatError`, which carries an
``exit_code`` taken from :mod:`blackcat.exit_codes`. :func:`blackcat.app.main`
catches ``BlackCatError`` and exits with that code; anything else is written
to a crash log.

Cache misses, expired entries and full caches are *not* exceptions -- they are
reported through return values. Only programming errors (bad arguments) and
upstream failures raise.

Subclass hierarchy::

    BlackCatError (exit 1)
    +-- InvalidArgumentError  (exit 2)
    +-- AuthError             (exit 3)
    +-- NotFoundError         (exit 4)
    +-- ServerError           (exit 5)
    +-- ConnectionError_      (exit 6)
    +-- ThrottledError        (exit 8)
    +-- ConfigError           (exit 1)
"""

from blackcat.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_THROTTLED,
)


class BlackCatError(Exception):
    """Base exception for all blackcat errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidArgumentError(BlackCatError):
    """Raised when a caller passes an argument that can never be valid.

    The operation is rejected before any state is touched.
    """

    exit_code = EXIT_INVALID_USAGE


class AuthError(BlackCatError):
    """Raised on HTTP 401/403 or when no access token can be resolved."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(BlackCatError):
    """Raised when the API returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ServerError(BlackCatError):
    """Raised when the API returns an HTTP 5xx (or unmapped 4xx) error."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(BlackCatError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ThrottledError(BlackCatError):
    """Raised when HTTP 429 persists after every retry.

    Args:
        message: Error description.
        retry_after: Seconds the server last asked us to wait.
    """

    exit_code = EXIT_THROTTLED

    def __init__(self, message: str, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class ConfigError(BlackCatError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
