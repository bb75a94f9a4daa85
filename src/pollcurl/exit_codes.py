"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~pollcurl.exceptions.PollcurlError` subclass.
Shell wrappers can inspect the exit code to tell a timeout from a refused
connection without parsing stderr.

Example::

    $ pollcurl get https://example.invalid/slow --timeout 1
    $ echo $?
    8   # EXIT_TIMEOUT -- the client-side deadline elapsed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or request options."""

EXIT_SERVER_ERROR = 5
"""The remote server answered with an HTTP 5xx status."""

EXIT_TRANSPORT_ERROR = 6
"""The transport reported a failure (DNS, refused connection, TLS, I/O)."""

EXIT_TIMEOUT = 8
"""The request exceeded its configured timeout."""

EXIT_CANCELLED = 9
"""The request was cancelled before it completed."""

EXIT_TRANSPORT_UNAVAILABLE = 11
"""The transport engine could not be loaded or initialised."""
