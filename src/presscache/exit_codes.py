"""Numeric process exit codes used by the ``presscache`` CLI.

Each constant maps to one error category of
:mod:`presscache.exceptions`, so shell wrappers and cron jobs can tell a
missing replica apart from an unreachable site without parsing stderr.

Example::

    $ presscache sync
    $ echo $?
    5   # EXIT_METADATA_ERROR -- the site did not report its totals
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_CONSTRUCTION_ERROR = 3
"""An initial replica could not be built (no connectivity, unwritable path)."""

EXIT_FILESYSTEM_ERROR = 4
"""The replica file is missing, unreadable, or could not be written."""

EXIT_METADATA_ERROR = 5
"""The remote totals could not be obtained or the replica diverged from them."""

EXIT_INVALID_URL = 6
"""A request URL could not be built from the configured site."""
