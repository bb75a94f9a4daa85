"""Built-in CLI sub-commands for pollcurl.

This package groups the Typer command modules that form the CLI's
top-level command tree:

* :mod:`~pollcurl.commands.request` -- send a request (``request`` plus the
  ``get``/``post``/``put``/``delete``/``head``/``patch`` shorthands).
* :mod:`~pollcurl.commands.config` -- view and modify persisted settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config``) or plain callback functions
registered directly on the root app (for single commands like ``request``).
"""
