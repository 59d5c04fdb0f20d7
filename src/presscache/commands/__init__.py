"""Built-in CLI sub-commands for presscache.

This package groups the Typer sub-command modules that form the CLI's
command tree:

* :mod:`~presscache.commands.cache` -- ``build``, ``sync``, ``stats``,
  ``tags`` and ``categories`` for the active site's replica.
* :mod:`~presscache.commands.profile` -- add, list, show and remove site
  profiles.

``cache`` exports plain callback functions registered directly on the
root app; ``profile`` exports a :class:`typer.Typer` sub-application.
"""
