"""Built-in CLI sub-commands for blackcat.

This package groups the Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~blackcat.commands.cache` -- cache analytics, export and clearing.
* :mod:`~blackcat.commands.config` -- view and modify global settings.
* :mod:`~blackcat.commands.enum` -- DNS and public blob enumeration.
* :mod:`~blackcat.commands.graph` -- Microsoft Graph queries.
* :mod:`~blackcat.commands.arm` -- ARM batch and RBAC queries.

Each module exports a :class:`typer.Typer` sub-application. Commands reach
shared state through :func:`app_context`.
"""

from __future__ import annotations

import typer

from blackcat.config import apply_overrides
from blackcat.context import AppContext


def app_context(ctx: typer.Context) -> AppContext:
    """Return the invocation's :class:`AppContext`, building it on first use.

    Global flags (``--no-cache``, ``--cache-ttl``, ``--throttle-limit``, ...)
    sit on top of the environment and the settings file. A context passed in
    as ``obj={"app": AppContext(...)}`` (tests, embedding applications) is
    reused with the same flags applied to it.
    """
    ctx.ensure_object(dict)
    overrides = ctx.obj.get("overrides") or {}
    context = ctx.obj.get("app")
    if context is None:
        context = AppContext.from_overrides(overrides)
        ctx.obj["app"] = context
    elif overrides:
        context.reconfigure(apply_overrides(context.config, overrides))
    return context
