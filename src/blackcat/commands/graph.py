"""Graph commands -- cached Microsoft Graph queries.

Provides the ``blackcat graph`` sub-command group. Responses are read
through the ``MSGraph`` cache partition unless ``--no-cache`` is given.
"""

from __future__ import annotations

from typing import Optional

import typer

from blackcat.azure import invoke_msgraph
from blackcat.commands import app_context
from blackcat.exceptions import InvalidArgumentError
from blackcat.output import debug, format_response, info

graph_app = typer.Typer(no_args_is_help=True)


def parse_params(pairs: list[str]) -> dict[str, str]:
    """Turn ``key=value`` strings into a query dict.

    Raises:
        InvalidArgumentError: If a pair has no ``=``.
    """
    params: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise InvalidArgumentError(f"Expected key=value, got: {pair}")
        params[name] = value
    return params


@graph_app.command("get")
def graph_get(
    ctx: typer.Context,
    path: str = typer.Argument(help="Graph path, e.g. /users or /groups/{id}/members."),
    select: Optional[str] = typer.Option(None, "--select", help="OData $select."),
    filter_: Optional[str] = typer.Option(None, "--filter", help="OData $filter."),
    top: Optional[int] = typer.Option(None, "--top", help="OData $top (page size)."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Extra query parameter as key=value (repeatable)."
    ),
    first_page: bool = typer.Option(
        False, "--first-page", help="Do not follow @odata.nextLink."
    ),
    ttl: Optional[float] = typer.Option(
        None, "--ttl", help="Cache lifetime for this response, in minutes."
    ),
) -> None:
    """GET a Graph resource and print it.

    Example::

        blackcat graph get /users --select id,displayName
        blackcat graph get /servicePrincipals --filter "appId eq '...'"
    """
    context = app_context(ctx)
    params = parse_params(param or [])
    if select:
        params["$select"] = select
    if filter_:
        params["$filter"] = filter_
    if top is not None:
        params["$top"] = str(top)

    data = invoke_msgraph(
        context,
        path,
        params or None,
        ttl_minutes=ttl,
        all_pages=not first_page,
    )
    if isinstance(data, list):
        info(f"{len(data)} item(s)")
    format_response(data)

    counters = context.cache.counters
    debug(f"cache: {counters.hits} hit(s), {counters.misses} miss(es)")
