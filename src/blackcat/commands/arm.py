"""ARM commands -- batched Resource Manager requests and RBAC listing.

Provides the ``blackcat arm`` sub-command group. Responses are read through
the ``AzBatch`` and ``RoleAssignment`` cache partitions.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from blackcat.azure import get_role_assignments, invoke_az_batch
from blackcat.commands import app_context
from blackcat.exceptions import InvalidArgumentError
from blackcat.output import OutputFormat, format_response, get_output, print_table, warning

arm_app = typer.Typer(no_args_is_help=True)


@arm_app.command("batch")
def arm_batch(
    ctx: typer.Context,
    urls: Optional[list[str]] = typer.Argument(
        None, help="Relative ARM URLs to GET, e.g. /subscriptions?api-version=2022-12-01."
    ),
    requests_file: Optional[Path] = typer.Option(
        None, "--file", "-F", help="JSON file holding a list of batch requests."
    ),
    ttl: Optional[float] = typer.Option(
        None, "--ttl", help="Cache lifetime for the responses, in minutes."
    ),
) -> None:
    """Send ARM requests through the /batch endpoint.

    Example::

        blackcat arm batch "/subscriptions?api-version=2022-12-01"
        blackcat arm batch --file requests.json
    """
    context = app_context(ctx)
    requests: list = list(urls or [])
    if requests_file is not None:
        try:
            loaded = json.loads(requests_file.expanduser().read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise InvalidArgumentError(f"Cannot read batch requests from {requests_file}: {exc}") from exc
        if isinstance(loaded, dict):
            loaded = loaded.get("requests", [])
        if not isinstance(loaded, list):
            raise InvalidArgumentError(f"{requests_file} must hold a list of requests")
        requests.extend(loaded)

    responses = invoke_az_batch(
        context, requests, ttl_minutes=ttl
    )
    failed = [r for r in responses if int(r.get("httpStatusCode", 0)) >= 400]
    if failed:
        warning(f"{len(failed)} of {len(responses)} batch request(s) failed")
    format_response(responses)


@arm_app.command("role-assignments")
def arm_role_assignments(
    ctx: typer.Context,
    subscription_id: str = typer.Argument(help="Subscription ID."),
    principal_id: Optional[str] = typer.Option(
        None, "--principal", help="Only assignments for this principal object ID."
    ),
) -> None:
    """List RBAC role assignments in a subscription.

    Example::

        blackcat arm role-assignments 00000000-0000-0000-0000-000000000000
    """
    context = app_context(ctx)
    assignments = get_role_assignments(
        context, subscription_id, principal_id
    )
    if not assignments:
        warning("No role assignments found.")
        return

    if get_output().format == OutputFormat.JSON:
        format_response([a.model_dump(mode="json") for a in assignments])
        return
    print_table(
        ["Principal", "Type", "Role definition", "Scope"],
        [
            [a.principal_id or "", a.principal_type or "",
             (a.role_definition_id or "").rsplit("/", 1)[-1], a.scope or ""]
            for a in assignments
        ],
        title="Role assignments",
    )
