"""Azure Resource Manager queries: batched requests and RBAC role assignments."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional, Union

from blackcat.azure.paging import ARM_NEXT_LINK, collect_pages
from blackcat.cache import CacheType
from blackcat.exceptions import InvalidArgumentError
from blackcat.models import RoleAssignment

if TYPE_CHECKING:
    from blackcat.context import AppContext

logger = logging.getLogger(__name__)

BATCH_PATH = "/batch"
BATCH_API_VERSION = "2020-06-01"
BATCH_SIZE = 20
ROLE_ASSIGNMENTS_API_VERSION = "2022-04-01"

_GUID = re.compile(r"^[0-9a-fA-F]{8}-([0-9a-fA-F]{4}-){3}[0-9a-fA-F]{12}$")

BatchRequest = Union[str, dict[str, Any]]


def _normalise_requests(requests: Sequence[BatchRequest]) -> list[dict[str, Any]]:
    """Turn bare URLs into GET requests and give every request a unique name."""
    normalised = []
    for index, item in enumerate(requests):
        if isinstance(item, str):
            item = {"httpMethod": "GET", "url": item}
        elif not isinstance(item, dict) or not item.get("url"):
            raise InvalidArgumentError(f"Batch request {index} needs a 'url'")
        request = {"httpMethod": "GET", **item}
        request.setdefault("name", str(index))
        normalised.append(request)
    names = [r["name"] for r in normalised]
    if len(set(names)) != len(names):
        raise InvalidArgumentError("Batch request names must be unique")
    return normalised


def invoke_az_batch(
    ctx: AppContext,
    requests: Sequence[BatchRequest],
    use_cache: bool = True,
    ttl_minutes: Optional[float] = None,
) -> list[dict[str, Any]]:
    """Send ARM requests through the ``/batch`` endpoint.

    Requests are sent in chunks of :data:`BATCH_SIZE`; each chunk is cached
    under the ``AzBatch`` partition, fingerprinted over its request body.

    Args:
        ctx: Application context supplying the ARM token and cache.
        requests: ARM request dicts (``httpMethod``, ``url``, optional
            ``name``) or bare relative URLs for GETs.
        use_cache: Read through the cache.
        ttl_minutes: Lifetime of newly cached chunks.

    Returns:
        The per-request responses (``name``, ``httpStatusCode``,
        ``content``) in input order. Individual failures stay in their
        response's status code.

    Raises:
        InvalidArgumentError: If *requests* is empty or malformed.
    """
    if not requests:
        raise InvalidArgumentError("At least one batch request is required")
    normalised = _normalise_requests(requests)
    order = {r["name"]: i for i, r in enumerate(normalised)}

    responses: list[dict[str, Any]] = []
    with ctx.arm_client() as client:
        for start in range(0, len(normalised), BATCH_SIZE):
            chunk = normalised[start:start + BATCH_SIZE]
            data = client.post_json(
                BATCH_PATH,
                {"requests": chunk},
                params={"api-version": BATCH_API_VERSION},
                cache_type=CacheType.AZ_BATCH if use_cache else None,
                ttl_minutes=ttl_minutes,
            )
            chunk_responses = (data or {}).get("responses", []) if isinstance(data, dict) else []
            if len(chunk_responses) != len(chunk):
                logger.warning(
                    "Batch returned %d responses for %d requests", len(chunk_responses), len(chunk)
                )
            responses.extend(chunk_responses)

    return sorted(responses, key=lambda r: order.get(str(r.get("name")), len(order)))


def _to_role_assignment(item: dict[str, Any]) -> RoleAssignment:
    props = item.get("properties") or {}
    return RoleAssignment(
        id=item.get("id", ""),
        name=item.get("name"),
        principal_id=props.get("principalId"),
        principal_type=props.get("principalType"),
        role_definition_id=props.get("roleDefinitionId"),
        scope=props.get("scope"),
    )


def get_role_assignments(
    ctx: AppContext,
    subscription_id: str,
    principal_id: Optional[str] = None,
    use_cache: bool = True,
    ttl_minutes: Optional[float] = None,
) -> list[RoleAssignment]:
    """List role assignments in a subscription, optionally for one principal.

    Raises:
        InvalidArgumentError: If an ID is not a GUID.
    """
    if not _GUID.match(subscription_id or ""):
        raise InvalidArgumentError(f"Invalid subscription ID: {subscription_id!r}")
    params: dict[str, Any] = {"api-version": ROLE_ASSIGNMENTS_API_VERSION}
    if principal_id is not None:
        if not _GUID.match(principal_id):
            raise InvalidArgumentError(f"Invalid principal ID: {principal_id!r}")
        params["$filter"] = f"principalId eq '{principal_id}'"

    path = f"/subscriptions/{subscription_id}/providers/Microsoft.Authorization/roleAssignments"
    with ctx.arm_client() as client:
        items = collect_pages(
            client,
            path,
            params,
            next_key=ARM_NEXT_LINK,
            cache_type=CacheType.ROLE_ASSIGNMENT if use_cache else None,
            ttl_minutes=ttl_minutes,
        )
    if not isinstance(items, list):
        return []
    return [_to_role_assignment(item) for item in items if isinstance(item, dict)]
