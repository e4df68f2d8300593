"""Cached wrappers over Microsoft Graph and Azure Resource Manager."""

from blackcat.azure.arm import get_role_assignments, invoke_az_batch
from blackcat.azure.graph import invoke_msgraph

__all__ = ["get_role_assignments", "invoke_az_batch", "invoke_msgraph"]
