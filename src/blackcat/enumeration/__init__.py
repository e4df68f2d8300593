"""Parallel enumeration of Azure-hosted names and anonymously readable storage.

* :func:`run_bounded` -- bounded thread-pool fan-out with per-unit error
  capture and an attempted/succeeded/failed summary.
* :func:`find_subdomains` -- DNS brute force across Azure service domains.
* :func:`find_public_containers` -- storage account discovery followed by
  anonymous ``List Blobs`` probing.
"""

from blackcat.enumeration.blobs import find_public_containers, list_container
from blackcat.enumeration.pool import run_bounded
from blackcat.enumeration.subdomains import AZURE_DOMAINS, find_subdomains, resolve_host

__all__ = [
    "AZURE_DOMAINS",
    "find_public_containers",
    "find_subdomains",
    "list_container",
    "resolve_host",
    "run_bounded",
]
