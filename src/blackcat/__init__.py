"""blackcat -- Azure / Entra ID enumeration toolkit for authorised assessments.

The package exposes a Typer CLI that wraps Microsoft Graph and Azure Resource
Manager endpoints, enumerates Azure-hosted DNS names and anonymously readable
blob containers, and memoises API responses in a bounded in-memory cache so
repeated lookups during an engagement do not hit rate limits.

Typical workflow::

    export AZURE_ACCESS_TOKEN=...            # ARM token
    blackcat graph get /users                # paged Graph query
    blackcat enum subdomains contoso         # DNS fan-out
    blackcat enum blobs contoso --container backups

Modules:
    app: Typer application and CLI entry point.
    context: Application context wiring config, cache and credentials.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration with env-var precedence.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.4.0"
