"""Helpers for turning :class:`httpx.Response` bodies into Python data."""

from __future__ import annotations

from typing import Any

import httpx


def extract_response_data(response: httpx.Response) -> Any:
    """Return the body as decoded JSON, raw text, or ``None`` when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def error_message(response: httpx.Response) -> str:
    """Pull a readable message out of an Azure / Graph error body.

    Azure nests it as ``{"error": {"code": ..., "message": ...}}``; storage
    returns XML, which is passed through truncated.
    """
    detail = extract_response_data(response)
    if isinstance(detail, dict):
        err = detail.get("error")
        if isinstance(err, dict):
            code = err.get("code") or ""
            msg = err.get("message") or ""
            return f"{code}: {msg}".strip(": ")
        return str(detail.get("message") or err or detail.get("detail") or "")
    if isinstance(detail, str):
        return detail[:200]
    return ""
