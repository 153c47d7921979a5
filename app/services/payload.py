"""
Normalizes callback payloads to a flat string-keyed, string-valued dict.

JazzCash posts its callback as URL-encoded form data, but proxies and test
harnesses hand it over as JSON objects, multipart forms or a raw body.
Every encoding is reduced to Dict[str, str] before the signature check so
that the hash is recomputed over exactly what the processor sent.
"""
import json
from typing import Any, Dict, Mapping, Union
from urllib.parse import parse_qsl

from fastapi import Request

RawPayload = Union[None, str, bytes, Mapping[str, Any]]


def _stringify(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return _stringify(value[0]) if value else ""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    return str(value)


def _parse_urlencoded(body: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for key, value in parse_qsl(body.strip(), keep_blank_values=True):
        # first occurrence wins for repeated keys
        out.setdefault(key, value)
    return out


def normalize_payload(raw: RawPayload) -> Dict[str, str]:
    """
    Reduce any supported callback encoding to Dict[str, str].

    Args:
        raw: a mapping (dict, form multidict), a URL-encoded str, or raw bytes

    Returns:
        Flat dict; multi-valued keys keep their first value, None becomes "".
    """
    if raw is None:
        return {}
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return _parse_urlencoded(raw) if raw.strip() else {}

    out: Dict[str, str] = {}
    if hasattr(raw, "multi_items"):
        for key, value in raw.multi_items():
            out.setdefault(str(key), _stringify(value))
        return out
    for key, value in raw.items():
        out[str(key)] = _stringify(value)
    return out


async def read_callback_payload(request: Request) -> Dict[str, str]:
    """Read and normalize a callback body based on its Content-Type."""
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        return normalize_payload(form)

    body = await request.body()
    if content_type.startswith("application/json"):
        try:
            parsed = json.loads(body or b"{}")
        except ValueError:
            # Mislabelled body; fall back to URL-decoding it
            return normalize_payload(body)
        if isinstance(parsed, dict):
            return normalize_payload(parsed)
        if isinstance(parsed, str):
            return normalize_payload(parsed)
        return {}

    return normalize_payload(body)
