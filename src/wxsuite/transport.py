"""HTTP transport and request options.

A transport is any async callable (url, options) -> HttpResponse. HttpxTransport is the default.

Options keys: method, params, headers, json, data, timeout.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from .errors import TransportError

Options = Dict[str, Any]
Transport = Callable[[str, Options], Awaitable["HttpResponse"]]


@dataclass
class HttpResponse:
    status_code: int
    data: Any


def post_json(body: Mapping[str, Any]) -> Options:
    return {"method": "POST", "json": dict(body)}


def merge_options(defaults: Optional[Mapping[str, Any]], options: Optional[Mapping[str, Any]]) -> Options:
    """
    Merge per-call options over defaults without touching either input.
    headers merge key by key (per-call wins); every other key, params included, is replaced.
    """
    merged: Options = dict(defaults or {})
    if merged.get("headers") is not None:
        merged["headers"] = dict(merged["headers"])

    for key, value in (options or {}).items():
        if key == "headers":
            if value:
                headers = dict(merged.get("headers") or {})
                headers.update(value)
                merged["headers"] = headers
            continue
        merged[key] = value
    return merged


class HttpxTransport:
    """Sends requests with httpx.AsyncClient and decodes JSON bodies."""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.timeout = timeout
        self._client = client

    async def __call__(self, url: str, options: Options) -> HttpResponse:
        method = options.get("method") or ("POST" if "json" in options or "data" in options else "GET")
        kwargs: Dict[str, Any] = {
            "params": options.get("params"),
            "headers": options.get("headers"),
            "timeout": options.get("timeout", self.timeout),
        }
        if "json" in options:
            kwargs["json"] = options["json"]
        elif "data" in options:
            kwargs["data"] = options["data"]

        try:
            if self._client is not None:
                response = await self._client.request(method, url, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(url, None, f"{type(e).__name__}: {e}") from e

        data: Any = None
        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                raise TransportError(url, response.status_code, "invalid JSON body") from e
        return HttpResponse(status_code=response.status_code, data=data)
