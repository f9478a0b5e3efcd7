"""Shared fixtures: a scripted in-memory transport."""
from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest

from wxsuite.transport import HttpResponse


class FakeTransport:
    """Answers by endpoint path (the part after the API prefix).

    Each route holds a list of responses consumed in order; the last one repeats.
    Plain dicts are returned as HTTP 200 bodies.
    """

    def __init__(self, routes: Dict[str, List[Any]]) -> None:
        self.routes = {k: list(v) for k, v in routes.items()}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def __call__(self, url: str, options: Dict[str, Any]) -> HttpResponse:
        self.calls.append((url, options))
        path = url.split("/cgi-bin/", 1)[-1]
        queue = self.routes[path]
        resp = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(resp, HttpResponse):
            return resp
        return HttpResponse(status_code=200, data=resp)

    def paths(self) -> List[str]:
        return [url.split("/cgi-bin/", 1)[-1] for url, _ in self.calls]

    def count(self, path: str) -> int:
        return self.paths().count(path)


@pytest.fixture
def fake_transport():
    return FakeTransport
