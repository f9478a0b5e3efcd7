"""Exceptions raised by wxsuite clients.

TransportError:   HTTP status outside 200-204, network failure or timeout.
RemoteAPIError:   JSON envelope with a non-zero errcode.
TokenRefreshError: the token issuance call itself failed.
MethodCollisionError: an endpoint name is already taken on the client.
"""
from __future__ import annotations

from typing import Optional


class SuiteAPIError(RuntimeError):
    pass


class TransportError(SuiteAPIError):
    def __init__(self, url: str, status_code: Optional[int] = None, detail: str = "") -> None:
        self.url = url
        self.status_code = status_code
        msg = f"url: {url}, status code: {status_code}"
        if detail:
            msg = f"{msg}, {detail}"
        super().__init__(msg)


class RemoteAPIError(SuiteAPIError):
    def __init__(self, code: Optional[int], message: str = "") -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}" if code is not None else message)


class TokenRefreshError(RemoteAPIError):
    """Issuance failed: carries either the HTTP status or the envelope error."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(code, message)


class MethodCollisionError(SuiteAPIError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Don't allow override existed method. method: {name}")
