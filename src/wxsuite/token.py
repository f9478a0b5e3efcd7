"""Short-lived access tokens (suite / provider).

A token is valid while it has a value and the clock is before expires_at.
Expiry is pulled 10 seconds ahead of the server TTL to stay clear of the boundary.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional

EXPIRY_MARGIN_SECONDS = 10


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float  # epoch seconds

    # name of the field in the issuance response, and of the query param on signed calls
    response_field: ClassVar[str] = "access_token"
    query_param: ClassVar[str] = "access_token"

    @classmethod
    def issue(cls, value: str, expires_in: int, now: Optional[float] = None) -> "AccessToken":
        now = time.time() if now is None else now
        return cls(value=value, expires_at=now + (int(expires_in) - EXPIRY_MARGIN_SECONDS))

    def is_valid(self, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return bool(self.value) and now < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "expires_at": self.expires_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessToken":
        return cls(value=str(data.get("value") or ""), expires_at=float(data.get("expires_at") or 0.0))


@dataclass(frozen=True)
class SuiteAccessToken(AccessToken):
    response_field: ClassVar[str] = "suite_access_token"
    query_param: ClassVar[str] = "suite_access_token"


@dataclass(frozen=True)
class ProviderAccessToken(AccessToken):
    response_field: ClassVar[str] = "provider_access_token"
    query_param: ClassVar[str] = "provider_access_token"
