"""Provider (service vendor) client.

Authenticates with provider_access_token issued from corpid + provider_secret,
both shown on the vendor admin console.
"""
from __future__ import annotations

from typing import Any, Dict
from urllib.parse import urlencode

from .client import BaseClient
from .suite import LOGIN_PAGE_URL
from .token import ProviderAccessToken


class ProviderClient(BaseClient):
    token_path = "service/get_provider_token"
    token_class = ProviderAccessToken

    def __init__(self, corp_id: str, provider_secret: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.corp_id = corp_id
        self.provider_secret = provider_secret

    def _token_payload(self) -> Dict[str, Any]:
        return {"corpid": self.corp_id, "provider_secret": self.provider_secret}

    async def get_provider_token(self) -> ProviderAccessToken:
        return await self.refresh_token()  # type: ignore[return-value]

    def build_authorization_url(self, redirect_uri: str, state: str = "") -> str:
        """Login page URL for the vendor's third-party login flow."""
        if not redirect_uri:
            raise ValueError("redirect_uri is required")
        query = urlencode({"corp_id": self.corp_id, "redirect_uri": redirect_uri, "state": state})
        return f"{LOGIN_PAGE_URL}?{query}"


async def get_login_info(api: ProviderClient, auth_code: str) -> Dict[str, Any]:
    """Resolve the auth_code from a third-party login redirect into user and corp info."""
    return await api.post("service/get_login_info", {"auth_code": auth_code})


PROVIDER_ENDPOINTS = {
    "get_login_info": get_login_info,
}

ProviderClient.extend(PROVIDER_ENDPOINTS)
