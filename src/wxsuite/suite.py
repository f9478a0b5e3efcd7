"""Suite (third-party application) client.

Authenticates with suite_access_token issued from suite_id + suite_secret + suite_ticket.
The platform pushes a new suite_ticket to the callback URL every 10 minutes; feed it
in with set_suite_ticket().

Endpoints (all POST service/<name>?suite_access_token=...):
  get_pre_auth_code, set_session_info, get_permanent_code,
  get_auth_info, get_agent, set_agent, get_corp_token
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Union
from urllib.parse import urlencode

from .client import BaseClient
from .token import SuiteAccessToken

LOGIN_PAGE_URL = "https://qy.weixin.qq.com/cgi-bin/loginpage"

AppIds = Union[int, str, Sequence[int], Sequence[str]]


def _app_ids(apps: AppIds) -> list:
    """A single id (str or int) becomes a one-item list."""
    if isinstance(apps, (str, int)):
        return [apps]
    return list(apps)


class SuiteClient(BaseClient):
    token_path = "service/get_suite_token"
    token_class = SuiteAccessToken

    def __init__(self, suite_id: str, suite_secret: str, suite_ticket: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.suite_id = suite_id
        self.suite_secret = suite_secret
        self.suite_ticket = suite_ticket

    def _token_payload(self) -> Dict[str, Any]:
        return {
            "suite_id": self.suite_id,
            "suite_secret": self.suite_secret,
            "suite_ticket": self.suite_ticket,
        }

    async def get_suite_token(self) -> SuiteAccessToken:
        return await self.refresh_token()  # type: ignore[return-value]

    def set_suite_ticket(self, ticket: str) -> None:
        self.suite_ticket = ticket

    def build_authorization_url(self, pre_auth_code: str, redirect_uri: str, state: str = "") -> str:
        """URL of the platform login page where an admin authorizes this suite."""
        if not pre_auth_code:
            raise ValueError("pre_auth_code is required")
        if not redirect_uri:
            raise ValueError("redirect_uri is required")
        query = urlencode(
            {
                "suite_id": self.suite_id,
                "pre_auth_code": pre_auth_code,
                "redirect_uri": redirect_uri,
                "state": state,
            }
        )
        return f"{LOGIN_PAGE_URL}?{query}"


async def get_pre_auth_code(api: SuiteClient, apps: Optional[AppIds] = None) -> Dict[str, Any]:
    """Pre-auth code used to start the authorization flow. `apps` limits which apps may be authorized."""
    data: Dict[str, Any] = {"suite_id": api.suite_id}
    if apps:
        data["appid"] = _app_ids(apps)
    return await api.post("service/get_pre_auth_code", data)


async def set_session_info(api: SuiteClient, pre_auth_code: str, apps: AppIds) -> Dict[str, Any]:
    """Restrict one authorization session to the given apps (default: all apps)."""
    data = {
        "pre_auth_code": pre_auth_code,
        "session_info": {"appid": _app_ids(apps)},
    }
    return await api.post("service/set_session_info", data)


async def get_permanent_code(api: SuiteClient, auth_code: str) -> Dict[str, Any]:
    """
    Exchange the temporary auth code for the permanent code, auth info and corp access_token.
    The temporary code works once; persist permanent_code.
    """
    data = {"suite_id": api.suite_id, "auth_code": auth_code}
    return await api.post("service/get_permanent_code", data)


async def get_auth_info(api: SuiteClient, auth_corpid: str, permanent_code: str) -> Dict[str, Any]:
    data = {
        "suite_id": api.suite_id,
        "auth_corpid": auth_corpid,
        "permanent_code": permanent_code,
    }
    return await api.post("service/get_auth_info", data)


async def get_agent(api: SuiteClient, auth_corpid: str, permanent_code: str, agent_id: Union[int, str]) -> Dict[str, Any]:
    """Basic info of one authorized app: logo, name, visibility range, ..."""
    data = {
        "suite_id": api.suite_id,
        "auth_corpid": auth_corpid,
        "permanent_code": permanent_code,
        "agentid": agent_id,
    }
    return await api.post("service/get_agent", data)


async def set_agent(api: SuiteClient, auth_corpid: str, permanent_code: str, agent: Dict[str, Any]) -> Dict[str, Any]:
    """
    Update app options for the authorizing corp, e.g.
      {"agentid": "5", "report_location_flag": "0", "name": "NAME",
       "description": "DESC", "redirect_domain": "...", "isreportuser": 0}
    """
    data = {
        "suite_id": api.suite_id,
        "auth_corpid": auth_corpid,
        "permanent_code": permanent_code,
        "agent": agent,
    }
    return await api.post("service/set_agent", data)


async def get_corp_token(api: SuiteClient, auth_corpid: str, permanent_code: str) -> Dict[str, Any]:
    """access_token for calling the corp APIs on behalf of the authorizing corp."""
    data = {
        "suite_id": api.suite_id,
        "auth_corpid": auth_corpid,
        "permanent_code": permanent_code,
    }
    return await api.post("service/get_corp_token", data)


SUITE_ENDPOINTS = {
    "get_pre_auth_code": get_pre_auth_code,
    "set_session_info": set_session_info,
    "get_permanent_code": get_permanent_code,
    "get_auth_info": get_auth_info,
    "get_agent": get_agent,
    "set_agent": set_agent,
    "get_corp_token": get_corp_token,
}

SuiteClient.extend(SUITE_ENDPOINTS)

