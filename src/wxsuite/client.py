"""Token-guarded request core shared by the suite and provider clients.

Every signed call goes through BaseClient.request():
  1. use the stored token if still valid, else issue a new one
  2. attach it as a query param and send the request
  3. HTTP status outside 200-204 -> TransportError
  4. errcode in the JSON envelope -> RemoteAPIError, except token-expiry codes:
     those clear the store, issue a new token and retry while the retry budget lasts

Concurrent calls that all see an expired token each refresh on their own.
Callers who need single-flight refresh must lock inside their TokenStore.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, ClassVar, Dict, Mapping, Optional, Type

from .errors import MethodCollisionError, RemoteAPIError, TokenRefreshError, TransportError
from .store import MemoryTokenStore, TokenStore
from .token import AccessToken
from .transport import HttpResponse, HttpxTransport, Options, Transport, merge_options, post_json

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "https://qyapi.weixin.qq.com/cgi-bin/"
DEFAULT_RETRY = 3

# 40001: invalid credential, 42001: access token expired
TOKEN_EXPIRED_CODES = frozenset({40001, 42001})


def _is_success_status(status_code: int) -> bool:
    return 200 <= status_code <= 204


class BaseClient:
    """Holds the current token, talks to the TokenStore and signs outgoing requests.

    Subclasses set token_path / token_class and implement _token_payload().
    """

    token_path: ClassVar[str] = ""
    token_class: ClassVar[Type[AccessToken]] = AccessToken

    def __init__(
        self,
        *,
        token_store: Optional[TokenStore] = None,
        transport: Optional[Transport] = None,
        token_from_custom: bool = False,
        prefix: str = DEFAULT_PREFIX,
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.token_store: TokenStore = token_store if token_store is not None else MemoryTokenStore()
        self.transport: Transport = transport if transport is not None else HttpxTransport()
        # token lifecycle managed entirely outside this client: no refresh-and-retry
        self.token_from_custom = token_from_custom
        self.prefix = prefix if prefix.endswith("/") else prefix + "/"
        self.defaults: Options = dict(defaults or {})
        self.current_token: Optional[AccessToken] = None

    def set_opts(self, opts: Mapping[str, Any]) -> None:
        """Replace the default options merged under every request (e.g. {"timeout": 15})."""
        self.defaults = dict(opts)

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return self.prefix + path.lstrip("/")

    def _token_payload(self) -> Dict[str, Any]:
        raise NotImplementedError

    # ----------------------------
    # Tokens
    # ----------------------------

    async def refresh_token(self) -> AccessToken:
        """Issue a new token from the platform and hand it to the store. Never retries."""
        url = self.url(self.token_path)
        response = await self.transport(url, merge_options(self.defaults, post_json(self._token_payload())))
        if not _is_success_status(response.status_code):
            raise TokenRefreshError(
                f"token issuance failed: url: {url}, status code: {response.status_code}",
                status_code=response.status_code,
            )

        data = response.data if isinstance(response.data, dict) else {}
        if data.get("errcode"):
            raise TokenRefreshError(data.get("errmsg") or "token issuance failed", code=data["errcode"])

        value = data.get(self.token_class.response_field)
        expires_in = data.get("expires_in")
        if not value or expires_in is None:
            raise TokenRefreshError(f"Invalid token response: missing {self.token_class.response_field}/expires_in")

        try:
            ttl = int(expires_in)
        except (TypeError, ValueError) as e:
            raise TokenRefreshError(f"Invalid token response: expires_in={expires_in!r}") from e

        token = self.token_class.issue(value, ttl)
        self.current_token = token
        await self.token_store.save(token)
        logger.debug("issued new %s, expires_in=%s", self.token_class.__name__, expires_in)
        return token

    async def get_latest_token(self) -> AccessToken:
        """Stored token if it is still valid, otherwise a freshly issued one."""
        token = await self.token_store.load()
        if token is not None and token.is_valid():
            self.current_token = token
            return token
        return await self.refresh_token()

    # ----------------------------
    # Requests
    # ----------------------------

    async def _send(self, url: str, options: Options, token: AccessToken) -> Any:
        signed = dict(options)
        signed["params"] = {**(options.get("params") or {}), token.query_param: token.value}
        response: HttpResponse = await self.transport(url, signed)

        if not _is_success_status(response.status_code):
            raise TransportError(url, response.status_code)

        data = response.data
        if isinstance(data, dict) and data.get("errcode"):
            raise RemoteAPIError(data["errcode"], data.get("errmsg") or "")
        return data

    async def request(self, url: str, options: Optional[Mapping[str, Any]] = None, retry: int = DEFAULT_RETRY) -> Any:
        """Send a signed request and return the decoded JSON payload.

        Token-expiry errcodes trigger invalidate + refresh + resend, at most `retry` times.
        """
        merged = merge_options(self.defaults, options)
        token = await self.get_latest_token()
        while True:
            try:
                return await self._send(url, merged, token)
            except RemoteAPIError as err:
                if err.code not in TOKEN_EXPIRED_CODES or retry <= 0 or self.token_from_custom:
                    raise
                logger.info("token rejected with errcode %s, refreshing (retries left: %d)", err.code, retry)
                await self.token_store.save(None)
                token = await self.refresh_token()
                retry -= 1

    async def post(self, path: str, body: Mapping[str, Any], retry: int = DEFAULT_RETRY) -> Any:
        return await self.request(self.url(path), post_json(body), retry)

    # ----------------------------
    # Extension
    # ----------------------------

    @classmethod
    def extend(cls, endpoints: Mapping[str, Callable[..., Awaitable[Any]]]) -> None:
        """
        Add endpoint wrappers as methods. Each function takes the client as first argument.
        Any name already on the class raises MethodCollisionError and nothing is added.
        """
        for name in endpoints:
            if hasattr(cls, name):
                raise MethodCollisionError(name)
        for name, fn in endpoints.items():
            setattr(cls, name, fn)
