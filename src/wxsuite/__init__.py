"""Async client for the WeChat Work third-party service API (suite and provider tokens)."""
from .client import DEFAULT_PREFIX, TOKEN_EXPIRED_CODES, BaseClient
from .errors import (
    MethodCollisionError,
    RemoteAPIError,
    SuiteAPIError,
    TokenRefreshError,
    TransportError,
)
from .provider import ProviderClient
from .store import CallbackTokenStore, FileTokenStore, MemoryTokenStore, TokenStore
from .suite import SuiteClient
from .token import AccessToken, ProviderAccessToken, SuiteAccessToken
from .transport import HttpResponse, HttpxTransport, merge_options, post_json
