"""CLI for wxsuite: WeChat Work third-party suite / provider API calls.

Commands: suite-token, pre-auth-code, auth-url, permanent-code, auth-info,
corp-token, provider-token, provider-auth-url, login-info, verify.

Credentials come from env (.env): WXSUITE_SUITE_ID, WXSUITE_SUITE_SECRET,
WXSUITE_SUITE_TICKET, WXSUITE_CORP_ID, WXSUITE_PROVIDER_SECRET.
Set WXSUITE_TOKEN_FILE to share the access token between runs.

Exit codes: 0 success, 1 error, 2 usage.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Any, List, Optional, Type

from .client import DEFAULT_PREFIX
from .config import env, load_env, resolve_path, verbose_enabled
from .provider import ProviderClient
from .store import FileTokenStore, MemoryTokenStore, TokenStore
from .suite import SuiteClient
from .token import AccessToken, ProviderAccessToken, SuiteAccessToken
from .transport import HttpxTransport


# ----------------------------
# Clients
# ----------------------------

def _token_store(token_class: Type[AccessToken], suffix: str) -> TokenStore:
    raw = (os.environ.get("WXSUITE_TOKEN_FILE") or "").strip()
    if not raw:
        return MemoryTokenStore()
    # suite and provider tokens never share a file
    return FileTokenStore(f"{resolve_path(raw)}.{suffix}", token_class)


def _base_kwargs() -> dict:
    return {
        "prefix": os.environ.get("WXSUITE_API_PREFIX", DEFAULT_PREFIX),
        "transport": HttpxTransport(timeout=float(os.environ.get("WXSUITE_TIMEOUT", "30"))),
    }


def _suite_client() -> SuiteClient:
    return SuiteClient(
        env("WXSUITE_SUITE_ID"),
        env("WXSUITE_SUITE_SECRET"),
        env("WXSUITE_SUITE_TICKET"),
        token_store=_token_store(SuiteAccessToken, "suite"),
        **_base_kwargs(),
    )


def _provider_client() -> ProviderClient:
    return ProviderClient(
        env("WXSUITE_CORP_ID"),
        env("WXSUITE_PROVIDER_SECRET"),
        token_store=_token_store(ProviderAccessToken, "provider"),
        **_base_kwargs(),
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


# ----------------------------
# Commands
# ----------------------------

async def cmd_suite_token() -> None:
    token = await _suite_client().get_latest_token()
    _print_json(token.to_dict())


async def cmd_provider_token() -> None:
    token = await _provider_client().get_latest_token()
    _print_json(token.to_dict())


async def cmd_pre_auth_code(apps: Optional[List[str]]) -> None:
    _print_json(await _suite_client().get_pre_auth_code(apps))


def cmd_auth_url(pre_auth_code: str, redirect_uri: str, state: str) -> None:
    print(_suite_client().build_authorization_url(pre_auth_code, redirect_uri, state))


def cmd_provider_auth_url(redirect_uri: str, state: str) -> None:
    print(_provider_client().build_authorization_url(redirect_uri, state))


async def cmd_permanent_code(auth_code: str) -> None:
    data = await _suite_client().get_permanent_code(auth_code)
    _print_json(data)
    if data.get("permanent_code"):
        print("Keep permanent_code: the auth code cannot be exchanged again.", file=sys.stderr)


async def cmd_auth_info(corp_id: str, permanent_code: str) -> None:
    _print_json(await _suite_client().get_auth_info(corp_id, permanent_code))


async def cmd_corp_token(corp_id: str, permanent_code: str) -> None:
    _print_json(await _suite_client().get_corp_token(corp_id, permanent_code))


async def cmd_login_info(auth_code: str) -> None:
    _print_json(await _provider_client().get_login_info(auth_code))


async def cmd_verify() -> None:
    """Check config and issue tokens for whichever credentials are configured. Exit 0 if OK."""
    suite_vars = ("WXSUITE_SUITE_ID", "WXSUITE_SUITE_SECRET", "WXSUITE_SUITE_TICKET")
    provider_vars = ("WXSUITE_CORP_ID", "WXSUITE_PROVIDER_SECRET")
    has_suite = all((os.environ.get(n) or "").strip() for n in suite_vars)
    has_provider = all((os.environ.get(n) or "").strip() for n in provider_vars)

    if not has_suite and not has_provider:
        missing = [n for n in suite_vars + provider_vars if not (os.environ.get(n) or "").strip()]
        print(f"wxsuite verify: Missing env: {', '.join(missing)}", file=sys.stderr)
        sys.exit(1)

    if has_suite:
        try:
            await _suite_client().get_suite_token()
        except Exception as e:
            print(f"wxsuite verify: suite token: {e}", file=sys.stderr)
            sys.exit(1)
        print("Suite credentials OK.")

    if has_provider:
        try:
            await _provider_client().get_provider_token()
        except Exception as e:
            print(f"wxsuite verify: provider token: {e}", file=sys.stderr)
            sys.exit(1)
        print("Provider credentials OK.")


def main(argv: Optional[List[str]] = None) -> None:
    import argparse

    p = argparse.ArgumentParser(
        prog="wxsuite",
        description="Call the WeChat Work third-party service API with suite / provider credentials.",
        epilog=(
            "Typical suite authorization flow:\n"
            "  wxsuite pre-auth-code\n"
            "  wxsuite auth-url --pre-auth-code CODE --redirect-uri https://example.com/cb\n"
            "  wxsuite permanent-code --auth-code AUTH_CODE   (from the redirect)\n"
            "  wxsuite corp-token --corp-id CORPID --permanent-code PERMANENT_CODE\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (same as WXSUITE_VERBOSE=1).",
    )

    sub = p.add_subparsers(dest="cmd", required=True, metavar="COMMAND")

    sub.add_parser("suite-token", help="Print the current suite access token (debug).")

    p_pre = sub.add_parser("pre-auth-code", help="Get a pre-auth code to start authorization.")
    p_pre.add_argument(
        "--app",
        action="append",
        default=None,
        dest="apps",
        help="App id allowed in this authorization. Repeat for several; default: all apps.",
    )

    p_url = sub.add_parser("auth-url", help="Build the authorization login page URL for the suite.")
    p_url.add_argument("--pre-auth-code", required=True)
    p_url.add_argument("--redirect-uri", required=True)
    p_url.add_argument("--state", default="")

    p_perm = sub.add_parser("permanent-code", help="Exchange a temporary auth code for the permanent code.")
    p_perm.add_argument("--auth-code", required=True)

    p_info = sub.add_parser("auth-info", help="Show authorization info for a corp.")
    p_info.add_argument("--corp-id", required=True)
    p_info.add_argument("--permanent-code", required=True)

    p_corp = sub.add_parser("corp-token", help="Get a corp access_token from the permanent code.")
    p_corp.add_argument("--corp-id", required=True)
    p_corp.add_argument("--permanent-code", required=True)

    sub.add_parser("provider-token", help="Print the current provider access token (debug).")

    p_purl = sub.add_parser("provider-auth-url", help="Build the provider login page URL.")
    p_purl.add_argument("--redirect-uri", required=True)
    p_purl.add_argument("--state", default="")

    p_login = sub.add_parser("login-info", help="Resolve a third-party login auth code.")
    p_login.add_argument("--auth-code", required=True)

    sub.add_parser("verify", help="Check config and issue tokens for the configured credentials.")

    args = p.parse_args(argv)
    load_env()

    if args.verbose:
        os.environ["WXSUITE_VERBOSE"] = "1"
    logging.basicConfig(
        level=logging.DEBUG if verbose_enabled() else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.cmd == "suite-token":
            asyncio.run(cmd_suite_token())
        elif args.cmd == "pre-auth-code":
            asyncio.run(cmd_pre_auth_code(args.apps))
        elif args.cmd == "auth-url":
            cmd_auth_url(args.pre_auth_code, args.redirect_uri, args.state)
        elif args.cmd == "permanent-code":
            asyncio.run(cmd_permanent_code(args.auth_code))
        elif args.cmd == "auth-info":
            asyncio.run(cmd_auth_info(args.corp_id, args.permanent_code))
        elif args.cmd == "corp-token":
            asyncio.run(cmd_corp_token(args.corp_id, args.permanent_code))
        elif args.cmd == "provider-token":
            asyncio.run(cmd_provider_token())
        elif args.cmd == "provider-auth-url":
            cmd_provider_auth_url(args.redirect_uri, args.state)
        elif args.cmd == "login-info":
            asyncio.run(cmd_login_info(args.auth_code))
        elif args.cmd == "verify":
            asyncio.run(cmd_verify())
        else:
            raise SystemExit(2)
        sys.exit(0)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        print(f"wxsuite: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
