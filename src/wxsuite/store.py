"""Token storage backends.

A client only talks to the TokenStore protocol (async load/save). save(None) clears storage.

- MemoryTokenStore: single process only. Cluster or multi-host deployments must
  share the token through something like FileTokenStore or CallbackTokenStore
  (database, redis, ...), otherwise each process keeps refreshing its own token.
- FileTokenStore: JSON file on disk.
- CallbackTokenStore: caller-supplied async load/save functions.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol, Type

from .config import is_production
from .token import AccessToken

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    async def load(self) -> Optional[AccessToken]:
        ...

    async def save(self, token: Optional[AccessToken]) -> None:
        ...


class MemoryTokenStore:
    def __init__(self) -> None:
        self._token: Optional[AccessToken] = None

    async def load(self) -> Optional[AccessToken]:
        return self._token

    async def save(self, token: Optional[AccessToken]) -> None:
        self._token = token
        if token is not None and is_production():
            logger.warning("Don't save token in memory, when cluster or multi-computer!")


class FileTokenStore:
    """Keeps the token as JSON in a file so several processes on one host can share it.

    Writes go to a temp file in the same directory and are swapped in with os.replace,
    so readers see either the old token or the new one. File I/O runs in a worker thread.
    """

    def __init__(self, path: str, token_class: Type[AccessToken] = AccessToken) -> None:
        self.path = Path(path)
        self.token_class = token_class

    async def load(self) -> Optional[AccessToken]:
        return await asyncio.to_thread(self._read)

    async def save(self, token: Optional[AccessToken]) -> None:
        await asyncio.to_thread(self._write, token)

    def _read(self) -> Optional[AccessToken]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            return None
        return self.token_class.from_dict(data)

    def _write(self, token: Optional[AccessToken]) -> None:
        if token is None:
            self.path.unlink(missing_ok=True)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(token.to_dict(), f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class CallbackTokenStore:
    def __init__(
        self,
        load: Callable[[], Awaitable[Optional[AccessToken]]],
        save: Callable[[Optional[AccessToken]], Awaitable[None]],
    ) -> None:
        self._load = load
        self._save = save

    async def load(self) -> Optional[AccessToken]:
        return await self._load()

    async def save(self, token: Optional[AccessToken]) -> None:
        await self._save(token)
