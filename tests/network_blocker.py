"""Refuses outbound HTTP during tests; only the in-process test client passes."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

if TYPE_CHECKING:
    from collections.abc import Callable

    import pytest

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1", "testserver"})


def is_external(url: Any) -> bool:
    host = (urlparse(str(url)).hostname or "").lower()
    return bool(host) and host not in LOCAL_HOSTS


def _guarded(original: Callable[..., Any]) -> Callable[..., Any]:
    if inspect.iscoroutinefunction(original):

        async def guarded_async(self, method: str, url: Any, *args: Any, **kwargs: Any) -> Any:
            if is_external(url):
                msg = f"Blocked external host in tests: {url}"
                raise RuntimeError(msg)
            return await original(self, method, url, *args, **kwargs)

        return guarded_async

    def guarded(self, method: str, url: Any, *args: Any, **kwargs: Any) -> Any:
        if is_external(url):
            msg = f"Blocked external host in tests: {url}"
            raise RuntimeError(msg)
        return original(self, method, url, *args, **kwargs)

    return guarded


def install_network_blocker(monkeypatch: pytest.MonkeyPatch) -> None:
    import aiohttp
    import httpx

    for owner, attribute in (
        (httpx.AsyncClient, "request"),
        (aiohttp.ClientSession, "_request"),
    ):
        monkeypatch.setattr(owner, attribute, _guarded(getattr(owner, attribute)))
