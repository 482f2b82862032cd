"""Shared aiohttp session for the upstream oracle clients.

The session belongs to the process and the event loop that created it. A
child process after a fork, or a new event loop (each pytest-asyncio test
runs on its own), gets a fresh one.
"""

from __future__ import annotations

import asyncio
import logging
import os

import aiohttp

from core.constants import (
    HTTP_CONNECTION_LIMIT,
    HTTP_TIMEOUT_CONNECT,
    HTTP_TIMEOUT_SOCK_READ,
    HTTP_TIMEOUT_TOTAL,
    HTTP_USER_AGENT,
)

logger = logging.getLogger(__name__)


class SessionState:
    """Holder for the shared session and the pid that owns it."""

    session: aiohttp.ClientSession | None = None
    owner_pid: int | None = None

    @classmethod
    def forget(cls) -> None:
        cls.session = None
        cls.owner_pid = None

    @classmethod
    def usable(cls) -> bool:
        session = cls.session
        if session is None or session.closed or cls.owner_pid != os.getpid():
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return True
        return session.loop is loop and not loop.is_closed()


def _new_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(
            total=HTTP_TIMEOUT_TOTAL,
            connect=HTTP_TIMEOUT_CONNECT,
            sock_read=HTTP_TIMEOUT_SOCK_READ,
        ),
        headers={"User-Agent": HTTP_USER_AGENT, "Accept": "application/json"},
        connector=aiohttp.TCPConnector(
            limit=HTTP_CONNECTION_LIMIT,
            enable_cleanup_closed=True,
        ),
    )


async def _close_quietly(session: aiohttp.ClientSession) -> None:
    if session.closed or session.loop.is_closed():
        return
    try:
        await session.close()
    except (aiohttp.ClientError, RuntimeError) as e:
        logger.warning("Error closing aiohttp session: %s", e)


async def get_session() -> aiohttp.ClientSession:
    """Return the shared session, replacing it when it cannot be reused."""
    if SessionState.usable():
        return SessionState.session

    previous = SessionState.session
    if previous is not None:
        if SessionState.owner_pid == os.getpid():
            logger.info("Event loop changed, replacing aiohttp session")
            await _close_quietly(previous)
        else:
            logger.debug(
                "Dropping aiohttp session inherited from process %s",
                SessionState.owner_pid,
            )

    SessionState.session = _new_session()
    SessionState.owner_pid = os.getpid()
    return SessionState.session


async def cleanup_session() -> None:
    """Close the shared session for the current process."""
    session = SessionState.session
    if session is not None and SessionState.owner_pid == os.getpid():
        await _close_quietly(session)
        logger.info("Closed aiohttp session for process %s", os.getpid())
    SessionState.forget()
