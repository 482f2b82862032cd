from __future__ import annotations

import pytest

from core.constants import HTTP_USER_AGENT
from core.http.session import SessionState, cleanup_session, get_session


@pytest.mark.asyncio
async def test_session_is_shared_until_cleanup() -> None:
    first = await get_session()

    assert await get_session() is first
    assert first.headers["User-Agent"] == HTTP_USER_AGENT

    await cleanup_session()
    assert first.closed
    assert SessionState.session is None

    replacement = await get_session()
    assert replacement is not first
    await cleanup_session()


@pytest.mark.asyncio
async def test_session_from_another_process_is_not_reused() -> None:
    inherited = await get_session()
    SessionState.owner_pid = -1

    fresh = await get_session()

    assert fresh is not inherited
    await cleanup_session()
    await inherited.close()
