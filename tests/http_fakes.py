"""Scripted aiohttp stand-ins for the upstream oracle clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple, Self

import aiohttp
from yarl import URL

if TYPE_CHECKING:
    from types import TracebackType


class RecordedRequest(NamedTuple):
    method: str
    url: str
    kwargs: dict[str, Any]


@dataclass
class FakeResponse:
    """One canned upstream answer; usable as ``async with session.post(...)``."""

    status: int = 200
    json_data: Any = None
    text_data: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    content_type: str = "application/json"
    url: str = "http://oracle.test"

    @property
    def request_info(self) -> aiohttp.RequestInfo:
        return aiohttp.RequestInfo(
            url=URL(self.url),
            method="POST",
            headers={},
            real_url=URL(self.url),
        )

    async def json(self) -> Any:
        if "json" not in self.content_type:
            raise aiohttp.ContentTypeError(
                self.request_info,
                (),
                status=self.status,
                message=f"unexpected mimetype: {self.content_type}",
            )
        return self.json_data

    async def text(self) -> str:
        return self.text_data

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        return False


class FakeSession:
    """Pops scripted responses per verb and records every call it receives.

    A queued exception is raised instead of answering, which is how transport
    failures reach the retry policy.
    """

    def __init__(
        self,
        *,
        get_responses: list[FakeResponse | BaseException] | None = None,
        post_responses: list[FakeResponse | BaseException] | None = None,
    ) -> None:
        self._queues = {
            "GET": list(get_responses or []),
            "POST": list(post_responses or []),
        }
        self.requests: list[RecordedRequest] = []

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._answer("GET", url, kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._answer("POST", url, kwargs)

    def _answer(self, method: str, url: str, kwargs: dict[str, Any]) -> FakeResponse:
        self.requests.append(RecordedRequest(method, url, kwargs))
        queue = self._queues[method]
        if not queue:
            msg = f"Unscripted {method} {url}"
            raise AssertionError(msg)
        answer = queue.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer
