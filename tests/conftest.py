"""Shared fixtures: a fake HTTP session and a client bound to it."""

import json
from dataclasses import dataclass
from typing import Any

import pytest
import requests
from loguru import logger

from mts_client.client import Client


def make_response(status_code: int, payload: Any = None, raw: bytes | None = None) -> requests.Response:
    """Build a ``requests.Response`` with a JSON (or raw) body."""
    resp = requests.Response()
    resp.status_code = status_code
    if raw is not None:
        resp._content = raw
    elif payload is not None:
        resp._content = json.dumps(payload).encode("utf-8")
    else:
        resp._content = b""
    return resp


@dataclass
class Call:
    method: str
    url: str
    params: dict[str, Any] | None
    body: Any
    headers: dict[str, str]
    timeout: float | None

    def json(self) -> Any:
        return json.loads(self.body)


class FakeSession:
    """
    Stand-in for ``requests.Session``.

    Streamed bodies are read to the end, as a transport would, before the
    next queued response (or exception) is returned.
    """

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self._responses: list[Any] = []

    def queue(self, status_code: int, payload: Any = None, raw: bytes | None = None) -> None:
        self._responses.append(make_response(status_code, payload, raw))

    def fail(self, exc: Exception) -> None:
        self._responses.append(exc)

    def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> requests.Response:
        outcome = self._responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if data is not None and not isinstance(data, (str, bytes)):
            data = b"".join(data)
        self.calls.append(Call(method, url, params, data, dict(headers or {}), timeout))
        return outcome


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(session: FakeSession) -> Client:
    return Client("test-token", "alice", base_url="https://api.test", session=session)


@pytest.fixture(autouse=True)
def _drop_log_sinks():
    yield
    logger.remove()


class EarlyResponseSession:
    """Session that answers at once, leaving a streamed body unread."""

    def __init__(self, status_code: int, payload: Any = None) -> None:
        self.status_code = status_code
        self.payload = payload
        self.requests = 0

    def request(self, method: str, url: str, data: Any = None, **kwargs: Any) -> requests.Response:
        self.requests += 1
        return make_response(self.status_code, self.payload)
