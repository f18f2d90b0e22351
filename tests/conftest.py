"""
Shared test fixtures for apkclient.

FakeRepository stands in for a package mirror: tests register the bytes
and ETag served at each URL and hand its client to the code under test.
"""

from typing import Dict, List, Optional

import httpx
import pytest

from apkclient.fs import MemFS


class FakeRepository:
    """In-memory HTTP server for keys and package archives.

    Attributes:
        files: Body served per URL
        etags: ETag header served per URL
        requests: Every request received, in order
        offline: Fail every request as if the network were unreachable
        honor_if_none_match: Answer 304 when If-None-Match matches
    """

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.etags: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self.offline = False
        self.honor_if_none_match = True

    def add(self, url: str, data: bytes, etag: Optional[str] = None) -> None:
        url = str(httpx.URL(url))
        self.files[url] = data
        if etag is None:
            self.etags.pop(url, None)
        else:
            self.etags[url] = etag

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("network is unreachable", request=request)

        url = str(request.url)
        if url not in self.files:
            return httpx.Response(404)

        headers = {}
        etag = self.etags.get(url)
        if etag is not None:
            headers["ETag"] = etag
            if self.honor_if_none_match and request.headers.get("If-None-Match") == etag:
                return httpx.Response(304, headers=headers)
        return httpx.Response(200, content=self.files[url], headers=headers)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def repo():
    """Create an empty fake repository."""
    return FakeRepository()


@pytest.fixture
def client(repo):
    """HTTP capability served by the fake repository."""
    return repo.client()


@pytest.fixture
def fs():
    """Managed root filesystem."""
    return MemFS()


@pytest.fixture
def host_fs():
    """Host filesystem for local key files and repositories."""
    return MemFS()
