"""Shared fixtures: an in-memory object store and a fake HTTP origin."""
import hashlib
from typing import Optional

import httpx
import pytest

from ci_mirrors.models.manifest import DeclaredFile
from ci_mirrors.tools.errors import StorageError
from ci_mirrors.tools.fetcher import Fetcher


def sha256_of(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def declared(name: str, data: bytes = b"", url: Optional[str] = None, sha256: Optional[str] = None) -> DeclaredFile:
    return DeclaredFile(
        name=name,
        source=url or f"https://origin.test/{name}",
        sha256=sha256 or sha256_of(data),
        license="MIT",
    )


class FakeStore:
    """Object store kept in a dict, recording every call."""

    read_only = False

    def __init__(self, names=()):
        self.objects = {name: b"" for name in names}
        self.puts = []
        self.exists_calls = []
        self.fail_puts = set()
        self.fail_listing = False

    def list_existing_names(self, candidates=None):
        if self.fail_listing:
            raise StorageError("backend unreachable")
        names = set(self.objects)
        if candidates is not None:
            names &= set(candidates)
        return names

    def object_exists(self, name):
        self.exists_calls.append(name)
        return name in self.objects

    def put_object(self, name, body):
        if name in self.fail_puts:
            raise StorageError(f"write of {name} refused")
        data = body if isinstance(body, bytes) else body.read()
        self.puts.append(name)
        if name in self.objects:
            return False
        self.objects[name] = data
        return True


class FakeOrigin:
    """Serves fixed routes through httpx.MockTransport and logs requests.

    A route maps a URL to bytes (200), an int (that status) or
    ("redirect", location).
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        target = self.routes.get(str(request.url))
        if target is None:
            return httpx.Response(404)
        if isinstance(target, int):
            return httpx.Response(target)
        if isinstance(target, tuple):
            return httpx.Response(302, headers={"Location": target[1]})
        # Iterator content keeps the body streaming like a real server.
        return httpx.Response(200, content=iter([target[: len(target) // 2], target[len(target) // 2:]]))

    def fetcher(self, **kwargs) -> Fetcher:
        return Fetcher(transport=httpx.MockTransport(self.handler), **kwargs)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()
