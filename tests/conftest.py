from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from lxd_vault.schemas.image import ImageInfo, Query
from lxd_vault.services.image_vault import LXDImageVault
from lxd_vault.services.lxd_request import LXDRequestClient
from lxd_vault.services.operations import OperationPoller

BASE_URL = "http://lxd/1.0"
INSTANCE_NAME = "pied-piper-valley"
DEFAULT_ID = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
DEFAULT_STREAM_LOCATION = "server/releases/bionic/release-20200519.1/ubuntu-18.04-server-cloudimg-amd64.img"
DEFAULT_VERSION = "20200519.1"
DEFAULT_SERVER = "https://cloud-images.ubuntu.com/releases/"
OPERATION_ID = "0a19a412-03d0-4118-bee8-a3095f06d4da"

DEFAULT_INFO = ImageInfo(
    id=DEFAULT_ID,
    aliases=["18.04", "b", "bionic"],
    os="ubuntu",
    release="bionic",
    release_title="18.04 LTS",
    version=DEFAULT_VERSION,
    stream_location=DEFAULT_STREAM_LOCATION,
    server=DEFAULT_SERVER,
)


def operation_reply(
    status: str = "Running",
    status_code: int = 103,
    download_progress: str | None = None,
    err: str = "",
    result: dict[str, Any] | None = None,
) -> dict[str, Any]:
    metadata = dict(result or {})
    if download_progress is not None:
        metadata["download_progress"] = download_progress
    return {
        "type": "sync",
        "status": "Success",
        "status_code": 200,
        "metadata": {
            "id": OPERATION_ID,
            "class": "task",
            "status": status,
            "status_code": status_code,
            "metadata": metadata or None,
            "err": err,
        },
    }


@dataclass
class RecordedRequest:
    method: str
    path: str
    params: dict[str, str]


@dataclass
class FakeLXDDaemon:
    """In-memory stand-in for the parts of the LXD API the vault uses."""

    instances: dict[str, dict[str, Any]] = field(default_factory=dict)
    images: dict[str, int] = field(default_factory=dict)
    operation_replies: list[dict[str, Any]] = field(default_factory=list)
    requests: list[RecordedRequest] = field(default_factory=list)
    download_bodies: list[dict[str, Any]] = field(default_factory=list)
    instance_lookup_fails: bool = False
    cancel_fails: bool = False

    def __post_init__(self) -> None:
        self.app = self._build_app()

    def add_instance(self, name: str, config: dict[str, str]) -> None:
        self.instances[name] = {"name": name, "status": "Stopped", "config": config}

    def calls(self, method: str, path: str) -> int:
        return sum(1 for request in self.requests if request.method == method and request.path == path)

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.middleware("http")
        async def record(request: Request, call_next):
            self.requests.append(RecordedRequest(request.method, request.url.path, dict(request.query_params)))
            return await call_next(request)

        @app.get("/1.0/virtual-machines/{name}")
        async def get_instance(name: str):
            if self.instance_lookup_fails:
                return _error(500, "database is locked")
            if name not in self.instances:
                return _not_found()
            return _sync(self.instances[name])

        @app.delete("/1.0/virtual-machines/{name}")
        async def delete_instance(name: str):
            if self.instances.pop(name, None) is None:
                return _not_found()
            return _sync({})

        @app.get("/1.0/images/{fingerprint}")
        async def get_image(fingerprint: str):
            if fingerprint not in self.images:
                return _not_found()
            return _sync({"fingerprint": fingerprint, "size": self.images[fingerprint]})

        @app.post("/1.0/images")
        async def create_image(request: Request):
            self.download_bodies.append(await request.json())
            return JSONResponse(
                status_code=202,
                content={
                    "type": "async",
                    "status": "Operation created",
                    "status_code": 100,
                    "operation": f"/1.0/operations/{OPERATION_ID}",
                    "metadata": {"id": OPERATION_ID, "class": "task", "status": "Running", "status_code": 103},
                },
            )

        @app.get("/1.0/operations/{operation_id}")
        async def get_operation(operation_id: str):
            if operation_id != OPERATION_ID or not self.operation_replies:
                return _not_found()
            if len(self.operation_replies) > 1:
                return self.operation_replies.pop(0)
            return self.operation_replies[0]

        @app.delete("/1.0/operations/{operation_id}")
        async def cancel_operation(operation_id: str):
            if self.cancel_fails:
                return _error(500, "cannot cancel")
            return _sync({})

        return app


def _sync(metadata: dict[str, Any]) -> dict[str, Any]:
    return {"type": "sync", "status": "Success", "status_code": 200, "metadata": metadata}


def _error(code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=code, content={"type": "error", "error": message, "error_code": code})


def _not_found() -> JSONResponse:
    return _error(404, "not found")


class StubImageHost:
    """Image host returning a single catalog entry."""

    def __init__(self, info: ImageInfo = DEFAULT_INFO, remotes: tuple[str, ...] = ("release", "daily")) -> None:
        self.info = info
        self.remotes = list(remotes)
        self.queries: list[Query] = []
        self.hash_lookups: list[str] = []

    def supported_remotes(self) -> list[str]:
        return self.remotes

    def info_for(self, query: Query) -> ImageInfo | None:
        self.queries.append(query)
        return self.info if query.release in self.info.aliases else None

    def info_for_full_hash(self, full_hash: str) -> ImageInfo | None:
        self.hash_lookups.append(full_hash)
        return self.info if full_hash == self.info.id else None


@pytest.fixture
def fake_lxd() -> FakeLXDDaemon:
    return FakeLXDDaemon()


@pytest.fixture
def lxd_client(fake_lxd: FakeLXDDaemon):
    with TestClient(fake_lxd.app) as client:
        yield LXDRequestClient(client, base_url=BASE_URL, timeout=5)


@pytest.fixture
def image_host() -> StubImageHost:
    return StubImageHost()


@pytest.fixture
def vault(image_host: StubImageHost, lxd_client: LXDRequestClient) -> LXDImageVault:
    poller = OperationPoller(lxd_client, poll_timeout=5, poll_interval=0)
    return LXDImageVault([image_host], lxd_client, poller=poller)


@pytest.fixture
def default_query() -> Query:
    return Query(instance_name=INSTANCE_NAME, release="bionic")
