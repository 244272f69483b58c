"""
Pytest configuration and shared fixtures for verus-chat-core tests.
"""

import asyncio
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from verus_chat.models import RpcEndpoint, SignedMessage
from verus_chat.rpc_client import RPCClient


@dataclass
class RecordedRequest:
    body: Dict[str, Any]
    authorization: Optional[str]
    content_type: Optional[str]


class FakeDaemon:
    """A local HTTP server answering JSON-RPC posts with a configurable reply."""

    def __init__(self) -> None:
        self.requests: List[RecordedRequest] = []
        self.port: int = 0
        self.method_replies: Dict[str, Dict[str, Any]] = {}
        self.reply(json={"result": 0, "error": None})

    def reply(self, **kwargs: Any) -> None:
        """Set the reply for every method without one of its own."""
        self.default_reply = self._reply_config(**kwargs)

    def reply_to(self, method: str, **kwargs: Any) -> None:
        self.method_replies[method] = self._reply_config(**kwargs)

    @staticmethod
    def _reply_config(
        status: int = 200,
        json: Any = None,
        text: Optional[str] = None,
        delay: float = 0.0,
        body: Optional[bytes] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "status": status,
            "json": json,
            "text": text,
            "delay": delay,
            "body": body,
            "content_type": content_type,
        }

    async def handle(self, request: web.Request) -> web.Response:
        payload = await request.json()
        self.requests.append(
            RecordedRequest(
                body=payload,
                authorization=request.headers.get("Authorization"),
                content_type=request.headers.get("Content-Type"),
            )
        )
        config = self.method_replies.get(payload.get("method"), self.default_reply)
        if config["delay"]:
            await asyncio.sleep(config["delay"])
        if config["body"] is not None:
            return web.Response(
                status=config["status"],
                body=config["body"],
                content_type=config["content_type"],
            )
        if config["text"] is not None:
            return web.Response(status=config["status"], text=config["text"])
        return web.json_response(config["json"], status=config["status"])


@pytest_asyncio.fixture
async def fake_daemon():
    """A running FakeDaemon on a free local port."""
    daemon = FakeDaemon()
    app = web.Application()
    app.router.add_post("/", daemon.handle)
    server = TestServer(app)
    await server.start_server()
    daemon.port = server.port
    yield daemon
    await server.close()


@pytest.fixture
def rpc_endpoint(fake_daemon):
    """Endpoint pointing at the fake daemon."""
    return RpcEndpoint(
        host="127.0.0.1",
        port=fake_daemon.port,
        rpc_user="user1234",
        rpc_password="secretpass",
    )


@pytest.fixture
def closed_port():
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def sample_identity():
    return "alice@"


@pytest.fixture
def sample_z_address():
    return "zs1sampleaddressforchattests0000000000000000000000000000"


@pytest.fixture
def mock_rpc_client():
    """RPCClient stand-in whose methods are AsyncMocks."""
    client = AsyncMock(spec=RPCClient)
    client.sign_message.return_value = SignedMessage(hash="abc", signature="SIG==")
    client.verify_message.return_value = True
    client.z_send_many.return_value = "txid-0001"
    client.z_list_received_by_address.return_value = []
    return client


def write_config(path: Path, port: int = 27486, **overrides: str) -> Path:
    """Write a daemon config file with sensible defaults."""
    values = {"rpcuser": "user1234", "rpcpassword": "secretpass", "rpcport": str(port)}
    values.update(overrides)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["# generated for tests", "server=1"]
    lines.extend(f"{key}={value}" for key, value in values.items() if value is not None)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
