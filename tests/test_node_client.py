from __future__ import annotations

import base64
import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import VALIDATOR_RAW
from validator_monitor.errors import RpcError
from validator_monitor.rpc.client import NodeClient
from validator_monitor.rpc.models import BOND_STATUS_BONDED, BOND_STATUS_UNBONDING

TX_BYTES = b"\x0a\x02\x08\x01"


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _block(height: int) -> dict:
    return {
        "block_id": {"hash": _b64(b"\xaa" * 32)},
        "block": {
            "header": {
                "chain_id": "test-1",
                "height": str(height),
                "time": "2024-01-01T00:00:00Z",
                "proposer_address": _b64(VALIDATOR_RAW),
            },
            "data": {"txs": [_b64(TX_BYTES)]},
            "last_commit": {
                "height": str(height - 1),
                "round": 0,
                "signatures": [
                    {
                        "block_id_flag": "BLOCK_ID_FLAG_COMMIT",
                        "validator_address": _b64(VALIDATOR_RAW),
                        "timestamp": "2024-01-01T00:00:00Z",
                        "signature": _b64(b"\x01" * 64),
                    },
                    {
                        "block_id_flag": "BLOCK_ID_FLAG_ABSENT",
                        "validator_address": None,
                        "timestamp": "0001-01-01T00:00:00Z",
                        "signature": None,
                    },
                ],
            },
        },
    }


class _NodeHandler(BaseHTTPRequestHandler):
    slash_requests: list[dict] = []

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def _send_json(self, status: int, obj: object) -> None:
        body = json.dumps(obj).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_text(self, status: int, text: str) -> None:
        body = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        url = urlparse(self.path)
        path = url.path
        query = {k: v[0] for k, v in parse_qs(url.query).items()}

        if path == "/cosmos/base/tendermint/v1beta1/syncing":
            self._send_json(200, {"syncing": True})
        elif path == "/cosmos/base/tendermint/v1beta1/blocks/latest":
            self._send_json(200, _block(123))
        elif path == "/cosmos/base/tendermint/v1beta1/blocks/120":
            self._send_json(200, _block(120))
        elif path == "/cosmos/base/tendermint/v1beta1/blocks/121":
            self._send_json(500, {"code": 2, "message": "pruned", "details": []})
        elif path == "/cosmos/tx/v1beta1/txs/FOUND":
            self._send_json(200, {
                "tx": {},
                "tx_response": {
                    "height": "120",
                    "txhash": "FOUND",
                    "code": 0,
                    "raw_log": "",
                    "logs": [{
                        "msg_index": 0,
                        "log": "",
                        "events": [{
                            "type": "submit_proposal",
                            "attributes": [{"key": "proposal_id", "value": "12"}],
                        }],
                    }],
                },
            })
        elif path == "/cosmos/tx/v1beta1/txs/MISSING":
            self._send_json(404, {"code": 5, "message": "tx not found: MISSING", "details": []})
        elif path == "/cosmos/tx/v1beta1/txs/INVALID":
            self._send_json(400, {"code": 3, "message": "invalid tx hash", "details": []})
        elif path == "/cosmos/staking/v1beta1/validators/val-bonded":
            self._send_json(200, {"validator": {
                "operator_address": "val-bonded",
                "jailed": False,
                "status": "BOND_STATUS_BONDED",
                "tokens": "1000",
            }})
        elif path == "/cosmos/staking/v1beta1/validators/val-unbonding":
            self._send_json(200, {"validator": {"operator_address": "val-unbonding", "jailed": True, "status": 2}})
        elif path == "/cosmos/staking/v1beta1/validators/val-grpc-not-found":
            self._send_json(500, {"code": 5, "message": "validator not found"})
        elif path == "/cosmos/staking/v1beta1/validators/val-garbage":
            self._send_text(200, "not json")
        elif path == "/cosmos/distribution/v1beta1/validators/val-bonded/slashes":
            type(self).slash_requests.append(query)
            if query.get("pagination.key") == "page2":
                self._send_json(200, {
                    "slashes": [{"validator_period": "7", "fraction": "0.010000000000000000"}],
                    "pagination": {"next_key": None, "total": "0"},
                })
            else:
                self._send_json(200, {
                    "slashes": [{"validator_period": "3", "fraction": "0.050000000000000000"}],
                    "pagination": {"next_key": "page2", "total": "2"},
                })
        elif path == "/cosmos/distribution/v1beta1/validators/val-unknown/slashes":
            self._send_json(400, {"code": 3, "message": "invalid validator address"})
        else:
            self._send_text(404, "Not Found")


@pytest.fixture(scope="module")
def node_url() -> str:
    httpd = HTTPServer(("127.0.0.1", 0), _NodeHandler)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


@pytest.mark.asyncio
async def test_fetch_syncing(node_url: str) -> None:
    client = NodeClient(node_url, timeout=5.0)
    try:
        assert await client.fetch_syncing() is True
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_fetch_blocks_decode_base64_fields(node_url: str) -> None:
    client = NodeClient(node_url, timeout=5.0)
    try:
        latest = await client.fetch_latest_block()
        older = await client.fetch_block_by_height(120)
    finally:
        await client.aclose()

    assert latest.block is not None
    assert latest.block.height == 123
    assert latest.block.txs == [TX_BYTES]
    assert latest.block_id is not None and latest.block_id.hash == b"\xaa" * 32
    signatures = latest.block.last_commit.signatures
    assert signatures[0].validator_address == VALIDATOR_RAW
    assert signatures[1].validator_address == b""
    assert older.block.height == 120


@pytest.mark.asyncio
async def test_fetch_block_server_error_raises(node_url: str) -> None:
    client = NodeClient(node_url, timeout=5.0)
    try:
        with pytest.raises(RpcError) as excinfo:
            await client.fetch_block_by_height(121)
    finally:
        await client.aclose()

    assert excinfo.value.status_code == 500
    assert excinfo.value.endpoint == node_url
    assert "pruned" in str(excinfo.value)


@pytest.mark.asyncio
async def test_fetch_tx_by_hash(node_url: str) -> None:
    client = NodeClient(node_url, timeout=5.0)
    try:
        found = await client.fetch_tx_by_hash("FOUND")
        missing = await client.fetch_tx_by_hash("MISSING")
        invalid = await client.fetch_tx_by_hash("INVALID")
    finally:
        await client.aclose()

    assert found is not None
    assert found.height == 120
    assert found.logs[0].events[0].attributes[0].value == "12"
    assert missing is None
    assert invalid is None


@pytest.mark.asyncio
async def test_fetch_validator(node_url: str) -> None:
    client = NodeClient(node_url, timeout=5.0)
    try:
        bonded = await client.fetch_validator("val-bonded")
        unbonding = await client.fetch_validator("val-unbonding")
        grpc_missing = await client.fetch_validator("val-grpc-not-found")
        missing = await client.fetch_validator("val-nowhere")
        with pytest.raises(RpcError):
            await client.fetch_validator("val-garbage")
    finally:
        await client.aclose()

    assert bonded is not None and bonded.status == BOND_STATUS_BONDED and not bonded.jailed
    assert unbonding is not None and unbonding.status == BOND_STATUS_UNBONDING and unbonding.jailed
    assert grpc_missing is None
    assert missing is None


@pytest.mark.asyncio
async def test_fetch_slashes_follows_pagination(node_url: str) -> None:
    _NodeHandler.slash_requests.clear()
    client = NodeClient(node_url, timeout=5.0)
    try:
        slashes = await client.fetch_slashes("val-bonded", 10, 20)
        unknown = await client.fetch_slashes("val-unknown", 10, 20)
    finally:
        await client.aclose()

    assert [event.validator_period for event in slashes] == [3, 7]
    assert unknown == []
    first, second = _NodeHandler.slash_requests
    assert first == {"starting_height": "10", "ending_height": "20"}
    assert second["pagination.key"] == "page2"


@pytest.mark.asyncio
async def test_unreachable_node_raises_rpc_error() -> None:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    client = NodeClient(f"http://127.0.0.1:{port}", timeout=2.0)
    try:
        with pytest.raises(RpcError):
            await client.fetch_syncing()
    finally:
        await client.aclose()
