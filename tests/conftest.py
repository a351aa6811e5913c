"""Shared fixtures: a fixed test account and an in-memory stand-in for the node."""
from __future__ import annotations

import io
import json
from types import SimpleNamespace

import pytest
import requests

import ec
from keys import Keys

# Development key of the original deployment script, never funded on a public network.
TEST_PRIVATE_KEY = "c61675c22aee77da8f6e19444ece45557dc80e1482aa848f541e94e3e5d91179"
TEST_ADDRESS = "0x1cca28600d7491365520b31b466f88647b9839ec"


class FakeEth:
    """Records every call the client makes and answers from canned values."""

    def __init__(self, nonce=0, receipt=None, send_error=None, nonce_error=None, wait_error=None) -> None:
        self.nonce = nonce
        self.receipt = receipt if receipt is not None else {
            "transactionHash": "0x" + "11" * 32,
            "blockHash": "0x" + "22" * 32,
            "blockNumber": 7,
            "gasUsed": 53000,
            "status": 1,
            "contractAddress": "0x" + "33" * 20,
        }
        self.send_error = send_error
        self.nonce_error = nonce_error
        self.wait_error = wait_error
        self.calls: list[tuple] = []

    def get_transaction_count(self, address, block_identifier="latest"):
        self.calls.append(("get_transaction_count", address, block_identifier))
        if self.nonce_error is not None:
            raise self.nonce_error
        return self.nonce

    def send_raw_transaction(self, raw_tx):
        self.calls.append(("send_raw_transaction", raw_tx))
        if self.send_error is not None:
            raise self.send_error
        return b"\x11" * 32

    def wait_for_transaction_receipt(self, tx_hash, timeout=120):
        self.calls.append(("wait_for_transaction_receipt", tx_hash, timeout))
        if self.wait_error is not None:
            raise self.wait_error
        return self.receipt


@pytest.fixture
def test_keys() -> Keys:
    return Keys(None, TEST_PRIVATE_KEY)


@pytest.fixture
def make_client():
    """Build a real `ec.Client` whose web3 handle is replaced by a `FakeEth`."""

    def factory(**fake_kwargs) -> ec.Client:
        client = ec.Client("http://localhost:8545", Keys.from_address_and_private_key(None, TEST_PRIVATE_KEY))
        client.w3 = SimpleNamespace(eth=FakeEth(**fake_kwargs))
        return client

    return factory


def http_response(body: bytes) -> requests.Response:
    response = requests.Response()
    response.status_code = 200
    response.headers["Content-Type"] = "application/json"
    response._content = body
    response.raw = io.BytesIO(body)
    return response


@pytest.fixture
def node_answers(monkeypatch):
    """Make every JSON-RPC POST get `result` back, or `raw_body` verbatim when given."""

    def install(result=None, raw_body: bytes | None = None) -> list[dict]:
        requests_seen: list[dict] = []

        def fake_post(session, url, data=None, **kwargs):
            request = json.loads(data)
            requests_seen.append(request)
            if raw_body is not None:
                return http_response(raw_body)
            body = {"jsonrpc": "2.0", "id": request["id"], "result": result}
            return http_response(json.dumps(body).encode())

        monkeypatch.setattr(requests.Session, "post", fake_post)
        return requests_seen

    return install
