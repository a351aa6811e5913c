from __future__ import annotations

import io
import json

import pytest

from dispatch import DumpRequest, SubmitAndAwait, build_request, dispatch, mode_from_flag

RAW_TX = "0xf84d808087"


class RecordingClient:
    def __init__(self, receipt=None) -> None:
        self.receipt = receipt or {"status": 1, "blockNumber": 3, "contractAddress": "0x" + "ab" * 20}
        self.sent: list[tuple[str, float]] = []

    def send_signed_raw_transaction(self, raw_tx, timeout=120):
        self.sent.append((raw_tx, timeout))
        return self.receipt


def test_build_request_shape() -> None:
    assert build_request(RAW_TX) == {
        "jsonrpc": "2.0",
        "id": 2,
        "method": "eth_sendRawTransaction",
        "params": [RAW_TX],
    }


def test_mode_from_flag() -> None:
    client = RecordingClient()
    assert isinstance(mode_from_flag(True, client), DumpRequest)
    submit = mode_from_flag(False, client, timeout=9)
    assert isinstance(submit, SubmitAndAwait)
    assert submit.client is client and submit.timeout == 9
    with pytest.raises(ValueError):
        mode_from_flag(False, None)


def test_dump_mode_prints_request_and_never_sends() -> None:
    client = RecordingClient()
    out = io.StringIO()

    request = dispatch(mode_from_flag(True, client), RAW_TX, out)

    assert client.sent == []
    assert json.loads(out.getvalue()) == request == build_request(RAW_TX)
    assert out.getvalue() == '{"jsonrpc":"2.0","id":2,"method":"eth_sendRawTransaction","params":["%s"]}\n' % RAW_TX


def test_dump_mode_defaults_to_stdout(capsys) -> None:
    dispatch(DumpRequest(), RAW_TX)
    assert json.loads(capsys.readouterr().out)["params"] == [RAW_TX]


def test_submit_mode_prints_receipt_not_request() -> None:
    client = RecordingClient()
    out = io.StringIO()

    receipt = dispatch(SubmitAndAwait(client, timeout=30), RAW_TX, out)

    assert client.sent == [(RAW_TX, 30)]
    assert receipt is client.receipt
    assert json.loads(out.getvalue()) == client.receipt
    assert "eth_sendRawTransaction" not in out.getvalue()


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(TypeError):
        dispatch(object(), RAW_TX, io.StringIO())
