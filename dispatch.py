"""Submission of a signed transaction: dump a replayable request or send it and wait."""
import json
import sys
from typing import Union

from eth_typing import HexStr
from web3 import Web3

from ec import DEFAULT_RECEIPT_TIMEOUT

JSONRPC_VERSION = '2.0'
SEND_RAW_TRANSACTION = 'eth_sendRawTransaction'
DUMP_REQUEST_ID = 2


class DumpRequest:
    """Print the JSON-RPC request instead of sending it. Never touches the network."""

    def __init__(self, request_id: int = DUMP_REQUEST_ID):
        self.request_id = request_id


class SubmitAndAwait:
    """Send the transaction through `client` and wait for its receipt."""

    def __init__(self, client, timeout: float = DEFAULT_RECEIPT_TIMEOUT):
        self.client = client
        self.timeout = timeout


Mode = Union[DumpRequest, SubmitAndAwait]


def mode_from_flag(dump_json: bool, client=None, timeout: float = DEFAULT_RECEIPT_TIMEOUT) -> Mode:
    """
    Picks the dispatch mode from the `--dump-json` flag. This is the only place the flag is read.

    Args:
        dump_json (bool): True to print the request, False to send it.
        client (ec.Client, optional): The transport used in submit mode.
        timeout (float): Seconds to wait for the receipt in submit mode.

    Returns:
        DumpRequest | SubmitAndAwait: The selected mode.

    Raises:
        ValueError: If submit mode is requested without a client.
    """
    if dump_json:
        return DumpRequest()
    if client is None:
        raise ValueError('submitting a transaction needs a client')
    return SubmitAndAwait(client, timeout)


def build_request(raw_tx: HexStr, request_id: int = DUMP_REQUEST_ID) -> dict:
    """
    Builds the `eth_sendRawTransaction` request object for a signed transaction.

    Args:
        raw_tx (HexStr): The signed transaction, '0x'-prefixed hex.
        request_id (int): The JSON-RPC request id.

    Returns:
        dict: {"jsonrpc": "2.0", "id": ..., "method": "eth_sendRawTransaction", "params": [raw_tx]}
    """
    return {
        'jsonrpc': JSONRPC_VERSION,
        'id': request_id,
        'method': SEND_RAW_TRANSACTION,
        'params': [raw_tx],
    }


def dispatch(mode: Mode, raw_tx: HexStr, out=None):
    """
    Hands a signed transaction to the selected mode.

    Args:
        mode (DumpRequest | SubmitAndAwait): What to do with the transaction.
        raw_tx (HexStr): The signed transaction, '0x'-prefixed hex.
        out: Text stream the result is written to. Defaults to stdout.

    Returns:
        dict: The request object (dump mode) or the receipt (submit mode).
    """
    if out is None:
        out = sys.stdout
    if isinstance(mode, DumpRequest):
        request = build_request(raw_tx, mode.request_id)
        print(json.dumps(request, separators=(',', ':')), file=out)
        return request
    if isinstance(mode, SubmitAndAwait):
        receipt = mode.client.send_signed_raw_transaction(raw_tx, timeout=mode.timeout)
        print(Web3.to_json(receipt), file=out)
        return receipt
    raise TypeError(f'unknown dispatch mode {type(mode).__name__}')
