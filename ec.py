import logging
from typing import Union

import requests
from eth_typing import HexStr
from web3 import Web3
from web3.exceptions import Web3Exception, Web3RPCError

from errors import NetworkError, RejectionError

_LOGGER = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT = 120  # seconds, same as web3's own default


def _rpc_error(exc: Web3RPCError) -> dict:
    response = getattr(exc, 'rpc_response', None) or {}
    error = response.get('error') if isinstance(response, dict) else None
    return error if isinstance(error, dict) else {}


class Client:
    """
    A thin client around one Web3 HTTP connection. It is the only object that
    talks to the node: it resolves the sender's nonce and submits signed
    transactions. One instance is built per invocation and passed to whoever
    needs the transport.
    """

    def __init__(self, url: str, keys_supplier):
        """
        Initializes the client. No network I/O happens here.

        Args:
            url (str): The URL of the node's JSON-RPC endpoint (e.g., 'http://localhost:8545').
            keys_supplier: A callable that takes a Web3 instance and returns an object with
                           `address` and `sign_hash` (see `keys.Keys`).
        """
        self.url = url
        self.w3 = Web3(Web3.HTTPProvider(url))
        self.keys = keys_supplier(self.w3)

    def get_latest_nonce(self, block_identifier='pending') -> int:
        """
        Retrieves the transaction count (nonce) of the client's address. 'pending'
        makes transactions already in the mempool count too.

        Returns:
            int: The nonce to use for the next transaction.

        Raises:
            NetworkError: If the node is unreachable or the answer is not a transaction count.
        """
        try:
            nonce = self.w3.eth.get_transaction_count(self.keys.address, block_identifier=block_identifier)
        except (requests.exceptions.RequestException, Web3Exception, ValueError) as exc:
            # ValueError covers a body that is not JSON and a result that is not hex.
            raise NetworkError(f'could not fetch the transaction count of {self.keys.address} '
                               f'from {self.url}: {exc}') from exc
        if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
            raise NetworkError(f'node returned a malformed transaction count: {nonce!r}')
        _LOGGER.debug('nonce of %s is %d', self.keys.address, nonce)
        return nonce

    def send_signed_raw_transaction(self, raw_tx: Union[HexStr, bytes], timeout: float = DEFAULT_RECEIPT_TIMEOUT):
        """
        Sends a signed, raw transaction and waits for it to be mined.

        Args:
            raw_tx (Union[HexStr, bytes]): The RLP-encoded and signed transaction.
            timeout (float): Seconds to wait for the receipt before giving up.

        Returns:
            web3.types.TxReceipt: The transaction receipt.

        Raises:
            RejectionError: If the node refuses the transaction.
            NetworkError: If the node is unreachable, answers badly, or no receipt shows up in time.
        """
        try:
            tx_hash = self.w3.eth.send_raw_transaction(raw_tx)
        except Web3RPCError as exc:
            error = _rpc_error(exc)
            raise RejectionError(error.get('message') or str(exc), error.get('code'), error.get('data')) from exc
        except (requests.exceptions.RequestException, Web3Exception, ValueError) as exc:
            raise NetworkError(f'could not send the transaction to {self.url}: {exc}') from exc
        _LOGGER.info('transaction %s sent, waiting for receipt', Web3.to_hex(tx_hash))
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except (requests.exceptions.RequestException, Web3Exception, ValueError) as exc:
            raise NetworkError(f'no receipt for {Web3.to_hex(tx_hash)}: {exc}') from exc
        _LOGGER.info('transaction %s mined in block %s with status %s',
                     Web3.to_hex(tx_hash), receipt.get('blockNumber'), receipt.get('status'))
        return receipt

    def get_address_bytes(self) -> bytes:
        """
        Gets the client's address as 20 raw bytes.
        """
        return bytes.fromhex(self.keys.address[2:])

    def sign_hash(self, hashed: bytes):
        """
        Signs a hash with the client's key. Purely local, no network I/O.
        """
        return self.keys.sign_hash(hashed)
