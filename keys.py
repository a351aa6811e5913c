import json
import os

from eth_account import Account
from eth_utils import ValidationError
from web3 import Web3

from errors import ConfigurationError

# --- Module-level Constants ---
CHAIN_ID_OFFSET = 35  # Offset of the 'v' component for EIP-155 (replay-protected) signatures.
V_OFFSET = 27  # Offset of the 'v' component for legacy (pre-EIP-155) signatures.
KEY_ENV_VAR = 'DEPLOY_PRIVATE_KEY'
ADDRESS_ENV_VAR = 'DEPLOY_ADDRESS'


def _parse_private_key(priv_key) -> bytes:
    if isinstance(priv_key, (bytes, bytearray)):
        key_bytes = bytes(priv_key)
    elif isinstance(priv_key, str):
        hex_key = priv_key[2:] if priv_key.startswith(('0x', '0X')) else priv_key
        try:
            key_bytes = bytes.fromhex(hex_key)
        except ValueError as exc:
            raise ConfigurationError('private key is not valid hex') from exc
    else:
        raise ConfigurationError(f'private key must be hex or bytes, got {type(priv_key).__name__}')
    if len(key_bytes) != 32:
        raise ConfigurationError(f'private key must be 32 bytes, got {len(key_bytes)}')
    return key_bytes


class Keys:
    """
    Holds the single account used to sign the deployment: its checksummed
    address and its private key. The key stays in memory for the lifetime of
    the process and is never written anywhere.
    """

    def __init__(self, addr, priv_key):
        """
        Initializes a Keys object from a private key and, optionally, the address it belongs to.

        Args:
            addr (str): The Ethereum address (e.g., '0x...'), or None to derive it from the key.
            priv_key (str | bytes): The private key as a hex string ('0x' optional) or 32 raw bytes.

        Raises:
            ConfigurationError: If the key is malformed or does not belong to `addr`.
        """
        self.priv_key_bytes = _parse_private_key(priv_key)
        self.priv_key = '0x' + self.priv_key_bytes.hex()
        try:
            derived = Account.from_key(self.priv_key_bytes).address
        except (ValueError, ValidationError) as exc:
            raise ConfigurationError(f'private key is not a valid secp256k1 key: {exc}') from exc
        if addr:
            try:
                expected = Web3.to_checksum_address(addr)
            except ValueError as exc:
                raise ConfigurationError(f'invalid account address {addr!r}') from exc
            if expected != derived:
                raise ConfigurationError(f'private key does not belong to {expected}')
        # The address is always the one derived from the key, in checksummed form.
        self.address = derived

    def __repr__(self):
        return f'Keys(address={self.address})'

    def sign_hash(self, hashed: bytes):
        """
        Signs a 32-byte hash with the private key. The signature is deterministic
        (RFC 6979), so the same key and hash always give the same (v, r, s).

        Args:
            hashed (bytes): The hash to sign.

        Returns:
            eth_account.datastructures.SignedMessage: Carries `v` (27 or 28), `r` and `s`.
        """
        return Account.unsafe_sign_hash(hashed, self.priv_key_bytes)

    @staticmethod
    def from_geth_file(file_name: str, pswd: str = '') -> callable:
        """
        A factory returning a callable that, given a Web3 instance, loads keys from a
        Geth-style keystore file.

        Args:
            file_name (str): The path to the Geth keystore file.
            pswd (str, optional): The password for the keystore file. Defaults to an empty string.

        Returns:
            callable: Takes a Web3 instance (`w3`) and returns a `Keys` object.
        """
        return lambda w3: Keys.__get_keys_from_file(w3.eth.account.decrypt, file_name, pswd)

    @staticmethod
    def from_address_and_private_key(address: str, priv_key: str) -> callable:
        """
        A factory returning a callable that provides keys from explicit strings.

        Args:
            address (str): The Ethereum address string, or None to derive it.
            priv_key (str): The private key string.

        Returns:
            callable: Takes an unused argument and returns a `Keys` object.
        """
        return lambda _: Keys(address, priv_key)

    @staticmethod
    def from_env(key_var: str = KEY_ENV_VAR, address_var: str = ADDRESS_ENV_VAR) -> callable:
        """
        A factory returning a callable that reads the private key (and optionally the
        expected address) from environment variables when invoked.

        Args:
            key_var (str): Name of the variable holding the hex private key.
            address_var (str): Name of the variable holding the expected address, if any.

        Returns:
            callable: Takes an unused argument and returns a `Keys` object.
        """
        def load(_):
            priv_key = os.environ.get(key_var)
            if not priv_key:
                raise ConfigurationError(f'environment variable {key_var} is not set')
            return Keys(os.environ.get(address_var), priv_key)

        return load

    @staticmethod
    def __get_keys_from_file(decrypt, file_name: str, pswd: str = '') -> 'Keys':
        try:
            with open(file_name) as keyfile:
                encrypted_key = keyfile.read()
            keystore = json.loads(encrypted_key)
            if not isinstance(keystore, dict):
                raise ConfigurationError(f'keystore {file_name} is not a JSON object')
            addr = keystore.get('address')
            if not isinstance(addr, str):
                addr = None  # Derived from the decrypted key instead.
            private_key = decrypt(encrypted_key, pswd)
        except OSError as exc:
            raise ConfigurationError(f'cannot read keystore {file_name}: {exc}') from exc
        except ValueError as exc:
            # Covers invalid JSON and a wrong password (MAC mismatch).
            raise ConfigurationError(f'cannot decrypt keystore {file_name}: {exc}') from exc
        return Keys('0x' + addr if addr and not addr.startswith('0x') else addr, bytes(private_key))


def to_eth_v(v_raw: int, chain_id: int = None) -> int:
    """
    Turns the recovery part of a signature into the 'v' value a transaction carries.

    Accepts either a bare recovery id (0 or 1), a legacy value (27 or 28) or an
    EIP-155 value, and re-encodes its parity for the requested scheme.

    Args:
        v_raw (int): The 'v' value as returned by the signer.
        chain_id (int, optional): The chain ID for EIP-155. If None, a legacy value (27 or 28) is returned.

    Returns:
        int: The adjusted 'v' value.

    Raises:
        ValueError: If `v_raw` does not encode a parity bit.
    """
    if v_raw >= CHAIN_ID_OFFSET:
        parity = (v_raw - CHAIN_ID_OFFSET) % 2
    elif v_raw >= V_OFFSET:
        parity = v_raw - V_OFFSET
    else:
        parity = v_raw
    if parity not in (0, 1):
        raise ValueError(f'invalid signature v value: {v_raw}')
    if chain_id is None:
        return parity + V_OFFSET
    return parity + CHAIN_ID_OFFSET + 2 * chain_id
