import rlp
from eth_hash.auto import keccak
from eth_keys.datatypes import Signature
from eth_typing import HexStr
from rlp.exceptions import RLPException
from rlp.sedes import big_endian_int

from keys import to_eth_v

UINT256_CEILING = 2 ** 256

# Canonical order of the fields covered by the signature (legacy scheme, no chain id).
UNSIGNED_FIELDS = ('nonce', 'gas_price', 'gas_limit', 'to', 'value', 'data')
# Canonical order of a signed legacy transaction on the wire.
SIGNED_FIELDS = UNSIGNED_FIELDS + ('v', 'r', 's')
# Positions holding integers; everything else is a byte string.
_INT_POSITIONS = (0, 1, 2, 4, 6, 7, 8)


def encode_fields(fields: list) -> bytes:
    """
    RLP-encodes an ordered list of transaction fields.

    Integers are encoded as their minimal big-endian byte representation (zero
    encodes as the empty string) and byte strings are encoded as-is. The whole
    list is wrapped in an outer length prefix.

    Args:
        fields (list): Non-negative integers and/or byte strings, in canonical order.

    Returns:
        bytes: The RLP encoding of the list.

    Raises:
        ValueError: If a field is negative, a bool, or neither an int nor bytes.
    """
    for position, field in enumerate(fields):
        if isinstance(field, bool) or not isinstance(field, (int, bytes)):
            raise ValueError(f'field {position} must be an int or bytes, got {type(field).__name__}')
        if isinstance(field, int) and field < 0:
            raise ValueError(f'field {position} must be non-negative, got {field}')
    return rlp.encode(list(fields))


def decode_fields(raw: bytes, int_positions=()) -> list:
    """
    Decodes an RLP list produced by `encode_fields`.

    Args:
        raw (bytes): The encoded list.
        int_positions (iterable): Positions that should be turned back into integers.

    Returns:
        list: The decoded fields, with the requested positions as ints and the rest as bytes.

    Raises:
        ValueError: If `raw` is not a flat RLP list or an integer has a non-canonical encoding.
    """
    try:
        items = rlp.decode(raw)
    except RLPException as exc:
        raise ValueError(f'malformed RLP payload: {exc}') from exc
    if not isinstance(items, list) or any(not isinstance(item, bytes) for item in items):
        raise ValueError('expected a flat RLP list of byte strings')
    try:
        return [big_endian_int.deserialize(item) if i in int_positions else item
                for i, item in enumerate(items)]
    except RLPException as exc:
        raise ValueError(f'non-canonical integer encoding: {exc}') from exc


def contract_address(sender: bytes, nonce: int) -> bytes:
    """
    Computes the address a contract-creation transaction will deploy to.

    Args:
        sender (bytes): The 20-byte address of the sending account.
        nonce (int): The nonce of the creation transaction.

    Returns:
        bytes: The last 20 bytes of keccak(rlp([sender, nonce])).
    """
    return keccak(rlp.encode([sender, nonce]))[12:]


def _validate(name: str, value):
    if name == 'to':
        if value != b'':
            raise ValueError('a contract-creation transaction must have an empty `to`')
        return b''
    if name == 'data':
        if not isinstance(value, (bytes, bytearray)):
            raise ValueError(f'data must be bytes, got {type(value).__name__}')
        return bytes(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f'{name} must be an int, got {type(value).__name__}')
    if not 0 <= value < UINT256_CEILING:
        raise ValueError(f'{name} must fit in an unsigned 256-bit integer, got {value}')
    return value


class ContractCreationTx:
    """
    Represents a legacy (pre-EIP-155) contract-creation transaction:
    [nonce, gasPrice, gasLimit, to, value, data, v, r, s] with an empty `to`.

    The envelope starts unsigned (v, r and s are None). Signing fills them in;
    changing any payload field afterwards drops the signature so the envelope
    has to be signed again before it can be encoded for broadcast.
    """

    def __init__(self, nonce: int, gas_price: int, gas_limit: int, data: bytes = b'', value: int = 0):
        """
        Initializes an unsigned contract-creation transaction.

        Args:
            nonce (int): The transaction count of the sender at broadcast time.
            gas_price (int): The price per gas unit in Wei. May be zero on dev networks.
            gas_limit (int): The maximum gas the deployment may consume.
            data (bytes): The contract bytecode to deploy. Empty bytecode is accepted.
            value (int): The amount of Wei sent to the new contract. Defaults to 0.
        """
        object.__setattr__(self, 'v', None)
        object.__setattr__(self, 'r', None)
        object.__setattr__(self, 's', None)
        self.nonce = nonce
        self.gas_price = gas_price
        self.gas_limit = gas_limit
        self.to = b''
        self.value = value
        self.data = data

    def __setattr__(self, name, value):
        if name in ('v', 'r', 's'):
            # Signature components only come from sign() or decode().
            raise AttributeError(f'{name} can only be set by signing or decoding the transaction')
        if name in UNSIGNED_FIELDS:
            value = _validate(name, value)
            if self.is_signed:
                # The old signature no longer covers the payload.
                self.clear_signature()
        object.__setattr__(self, name, value)

    def __eq__(self, other):
        if not isinstance(other, ContractCreationTx):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name in SIGNED_FIELDS)

    def __repr__(self):
        return (f'ContractCreationTx(nonce={self.nonce}, gas_price={self.gas_price}, '
                f'gas_limit={self.gas_limit}, value={self.value}, data=0x{self.data.hex()}, '
                f'signed={self.is_signed})')

    @property
    def is_signed(self) -> bool:
        return self.v is not None

    def clear_signature(self):
        object.__setattr__(self, 'v', None)
        object.__setattr__(self, 'r', None)
        object.__setattr__(self, 's', None)

    def unsigned_fields(self) -> list:
        return [getattr(self, name) for name in UNSIGNED_FIELDS]

    def encode_unsigned(self) -> bytes:
        """
        RLP-encodes the six fields covered by the signature. v, r and s are
        excluded and, for this legacy scheme, so is any chain id.

        Returns:
            bytes: The signing payload.
        """
        return encode_fields(self.unsigned_fields())

    def hash(self) -> bytes:
        """
        Calculates the hash that gets signed: keccak256 of the unsigned encoding.

        Returns:
            bytes: The 32-byte Keccak-256 hash of the unsigned transaction.
        """
        return keccak(self.encode_unsigned())

    def sign(self, signing_function) -> 'ContractCreationTx':
        """
        Signs the transaction and stores v, r and s on the envelope.

        Args:
            signing_function (callable): Takes a 32-byte hash and returns an object with
                                         `v`, `r` and `s` attributes (e.g. `Keys.sign_hash`).

        Returns:
            ContractCreationTx: self, now signed.
        """
        signed_msg = signing_function(self.hash())
        object.__setattr__(self, 'v', to_eth_v(signed_msg.v))
        object.__setattr__(self, 'r', signed_msg.r)
        object.__setattr__(self, 's', signed_msg.s)
        return self

    def encode_with_sig(self) -> bytes:
        """
        Encodes all nine fields in canonical order, ready for broadcasting.

        Returns:
            bytes: The RLP-encoded, signed raw transaction bytes.

        Raises:
            ValueError: If the transaction has not been signed.
        """
        if not self.is_signed:
            raise ValueError('transaction must be signed before it is encoded for broadcast')
        return encode_fields(self.unsigned_fields() + [self.v, self.r, self.s])

    raw_transaction = encode_with_sig

    def to_hex(self) -> HexStr:
        return HexStr('0x' + self.encode_with_sig().hex())

    def tx_hash(self) -> bytes:
        """The hash a node reports for this transaction once it is broadcast."""
        return keccak(self.encode_with_sig())

    def recover_sender(self) -> str:
        """
        Recovers the checksummed address of the signer from (hash, v, r, s).

        Returns:
            str: The checksummed address whose key produced the signature.

        Raises:
            ValueError: If the transaction has not been signed.
        """
        if not self.is_signed:
            raise ValueError('cannot recover the sender of an unsigned transaction')
        signature = Signature(vrs=(to_eth_v(self.v) - 27, self.r, self.s))
        return signature.recover_public_key_from_msg_hash(self.hash()).to_checksum_address()

    @classmethod
    def decode(cls, raw: bytes) -> 'ContractCreationTx':
        """
        Rebuilds an envelope from its signed (9 fields) or unsigned (6 fields) encoding.

        Args:
            raw (bytes): The RLP encoding.

        Returns:
            ContractCreationTx: The decoded transaction.

        Raises:
            ValueError: If the payload is malformed or is not a contract creation.
        """
        fields = decode_fields(raw, _INT_POSITIONS)
        if len(fields) not in (len(UNSIGNED_FIELDS), len(SIGNED_FIELDS)):
            raise ValueError(f'expected 6 or 9 fields, got {len(fields)}')
        nonce, gas_price, gas_limit, to, value, data = fields[:6]
        if to != b'':
            raise ValueError('not a contract-creation transaction (non-empty `to`)')
        tx = cls(nonce=nonce, gas_price=gas_price, gas_limit=gas_limit, data=data, value=value)
        if len(fields) == len(SIGNED_FIELDS):
            v, r, s = fields[6:]
            object.__setattr__(tx, 'v', v)
            object.__setattr__(tx, 'r', r)
            object.__setattr__(tx, 's', s)
        return tx
