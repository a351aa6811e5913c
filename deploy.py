#!/usr/bin/env python3
"""Deploy a compiled contract by signing a contract-creation transaction and sending it to a node."""
import argparse
import logging
import sys
from typing import Optional, Sequence

from web3 import Web3

import dispatch
import ec
import keys
import model
import utils
from errors import DeployError

_LOGGER = logging.getLogger(__name__)

# --- Configuration Section ---
DEFAULT_GATEWAY = 'http://localhost:8545'  # JSON-RPC endpoint of the node.
DEFAULT_GAS_PRICE = 0  # Dev/private networks accept free gas.
DEFAULT_GAS_LIMIT = 0xfffffffffffff  # High enough for any deployment the node will run.
DEFAULT_VALUE = 0  # No Wei sent to the new contract.


def build_signed_transaction(bytecode: bytes, nonce: int, signing_function, gas_price: int = DEFAULT_GAS_PRICE,
                             gas_limit: int = DEFAULT_GAS_LIMIT, value: int = DEFAULT_VALUE) -> model.ContractCreationTx:
    """
    Builds and signs the contract-creation transaction. Pure, no network I/O.

    Args:
        bytecode (bytes): The contract code to deploy.
        nonce (int): The sender's current transaction count.
        signing_function (callable): Signs a 32-byte hash (e.g. `Keys.sign_hash`).
        gas_price (int): Price per gas unit in Wei.
        gas_limit (int): Maximum gas the deployment may use.
        value (int): Wei sent along with the creation.

    Returns:
        model.ContractCreationTx: The signed transaction.
    """
    tx = model.ContractCreationTx(nonce=nonce, gas_price=gas_price, gas_limit=gas_limit, data=bytecode, value=value)
    return tx.sign(signing_function)


def deploy(bytecode: bytes, keys_supplier, gateway: str = DEFAULT_GATEWAY, dump_json: bool = False,
           gas_price: int = DEFAULT_GAS_PRICE, gas_limit: int = DEFAULT_GAS_LIMIT, value: int = DEFAULT_VALUE,
           timeout: float = ec.DEFAULT_RECEIPT_TIMEOUT, out=None):
    """
    Runs the whole pipeline: resolve nonce, build, sign, then dump or submit.

    Returns:
        dict: The printed request (dump mode) or the receipt (submit mode).
    """
    client = ec.Client(gateway, keys_supplier)
    nonce = client.get_latest_nonce()
    tx = build_signed_transaction(bytecode, nonce, client.sign_hash, gas_price, gas_limit, value)
    _LOGGER.info('signed deployment %s from %s, contract will be created at %s',
                 Web3.to_hex(tx.tx_hash()), client.keys.address,
                 Web3.to_checksum_address(model.contract_address(client.get_address_bytes(), nonce)))
    mode = dispatch.mode_from_flag(dump_json, client, timeout)
    return dispatch.dispatch(mode, tx.to_hex(), out)


def _int(text: str) -> int:
    # Base 0 so gas options accept both decimal and '0x' hex.
    return int(text, 0)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parses the command line.

    Args:
        argv (Sequence[str], optional): Arguments without the program name. Defaults to sys.argv.

    Returns:
        argparse.Namespace: The artifact path, gateway, mode flag, key source and gas settings.
    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('artifact', nargs='?',
                        help='Compiled contract to deploy. Defaults to the first artifact in --build-dir.')
    parser.add_argument('--gateway', default=DEFAULT_GATEWAY, help='gateway http address')
    parser.add_argument('--dump-json', action='store_true',
                        help='print the eth_sendRawTransaction request instead of sending it')
    parser.add_argument('--build-dir', default=utils.DEFAULT_BUILD_DIR, help='where to look for an artifact')
    parser.add_argument('--extension', default=utils.DEFAULT_EXTENSION, help='artifact file extension')
    parser.add_argument('--key-file', help=f'Geth keystore file. Defaults to the {keys.KEY_ENV_VAR} variable.')
    parser.add_argument('--password', default='', help='keystore password')
    parser.add_argument('--gas-price', type=_int, default=DEFAULT_GAS_PRICE)
    parser.add_argument('--gas-limit', type=_int, default=DEFAULT_GAS_LIMIT)
    parser.add_argument('--value', type=_int, default=DEFAULT_VALUE)
    parser.add_argument('--timeout', type=float, default=ec.DEFAULT_RECEIPT_TIMEOUT,
                        help='seconds to wait for the receipt')
    parser.add_argument('--log-level', default='WARNING', help='Logging verbosity (DEBUG, INFO, WARNING)')
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    """
    Sends diagnostics to stderr so stdout only carries the request or the receipt.

    Args:
        level (str): Logging level name, e.g. 'INFO'. Unknown names fall back to WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='%(asctime)s | %(levelname)s | %(message)s',
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI entry point. The artifact and the key are loaded before any request reaches the node.

    Args:
        argv (Sequence[str], optional): Arguments without the program name. Defaults to sys.argv.

    Returns:
        int: 0 on success, 1 after printing a labelled error to stderr.
    """
    args = parse_args(argv)
    configure_logging(args.log_level)
    # The key source is chosen here but only read when the client is built.
    if args.key_file:
        keys_supplier = keys.Keys.from_geth_file(args.key_file, args.password)
    else:
        keys_supplier = keys.Keys.from_env()
    try:
        artifact = args.artifact or utils.find_artifact(args.build_dir, args.extension)
        bytecode = utils.read_bytecode(artifact)
        _LOGGER.info('deploying %s (%d bytes)', artifact, len(bytecode))
        deploy(bytecode, keys_supplier, gateway=args.gateway, dump_json=args.dump_json,
               gas_price=args.gas_price, gas_limit=args.gas_limit, value=args.value, timeout=args.timeout)
    except (DeployError, ValueError) as exc:
        print('ERROR: Could not deploy contract', file=sys.stderr)
        print(f'{type(exc).__name__}: {exc}', file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
