import json
import os

from errors import ConfigurationError

DEFAULT_BUILD_DIR = 'target'
DEFAULT_EXTENSION = '.wasm'


def read_contract_json(file_name: str) -> dict:
    """
    Reads and parses a JSON file, typically a compiled contract artifact holding
    the contract's ABI and bytecode.

    Args:
        file_name (str): The path to the JSON file to be read.

    Returns:
        dict: The parsed JSON content of the file.
    """
    with open(file_name, 'r') as fle:
        return json.load(fle)


def find_artifact(build_dir: str = DEFAULT_BUILD_DIR, extension: str = DEFAULT_EXTENSION) -> str:
    """
    Finds the first compiled artifact (by file name) with the given extension in a build directory.

    Args:
        build_dir (str): The directory the compiler writes to.
        extension (str): The artifact extension, e.g. '.wasm'.

    Returns:
        str: The path of the artifact.

    Raises:
        ConfigurationError: If the directory is unreadable or holds no matching file.
    """
    try:
        names = sorted(os.listdir(build_dir))
    except OSError as exc:
        raise ConfigurationError(f'cannot list build directory {build_dir}: {exc}') from exc
    for name in names:
        path = os.path.join(build_dir, name)
        if name.endswith(extension) and os.path.isfile(path):
            return path
    raise ConfigurationError(f'no *{extension} artifact found in {build_dir}')


def _from_hex(text: str, file_name: str) -> bytes:
    text = text.strip()
    if text.startswith(('0x', '0X')):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise ConfigurationError(f'bytecode in {file_name} is not valid hex') from exc


def read_bytecode(file_name: str, get_bytecode=lambda x: x['bytecode']) -> bytes:
    """
    Reads the bytecode to deploy. Binary artifacts (e.g. '.wasm') are used as-is;
    '.json' artifacts have their hex bytecode extracted with `get_bytecode`.

    Args:
        file_name (str): The artifact path.
        get_bytecode (callable): Extracts the hex bytecode from a parsed JSON artifact.

    Returns:
        bytes: The contract bytecode. May be empty.

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed.
    """
    try:
        if file_name.endswith('.json'):
            return _from_hex(get_bytecode(read_contract_json(file_name)), file_name)
        with open(file_name, 'rb') as fle:
            return fle.read()
    except OSError as exc:
        raise ConfigurationError(f'cannot read artifact {file_name}: {exc}') from exc
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise ConfigurationError(f'malformed contract artifact {file_name}: {exc}') from exc
