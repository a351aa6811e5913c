class DeployError(Exception):
    """
    Base class for every failure raised while building, signing or submitting
    a contract-creation transaction. The CLI reports any of these as a single
    labelled error line and exits non-zero.
    """


class ConfigurationError(DeployError):
    """
    Raised for a malformed private key or a missing / unreadable bytecode
    artifact. Always raised before any network I/O happens.
    """


class NetworkError(DeployError):
    """
    Raised when the node cannot be reached, the request times out, or the node
    answers with something that is not a well-formed JSON-RPC response.
    """


class RejectionError(DeployError):
    """
    Raised when the node answers but refuses the transaction (bad nonce,
    insufficient gas, invalid payload). Carries the node's own error payload.
    """

    def __init__(self, message: str, code: int = None, data=None):
        """
        Args:
            message (str): The error message reported by the node.
            code (int, optional): The JSON-RPC error code, when the node sent one.
            data (optional): The JSON-RPC error `data` member, when present.
        """
        super().__init__(message)
        self.code = code
        self.data = data
