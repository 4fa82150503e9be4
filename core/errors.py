"""Error types for the gateway bridge."""


class BridgeError(Exception):
    """Base exception for all bridge errors."""
    pass


class ConfigurationError(BridgeError):
    """Errors related to configuration."""
    pass


class UnknownAsset(ConfigurationError):
    """An asset symbol that is not configured."""
    pass


class TransportError(BridgeError):
    """Connection-level faults talking to a chain node."""
    pass


class RPCError(BridgeError):
    """Errors returned by a JSON-RPC endpoint."""
    def __init__(self, message: str, method: str = "", details: str = "", code: int = 0):
        self.method = method
        self.details = details
        self.code = code
        self.reason = message
        super().__init__(f"RPC Error [{method}]: {message} - {details}")


class ConfirmationTimeout(BridgeError):
    """A submitted transaction was not mined in time."""
    pass


class UnsupportedOperation(BridgeError):
    """The gateway on this chain side does not host the operation."""
    pass


# Mapping errors

class MappingError(BridgeError):
    """Errors related to account and contract mappings."""
    pass


class AlreadyMapped(MappingError):
    """A mapping already exists for the address."""
    pass


class AccountNotMapped(MappingError):
    """A flow needs an account mapping that does not exist yet."""
    pass


class AuthenticationFailed(MappingError):
    """A signature or proof did not verify against the claimed signer."""
    pass


class InvalidCreatorProof(AuthenticationFailed):
    """The contract creator proof does not recover to the deployer."""
    pass


# Gateway / withdrawal errors

class GatewayError(BridgeError):
    """Errors raised by gateway contract interactions."""
    pass


class TransactionReverted(GatewayError):
    """A transaction was rejected by the chain."""
    def __init__(self, message: str, tx_hash: str = ""):
        self.tx_hash = tx_hash
        super().__init__(message)


class WithdrawalAlreadyPending(TransactionReverted):
    """The owner already has an unresolved withdrawal receipt."""
    pass


class InvalidSignature(TransactionReverted):
    """The withdrawal signature does not match the attestor's key."""
    pass


class AmountMismatch(TransactionReverted):
    """The finalized amount differs from what the attestor signed."""
    pass


class WithdrawalNonceMismatch(GatewayError):
    """A receipt belongs to a different withdrawal than the one being finalized."""
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Withdrawal nonce mismatch: expected {expected}, receipt carries {actual}"
        )


class InvalidReceipt(GatewayError):
    """A withdrawal receipt pairs a token kind with the wrong kind of contract."""
    pass
